"""
This module contains some utility functions for writing graphs.
"""

from __future__ import annotations

import sys
from oblige.namespace import namespaces
from pathlib import Path
from rdflib import Dataset, Graph
from typing import Literal, TextIO


def bind_all(g: Graph) -> None:
    for prefix, ns in namespaces.items():
        g.bind(prefix, ns)


def write_graphs(*graphs: Graph,
        file: Path | TextIO = sys.stdout,
        format: Literal["trig", "ttl", "xml", "nt", "json-ld"] = "ttl"):
    """
    Convenience method to write one or more type graphs to the given file.
    """

    assert len(graphs) >= 1

    g: Dataset | Graph
    if format == "trig":
        g = Dataset()
        for graph in graphs:
            subgraph = g.graph(graph.identifier)
            subgraph += graph
    elif len(graphs) > 1:
        g = Graph()
        for graph in graphs:
            g += graph
    else:
        g = graphs[0]
    bind_all(g)

    result = g.serialize(format=format)

    if isinstance(file, Path):
        with open(file, 'w') as f:
            f.write(result)
    else:
        print(result, file=file)
