from __future__ import annotations

import rdflib
from rdflib import Namespace

OB = Namespace('urn:oblige:vocab#')
EX = Namespace('https://example.com/#')
RDF = rdflib.RDF
RDFS = rdflib.RDFS

namespaces = {
    "ob": OB,
    "rdf": RDF,
    "rdfs": RDFS,
}
