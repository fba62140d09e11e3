"""
Command-line interface for common tasks.
"""

from __future__ import annotations

import sys
import json
import logging
import platform
from sys import stderr
from pathlib import Path
from glob import glob

from plumbum import cli  # type: ignore
from oblige.type import ObligeError, TypeExpr, Reference
from oblige.lang import parse_type
from oblige.registry import Registry
from oblige.resolve import resolve, ResolutionError
from oblige.match import Matcher
from oblige.graph import TypeGraph
from oblige.util.utils import write_graphs


def globbed(paths: tuple[str, ...]) -> tuple[str, ...]:
    # Windows does not interpret asterisks as globs, so we do that manually
    if platform.system() == 'Windows':
        return tuple(g for original in paths for g in glob(original))
    return paths


class WithRegistry:
    prelude = cli.Flag(["--prelude"], default=False,
        help="Include the declarations of `number` and `boolean`")
    skip_error = cli.Flag(["--skip-error"], default=False,
        help="Skip files that fail to load instead of exiting")

    def load(self, *paths: str) -> Registry | None:
        """
        Load the declarations of the given files into a fresh registry.
        Returns `None` if a file failed to load and errors are not skipped.
        """
        registry = Registry(prelude=self.prelude)
        for path in globbed(paths):
            try:
                registry.parse(Path(path).read_text())
            except ObligeError as e:
                if self.skip_error:
                    print(f"Skipping {path}:\n\t{e}", file=stderr)
                else:
                    print(f"Error in {path}:\n\t{e}", file=stderr)
                    return None
        return registry


class WithRDF:
    output_path = cli.SwitchAttr(["-o", "--output"],
        help="file which to write to, or - for stdout")
    output_format = cli.SwitchAttr(["-t", "--to"],
        cli.Set("xml", "ttl", "trig", "nt", "json-ld"), default="ttl")

    def write(self, *graphs: TypeGraph):
        """
        Convenience method to write one or more graphs to the given file.
        """

        path = self.output_path
        write_graphs(*graphs,
            file=Path(path) if path and path != "-" else sys.stdout,
            format=self.output_format)


class CLI(cli.Application):
    """
    A utility to check, query and publish declarations written in the Oblige
    type notation
    """

    PROGNAME = "oblige"
    VERSION = "0.1.0"

    verbose = cli.Flag(["--verbose"], default=False,
        help="Log debugging information")

    def main(self, *args):
        if self.verbose:
            logging.basicConfig(level=logging.DEBUG)
        if args:
            print(f"Unknown command {args[0]}")
            return 1
        if not self.nested_command:
            self.help()
            return 1


@CLI.subcommand("check")
class Checker(cli.Application, WithRegistry):
    "Resolve every declaration in the given files and report the failures"

    def main(self, *FILE) -> int:
        if not FILE:
            self.help()
            return 1

        registry = self.load(*FILE)
        if registry is None:
            return 1

        failures = 0
        for decl in registry:
            try:
                resolve(registry, Reference(decl.name, decl.parameters))
            except ResolutionError as e:
                failures += 1
                print(f"Error in {decl.name}:\n\t{e}", file=stderr)
                if not self.skip_error:
                    return 1
            else:
                print(decl)
        return 1 if failures else 0


@CLI.subcommand("match")
class ValueMatcher(cli.Application, WithRegistry):
    """
    Check whether values, written as JSON, inhabit a type given in the
    notation
    """

    closed_records = cli.Flag(["--closed-records"], default=False,
        help="Require records to have exactly the fields of their type")

    def main(self, FILE, TYPE, *VALUE) -> int:
        registry = self.load(FILE)
        if registry is None:
            return 1

        matcher = Matcher(open_records=not self.closed_records)
        try:
            t: TypeExpr = resolve(registry, parse_type(TYPE))
        except ObligeError as e:
            print(f"Error in {TYPE}:\n\t{e}", file=stderr)
            return 1

        success = True
        for text in VALUE:
            try:
                value = json.loads(text)
            except json.JSONDecodeError as e:
                print(f"Error in {text}:\n\t{e}", file=stderr)
                return 1
            result = matcher.matches(value, t)
            success = success and result
            print(f"{text}: {'yes' if result else 'no'}")
        return 0 if success else 1


@CLI.subcommand("vocab")
class VocabBuilder(cli.Application, WithRegistry, WithRDF):
    "Build an RDF vocabulary describing the declarations in the given files"

    minimal = cli.Flag(["--minimal"], default=False,
        help="Only describe the declarations themselves")

    def main(self, *FILE) -> int:
        if not FILE:
            self.help()
            return 1

        registry = self.load(*FILE)
        if registry is None:
            return 1

        vocab = TypeGraph(registry, minimal=self.minimal,
            with_labels=True)
        vocab.add_vocabulary()
        self.write(vocab)
        return 0


def main():
    CLI.run()


if __name__ == '__main__':
    main()
