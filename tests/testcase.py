import unittest

from typing import Callable, Any

from oblige.lang import parse


class TestCase(unittest.TestCase):
    def assertRaisesChain(self, exceptions: list[type], f: Callable,
            *nargs, **kwargs):
        cm: Any
        with self.assertRaises(exceptions[0]) as cm:
            f(*nargs, **kwargs)

        current = cm.exception
        for e in exceptions:
            self.assertIsInstance(current, e)
            current = current.__cause__

    def assertRoundTrip(self, string: str):
        """
        Parsing the canonical text of parsed declarations must yield the same
        declarations.
        """
        decls = parse(string)
        text = "\n".join(str(d) for d in decls)
        self.assertEqual(parse(text), decls)
        self.assertEqual("\n".join(str(d) for d in parse(text)), text)
