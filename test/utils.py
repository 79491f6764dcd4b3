"""
Tests for the shared utilities.

Scope
- Unset sentinel semantics (singleton, falsy, copy/pickle identity, finality).
- coalesce(), rename(), pluralize() and mglob() behavior.
"""
import copy
import pickle
import unittest
from unittest import TestCase

from microbatch.utils import *


class UnsetTest(TestCase):
    """Semantic guarantees of the Unset sentinel."""

    def testSingletonIdentity(self):
        self.assertIs(UnsetType(), Unset)
        self.assertIs(UnsetType(), UnsetType())

    def testFalsyAndRepr(self):
        self.assertFalse(Unset)
        self.assertEqual(repr(Unset), "Unset")
        self.assertNotEqual(Unset, None)

    def testCopyAndPickleKeepIdentity(self):
        self.assertIs(copy.copy(Unset), Unset)
        self.assertIs(copy.deepcopy([Unset])[0], Unset)
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)

    def testUnionWithTypes(self):
        self.assertTrue(isinstance("x", str | Unset))
        self.assertTrue(isinstance(Unset, str | Unset))
        self.assertFalse(isinstance(1, str | Unset))

    def testCannotSubclass(self):
        with self.assertRaises(TypeError):
            type("Subclass", (UnsetType,), {})


class HelpersTest(TestCase):
    """coalesce, rename, pluralize and mglob."""

    def testCoalesceOnlyReplacesUnset(self):
        self.assertEqual(coalesce(Unset, 1), 1)
        self.assertIsNone(coalesce(Unset))
        self.assertIsNone(coalesce(None, 1))
        self.assertEqual(coalesce(0, 1), 0)

    def testRenameForms(self):
        def original():
            pass

        self.assertIs(rename(original, "renamed"), original)
        self.assertEqual(original.__name__, "renamed")

        @rename("decorated")
        def other():
            pass

        self.assertEqual(other.__qualname__, "decorated")
        with self.assertRaises(TypeError):
            rename()
        with self.assertRaises(TypeError):
            rename(1, "name")

    def testPluralize(self):
        self.assertEqual(pluralize(1, "token"), "1 token")
        self.assertEqual(pluralize(2, "token"), "2 tokens")
        self.assertEqual(pluralize(0, "alias"), "0 aliases")
        self.assertEqual(pluralize(3, "entry"), "3 entries")
        self.assertEqual(pluralize(2, "day"), "2 days")

    def testModuleGlob(self):
        self.assertEqual(mglob("microbatch.engine"), ["microbatch.engine"])
        modules = mglob("microbatch.*")
        self.assertIn("microbatch.engine", modules)
        self.assertIn("microbatch.catalog", modules)
        self.assertEqual(modules, sorted(modules))
        self.assertEqual(mglob("microbatch.e?gine"), ["microbatch.engine"])
        self.assertEqual(mglob("missing_package_for_tests.*"), [])
        with self.assertRaises(ValueError):
            mglob("*.engine")


if __name__ == "__main__":
    unittest.main()
