"""
Fault layer tests (hierarchy, rendering, trigger(), host overrides).
"""
import copy
import io
import sys
import unittest
from unittest import TestCase, mock

from rich.console import Console

from microbatch import faults
from microbatch.faults import *


def _render(renderable):
    output = io.StringIO()
    Console(file=output, width=200, color_system=None).print(renderable)
    return output.getvalue()


class HierarchyTest(TestCase):
    """Every fault belongs to one stage family."""

    def testFamilies(self):
        for cls in (InvalidHandlerError, InvalidAliasError, DuplicateAliasError, DuplicateDefaultError, DuplicateTypeNameError):
            self.assertTrue(issubclass(cls, ConfigurationError))
        for cls in (UnknownCommandError, MissingCommandError):
            self.assertTrue(issubclass(cls, ResolutionError))
        for cls in (
                UnknownParameterError,
                DuplicatedParameterError,
                MissingValueError,
                MissingParameterError,
                UncastableValueError,
                InvalidChoiceError,
                UnparsedTokensError,
        ):
            self.assertTrue(issubclass(cls, BindingError))
        for cls in (ConfigurationError, ResolutionError, BindingError, InvocationError):
            self.assertTrue(issubclass(cls, BatchException))

    def testCodeRanges(self):
        self.assertEqual(FaultCode.DUPLICATE_ALIAS // 100, 101)
        self.assertEqual(FaultCode.UNKNOWN_COMMAND // 100, 111)
        self.assertEqual(FaultCode.UNCASTABLE_VALUE // 100, 112)
        self.assertEqual(FaultCode.INVOCATION_FAILED // 100, 131)


class FaultTest(TestCase):
    """Message, options, replace and rendering."""

    def testMessageAndOptions(self):
        fault = UnknownCommandError("command 'x' not found", code=FaultCode.UNKNOWN_COMMAND, input="x")
        self.assertEqual(str(fault), "command 'x' not found")
        self.assertEqual(fault.options["input"], "x")
        with self.assertRaises(TypeError):
            fault.options["input"] = "y"
        self.assertEqual(str(BatchException()), "")

    def testReplaceKeepsCauseAndMergesOptions(self):
        fault = InvocationError("failed", code=FaultCode.INVOCATION_FAILED)
        fault.__cause__ = ValueError("boom")
        replaced = copy.replace(fault, shell=True)
        self.assertIsInstance(replaced, InvocationError)
        self.assertIs(replaced.__cause__, fault.__cause__)
        self.assertTrue(replaced.options["shell"])
        self.assertEqual(replaced.options["code"], FaultCode.INVOCATION_FAILED)

    def testRendering(self):
        fault = UncastableValueError(
            "parameter 'value' expects int, got 'abc'",
            title="uncastable value",
            code=FaultCode.UNCASTABLE_VALUE,
            hint="invalid literal",
            prog="batch",
        )
        text = _render(fault)
        self.assertIn("[ batch — 11215 | Uncastable Value ]", text)
        self.assertIn("expects int, got 'abc'", text)
        self.assertIn("→ invalid literal", text)
        self.assertIn("Uncastable Value", _render(copy.replace(fault, fancy=True)))

    def testHostOverrides(self):
        main = sys.modules["__main__"]
        with (
            mock.patch.object(main, "__prog__", "host", create=True),
            mock.patch.object(main, "__codes__", {FaultCode.UNKNOWN_COMMAND: "E-UC"}, create=True),
            mock.patch.object(main, "__docs__", {FaultCode.UNKNOWN_COMMAND: "see the manual"}, create=True),
        ):
            self.assertEqual(getdoc(FaultCode.UNKNOWN_COMMAND), "see the manual")
            self.assertIsNone(getdoc(FaultCode.MISSING_COMMAND))
            text = _render(UnknownCommandError("nope", code=FaultCode.UNKNOWN_COMMAND, docs=getdoc(FaultCode.UNKNOWN_COMMAND)))
        self.assertIn("[ host — E-UC | Unknown Command Error ]", text)
        self.assertIn("see the manual", text)
        with self.assertRaises(TypeError):
            getdoc(11101)


class TriggerTest(TestCase):
    """trigger() raises or prints and exits."""

    def testRaisesOutsideShell(self):
        with self.assertRaises(MissingCommandError):
            trigger(MissingCommandError("no command given"))

    def testShellPrintsAndExits(self):
        output = io.StringIO()
        with mock.patch.object(faults, "console", Console(file=output, width=200, color_system=None)):
            with self.assertRaises(SystemExit) as context:
                trigger(MissingCommandError("no command given", code=FaultCode.MISSING_COMMAND), shell=True)
        self.assertEqual(context.exception.code, 1)
        self.assertIn("no command given", output.getvalue())

    def testRejectsNonFaults(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("x"))


if __name__ == "__main__":
    unittest.main()
