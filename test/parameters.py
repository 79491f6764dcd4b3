"""
Parameter spec tests (Option metadata, signature() and type-directed conversion).

Conventions
- Test method names follow CamelCase per project convention.
"""
import datetime
import decimal
import enum
import pathlib
import threading
import typing
import unittest
from unittest import TestCase

from microbatch import Option, Parameter, convert, signature
from microbatch.faults import InvalidHandlerError
from microbatch.utils import Unset


class Level(enum.Enum):
    LOW = 1
    HIGH = 2


class ConvertTest(TestCase):
    """convert(type, raw) for the supported declared types."""

    def testScalars(self):
        self.assertEqual(convert(str, "abc"), "abc")
        self.assertEqual(convert(int, "12"), 12)
        self.assertEqual(convert(float, "1.5"), 1.5)
        self.assertEqual(convert(decimal.Decimal, "1.10"), decimal.Decimal("1.10"))
        self.assertEqual(convert(pathlib.Path, "a/b"), pathlib.Path("a/b"))
        self.assertEqual(convert(typing.Any, "x"), "x")

    def testIntegerRejectsText(self):
        with self.assertRaises(ValueError):
            convert(int, "abc")

    def testBooleans(self):
        for raw in ("true", "Yes", "ON", "1", "y"):
            self.assertIs(convert(bool, raw), True)
        for raw in ("false", "no", "Off", "0", "n"):
            self.assertIs(convert(bool, raw), False)
        with self.assertRaises(ValueError):
            convert(bool, "maybe")

    def testEnumByNameThenValue(self):
        self.assertIs(convert(Level, "high"), Level.HIGH)
        self.assertIs(convert(Level, "1"), Level.LOW)
        with self.assertRaises(ValueError):
            convert(Level, "medium")

    def testLiteral(self):
        self.assertEqual(convert(typing.Literal["fast", "slow"], "FAST"), "fast")
        self.assertEqual(convert(typing.Literal[1, 2], "2"), 2)
        with self.assertRaises(ValueError):
            convert(typing.Literal["fast", "slow"], "medium")

    def testOptionalAndUnion(self):
        self.assertIsNone(convert(int | None, "none"))
        self.assertEqual(convert(int | None, "3"), 3)
        self.assertEqual(convert(int | str, "x"), "x")
        with self.assertRaises(ValueError):
            convert(int | float, "x")

    def testCollections(self):
        self.assertEqual(convert(list[int], "1, 2,3"), [1, 2, 3])
        self.assertEqual(convert(list[int], "[1, 2]"), [1, 2])
        self.assertEqual(convert(tuple[int, ...], "4,5"), (4, 5))
        self.assertEqual(convert(tuple[int, str], "1,a"), (1, "a"))
        self.assertEqual(convert(set[str], "a,b,a"), {"a", "b"})
        self.assertEqual(convert(list[bool], "[true, false]"), [True, False])
        self.assertEqual(convert(list[int], ""), [])
        with self.assertRaises(ValueError):
            convert(tuple[int, int], "1")

    def testDates(self):
        self.assertEqual(convert(datetime.date, "2024-02-29"), datetime.date(2024, 2, 29))
        self.assertEqual(
            convert(datetime.datetime, "2024-02-29T10:30:00"),
            datetime.datetime(2024, 2, 29, 10, 30),
        )


class SignatureTest(TestCase):
    """signature() builds Parameter specs from command methods."""

    def testPlainParameters(self):
        class Handler:
            def run(self, value: int, name="x", ratio=0.5, label=None):
                pass

        value, name, ratio, label = signature(Handler.run)
        self.assertEqual((value.name, value.type, value.position), ("value", int, 0))
        self.assertTrue(value.required)
        self.assertIs(value.default, Unset)
        self.assertEqual((name.type, name.default), (str, "x"))
        self.assertEqual(ratio.type, float)
        self.assertEqual((label.type, label.default), (str, None))
        self.assertFalse(label.required)

    def testOptionMetadata(self):
        class Handler:
            def run(self, retries=Option("r", type=int, default=3, index=0, descr="attempts", choices=(1, 3))):
                pass

        retries, = signature(Handler.run)
        self.assertEqual(retries.names, ("r",))
        self.assertEqual(retries.type, int)
        self.assertEqual(retries.default, 3)
        self.assertEqual(retries.index, 0)
        self.assertEqual(retries.descr, "attempts")
        self.assertEqual(retries.choices, (1, 3))
        self.assertEqual(retries.flags, ("-retries", "-r"))

    def testCancellationAndKeywordOnly(self):
        class Handler:
            def run(self, value: int = 1, *, stop: threading.Event):
                pass

        value, stop = signature(Handler.run)
        self.assertFalse(value.keyword)
        self.assertTrue(stop.keyword)
        self.assertTrue(stop.cancellation)
        self.assertFalse(stop.required)

    def testTypingForms(self):
        class Handler:
            def run(self, limit: int | None = None, mode: typing.Literal["a", "b"] = "a"):
                pass

        limit, mode = signature(Handler.run)
        self.assertEqual(limit.typename, "int | None")
        self.assertIsNone(limit.convert("none"))
        self.assertEqual(limit.convert("5"), 5)
        self.assertEqual(mode.convert("B"), "b")

    def testVariadicRejected(self):
        class Handler:
            def run(self, *values):
                pass

        with self.assertRaises(InvalidHandlerError):
            signature(Handler.run)

    def testFunctionsKeepFirstParameter(self):
        def run(value: int):
            pass

        self.assertEqual([parameter.name for parameter in signature(run, method=False)], ["value"])


class ParameterTest(TestCase):
    """Parameter and Option construction rules."""

    def testAcceptsIsCaseAndDashInsensitive(self):
        parameter = Parameter("dry_run", bool, False, names=("n",))
        self.assertTrue(parameter.accepts("dry-run"))
        self.assertTrue(parameter.accepts("DRY_RUN"))
        self.assertTrue(parameter.accepts("N"))
        self.assertFalse(parameter.accepts("dry"))

    def testReadOnly(self):
        parameter = Parameter("value", int)
        with self.assertRaises(AttributeError):
            parameter.name = "other"

    def testTypename(self):
        self.assertEqual(Parameter("value", int).typename, "int")
        self.assertEqual(Parameter("values", list[int]).typename, "list[int]")

    def testInvalidMetadata(self):
        with self.assertRaises(TypeError):
            Parameter("not an identifier")
        with self.assertRaises(ValueError):
            Option("r", "r")
        with self.assertRaises(ValueError):
            Option(index=-1)
        with self.assertRaises(ValueError):
            Option(choices=(1, 1))
        with self.assertRaises(TypeError):
            Option(type=42)

    def testRepr(self):
        self.assertEqual(
            repr(Parameter("value", int, 1, 2)),
            "parameter(name='value', type=<class 'int'>, default=1, position=2)",
        )


if __name__ == "__main__":
    unittest.main()
