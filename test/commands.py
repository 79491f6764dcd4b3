"""
Command layer tests (registration, descriptors, describe()).

Scope
- @command alias sets and default commands.
- Handler-level faults: non-Batch types, duplicate defaults, malformed aliases.
- Descriptor invocation thunk and BatchContext defaults.
"""
import threading
import unittest
from unittest import TestCase

from microbatch import Batch, BatchContext, Descriptor, Parameter, command, describe
from microbatch.faults import (
    ConfigurationError,
    InvalidHandlerError,
    InvalidAliasError,
    DuplicateAliasError,
    DuplicateDefaultError,
)

from batches import Images


class DescribeTest(TestCase):
    """describe() turns handler types into descriptors."""

    def testDeclarationOrderAndDefault(self):
        resize, purge, tint = describe(Images)
        self.assertTrue(resize.default)
        self.assertEqual(resize.aliases, ())
        self.assertEqual(resize.name, "Images.resize")
        self.assertEqual(resize.descr, "resize every pending image")
        self.assertEqual(purge.aliases, ("purge",))
        self.assertEqual(purge.descr, "delete cached thumbnails")
        self.assertEqual(tint.qualname, "Images.tint")

    def testStackedAliasSets(self):
        class Jobs(Batch):
            @command("start", "s")
            @command("begin")
            def start(self):
                pass

        first, second = describe(Jobs)
        self.assertEqual(first.aliases, ("start", "s"))
        self.assertEqual(second.aliases, ("begin",))
        self.assertEqual(first.method, second.method)

    def testBareDecoratorIsDefault(self):
        class Jobs(Batch):
            @command
            def run(self):
                pass

        descriptor, = describe(Jobs)
        self.assertTrue(descriptor.default)

    def testInheritedAndPrivateMethodsAreSkipped(self):
        class Base(Batch):
            def shared(self):
                pass

        class Jobs(Base):
            def _helper(self):
                pass

            @staticmethod
            def utility():
                pass

            @command("run")
            def run(self):
                pass

        self.assertEqual([descriptor.method for descriptor in describe(Jobs)], ["run"])

    def testNonBatchHandlerRejected(self):
        class Plain:
            def run(self):
                pass

        for handler in (Plain, Batch, "Plain", Plain()):
            with self.assertRaises(InvalidHandlerError):
                describe(handler)

    def testDuplicateDefaultRejected(self):
        class Jobs(Batch):
            def first(self):
                pass

            def second(self):
                pass

        with self.assertRaises(DuplicateDefaultError) as context:
            describe(Jobs)
        self.assertIn("2 default commands", str(context.exception))
        self.assertIsInstance(context.exception, ConfigurationError)

    def testMalformedAliasesRejected(self):
        for alias in ("", "two words", "-dash"):
            class Jobs(Batch):
                @command(alias)
                def run(self):
                    pass

            with self.assertRaises(InvalidAliasError):
                describe(Jobs)

    def testAliasRepeatedWithinSetRejected(self):
        class Jobs(Batch):
            @command("run", "RUN")
            def run(self):
                pass

        with self.assertRaises(DuplicateAliasError):
            describe(Jobs)

    def testNonStringAliasIsTypeError(self):
        with self.assertRaises(TypeError):
            command(1)


class DescriptorTest(TestCase):
    """Descriptor construction and invocation."""

    def testInvokesWithKeywordOnlyParameters(self):
        class Jobs(Batch):
            def run(self, value: int, *, stop: threading.Event):
                return value, stop

        descriptor = Descriptor(Jobs, "run")
        event = threading.Event()
        self.assertEqual(descriptor(Jobs(), (2, event)), (2, event))
        self.assertEqual([parameter.name for parameter in descriptor.bindable], ["value"])
        self.assertFalse(descriptor.runnable)

    def testArgumentCountChecked(self):
        descriptor = Descriptor(Images, "resize")
        with self.assertRaises(TypeError):
            descriptor(Images(), (1,))

    def testExplicitParameters(self):
        descriptor = Descriptor(Images, "resize", (Parameter("width", int, 1, 0), Parameter("height", int, 2, 1)), ("go",))
        self.assertEqual(descriptor.aliases, ("go",))
        self.assertEqual(descriptor(Images(), (3, 4)), 12)
        with self.assertRaises(ValueError):
            Descriptor(Images, "resize", (Parameter("width", int, 1, 1),))

    def testMethodMustExist(self):
        with self.assertRaises(TypeError):
            Descriptor(Images, "missing")


class BatchContextTest(TestCase):
    """BatchContext defaults."""

    def testDefaults(self):
        descriptor = describe(Images)[0]
        context = BatchContext(["purge"], descriptor)
        self.assertEqual(context.arguments, ("purge",))
        self.assertIsNotNone(context.timestamp.tzinfo)
        self.assertFalse(context.cancelled)
        self.assertEqual(context.logger.name, "microbatch.batches.Images")
        context.cancellation.set()
        self.assertTrue(context.cancelled)

    def testBatchContextStartsEmpty(self):
        self.assertIsNone(Images().context)


if __name__ == "__main__":
    unittest.main()
