"""
microbatch engine: the host-facing entry point.

Pipeline (one run per process)
    argv → resolve() → bind() → Dispatcher → exit status 0

- list / help / help <unknown> print to stdout and return 0.
- Faults go through Engine.trigger(): outside the shell they are raised; in
  shell mode the relevant help (catalog listing or command usage) is printed,
  then the fault goes to stderr and the process exits with status 1.
- While the command runs, SIGINT/SIGTERM set the cancellation event handed to
  the command (advisory); a second SIGINT interrupts for real.

Quick start
    from microbatch import Batch, command, main

    class Greeter(Batch):
        @command("hello")
        def hello(self, name: str = "world"):
            print("hello", name)

    if __name__ == "__main__":
        main([Greeter])
"""
import asyncio
import contextlib
import logging
import shlex
import signal
import sys
import threading
from collections.abc import Iterable

from rich.console import Console

from .binder import bind
from .catalog import Catalog
from .commands import BatchContext
from .dispatcher import Dispatcher
from .faults import *
from .formatter import render_help, render_list, render_missing
from .logs import bind_contextvars, clear_contextvars, configure_logging
from .resolver import Action, resolve
from .utils import *

logger = logging.getLogger(__name__)


def _tokens(argv, /):
    """
    Normalize argv: Unset → sys.argv[1:], str → shlex.split, iterable of str
    → the items as given (values may be empty or padded).
    """
    if argv is Unset:
        return list(sys.argv[1:])
    if isinstance(argv, str):
        return shlex.split(argv)
    if isinstance(argv, Iterable):
        tokens = []
        for item in argv:
            if not isinstance(item, str):
                raise TypeError("run() argv must be a string or an iterable of strings")
            tokens.append(item)
        return tokens
    raise TypeError("run() argv must be a string or an iterable of strings")


class Engine:
    """
    Resolve, bind and dispatch one command from a set of handler types.

    Parameters
    - handlers: handler types (or a ready Catalog).
    - factory: callable(handler) → instance for descriptors without their own.
    - interceptor: Interceptor around the command method.
    - fixed: catalog fixed-handler mode (default: exactly one handler type).
    - shell: print faults and exit(1) instead of raising.
    - fancy: render faults inside a panel.
    - colorful: styled output (default: when the console is a terminal).
    - console: rich Console for list/help output (default: stdout).

    The catalog is built here, so configuration faults surface before run().
    """

    def __init__(
            self,
            handlers,
            /,
            *,
            factory=Unset,
            interceptor=Unset,
            fixed=Unset,
            shell=False,
            fancy=False,
            colorful=Unset,
            console=Unset
    ):
        self.shell = bool(shell)
        self.fancy = bool(fancy)
        self.console = coalesce(console, Console())
        self.colorful = bool(coalesce(colorful, self.console.is_terminal))
        self.dispatcher = Dispatcher(factory, interceptor)
        self.cancellation = threading.Event()
        self.ran = False

        if isinstance(handlers, Catalog):
            self.catalog = handlers
        else:
            try:
                self.catalog = Catalog(handlers, fixed=fixed)
            except ConfigurationError as fault:
                self.trigger(fault)

    def trigger(self, fault, /, *, help=Unset):
        """
        Surface `fault` with this engine's runtime flags.

        In shell mode `help` (rich renderable) is printed first.
        """
        if self.shell and help:
            self.console.print(help)
        logger.debug("fault.triggered fault=%s code=%s", type(fault).__name__, fault.options.get("code"))
        trigger(fault, shell=self.shell, fancy=self.fancy, colorful=self.colorful)

    def print(self, text, /):
        if text.plain:
            self.console.print(text)

    @contextlib.contextmanager
    def signals(self):
        """
        Route SIGINT/SIGTERM to the cancellation event for the duration of
        the block (main thread only); the previous handlers are restored.
        """
        if threading.current_thread() is not threading.main_thread():
            yield self.cancellation
            return

        def handler(signum, frame):
            if signum == signal.SIGINT and self.cancellation.is_set():
                raise KeyboardInterrupt
            logger.warning("cancellation.requested signal=%s", signal.Signals(signum).name)
            self.cancellation.set()

        originals = {signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)}
        for signum in originals:
            signal.signal(signum, handler)
        try:
            yield self.cancellation
        finally:
            for signum, original in originals.items():
                if original is not None:
                    signal.signal(signum, original)

    def run(self, argv=Unset, /):
        """
        Run one command from `argv` and return the exit status (0).

        Raises
        - RuntimeError when the engine already ran.
        - BatchException subclasses outside shell mode (SystemExit(1) inside).
        """
        if self.ran:
            raise RuntimeError("an engine runs a single command")
        self.ran = True

        argv = _tokens(argv)
        try:
            resolution = resolve(self.catalog, argv)
        except MissingCommandError as fault:
            self.trigger(fault, help=render_help(self.catalog, colorful=self.colorful)
                         if self.catalog.fixed else render_list(self.catalog, colorful=self.colorful))
        except ResolutionError as fault:
            self.trigger(fault, help=render_list(self.catalog, colorful=self.colorful))

        match resolution.action:
            case Action.LIST:
                self.print(render_list(resolution.targets, colorful=self.colorful))
                return 0
            case Action.HELP:
                self.print(render_help(resolution.targets, colorful=self.colorful))
                return 0
            case Action.MISSING:
                self.print(render_missing(resolution.name, colorful=self.colorful))
                return 0

        descriptor = resolution.descriptor
        try:
            invocation = bind(descriptor, resolution.tokens, cancellation=self.cancellation)
        except BindingError as fault:
            self.trigger(fault, help=render_help((descriptor,), colorful=self.colorful))

        context = BatchContext(argv, descriptor, cancellation=self.cancellation)
        bind_contextvars(command=descriptor.name)
        try:
            with self.signals():
                asyncio.run(self.dispatcher(invocation, context))
        except InvocationError as fault:
            logger.debug("command.failed command=%s", descriptor.qualname, exc_info=fault.__cause__)
            self.trigger(fault)
        finally:
            clear_contextvars()
        return 0


def run(handlers, argv=Unset, /, **options):
    """
    Engine(handlers, **options).run(argv).
    """
    return Engine(handlers, **options).run(argv)


def main(handlers, argv=Unset, /, *, verbose=False, log_json=False, **options):
    """
    Console-script entry point: configure logging, run in shell mode, exit.
    """
    configure_logging(verbose=verbose, log_json=log_json)
    options.setdefault("shell", True)
    sys.exit(run(handlers, argv, **options))


__all__ = (
    "Engine",
    "run",
    "main",
)
