"""
microbatch command layer: handler types, registration and descriptors.

What this module provides
- Batch: base type of every handler type. Only the public functions declared
  directly in a handler's class body become commands; anything Batch (or an
  intermediate base) defines is not a command.
- BatchContext: per-run information handed to the handler instance
  (instance.context): raw argv, start timestamp, cancellation event, logger.
- command(*aliases, descr=...): registration decorator. Each application
  declares one alias set; a method without it is the handler's default command.
- Descriptor: immutable description of one invocable command that also acts as
  the invocation thunk (descriptor(instance, arguments)).
- describe(handler): build the descriptors of one handler type.

Quick start
    from microbatch import Batch, command, Option

    class Images(Batch):
        def run(self, width: int = 640):
            '''resize every pending image (default command)'''

        @command("purge", descr="delete cached thumbnails")
        async def purge(self, older=Option("o", type=int, default=30, descr="days")):
            ...

Design notes
- Registration is explicit: handler types are passed to the catalog by the
  application; nothing scans loaded modules.
- Descriptors can also be built by hand (Descriptor(Images, "run", ...)) when
  decorators are not an option.
"""
import datetime
import inspect
import logging
import threading

from .faults import *
from .parameters import Parameter, signature
from .utils import *


class Batch:
    """
    Base type of handler types.

    Attributes
    - context: BatchContext of the running command, assigned by the dispatcher
      right before the command method is called (None outside a run).
    """
    context = None


class BatchContext(metaclass=SpecType):
    """
    Information about the current run, visible to the handler as self.context.

    Fields
    - arguments: the raw argv tokens of this process run.
    - descriptor: the resolved command.
    - timestamp: when the run started (timezone-aware, UTC).
    - cancellation: threading.Event set when the host receives SIGINT/SIGTERM.
    - logger: stdlib logger named "microbatch.batches.<Type>".
    """

    __introspectable__ = (
        "arguments",
        "descriptor",
        "timestamp",
        "cancellation",
        "logger",
    )
    __displayable__ = (
        "arguments",
        "descriptor",
        "timestamp",
    )

    def __new__(cls, arguments=(), /, descriptor=Unset, *, timestamp=Unset, cancellation=Unset, logger=Unset):
        self = super().__new__(cls)
        self._arguments = tuple(arguments)
        self._descriptor = coalesce(descriptor)
        self._timestamp = coalesce(timestamp, datetime.datetime.now(datetime.timezone.utc))
        self._cancellation = coalesce(cancellation, threading.Event())
        self._logger = coalesce(logger, logging.getLogger(
            "microbatch.batches." + (descriptor.handler.__name__ if descriptor else "unknown")
        ))
        return self

    @property
    def cancelled(self):
        """
        True once the host asked the run to stop (advisory).
        """
        return self.cancellation.is_set()


def command(*aliases, descr=Unset):
    """
    Register a handler method as a command.

    Forms
    - @command("run", "r")             → one descriptor with aliases run / r
    - @command("run", descr="...")     → with an explicit help description
    - @command() / @command            → explicit default command (no aliases)

    Stacking the decorator declares several alias sets; each becomes its own
    descriptor (in top-to-bottom order).

    Raises
    - TypeError when applied to something that is not a function, or when an
      alias is not a string. Alias shape and uniqueness are checked when the
      catalog is built.
    """
    if len(aliases) == 1 and inspect.isfunction(aliases[0]) and descr is Unset:
        # bare @command
        return command()(aliases[0])

    for alias in aliases:
        if not isinstance(alias, str):
            raise TypeError("@command() aliases must be strings")

    @rename("command")
    def wrapper(callback, /):
        if not inspect.isfunction(callback):
            raise TypeError("@command() must be applied to a function")
        marks = callback.__dict__.setdefault("__commands__", [])
        # decorators run bottom-up; keep declaration order
        marks.insert(0, (aliases, descr))
        return callback

    return wrapper


def _sanitize_aliases(cls, handler, method, aliases, /):
    """
    Validate an alias set: non-empty strings without whitespace, not starting
    with '-', unique case-insensitively within the set.
    """
    sanitized = []
    seen = set()
    for alias in aliases:
        where = "%s.%s" % (getattr(handler, "__name__", handler), method)
        if not isinstance(alias, str) or not (alias := alias.strip()) or any(char.isspace() for char in alias) or alias.startswith("-"):
            raise InvalidAliasError(
                "alias %r of %s is not a valid command name" % (alias, where),
                title="invalid alias",
                code=FaultCode.INVALID_ALIAS,
                input=alias,
                hint="use a single word that does not start with '-'",
                docs=getdoc(FaultCode.INVALID_ALIAS),
            )
        if (folded := alias.casefold()) in seen:
            raise DuplicateAliasError(
                "alias %r is declared twice on %s" % (alias, where),
                title="duplicate alias",
                code=FaultCode.DUPLICATE_ALIAS,
                input=alias,
                hint="aliases are case-insensitive; keep one spelling",
                docs=getdoc(FaultCode.DUPLICATE_ALIAS),
            )
        seen.add(folded)
        sanitized.append(alias)
    return tuple(sanitized)


class Descriptor(metaclass=SpecType):
    """
    Immutable description of one invocable command.

    Fields
    - handler: the handler type (a Batch subclass).
    - method: name of the command method on the handler.
    - parameters: ordered tuple of Parameter specs.
    - aliases: case-insensitive command names; empty for the default command.
    - descr: help description (defaults to the method docstring), or None.
    - factory: callable(handler) → instance used instead of the engine factory, or None.

    Calling a descriptor with (instance, arguments) invokes the method: the
    arguments tuple follows the parameter order, keyword-only parameters are
    passed by name.
    """

    __introspectable__ = (
        "handler",
        "method",
        "parameters",
        "aliases",
        "descr",
        "factory",
    )
    __displayable__ = (
        "handler",
        "method",
        "aliases",
    )

    def __new__(cls, handler, method, /, parameters=Unset, aliases=(), *, descr=Unset, factory=Unset):
        if not isinstance(handler, type):
            raise TypeError(f"{cls.__typename__} 'handler' must be a type")
        if not isinstance(method, str) or not callable(callback := getattr(handler, method, None)):
            raise TypeError(f"{cls.__typename__} 'method' must name a method of the handler")
        if factory is not Unset and not callable(factory):
            raise TypeError(f"{cls.__typename__} 'factory' must be callable")
        if isinstance(aliases, str):
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of strings")

        if parameters is Unset:
            parameters = signature(callback)
        parameters = tuple(parameters)
        for position, parameter in enumerate(parameters):
            if not isinstance(parameter, Parameter):
                raise TypeError(f"{cls.__typename__} 'parameters' must contain parameters")
            if parameter.position != position:
                raise ValueError(f"{cls.__typename__} parameter {parameter.name!r} is out of declaration order")

        if not isinstance(descr, str | Unset):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")

        self = super().__new__(cls)
        self._handler = handler
        self._method = method
        self._parameters = parameters
        self._aliases = _sanitize_aliases(cls, handler, method, aliases)
        self._descr = coalesce(descr, inspect.getdoc(callback))
        self._factory = coalesce(factory)
        return self

    @property
    def default(self):
        """
        True for the handler's default command (no aliases).
        """
        return not self.aliases

    @property
    def qualname(self):
        """
        "TypeName.MethodName" as used by the list output and the qualified fallback.
        """
        return "%s.%s" % (self.handler.__name__, self.method)

    @property
    def name(self):
        """
        The preferred command name: the first alias, else the qualified name.
        """
        return self.aliases[0] if self.aliases else self.qualname

    @property
    def bindable(self):
        """
        Parameters that take values from tokens (the cancellation slot excluded).
        """
        return tuple(parameter for parameter in self.parameters if not parameter.cancellation)

    @property
    def runnable(self):
        """
        True when the command can run without any token.
        """
        return not any(parameter.required for parameter in self.parameters)

    def __call__(self, instance, arguments=(), /):
        """
        Invoke the command method on `instance` with bound `arguments`.

        Returns whatever the method returns (a value or an awaitable).
        """
        if len(arguments := tuple(arguments)) != len(self.parameters):
            raise TypeError(f"{type(self).__typename__} expects {len(self.parameters)} arguments, got {len(arguments)}")
        args = []
        kwargs = {}
        for parameter, argument in zip(self.parameters, arguments):
            if parameter.keyword:
                kwargs[parameter.name] = argument
            else:
                args.append(argument)
        return getattr(instance, self.method)(*args, **kwargs)


def describe(handler, /, *, factory=Unset):
    """
    Build the descriptors of a handler type, in declaration order.

    Behavior
    - Only public functions declared in the handler's own class body count.
    - Each @command alias set yields one descriptor; an undecorated method
      yields the default command.

    Raises
    - InvalidHandlerError when `handler` is not a Batch subclass.
    - DuplicateDefaultError when more than one default command is declared.
    - InvalidAliasError / DuplicateAliasError for malformed alias sets.
    """
    if not isinstance(handler, type) or not issubclass(handler, Batch) or handler is Batch:
        raise InvalidHandlerError(
            "%r is not a batch handler type" % (handler,),
            title="invalid handler",
            code=FaultCode.INVALID_HANDLER,
            input=handler,
            hint="handler types must subclass microbatch.Batch",
            docs=getdoc(FaultCode.INVALID_HANDLER),
        )

    descriptors = []
    defaults = []
    for name, member in vars(handler).items():
        if name.startswith("_") or not inspect.isfunction(member):
            continue
        parameters = signature(member)
        for aliases, descr in member.__dict__.get("__commands__", [((), Unset)]):
            descriptor = Descriptor(handler, name, parameters, aliases, descr=descr, factory=factory)
            if descriptor.default:
                defaults.append(descriptor)
            descriptors.append(descriptor)

    if len(defaults) > 1:
        raise DuplicateDefaultError(
            "%s declares %s: %s" % (
                handler.__name__,
                pluralize(len(defaults), "default command"),
                ", ".join(descriptor.method for descriptor in defaults),
            ),
            title="duplicate default command",
            code=FaultCode.DUPLICATE_DEFAULT,
            input=handler,
            hint="give every method but one an alias with @command(...)",
            docs=getdoc(FaultCode.DUPLICATE_DEFAULT),
        )
    return tuple(descriptors)


__all__ = (
    "Batch",
    "BatchContext",
    "Descriptor",
    "command",
    "describe",
)
