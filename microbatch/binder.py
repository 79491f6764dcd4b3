"""
microbatch parameter binder: remaining tokens → ordered, converted arguments.

Token grammar
- "-name value" / "--name value": names match case-insensitively, '-' matches
  '_' ("-dry-run" binds dry_run), Option short names match too.
- "-flag" alone is accepted for bool (or optional bool) parameters when the next token is not a
  boolean literal ("-force -path x" binds force=True).
- bare tokens fill the parameters declared with Option(index=N), in index
  order, skipping the ones already given by name.

Faults (all BindingError)
- UnknownParameterError, DuplicatedParameterError, MissingValueError while
  scanning; UnparsedTokensError for bare tokens nothing takes;
  UncastableValueError / InvalidChoiceError while converting;
  MissingParameterError for required parameters left without a value.
"""
import logging
import re
import threading
import types
import typing

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)

_BOOLEANS = frozenset({"true", "false", "yes", "no", "on", "off", "y", "n", "t", "f", "1", "0"})


class Invocation(metaclass=SpecType):
    """
    A descriptor paired with its converted arguments (declaration order).
    """

    __introspectable__ = (
        "descriptor",
        "arguments",
    )

    def __new__(cls, descriptor, arguments=(), /):
        self = super().__new__(cls)
        self._descriptor = descriptor
        self._arguments = tuple(arguments)
        return self

    def __call__(self, instance, /):
        return self.descriptor(instance, self.arguments)


def _flag(token, /):
    # "-5" and "-.5" are values, "-" and "--" are not flags either
    return token.startswith("-") and not re.fullmatch(r"-+|-\.?\d.*", token)


def _switch(parameter, /):
    # bool, or bool | None / Optional[bool]
    if typing.get_origin(parameter.type) in (types.UnionType, typing.Union):
        return {*typing.get_args(parameter.type)} - {types.NoneType} == {bool}
    return parameter.type is bool


def _fault(cls, code, message, /, **options):
    return cls(
        message,
        title=code.name.replace("_", " ").lower(),
        code=code,
        docs=getdoc(code),
        **options,
    )


def bind(descriptor, tokens=(), /, *, cancellation=Unset):
    """
    Bind `tokens` to the parameters of `descriptor`.

    Returns an Invocation whose arguments follow the declaration order; the
    cancellation parameter (if declared) receives `cancellation`, or a fresh
    threading.Event when none is given.

    Raises
    - BindingError subclasses, see the module docstring.
    """
    tokens = tuple(tokens)
    bindable = descriptor.bindable
    supplied = {}
    bare = []

    index = 0
    while index < len(tokens):
        token = tokens[index]
        if not _flag(token):
            bare.append(token)
            index += 1
            continue

        key = token.lstrip("-")
        parameter = next((parameter for parameter in bindable if parameter.accepts(key)), None)
        if parameter is None:
            raise _fault(
                UnknownParameterError,
                FaultCode.UNKNOWN_PARAMETER,
                "%s has no parameter %r" % (descriptor.name, token),
                input=token,
                command=descriptor.name,
                hint="expected one of %s" % ", ".join(parameter.flags[0] for parameter in bindable)
                if bindable else "this command takes no parameters",
            )
        if parameter.name in supplied:
            raise _fault(
                DuplicatedParameterError,
                FaultCode.DUPLICATED_PARAMETER,
                "parameter %r is given twice (%s, %s)" % (parameter.name, supplied[parameter.name][0], token),
                input=token,
                parameter=parameter.name,
                command=descriptor.name,
            )

        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if _switch(parameter) and (following is None or following.strip().casefold() not in _BOOLEANS):
            supplied[parameter.name] = (token, "true")
            index += 1
            continue
        if following is None:
            raise _fault(
                MissingValueError,
                FaultCode.MISSING_VALUE,
                "parameter %r expects a value after %s" % (parameter.name, token),
                input=token,
                parameter=parameter.name,
                command=descriptor.name,
                hint="usage: %s <%s>" % (token, parameter.typename),
            )
        supplied[parameter.name] = (token, following)
        index += 2

    pending = sorted(
        (parameter for parameter in bindable if parameter.index is not None and parameter.name not in supplied),
        key=lambda parameter: parameter.index,
    )
    for parameter, token in zip(pending, bare):
        supplied[parameter.name] = (token, token)
    if leftovers := bare[len(pending):]:
        raise _fault(
            UnparsedTokensError,
            FaultCode.UNPARSED_TOKENS,
            "%s does not take %s: %s" % (
                descriptor.name,
                pluralize(len(leftovers), "extra token"),
                " ".join(leftovers),
            ),
            input=tuple(leftovers),
            command=descriptor.name,
            hint="pass values as -name value pairs",
        )

    arguments = []
    for parameter in descriptor.parameters:
        if parameter.cancellation:
            arguments.append(coalesce(cancellation, threading.Event()))
            continue
        if parameter.name not in supplied:
            if parameter.required:
                raise _fault(
                    MissingParameterError,
                    FaultCode.MISSING_PARAMETER,
                    "parameter %r of %s is required" % (parameter.name, descriptor.name),
                    parameter=parameter.name,
                    command=descriptor.name,
                    hint="usage: -%s <%s>" % (parameter.name, parameter.typename),
                )
            arguments.append(parameter.default)
            continue

        flag, raw = supplied[parameter.name]
        try:
            value = parameter.convert(raw)
        except Exception as exception:
            raise _fault(
                UncastableValueError,
                FaultCode.UNCASTABLE_VALUE,
                "parameter %r expects %s, got %r" % (parameter.name, parameter.typename, raw),
                input=raw,
                parameter=parameter.name,
                value=raw,
                command=descriptor.name,
                hint=str(exception) or None,
            ) from exception
        if parameter.choices and value not in parameter.choices:
            raise _fault(
                InvalidChoiceError,
                FaultCode.INVALID_CHOICE,
                "parameter %r got %r, expected one of %s" % (
                    parameter.name, raw, ", ".join(map(repr, parameter.choices))
                ),
                input=raw,
                parameter=parameter.name,
                value=value,
                choices=parameter.choices,
                command=descriptor.name,
            )
        arguments.append(value)

    logger.debug(
        "parameters.bound command=%s supplied=%d arguments=%d",
        descriptor.qualname, len(supplied), len(arguments),
    )
    return Invocation(descriptor, arguments)


__all__ = (
    "Invocation",
    "bind",
)
