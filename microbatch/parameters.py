r"""
microbatch parameter specifications and type-directed conversion.

Overview
- Parameter: immutable spec of one command-method parameter (name, declared
  type, default, declaration position) plus CLI metadata (short names,
  positional index, description, choices).
- Option: declaration helper placed as a parameter default to attach CLI
  metadata without giving up a plain Python signature:

      class Sync(Batch):
          @command("pull")
          def pull(self, source: str, retries=Option("r", type=int, default=3, descr="attempts")):
              ...

- signature(callback): build the Parameter tuple of a command method.
- convert(type, raw): turn one raw token into a value of the declared type.

Conversion (type-directed)
- str / Any / object       → token unchanged
- bool                     → true/false, yes/no, on/off, y/n, t/f, 1/0 (case-insensitive)
- int, float, Decimal, ... → the type called with the token
- Enum subclasses          → member name (case-insensitive), then member value
- Literal[...]             → one of the literal values (compared as text)
- X | None, Union[...]     → first member that converts
- list/tuple/set[X]        → JSON array ("[1, 2]") or comma-separated ("1,2")
- datetime/date/time       → ISO 8601 via fromisoformat
- Path and any callable    → the callable applied to the token

Cancellation
- A parameter declared as threading.Event receives the host's cancellation
  event; it is never bound from tokens and is left out of help.
"""
import builtins
import collections.abc
import datetime
import enum
import inspect
import json
import re
import threading
import types
import typing
from inspect import Parameter as _Signature

from rich.text import Text

from .faults import FaultCode, InvalidHandlerError, getdoc
from .utils import *

_TRUTHS = frozenset({"true", "yes", "on", "y", "t", "1"})
_FALSES = frozenset({"false", "no", "off", "n", "f", "0"})


def _sanitize_names(cls, names, /):
    """
    Validate short/long CLI names ("n", "dry-run") and strip leading dashes.

    Raises
    - TypeError for non-string names, ValueError for empty or malformed ones.
    """
    sanitized = []
    for name in names:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not (name := name.strip().lstrip("-")):
            raise ValueError(f"{cls.__typename__} names cannot be empty-strings")
        elif not re.fullmatch(r"[^\W\d_](-?[^\W_]+)*|[^\W\d]\w*", name):
            raise ValueError(f"{cls.__typename__} name {name!r} is not a valid parameter name")
        elif name in sanitized:
            raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
        sanitized.append(name)
    return tuple(sanitized)


def _sanitize_metadata(cls, metadata, /):
    """
    Normalize the optional metadata shared by Option and Parameter.

    - descr: Unset | non-empty str | Text (trimmed), Unset becomes None.
    - index: Unset | int >= 0, Unset becomes None.
    - choices: iterable without duplicates, frozen into a tuple.
    - type: Unset, a callable, or a typing form (X | None, Literal[...]).
    """
    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)

    if not isinstance(index := metadata["index"], int | Unset) or isinstance(index, bool):
        raise TypeError(f"{cls.__typename__} 'index' must be an integer")
    elif isinstance(index, int) and index < 0:
        raise ValueError(f"{cls.__typename__} 'index' must be a non-negative integer")
    metadata["index"] = coalesce(index)

    if not isinstance(choices := metadata["choices"], collections.abc.Iterable) or isinstance(choices, str):
        raise TypeError(f"{cls.__typename__} 'choices' must be a non-string iterable")
    sanitized = []
    for choice in choices:
        if choice in sanitized:
            raise ValueError(f"{cls.__typename__} 'choices' cannot contain duplicates")
        sanitized.append(choice)
    metadata["choices"] = tuple(sanitized)

    if metadata["type"] is not Unset and not callable(metadata["type"]) and typing.get_origin(metadata["type"]) is None:
        raise TypeError(f"{cls.__typename__} 'type' must be callable")


class Option(metaclass=SpecType):
    """
    CLI metadata for a command parameter, used as the parameter's default.

    Fields
    - names: extra short/long names ("n", "dry-run"); the parameter's own name
      always works.
    - type: converter; when Unset the annotation (or the default's type) is used.
    - default: value when the flag is not given; Unset makes the parameter required.
    - index: position for bare (nameless) tokens.
    - descr: help text.
    - choices: allowed values after conversion.
    """

    __introspectable__ = (
        "names",
        "type",
        "default",
        "index",
        "descr",
        "choices",
    )

    def __new__(cls, *names, type=Unset, default=Unset, index=Unset, descr=Unset, choices=()):
        metadata = {
            "names": _sanitize_names(cls, names),
            "type": type,
            "default": default,
            "index": index,
            "descr": descr,
            "choices": choices,
        }
        _sanitize_metadata(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __option__(self):
        """
        Introspection hook: identify this object as an Option.
        """
        return self


class Parameter(metaclass=SpecType):
    """
    Immutable specification of one command parameter.

    Fields
    - name: Python parameter name.
    - type: declared value type (drives conversion and help).
    - default: declared default, Unset when the parameter is required.
    - position: 0-based declaration position (binding and help order).
    - names: extra CLI names from Option(...).
    - index: positional slot for bare tokens, or None.
    - descr: help text, or None.
    - choices: allowed converted values (empty: anything).
    - keyword: True for keyword-only parameters (passed by name on invocation).
    """

    __introspectable__ = (
        "name",
        "type",
        "default",
        "position",
        "names",
        "index",
        "descr",
        "choices",
        "keyword",
    )
    __displayable__ = (
        "name",
        "type",
        "default",
        "position",
    )

    def __new__(
            cls,
            name,
            /,
            type=str,
            default=Unset,
            position=0,
            *,
            names=(),
            index=Unset,
            descr=Unset,
            choices=(),
            keyword=False
    ):
        if not isinstance(name, str) or not name.isidentifier():
            raise TypeError(f"{cls.__typename__} 'name' must be an identifier")
        if not isinstance(position, int) or position < 0:
            raise TypeError(f"{cls.__typename__} 'position' must be a non-negative integer")

        metadata = {
            "name": name,
            "type": type,
            "default": default,
            "position": position,
            "names": _sanitize_names(cls, names),
            "index": index,
            "descr": descr,
            "choices": choices,
            "keyword": bool(keyword),
        }
        _sanitize_metadata(cls, metadata)
        if metadata["type"] is Unset:
            raise TypeError(f"{cls.__typename__} 'type' must be callable")

        self = super().__new__(cls)
        for key, object in metadata.items():
            setattr(self, "_" + key, object)
        return self

    @property
    def required(self):
        """
        True when the parameter has no default (and is not the cancellation slot).
        """
        return self.default is Unset and not self.cancellation

    @property
    def cancellation(self):
        """
        True when the parameter receives the host's cancellation event.
        """
        return self.type is threading.Event

    @property
    def flags(self):
        """
        Every accepted flag spelling, the canonical "-name" first.
        """
        return ("-" + self.name, *("-" + name for name in self.names))

    @property
    def typename(self):
        """
        Short, human-friendly name of the declared type for help output.
        """
        match self.type:
            case builtins.type() if typing.get_origin(self.type) is None:
                return self.type.__name__
            case _:
                return re.sub(r"\b(?:typing|builtins|collections\.abc)\.", "", str(self.type))

    def accepts(self, key, /):
        """
        Tell whether a flag key (dashes already stripped) names this parameter.

        Keys match case-insensitively and '-' matches '_'.
        """
        key = _normalize(key)
        return key == _normalize(self.name) or any(key == _normalize(name) for name in self.names)

    def convert(self, raw, /):
        """
        Convert one raw token with the declared type (see convert()).
        """
        return convert(self.type, raw)


def _normalize(name, /):
    return name.replace("-", "_").casefold()


def _split(raw, /):
    """
    Split a collection token: a JSON array, or comma-separated text.

    JSON items that are not strings are re-encoded (true → "true", 1 → "1") so
    element conversion sees text either way.
    """
    if raw.lstrip().startswith("["):
        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError("expected a JSON array")
        return [item if isinstance(item, str) else json.dumps(item) for item in items]
    return [item.strip() for item in raw.split(",")] if raw.strip() else []


def convert(type, raw, /):
    """
    Convert a raw token into a value of `type`.

    Raises
    - ValueError / TypeError, or whatever a callable type raises; the binder
      reports any of them as UncastableValueError.
    """
    if not isinstance(raw, str):
        raise TypeError("convert() second argument must be a string")

    origin = typing.get_origin(type)
    arguments = typing.get_args(type)

    if type in (str, typing.Any, object, inspect.Parameter.empty):
        return raw
    if origin is typing.Annotated:
        return convert(arguments[0], raw)
    if origin in (types.UnionType, typing.Union):
        if types.NoneType in arguments and raw.casefold() in ("null", "none"):
            return None
        for member in arguments:
            if member is types.NoneType:
                continue
            try:
                return convert(member, raw)
            except Exception:
                continue
        raise ValueError(f"{raw!r} matches none of {type}")
    if origin is typing.Literal:
        for choice in arguments:
            if str(choice) == raw or (isinstance(choice, str) and choice.casefold() == raw.casefold()):
                return choice
        raise ValueError(f"{raw!r} is not one of {arguments}")
    if origin is tuple:
        items = _split(raw)
        if len(arguments) == 2 and arguments[1] is Ellipsis:
            return tuple(convert(arguments[0], item) for item in items)
        if arguments and len(arguments) != len(items):
            raise ValueError(f"expected exactly {len(arguments)} items, got {len(items)}")
        return tuple(convert(member, item) for member, item in zip(arguments or (str,) * len(items), items))
    if origin in (list, set, frozenset, collections.abc.Sequence, collections.abc.Set, collections.abc.Iterable):
        element = arguments[0] if arguments else str
        values = [convert(element, item) for item in _split(raw)]
        return origin(values) if origin in (list, set, frozenset) else values
    if type in (list, tuple, set, frozenset):
        return type(_split(raw))
    if type is bool:
        if (folded := raw.strip().casefold()) in _TRUTHS:
            return True
        if folded in _FALSES:
            return False
        raise ValueError(f"{raw!r} is not a boolean")
    if isinstance(type, builtins.type) and issubclass(type, enum.Enum):
        for member in type:
            if member.name.casefold() == raw.casefold():
                return member
        for member in type:
            if str(member.value) == raw:
                return member
        raise ValueError(f"{raw!r} is not a member of {type.__name__}")
    if type in (datetime.datetime, datetime.date, datetime.time):
        return type.fromisoformat(raw)
    if type is bytes:
        return raw.encode()
    if callable(type):
        return type(raw)
    raise TypeError(f"cannot convert to {type!r}")


def _resolve_option(parameter, /):
    """
    Return the Option hiding behind a parameter default, or Unset.
    """
    default = parameter.default
    if hasattr(default, "__option__") and callable(default.__option__):
        if not isinstance(option := default.__option__(), Option):
            raise TypeError("__option__() non-option returned")
        return option
    return Unset


def signature(callback, /, *, method=True):
    """
    Build the Parameter tuple for a command callback.

    Behavior
    - Reads inspect.signature(callback, eval_str=True); for methods the first
      parameter (self) is skipped.
    - The type comes from Option(type=...), else the annotation, else the type
      of a non-None default, else str.
    - The default comes from Option(default=...) or the plain default.

    Raises
    - InvalidHandlerError for *args/**kwargs parameters or uninspectable callables.
    """
    qualname = getattr(callback, "__qualname__", repr(callback))
    try:
        parameters = list(inspect.signature(callback, eval_str=True).parameters.values())
    except (TypeError, ValueError, NameError) as exception:
        raise InvalidHandlerError(
            "command %r cannot be inspected" % qualname,
            title="invalid handler",
            code=FaultCode.INVALID_HANDLER,
            input=qualname,
            hint="command methods need an inspectable signature with resolvable annotations",
            docs=getdoc(FaultCode.INVALID_HANDLER),
        ) from exception

    if method:
        parameters = parameters[1:]

    specs = []
    for position, parameter in enumerate(parameters):
        if parameter.kind in (_Signature.VAR_POSITIONAL, _Signature.VAR_KEYWORD):
            raise InvalidHandlerError(
                "command %r declares variadic parameter %r" % (qualname, parameter.name),
                title="invalid handler",
                code=FaultCode.INVALID_HANDLER,
                input=qualname,
                parameter=parameter.name,
                hint="declare every command parameter explicitly",
                docs=getdoc(FaultCode.INVALID_HANDLER),
            )

        option = _resolve_option(parameter)
        if option:
            default = option.default
        else:
            default = parameter.default if parameter.default is not _Signature.empty else Unset

        type = getattr(option, "type", Unset)
        if type is Unset and parameter.annotation is not _Signature.empty:
            type = parameter.annotation
        if type is Unset:
            type = builtins.type(default) if default is not Unset and default is not None else str

        specs.append(Parameter(
            parameter.name,
            type,
            default,
            position,
            names=getattr(option, "names", ()),
            index=option.index if option and option.index is not None else Unset,
            descr=option.descr if option and option.descr is not None else Unset,
            choices=getattr(option, "choices", ()),
            keyword=parameter.kind is _Signature.KEYWORD_ONLY,
        ))
    return tuple(specs)


__all__ = (
    "Option",
    "Parameter",
    "convert",
    "signature",
)
