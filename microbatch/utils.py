"""
microbatch utilities (internal helpers shared by every layer)

Scope
- Small, dependency-free building blocks used by the parameter, catalog and
  engine layers so that they agree on "not provided", naming and immutability.

Overview
- UnsetType / Unset
  • Singleton sentinel meaning "value not provided"; distinct from None so a
    parameter default of None stays a real default.
  • Falsey, printable as "Unset", sealed against subclassing, PEP 604 friendly.

- coalesce(value, default=None)
  • Replace Unset with a default; None/0/""/[] are preserved.

- rename(callable, name) / @rename("name")
  • Stable __name__/__qualname__ for generated wrappers and thunks.

- mirror("attr")
  • Read-only property exposing a private backing field (self._attr) through
    copies for containers.

- pluralize(count, word)
  • "1 token" / "2 tokens" for fault messages and help output.

- mglob(pattern)
  • Expand "pkg.**.batches" style module globs into importable module names,
    used to collect handler types from registration modules.
"""
import builtins
import functools
import importlib
import pkgutil
import re
from collections.abc import Sequence, Mapping, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Sentinel type for "not provided".

    Parameter specs use it to tell "no default" apart from "default is None",
    and option builders use it for every optional keyword.
    """

    def __or__(self, other, /):
        # isinstance(x, str | Unset)
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __reduce__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Return `object` unless it is Unset, in which case return `default`.

    Examples
    - coalesce(Unset, 1)    -> 1
    - coalesce(None, 1)     -> None
    - coalesce(0, 1)        -> 0
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Assign __name__ and __qualname__ on a callable.

    Forms
    - rename(callable, name) -> callable (renamed in place)
    - rename(name)           -> decorator

    Raises
    - TypeError on wrong arity, non-string names, or non-updatable callables.
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _detach(object):
    """
    Copy containers one level at a time so callers cannot mutate backing state.

    Tuples, frozensets and mapping proxies are already immutable snapshots and
    pass through unchanged; lists, dicts and sets are copied recursively.
    """
    if isinstance(object, tuple | frozenset | str | bytes):
        return object
    if isinstance(object, Sequence):
        return list(map(_detach, object))
    if isinstance(object, MappingProxyType):
        return object
    if isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_detach, object.values())))
    if isinstance(object, Set):
        return set(map(_detach, object))
    return object


def mirror(name, /):
    """
    Define a read-only property that reads self._{name}.

    Example
    - class Descriptor: aliases = mirror("aliases")  # reads self._aliases
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _detach(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def pluralize(count, word, /):
    """
    Prefix `word` with `count` and pluralize it when count != 1.

    Only the regular English endings used by microbatch messages are handled
    (token → tokens, alias → aliases, entry → entries).
    """
    if not isinstance(count, int):
        raise TypeError("pluralize() first argument must be an integer")
    if not isinstance(word, str):
        raise TypeError("pluralize() second argument must be a string")

    if count == 1 or not word:
        return f"{count} {word}"
    if word.endswith(("s", "sh", "ch", "x", "z")):
        plural = word + "es"
    elif word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        plural = word[:-1] + "ies"
    else:
        plural = word + "s"
    return f"{count} {plural}"


@functools.cache
def _resolve_segment(segment):
    """
    translate one glob segment into a regex snippet (dots are never matched).

      *       → zero or more non-dot chars
      ?       → exactly one non-dot char
      [...]   → character class, [!...] negated
      \\x      → literal x
    """
    length = len(segment)
    index = 0
    parts = []
    while index < length:
        char = segment[index]
        if char == '\\' and index + 1 < length:
            parts.append(re.escape(segment[index + 1]))
            index += 2
            continue
        if char == '*':
            parts.append(r'[^.]*')
        elif char == '?':
            parts.append(r'[^.]')
        elif char == '[':
            start = index + 1
            negated = ''
            if start < length and segment[start] in ('!', '^'):
                negated = '^'
                start += 1
            pivot = start
            while pivot < length and segment[pivot] != ']':
                pivot += 2 if segment[pivot] == '\\' and pivot + 1 < length else 1
            if pivot >= length:
                parts.append(r'\[')
            else:
                parts.append(f'[{negated}{segment[start:pivot]}]')
                index = pivot
        else:
            parts.append(re.escape(char))
        index += 1
    return ''.join(parts)


@functools.cache
def _compile_regex(pattern):
    # '**' spans zero or more whole segments
    parts = []
    for segment in pattern.split('.'):
        if segment == '**':
            parts.append(r'(?:\.[A-Za-z_]\w*)*')
        else:
            parts.append(r'\.' + _resolve_segment(segment))
    body = ''.join(parts)
    return re.compile(body[2:] if body.startswith(r'\.') else body)


def mglob(source, /):
    """
    expand a dotted module glob into fully-qualified module names.

    rules
    - the pattern must start with at least one concrete package segment.
    - a pattern without wildcards is returned as-is ([source]).
    - matches are sorted; an unimportable prefix yields [].

    examples
    - "app.batches.*"     → direct children of app.batches
    - "app.**.batches"    → any batches module below app
    """
    if not isinstance(source, str):
        raise TypeError("mglob() argument must be a string")
    elif not (source := source.strip()):
        raise ValueError("mglob() argument must be a non-empty string")

    if re.fullmatch(r"(?!\d)\w+(\.(?!\d)\w+)*", source):
        return [source]

    prefixes = []
    for segment in source.split('.'):
        if set(segment) & set('*?[]!\\') or not re.fullmatch(r"(?!\d)\w+", segment):
            break
        prefixes.append(segment)

    if not prefixes:
        raise ValueError("mglob() pattern must start with a concrete package segment")

    try:
        package = importlib.import_module(prefix := ".".join(prefixes))
    except ImportError:
        return []

    matches = set()
    if (pattern := _compile_regex(source)).fullmatch(prefix):
        matches.add(prefix)

    if hasattr(package, "__path__"):
        for metadata in pkgutil.walk_packages(package.__path__, prefix + '.'):
            if pattern.fullmatch(name := metadata.name):
                matches.add(name)

    return sorted(matches)


Unset = UnsetType()
"""
The "not provided" sentinel. Use coalesce() to materialize a fallback.
"""


class SpecType(type):
    """
    Metaclass for immutable, introspectable specs (parameters, descriptors).

    Responsibilities
    - Publish every name in __introspectable__ as a read-only property backed
      by "_{name}" (see mirror()).
    - Derive __typename__ from the class name ("Descriptor" → "descriptor",
      "BatchContext" → "batch-context") for messages and reprs.
    - Provide a compact __repr__ and a __rich_repr__ for pretty printers,
      narrowed to __displayable__ when a class declares it.
    - Reject attribute assignment on finished instances (names starting with
      "_" stay writable while __new__ populates them).
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return "%s(%s)" % (
                type(self).__typename__,
                ", ".join("%s=%r" % pair for pair in self.__rich_repr__()),
            )
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        @rename("__setattr__")
        def __setattr__(self, name, value, /):
            if not name.startswith("_"):
                raise AttributeError(f"{type(self).__typename__} attribute {name!r} is read-only")
            object.__setattr__(self, name, value)
        self.__setattr__ = __setattr__

        return self


__all__ = (
    "SpecType",
    "coalesce",
    "rename",
    "mirror",
    "pluralize",
    "mglob",
    "UnsetType",
    "Unset",
)
