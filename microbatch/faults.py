"""
microbatch faults (configuration, resolution, binding and invocation errors).

Scope
- FaultCode: stable numeric identifiers for every user-facing failure, grouped
  by the stage that detects them so logs and searches stay predictable.
- BatchException: base type carrying a message plus read-only options; knows
  how to render itself with rich and how to surface itself (trigger()).
- Four families mirror the four stages of a run:
  • ConfigurationError: the catalog cannot be built (fatal, before anything runs).
  • ResolutionError: argv does not name a command.
  • BindingError: tokens do not fit the command's parameters.
  • InvocationError: the command body raised.
- trigger(): central entry point to surface a fault (raise, or print and exit).
- getdoc(): optional per-code documentation supplied by the host application.

Host overrides (looked up on __main__)
- __prog__: program name shown in fault headers.
- __styles__: palette overrides (keys below).
- __codes__: FaultCode → label mapping.
- __docs__: FaultCode → documentation string.
"""
import copy
import os.path
import re
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - configuration (101xx): INVALID_HANDLER, INVALID_ALIAS, DUPLICATE_ALIAS,
      DUPLICATE_DEFAULT, DUPLICATE_TYPENAME
    - resolution (111xx): UNKNOWN_COMMAND, MISSING_COMMAND
    - binding (112xx): UNKNOWN_PARAMETER, DUPLICATED_PARAMETER, MISSING_VALUE,
      MISSING_PARAMETER, UNCASTABLE_VALUE, INVALID_CHOICE, UNPARSED_TOKENS
    - invocation (131xx): INVOCATION_FAILED
    """
    # --- configuration errors (10xxx) ---
    INVALID_HANDLER             = 10101
    INVALID_ALIAS               = 10102
    DUPLICATE_ALIAS             = 10111
    DUPLICATE_DEFAULT           = 10112
    DUPLICATE_TYPENAME          = 10113

    # --- resolution errors (11xxx) ---
    UNKNOWN_COMMAND             = 11101
    MISSING_COMMAND             = 11102

    # --- binding errors (11xxx) ---
    UNKNOWN_PARAMETER           = 11211
    DUPLICATED_PARAMETER        = 11212
    MISSING_VALUE               = 11213
    MISSING_PARAMETER           = 11214
    UNCASTABLE_VALUE            = 11215
    INVALID_CHOICE              = 11216
    UNPARSED_TOKENS             = 11241

    # --- invocation errors (13xxx) ---
    INVOCATION_FAILED           = 13101

    def normalize(self):
        """
        return a host-normalized label for this code.

        the host may provide a __codes__ mapping in __main__; otherwise the
        numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class BatchException(Exception):
    """
    Base class of every microbatch fault.

    Options (all optional, merged through copy.replace)
    - title, code, hint, docs: presentation.
    - shell, fancy, colorful: runtime flags set by the engine.
    - any context the raise-site knows (input, parameter, value, suggestions...).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message) if self.message is not Unset else ""

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",

            # body
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(main, "__styles__", {}))

        colorful = self.options.get("colorful", False)
        fancy = self.options.get("fancy", False)

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if isinstance(fragment, Text):
                return fragment if colorful else Text(fragment.plain)
            return Text(str(fragment), styles[style] if colorful else "")

        prog = getattr(main, "__prog__", self.options.get("prog") or os.path.basename(sys.argv[0]))
        code = self.options.get("code")
        title = self.options.get("title", re.sub(r"(?<!^)(?=[A-Z])", " ", type(self).__name__))

        header = Text.assemble(
            "[ ",
            text(prog, "prog-name"),
            " — ",
            text(code.normalize() if isinstance(code, FaultCode) else "-", "code"),
            " | ",
            text(title.title(), "error-title"),
            " ]"
        )
        message = text(self.message, "error-message")
        parts = [message]
        if hint := self.options.get("hint"):
            parts.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))
        if docs := self.options.get("docs"):
            parts.append(text(docs, "hint"))

        if fancy:
            return Panel(Group(*parts), title=header, title_align="left")
        return Group(header, *parts)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from self.__cause__
        console.print(self)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        replaced = type(self)(self.message, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced


class ConfigurationError(BatchException): ...
class InvalidHandlerError(ConfigurationError): ...
class InvalidAliasError(ConfigurationError): ...
class DuplicateAliasError(ConfigurationError): ...
class DuplicateDefaultError(ConfigurationError): ...
class DuplicateTypeNameError(ConfigurationError): ...

class ResolutionError(BatchException): ...
class UnknownCommandError(ResolutionError): ...
class MissingCommandError(ResolutionError): ...

class BindingError(BatchException): ...
class UnknownParameterError(BindingError): ...
class DuplicatedParameterError(BindingError): ...
class MissingValueError(BindingError): ...
class MissingParameterError(BindingError): ...
class UncastableValueError(BindingError): ...
class InvalidChoiceError(BindingError): ...
class UnparsedTokensError(BindingError): ...

class InvocationError(BatchException): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ (see BatchException).
    - options are merged into a copy via copy.replace before triggering.
    - shell mode prints the fault to stderr and exits with status 1;
      otherwise the fault is raised.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation lookup for a fault code (via __main__.__docs__).
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "BatchException",
    "ConfigurationError",
    "InvalidHandlerError",
    "InvalidAliasError",
    "DuplicateAliasError",
    "DuplicateDefaultError",
    "DuplicateTypeNameError",
    "ResolutionError",
    "UnknownCommandError",
    "MissingCommandError",
    "BindingError",
    "UnknownParameterError",
    "DuplicatedParameterError",
    "MissingValueError",
    "MissingParameterError",
    "UncastableValueError",
    "InvalidChoiceError",
    "UnparsedTokensError",
    "InvocationError",
    "FaultCode",
    "trigger",
    "getdoc",
)
