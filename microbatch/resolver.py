"""
microbatch command resolver: argv → one resolution outcome.

Outcomes (Action)
- INVOKE: run `descriptor` with the remaining `tokens`.
- LIST: print the catalog listing.
- HELP: print help for `targets` (one descriptor or the whole catalog).
- MISSING: `help <name>` named nothing; print the not-found text (exit 0).

Priority order
1. empty argv           → fixed default command, else user "help", else fault
2. ["list"]             → LIST            (unless a user alias "list" exists)
3. ["help", [name]]     → HELP / MISSING  (unless a user alias "help" exists)
4. alias                → INVOKE, tokens = argv[1:]
5. Type.Method          → INVOKE, tokens = argv[1:]
6. "-flag ..." on a fixed catalog with a default command → INVOKE, tokens = argv
7. anything else        → UnknownCommandError
"""
import difflib
import enum
import logging

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)

LIST = "list"
HELP = "help"


class Action(enum.Enum):
    INVOKE = "invoke"
    LIST = "list"
    HELP = "help"
    MISSING = "missing"


class Resolution(metaclass=SpecType):
    """
    Result of resolve().

    Fields
    - action: Action.
    - descriptor: the command to invoke or describe, else None.
    - tokens: argv left for the binder (INVOKE only).
    - targets: descriptors to render (LIST / HELP).
    - name: the unmatched command name (MISSING only), else None.
    """

    __introspectable__ = (
        "action",
        "descriptor",
        "tokens",
        "targets",
        "name",
    )
    __displayable__ = (
        "action",
        "descriptor",
        "tokens",
    )

    def __new__(cls, action, /, descriptor=None, tokens=(), *, targets=(), name=None):
        if not isinstance(action, Action):
            raise TypeError(f"{cls.__typename__} 'action' must be an action")
        self = super().__new__(cls)
        self._action = action
        self._descriptor = descriptor
        self._tokens = tuple(tokens)
        self._targets = tuple(targets)
        self._name = name
        return self


def _match(catalog, name, /):
    # alias first, then the qualified fallback
    return catalog.lookup(name) or catalog.qualified(name)


def _suggest(catalog, name, /):
    names = []
    for descriptor in catalog:
        names.extend(descriptor.aliases)
        names.append(descriptor.qualname)
    if not catalog.declares(LIST):
        names.append(LIST)
    if not catalog.declares(HELP):
        names.append(HELP)
    folded = {candidate.casefold(): candidate for candidate in names}
    return tuple(folded[match] for match in difflib.get_close_matches(name.casefold(), folded, n=3))


def resolve(catalog, argv, /):
    """
    Resolve `argv` against `catalog`.

    Returns a Resolution; reserved words only apply while no user alias of the
    same name exists, and `help <unknown>` is an outcome, not a failure.

    Raises
    - MissingCommandError when argv is empty and nothing can run.
    - UnknownCommandError when the first token names no command.
    """
    argv = tuple(argv)

    if not argv:
        if catalog.fixed:
            default = catalog.default()
            if default is not None and default.runnable:
                logger.debug("command.resolved command=%s via=default", default.qualname)
                return Resolution(Action.INVOKE, default)
            if catalog.declares(HELP):
                argv = (HELP,)
        if not argv:
            raise MissingCommandError(
                "no command given",
                title="missing command",
                code=FaultCode.MISSING_COMMAND,
                input=argv,
                hint="run 'list' to see the available commands",
                docs=getdoc(FaultCode.MISSING_COMMAND),
            )

    first, *rest = argv

    if len(argv) == 1 and first.casefold() == LIST and not catalog.declares(LIST):
        logger.debug("command.resolved action=list")
        return Resolution(Action.LIST, targets=catalog)

    if first.casefold() == HELP and not catalog.declares(HELP) and len(rest) <= 1:
        if not rest:
            logger.debug("command.resolved action=help")
            return Resolution(Action.HELP, targets=catalog)
        if (descriptor := _match(catalog, rest[0])) is None:
            logger.debug("command.resolved action=missing name=%s", rest[0])
            return Resolution(Action.MISSING, name=rest[0])
        logger.debug("command.resolved action=help command=%s", descriptor.qualname)
        return Resolution(Action.HELP, descriptor, targets=(descriptor,))

    if (descriptor := _match(catalog, first)) is not None:
        logger.debug("command.resolved command=%s tokens=%d", descriptor.qualname, len(rest))
        return Resolution(Action.INVOKE, descriptor, rest)

    if catalog.fixed and first.startswith("-") and (default := catalog.default()) is not None:
        logger.debug("command.resolved command=%s via=default tokens=%d", default.qualname, len(argv))
        return Resolution(Action.INVOKE, default, argv)

    suggestions = _suggest(catalog, first)
    raise UnknownCommandError(
        "command %r not found" % first,
        title="unknown command",
        code=FaultCode.UNKNOWN_COMMAND,
        input=first,
        suggestions=suggestions,
        hint=(
            "did you mean %s?" % " or ".join(repr(suggestion) for suggestion in suggestions)
            if suggestions else
            "please check the \"list\" command"
        ),
        docs=getdoc(FaultCode.UNKNOWN_COMMAND),
    )


__all__ = (
    "Action",
    "Resolution",
    "resolve",
)
