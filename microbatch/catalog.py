"""
microbatch command catalog: the immutable, built-once set of descriptors.

Scope
- Catalog(handlers): describe every handler type and check the catalog-wide
  invariants before anything is resolved.
- Catalog.include(pattern): collect handler types from registration modules
  ("app.batches", "app.batches.*", "app.**.jobs").

Invariants (checked eagerly, ConfigurationError on violation)
- every handler is a Batch subclass and appears once;
- handler simple names are unique case-insensitively (the TypeName.MethodName
  fallback could not tell them apart otherwise);
- aliases are unique case-insensitively across the whole catalog;
- at most one default command per handler type.
"""
import importlib
import inspect
import logging
from collections.abc import Iterable
from types import MappingProxyType

from .commands import Batch, describe
from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


class Catalog(metaclass=SpecType):
    """
    Ordered, read-only collection of command descriptors.

    Fields
    - handlers: handler types in registration order.
    - descriptors: every descriptor in discovery order.
    - aliases: casefolded alias → descriptor mapping.
    - handler: the handler type a fixed catalog was built for, else None.

    A catalog built from exactly one handler type is fixed to it unless
    fixed=False is passed; fixed catalogs run the handler's default command
    when argv is empty.
    """

    __introspectable__ = (
        "handlers",
        "descriptors",
        "aliases",
        "handler",
    )
    __displayable__ = (
        "handlers",
        "handler",
    )

    def __new__(cls, handlers=(), /, *, fixed=Unset, factories=Unset):
        if isinstance(handlers, type):
            handlers = (handlers,)
        elif not isinstance(handlers, Iterable):
            raise TypeError(f"{cls.__typename__} 'handlers' must be a handler type or an iterable of them")
        handlers = tuple(handlers)
        factories = dict(coalesce(factories, {}))

        names = {}
        for handler in handlers:
            if not isinstance(handler, type) or not issubclass(handler, Batch) or handler is Batch:
                # describe() owns the message for this case
                describe(handler)
            if (folded := handler.__name__.casefold()) in names:
                other = names[folded]
                raise DuplicateTypeNameError(
                    "handler types %s.%s and %s.%s share the name %r" % (
                        other.__module__, other.__qualname__, handler.__module__, handler.__qualname__, handler.__name__
                    ) if other is not handler else "handler type %s is registered twice" % handler.__name__,
                    title="duplicate handler",
                    code=FaultCode.DUPLICATE_TYPENAME,
                    input=handler,
                    hint="rename one of the handler types or register it once",
                    docs=getdoc(FaultCode.DUPLICATE_TYPENAME),
                )
            names[folded] = handler

        descriptors = []
        aliases = {}
        for handler in handlers:
            for descriptor in describe(handler, factory=factories.get(handler, Unset)):
                for alias in descriptor.aliases:
                    if (other := aliases.setdefault(alias.casefold(), descriptor)) is not descriptor:
                        raise DuplicateAliasError(
                            "alias %r is declared by both %s and %s" % (alias, other.qualname, descriptor.qualname),
                            title="duplicate alias",
                            code=FaultCode.DUPLICATE_ALIAS,
                            input=alias,
                            hint="aliases are case-insensitive and must be unique across every handler",
                            docs=getdoc(FaultCode.DUPLICATE_ALIAS),
                        )
                descriptors.append(descriptor)

        fixed = coalesce(fixed, len(handlers) == 1)
        if fixed and len(handlers) != 1:
            raise TypeError(f"{cls.__typename__} can only be fixed to exactly one handler type")

        self = super().__new__(cls)
        self._handlers = handlers
        self._descriptors = tuple(descriptors)
        self._aliases = MappingProxyType(aliases)
        self._handler = handlers[0] if fixed else None

        logger.debug(
            "catalog.built handlers=%d descriptors=%d fixed=%s",
            len(handlers), len(descriptors), bool(fixed),
        )
        return self

    @classmethod
    def include(cls, *patterns, fixed=Unset, factories=Unset):
        """
        Build a catalog from the Batch subclasses defined in matching modules.

        Each pattern is a dotted module glob (see mglob()); handler types are
        taken in module order, then in definition order within a module.
        Classes merely imported into a module are skipped.
        """
        handlers = []
        for pattern in patterns:
            for name in mglob(pattern):
                module = importlib.import_module(name)
                for object in vars(module).values():
                    if (
                        inspect.isclass(object)
                        and issubclass(object, Batch)
                        and object is not Batch
                        and object.__module__ == module.__name__
                        and object not in handlers
                    ):
                        handlers.append(object)
        return cls(handlers, fixed=fixed, factories=factories)

    @classmethod
    def build(cls, *handlers, fixed=Unset, factories=Unset):
        """
        Variadic spelling of Catalog(handlers): Catalog.build(Images, Sync).
        """
        return cls(handlers, fixed=fixed, factories=factories)

    def __iter__(self):
        return iter(self.descriptors)

    def __len__(self):
        return len(self.descriptors)

    def __bool__(self):
        return True

    @property
    def fixed(self):
        """
        True when the catalog was built for a single handler type.
        """
        return self.handler is not None

    def declares(self, alias, /):
        """
        True when a user command owns `alias` (reserved words yield to it).
        """
        return alias.casefold() in self.aliases

    def lookup(self, alias, /):
        """
        Return the descriptor owning `alias` (case-insensitive), or None.
        """
        return self.aliases.get(alias.casefold())

    def qualified(self, name, method=Unset, /):
        """
        Resolve "TypeName.MethodName" (case-insensitive), or return None.

        Forms
        - qualified("Images.purge")
        - qualified("Images", "purge")

        A single string qualifies only with exactly one '.'.
        Alias sets stacked on one method share a qualified name; the first
        one declared is returned.
        """
        if method is Unset:
            if name.count(".") != 1:
                return None
            name, method = name.split(".")
        typename, method = name.casefold(), method.casefold()
        for descriptor in self.descriptors:
            if descriptor.handler.__name__.casefold() == typename and descriptor.method.casefold() == method:
                return descriptor
        return None

    def default(self, handler=Unset, /):
        """
        Return the default command of `handler` (the fixed handler when
        omitted), or None.
        """
        handler = coalesce(handler, self.handler)
        for descriptor in self.descriptors:
            if descriptor.handler is handler and descriptor.default:
                return descriptor
        return None


__all__ = (
    "Catalog",
)
