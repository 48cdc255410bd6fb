"""
Sync providers.

A provider services one or more entity types for a backend. Concrete
operations can be supplied two ways:

- by the provider's ``SyncDefinition`` for an entity (``_create_definition``);
- by provider methods declared with ``@declare_operation``, which take
  precedence over the definition's own strategies (but not its overrides).

Declared methods are collected into a per-class table when the class is
created, so lookup never inspects the provider at call time::

    class CrmProvider(SyncProvider):
        @declare_operation(SyncOperation.READ, Contact)
        def get_contact(self, ctx, contact_id):
            ...

        def _create_definition(self, entity):
            return CrmDefinition(entity, self, operations=[SyncOperation.READ_LIST])
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, ClassVar

from spine_sync.core.container import SyncContainer, get_container
from spine_sync.core.enums import FilterPolicy, SyncOperation, iter_operations
from spine_sync.core.errors import SyncConfigError, SyncOperationNotImplementedError
from spine_sync.core.logging import get_logger
from spine_sync.core.settings import SyncSettings
from spine_sync.framework.context import SyncContext

if TYPE_CHECKING:
    from spine_sync.framework.definition import SyncDefinition

logger = get_logger(__name__)

_DECLARED_ATTR = "__sync_operations__"


def declare_operation(operation: SyncOperation | int, *entities: type) -> Callable:
    """Declare a provider method as the implementation of ``operation`` for ``entities``.

    ``operation`` may be a mask covering several operations.
    """
    if not entities:
        raise ValueError("declare_operation() requires at least one entity class")

    def decorator(fn: Callable) -> Callable:
        declared = getattr(fn, _DECLARED_ATTR, ())
        declared += tuple((op, entity) for op in iter_operations(operation) for entity in entities)
        setattr(fn, _DECLARED_ATTR, declared)
        return fn

    return decorator


class SyncProvider(ABC):
    """Base class for providers that sync entities to and from a backend."""

    # Display name used in logs and error messages (defaults to the class name)
    name: ClassVar[str] = ""

    # (operation, entity) -> method name, built per class
    _declared_operations: ClassVar[dict[tuple[SyncOperation, type], str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table = dict(cls._declared_operations)
        own: set[tuple[SyncOperation, type]] = set()
        for attr, value in vars(cls).items():
            for key in getattr(value, _DECLARED_ATTR, ()):
                if key in own:
                    operation, entity = key
                    raise SyncConfigError(
                        f"{cls.__qualname__} declares {operation.name} for "
                        f"{entity.__qualname__} more than once"
                    )
                own.add(key)
                table[key] = attr
        cls._declared_operations = table
        if not cls.__dict__.get("name"):
            cls.name = cls.__name__

    def __init__(
        self,
        *,
        settings: SyncSettings | None = None,
        container: SyncContainer | None = None,
    ) -> None:
        self._container = container
        self._settings = settings
        self._provider_id: int | None = None
        self._definitions: dict[type, SyncDefinition] = {}

    @property
    def container(self) -> SyncContainer:
        if self._container is None:
            self._container = get_container()
        return self._container

    @property
    def settings(self) -> SyncSettings:
        if self._settings is None:
            self._settings = self.container.settings
        return self._settings

    @property
    def provider_id(self) -> int | None:
        """ID assigned by the entity store that registered this provider."""
        return self._provider_id

    def set_provider_id(self, provider_id: int) -> SyncProvider:
        self._provider_id = provider_id
        return self

    # ── Provider contract ────────────────────────────────────────

    def get_filter_policy(self) -> FilterPolicy | None:
        """Default unclaimed filter policy for this provider's definitions."""
        return self.settings.default_filter_policy

    def is_valid_identifier(self, entity_id: Any, entity: type) -> bool:
        """True if ``entity_id`` has the right type and format to identify ``entity``."""
        if isinstance(entity_id, bool):
            return False
        if isinstance(entity_id, int):
            return entity_id >= 0
        return isinstance(entity_id, str) and entity_id != ""

    def get_declared_operation(self, operation: SyncOperation, entity: type) -> Callable | None:
        """Bound method declared for exactly ``operation`` on ``entity``, if any."""
        attr = self._declared_operations.get((operation, entity))
        if attr is None:
            return None
        return getattr(self, attr)

    def declared_operations(self, entity: type) -> list[SyncOperation]:
        return [op for op, declared in self._declared_operations if declared is entity]

    # ── Definitions ──────────────────────────────────────────────

    @abstractmethod
    def _create_definition(self, entity: type) -> SyncDefinition:
        """Build the provider's sync definition for ``entity``."""

    def get_definition(self, entity: type) -> SyncDefinition:
        """Provider's implementation of sync operations for ``entity`` (memoized)."""
        definition = self._definitions.get(entity)
        if definition is None:
            definition = self._definitions[entity] = self._create_definition(entity)
            logger.debug(
                "sync_definition_created",
                provider=self.name,
                entity=entity.__qualname__,
                operations=[op.name for op in definition.operations],
                declared=[op.name for op in self.declared_operations(entity)],
            )
        return definition

    def get_context(self, container: SyncContainer | None = None) -> SyncContext:
        return SyncContext(container=container or self.container)

    def with_entity(self, entity: type, ctx: SyncContext | None = None) -> SyncEntityProvider:
        """Entity-agnostic interface to this provider's operations for ``entity``."""
        return SyncEntityProvider(self, entity, ctx)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, provider_id={self._provider_id!r})"


class SyncEntityProvider:
    """Runs sync operations for one entity type against one provider."""

    def __init__(self, provider: SyncProvider, entity: type, ctx: SyncContext | None = None):
        self.provider = provider
        self.entity = entity
        self._ctx = ctx or provider.get_context()

    @property
    def definition(self) -> SyncDefinition:
        return self.provider.get_definition(self.entity)

    def run(self, operation: SyncOperation, *args: Any, **filters: Any) -> Any:
        closure = self.definition.get_sync_operation_closure(operation)
        if closure is None:
            raise SyncOperationNotImplementedError(self.provider, self.entity, operation)
        ctx = self._ctx.with_operation(operation)
        if filters:
            ctx = ctx.with_filters(filters)
        return closure(ctx, *args)

    def create(self, entity: Any, *args: Any) -> Any:
        return self.run(SyncOperation.CREATE, entity, *args)

    def get(self, entity_id: Any = None, *args: Any, **filters: Any) -> Any:
        return self.run(SyncOperation.READ, entity_id, *args, **filters)

    def get_list(self, *args: Any, **filters: Any) -> list[Any]:
        return list(self.run(SyncOperation.READ_LIST, *args, **filters))

    def update(self, entity: Any, *args: Any) -> Any:
        return self.run(SyncOperation.UPDATE, entity, *args)

    def delete(self, entity: Any, *args: Any) -> Any:
        return self.run(SyncOperation.DELETE, entity, *args)

    def update_list(self, entities: Iterable[Any], *args: Any) -> list[Any]:
        return list(self.run(SyncOperation.UPDATE_LIST, list(entities), *args))

    def delete_list(self, entities: Iterable[Any], *args: Any) -> list[Any]:
        return list(self.run(SyncOperation.DELETE_LIST, list(entities), *args))


__all__ = ["SyncProvider", "SyncEntityProvider", "declare_operation"]
