"""
Sync definitions: direct access to a provider's implementation of sync
operations for one entity type.

A ``SyncDefinition`` owns configuration (supported operations, conformity,
unclaimed filter policy, overrides, key map, pipelines) and a per-instance
cache of resolved strategies. Callers ask it for the strategy bound to an
operation; the first request resolves and memoizes it, in this order:

    1. cached result (including "no strategy")
    2. override registered for the operation
    3. method the provider declares for the operation and entity
    4. READ synthesized from READ_LIST, if ``read_from_read_list`` is set
    5. None, if the operation is not supported
    6. the subclass's own strategy (``_get_closure``)

Strategies from steps 2 and 3 receive a context whose
``apply_filter_policy()`` enforces this definition's filter policy for the
operation being run. Strategies built by subclasses call
``self.apply_filter_policy(operation, ctx)`` after claiming the filters they
apply at the backend.

Resolution is a pure function of immutable configuration, so concurrent
first-time resolution of the same operation needs no lock: both callers
compute equal strategies and the last store wins. Clones never share a cache.

Usage:
    class CrmContactDefinition(SyncDefinition):
        def _get_closure(self, operation):
            if operation is SyncOperation.READ_LIST:
                return self._read_list
            return None

    definition = CrmContactDefinition(
        Contact,
        provider,
        operations=[SyncOperation.READ_LIST],
        key_map={"cust_id": "id", "cust_name": "name"},
        conformity=ListConformity.COMPLETE,
    ).with_read_from_read_list()

    read = definition.get_sync_operation_closure(SyncOperation.READ)
    contact = read(ctx, 7)
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from spine_sync.core.enums import (
    ALL_OPERATIONS,
    FilterPolicy,
    KeyMapFlag,
    ListConformity,
    SyncEntitySource,
    SyncOperation,
    iter_operations,
)
from spine_sync.core.errors import (
    InvalidFilterPolicyError,
    SyncConfigError,
    SyncEntityNotFoundError,
    entity_display_name,
)
from spine_sync.core.logging import get_logger
from spine_sync.framework.entity import SyncEntity, entity_id_of
from spine_sync.framework.filter_policy import FilterPolicyOutcome, enforce_filter_policy
from spine_sync.framework.introspection import EntityIntrospector
from spine_sync.framework.keymap import KeyMap
from spine_sync.framework.pipeline import Pipeline

if TYPE_CHECKING:
    from spine_sync.framework.builder import SyncDefinitionBuilder
    from spine_sync.framework.context import SyncContext
    from spine_sync.framework.provider import SyncProvider

logger = get_logger(__name__)

# (ctx, *args) -> entity | iterable of entities
Strategy = Callable[..., Any]
# (definition, operation, ctx, *args) -> entity | iterable of entities
Override = Callable[..., Any]


def expand_overrides(
    overrides: Mapping[SyncOperation | int, Override] | None,
    entity: type,
    provider: SyncProvider,
) -> dict[SyncOperation, Override]:
    """Expand ``{operation mask: override}`` into one entry per operation.

    Raises:
        SyncConfigError: if two masks cover the same operation
    """
    expanded: dict[SyncOperation, Override] = {}
    for mask, override in (overrides or {}).items():
        for operation in iter_operations(mask):
            if operation in expanded:
                raise SyncConfigError(
                    f"Too many overrides for SyncOperation.{operation.name} on "
                    f"{entity_display_name(entity)}: {type(provider).__qualname__}"
                )
            expanded[operation] = override
    return expanded


def _coerce_filter_policy(value: FilterPolicy | str) -> FilterPolicy:
    try:
        return FilterPolicy(value)
    except ValueError as e:
        raise InvalidFilterPolicyError(value) from e


class _HydrationStage:
    """Terminal stage converting backend records to entities.

    Holds batch state (context and constructor), so each pipeline built by
    ``build_pipeline_from_backend`` gets its own instance.
    """

    def __init__(self, definition: SyncDefinition):
        self._definition = definition
        self._ctx: SyncContext | None = None
        self._create: Callable[..., SyncEntity] | None = None

    def __call__(self, record: Mapping[str, Any], arg: Any) -> SyncEntity:
        definition = self._definition
        if self._ctx is None:
            _, ctx, *_ = arg
            self._ctx = ctx.with_conformity(definition.conformity)
        if self._create is None:
            introspector = EntityIntrospector.for_service(self._ctx.container, definition.entity)
            if definition.conformity in (ListConformity.PARTIAL, ListConformity.COMPLETE):
                self._create = introspector.get_create_from_signature(list(record))
            else:
                self._create = introspector.get_create_from()
        return self._create(record, definition.provider, self._ctx)


def _serialize_entities(payload: Any, next_: Callable[[Any], Any], arg: Any) -> Any:
    if isinstance(payload, SyncEntity):
        return next_(payload.to_dict())
    return next_(payload)


class SyncDefinition(ABC):
    """Provides direct access to a provider's implementation of sync operations for an entity."""

    @abstractmethod
    def _get_closure(self, operation: SyncOperation) -> Strategy | None:
        """Return a strategy for an operation in ``self.operations``, or None.

        Strategy signatures by operation:

        - READ: ``(ctx, entity_id, *args) -> entity``
        - READ_LIST: ``(ctx, *args) -> iterable[entity]``
        - CREATE, UPDATE, DELETE: ``(ctx, entity, *args) -> entity``
        - UPDATE_LIST, DELETE_LIST: ``(ctx, entities, *args) -> iterable[entity]``
        """

    def __init__(
        self,
        entity: type,
        provider: SyncProvider,
        operations: Iterable[SyncOperation | int] = (),
        conformity: ListConformity = ListConformity.NONE,
        filter_policy: FilterPolicy | str | None = None,
        overrides: Mapping[SyncOperation | int, Override] | None = None,
        key_map: KeyMap | None = None,
        key_map_flags: KeyMapFlag | int = KeyMapFlag.ADD_UNMAPPED,
        pipeline_from_backend: Pipeline | None = None,
        pipeline_to_backend: Pipeline | None = None,
        read_from_read_list: bool = False,
        return_entities_from: SyncEntitySource | None = None,
    ):
        if filter_policy is None:
            filter_policy = provider.get_filter_policy()
            if filter_policy is None:
                filter_policy = FilterPolicy.THROW

        self._entity = entity
        self._provider = provider
        self._conformity = ListConformity(conformity)
        self._filter_policy = _coerce_filter_policy(filter_policy)
        self._key_map = dict(key_map) if key_map is not None else None
        self._key_map_flags = KeyMapFlag(key_map_flags)
        self._pipeline_from_backend = pipeline_from_backend
        self._pipeline_to_backend = pipeline_to_backend
        self._read_from_read_list = read_from_read_list
        self._return_entities_from = (
            SyncEntitySource(return_entities_from) if return_entities_from is not None else None
        )

        expanded = expand_overrides(overrides, entity, provider)
        self._overrides: Mapping[SyncOperation, Override] = MappingProxyType(expanded)

        # The overrides-stripped sibling keeps this merged set
        supported = set(operations) | set(expanded)
        self._operations = tuple(op for op in ALL_OPERATIONS if op in supported)

        self._closures: dict[SyncOperation, Strategy | None] = {}
        self._without_overrides: SyncDefinition | None = None

        if self._filter_policy is FilterPolicy.FILTER_LOCALLY:
            logger.warning(
                "sync_filter_policy_not_implemented",
                entity=entity_display_name(entity),
                provider=provider.name,
                filter_policy=self._filter_policy.value,
            )

    def __copy__(self) -> SyncDefinition:
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone._closures = {}
        clone._without_overrides = None
        return clone

    @classmethod
    def builder(cls) -> SyncDefinitionBuilder:
        """Fluent factory for this definition class."""
        from spine_sync.framework.builder import SyncDefinitionBuilder

        return SyncDefinitionBuilder(cls)

    # ── Read-only configuration ──────────────────────────────────

    @property
    def entity(self) -> type:
        """The entity class being serviced."""
        return self._entity

    @property
    def provider(self) -> SyncProvider:
        """The provider servicing the entity."""
        return self._provider

    @property
    def operations(self) -> tuple[SyncOperation, ...]:
        """Supported operations, including overridden ones."""
        return self._operations

    @property
    def conformity(self) -> ListConformity:
        return self._conformity

    @property
    def filter_policy(self) -> FilterPolicy:
        """Action taken when filters are unclaimed by the provider."""
        return self._filter_policy

    @property
    def overrides(self) -> Mapping[SyncOperation, Override]:
        return self._overrides

    @property
    def key_map(self) -> dict[Any, Any] | None:
        """Backend key -> entity key(s), applied before hydration."""
        return dict(self._key_map) if self._key_map is not None else None

    @property
    def key_map_flags(self) -> KeyMapFlag:
        return self._key_map_flags

    @property
    def pipeline_from_backend(self) -> Pipeline | None:
        return self._pipeline_from_backend

    @property
    def pipeline_to_backend(self) -> Pipeline | None:
        return self._pipeline_to_backend

    @property
    def read_from_read_list(self) -> bool:
        """If True, READ is performed by scanning the result of READ_LIST."""
        return self._read_from_read_list

    @property
    def return_entities_from(self) -> SyncEntitySource | None:
        """Where the return value of CREATE, UPDATE and DELETE comes from."""
        return self._return_entities_from

    # ── Resolution ───────────────────────────────────────────────

    def get_sync_operation_closure(self, operation: SyncOperation | int) -> Strategy | None:
        """Strategy for ``operation``, or None if the operation is not supported."""
        operation = SyncOperation(operation)
        if operation in self._closures:
            return self._closures[operation]

        closure, source = self._resolve(operation)
        self._closures[operation] = closure
        logger.debug(
            "sync_closure_resolved",
            entity=entity_display_name(self._entity),
            provider=self._provider.name,
            operation=operation.name,
            source=source,
        )
        return closure

    def _resolve(self, operation: SyncOperation) -> tuple[Strategy | None, str]:
        # Overrides take precedence over everything else, including declared methods
        override = self._overrides.get(operation)
        if override is not None:
            return self._wrap_override(operation, override), "override"

        # Declared methods are used even if the operation is not in self.operations
        declared = self._provider.get_declared_operation(operation, self._entity)
        if declared is not None:
            return self._wrap_declared(operation, declared), "declared"

        if operation is SyncOperation.READ and self._read_from_read_list:
            list_closure = self.get_sync_operation_closure(SyncOperation.READ_LIST)
            if list_closure is not None:
                return self._read_from_list(list_closure), "read_list"

        if operation not in self._operations:
            return None, "unsupported"

        return self._get_closure(operation), "definition"

    def _wrap_override(self, operation: SyncOperation, override: Override) -> Strategy:
        def closure(ctx: SyncContext, *args: Any) -> Any:
            return override(self, operation, self._with_filter_callback(operation, ctx), *args)

        return closure

    def _wrap_declared(self, operation: SyncOperation, declared: Callable[..., Any]) -> Strategy:
        def closure(ctx: SyncContext, *args: Any) -> Any:
            return declared(self._with_filter_callback(operation, ctx), *args)

        return closure

    def _read_from_list(self, list_closure: Strategy) -> Strategy:
        def closure(ctx: SyncContext, entity_id: Any, *args: Any) -> Any:
            for entity in list_closure(ctx.with_filters(ctx.filters), *args):
                if entity_id_of(entity, self._entity) == entity_id:
                    return entity
            raise SyncEntityNotFoundError(self._provider, self._entity, entity_id)

        return closure

    def get_fallback_closure(self, operation: SyncOperation | int) -> Strategy | None:
        """Strategy ``operation`` would resolve to without overrides.

        Useful within overrides when a fallback implementation is required.
        """
        clone = self._without_overrides
        if clone is None:
            clone = copy.copy(self)
            clone._overrides = MappingProxyType({})
            self._without_overrides = clone
        return clone.get_sync_operation_closure(operation)

    def with_read_from_read_list(self, read_from_read_list: bool = True) -> SyncDefinition:
        """Copy of this definition that performs READ by scanning READ_LIST."""
        clone = copy.copy(self)
        clone._read_from_read_list = read_from_read_list
        return clone

    # ── Filter policy ────────────────────────────────────────────

    def apply_filter_policy(self, operation: SyncOperation, ctx: SyncContext) -> FilterPolicyOutcome:
        """Enforce the unclaimed filter policy for ``operation``."""
        return enforce_filter_policy(
            self._filter_policy,
            operation,
            ctx,
            provider=self._provider,
            entity=self._entity,
        )

    def _with_filter_callback(self, operation: SyncOperation, ctx: SyncContext) -> SyncContext:
        return ctx.with_operation(operation).with_filter_policy_callback(
            lambda c: self.apply_filter_policy(operation, c)
        )

    # ── Pipelines ────────────────────────────────────────────────

    def build_pipeline_to_backend(self) -> Pipeline:
        """Entity-to-data pipeline.

        The caller's ``pipeline_to_backend`` is followed by a stage that
        serializes any ``SyncEntity`` payload to a dict.
        """
        pipeline = self._pipeline_to_backend if self._pipeline_to_backend is not None else Pipeline.create()
        return pipeline.through(_serialize_entities)

    def build_pipeline_from_backend(self) -> Pipeline:
        """Data-to-entity pipeline.

        The caller's ``pipeline_from_backend`` is followed by the key map, if
        any, and a terminal stage that creates entity instances. Pipeline
        arguments are ``(operation, ctx, *args)``.
        """
        pipeline = self._pipeline_from_backend if self._pipeline_from_backend is not None else Pipeline.create()
        if self._key_map is not None:
            pipeline = pipeline.through_key_map(self._key_map, self._key_map_flags)
        return pipeline.then(_HydrationStage(self))

    def to_entities(
        self,
        records: Iterable[Mapping[str, Any]],
        operation: SyncOperation,
        ctx: SyncContext,
        *args: Any,
    ) -> list[Any]:
        """Hydrate a batch of backend records."""
        return list(self.build_pipeline_from_backend().stream(records, (operation, ctx, *args)))

    def to_backend(self, entity: Any, operation: SyncOperation, ctx: SyncContext, *args: Any) -> Any:
        """Serialize one entity (or pass a raw record through) for the backend."""
        return self.build_pipeline_to_backend().send(entity, (operation, ctx, entity, *args))

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(entity={entity_display_name(self._entity)}, "
            f"provider={self._provider.name!r}, "
            f"operations={[op.name for op in self._operations]})"
        )


__all__ = ["SyncDefinition", "Strategy", "Override", "expand_overrides"]
