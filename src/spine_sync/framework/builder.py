"""Fluent factory for sync definitions.

Every setter returns a new builder, so partially configured builders can be
shared and specialised::

    base = DbSyncDefinition.builder().provider(provider).conformity(ListConformity.COMPLETE)
    contacts = base.entity(Contact).option("table", "contacts").build()
    accounts = base.entity(Account).option("table", "accounts").build()
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from spine_sync.core.enums import (
    FilterPolicy,
    KeyMapFlag,
    ListConformity,
    SyncEntitySource,
    SyncOperation,
)
from spine_sync.core.errors import SyncConfigError

if TYPE_CHECKING:
    from spine_sync.framework.definition import Override, SyncDefinition
    from spine_sync.framework.keymap import KeyMap
    from spine_sync.framework.pipeline import Pipeline
    from spine_sync.framework.provider import SyncProvider


class SyncDefinitionBuilder:
    """Immutable builder for a ``SyncDefinition`` subclass."""

    def __init__(self, definition_cls: type[SyncDefinition], values: Mapping[str, Any] | None = None):
        self._definition_cls = definition_cls
        self._values = dict(values or {})

    def _with(self, name: str, value: Any) -> SyncDefinitionBuilder:
        return SyncDefinitionBuilder(self._definition_cls, {**self._values, name: value})

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def entity(self, value: type) -> SyncDefinitionBuilder:
        """The entity class being serviced."""
        return self._with("entity", value)

    def provider(self, value: SyncProvider) -> SyncDefinitionBuilder:
        """The provider servicing the entity."""
        return self._with("provider", value)

    def operations(self, value: Iterable[SyncOperation]) -> SyncDefinitionBuilder:
        return self._with("operations", tuple(value))

    def conformity(self, value: ListConformity) -> SyncDefinitionBuilder:
        return self._with("conformity", value)

    def filter_policy(self, value: FilterPolicy | None) -> SyncDefinitionBuilder:
        return self._with("filter_policy", value)

    def overrides(self, value: Mapping[SyncOperation | int, Override]) -> SyncDefinitionBuilder:
        return self._with("overrides", dict(value))

    def key_map(self, value: KeyMap | None) -> SyncDefinitionBuilder:
        return self._with("key_map", value)

    def key_map_flags(self, value: KeyMapFlag | int) -> SyncDefinitionBuilder:
        return self._with("key_map_flags", value)

    def pipeline_from_backend(self, value: Pipeline | None) -> SyncDefinitionBuilder:
        return self._with("pipeline_from_backend", value)

    def pipeline_to_backend(self, value: Pipeline | None) -> SyncDefinitionBuilder:
        return self._with("pipeline_to_backend", value)

    def read_from_read_list(self, value: bool = True) -> SyncDefinitionBuilder:
        return self._with("read_from_read_list", value)

    def return_entities_from(self, value: SyncEntitySource | None) -> SyncDefinitionBuilder:
        return self._with("return_entities_from", value)

    def option(self, name: str, value: Any) -> SyncDefinitionBuilder:
        """Set a constructor argument specific to the definition class (e.g. ``table``)."""
        return self._with(name, value)

    def build(self) -> SyncDefinition:
        missing = [name for name in ("entity", "provider") if name not in self._values]
        if missing:
            raise SyncConfigError(
                f"Cannot build {self._definition_cls.__qualname__}: missing {', '.join(missing)}"
            )
        values = dict(self._values)
        values.setdefault("conformity", values["provider"].settings.default_conformity)
        return self._definition_cls(**values)

    def __repr__(self) -> str:
        return f"SyncDefinitionBuilder({self._definition_cls.__qualname__}, {sorted(self._values)})"


__all__ = ["SyncDefinitionBuilder"]
