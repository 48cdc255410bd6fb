"""Sync operation context.

``SyncContext`` is a value object passed as the first argument of every
strategy. ``with_*`` methods return copies; the only in-place change is
``claim_filter``, which removes a filter from this context's own filter dict
once a provider has applied it at the backend.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from spine_sync.core.container import SyncContainer, get_container
from spine_sync.core.enums import ListConformity, SyncOperation
from spine_sync.framework.filter_policy import NO_SHORT_CIRCUIT, FilterPolicyOutcome
from spine_sync.framework.introspection import normalise_key

FilterPolicyCallback = Callable[["SyncContext"], FilterPolicyOutcome]


@dataclass(frozen=True)
class SyncContext:
    """Per-call state for a sync operation."""

    container: SyncContainer = field(default_factory=get_container)
    filters: dict[str, Any] = field(default_factory=dict)
    conformity: ListConformity = ListConformity.NONE
    operation: SyncOperation | None = None
    filter_policy_callback: FilterPolicyCallback | None = field(
        default=None, repr=False, compare=False
    )

    def _copy(self, **changes: Any) -> SyncContext:
        changes.setdefault("filters", dict(self.filters))
        return replace(self, **changes)

    # ── Filters ──────────────────────────────────────────────────

    def with_filters(self, filters: Mapping[str, Any] | None = None, **kwargs: Any) -> SyncContext:
        """Copy with filters replaced; keys are normalised to snake_case."""
        merged = {**(filters or {}), **kwargs}
        return self._copy(filters={normalise_key(key): value for key, value in merged.items()})

    def get_filters(self) -> dict[str, Any]:
        """Filters no strategy has claimed yet."""
        return dict(self.filters)

    def has_filter(self, key: str) -> bool:
        return normalise_key(key) in self.filters

    def claim_filter(self, key: str, default: Any = None) -> Any:
        """Remove and return a filter value the backend will apply."""
        return self.filters.pop(normalise_key(key), default)

    # ── Derived contexts ─────────────────────────────────────────

    def with_conformity(self, conformity: ListConformity) -> SyncContext:
        return self._copy(conformity=conformity)

    def with_operation(self, operation: SyncOperation) -> SyncContext:
        return self._copy(operation=operation)

    def with_filter_policy_callback(self, callback: FilterPolicyCallback | None) -> SyncContext:
        return self._copy(filter_policy_callback=callback)

    def apply_filter_policy(self) -> FilterPolicyOutcome:
        """Enforce the unclaimed filter policy of the definition that issued this context."""
        if self.filter_policy_callback is None:
            return NO_SHORT_CIRCUIT
        return self.filter_policy_callback(self)


__all__ = ["SyncContext", "FilterPolicyCallback"]
