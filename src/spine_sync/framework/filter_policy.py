"""
Unclaimed filter policy enforcement.

Providers claim the filters they can apply at the backend. Whatever remains
when a strategy is about to query the backend is "unclaimed", and the
definition's ``FilterPolicy`` decides what happens:

    IGNORE          continue; the backend returns a superset
    THROW           raise SyncFilterPolicyViolationError
    RETURN_EMPTY    short-circuit with [] (list operations) or None
    FILTER_LOCALLY  reserved; raises InvalidFilterPolicyError

THROW is the default so a filtered request never silently turns into a
request for every entity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from spine_sync.core.enums import FilterPolicy, SyncOperation, is_list_operation
from spine_sync.core.errors import InvalidFilterPolicyError, SyncFilterPolicyViolationError
from spine_sync.core.logging import get_logger

if TYPE_CHECKING:
    from spine_sync.framework.context import SyncContext
    from spine_sync.framework.provider import SyncProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class FilterPolicyOutcome:
    """Whether a strategy should return ``empty`` instead of querying the backend."""

    short_circuit: bool = False
    empty: list[Any] | None = None


NO_SHORT_CIRCUIT = FilterPolicyOutcome()


def enforce_filter_policy(
    policy: FilterPolicy,
    operation: SyncOperation,
    ctx: SyncContext,
    *,
    provider: SyncProvider,
    entity: type,
) -> FilterPolicyOutcome:
    """Apply ``policy`` to the filters ``ctx`` reports as unclaimed."""
    if policy is FilterPolicy.IGNORE:
        return NO_SHORT_CIRCUIT

    unclaimed = ctx.get_filters()
    if not unclaimed:
        return NO_SHORT_CIRCUIT

    if policy is FilterPolicy.THROW:
        raise SyncFilterPolicyViolationError(provider, entity, unclaimed)

    if policy is FilterPolicy.RETURN_EMPTY:
        logger.debug(
            "sync_filter_policy_short_circuit",
            entity=entity.__qualname__,
            operation=operation.name,
            unclaimed=list(unclaimed),
        )
        return FilterPolicyOutcome(
            short_circuit=True,
            empty=[] if is_list_operation(operation) else None,
        )

    # TODO: implement FILTER_LOCALLY once the supported filter predicates are defined
    raise InvalidFilterPolicyError(policy)


__all__ = ["FilterPolicyOutcome", "NO_SHORT_CIRCUIT", "enforce_filter_policy"]
