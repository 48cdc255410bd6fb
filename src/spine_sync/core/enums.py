"""
Catalogs shared by every sync definition and provider.

The operation catalog doubles as the operation classifier: it knows the full,
ordered operation set and which operations act on lists of entities.

STDLIB ONLY - NO PYDANTIC.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum, IntFlag


class SyncOperation(IntFlag):
    """
    Operations a provider may implement for an entity.

    Values are bit flags so a single override can cover several operations,
    e.g. ``SyncOperation.CREATE | SyncOperation.UPDATE``.
    """

    CREATE = 1
    READ = 2
    UPDATE = 4
    DELETE = 8
    READ_LIST = 16
    UPDATE_LIST = 32
    DELETE_LIST = 64


# Canonical order used wherever operations are enumerated
ALL_OPERATIONS: tuple[SyncOperation, ...] = (
    SyncOperation.CREATE,
    SyncOperation.READ,
    SyncOperation.UPDATE,
    SyncOperation.DELETE,
    SyncOperation.READ_LIST,
    SyncOperation.UPDATE_LIST,
    SyncOperation.DELETE_LIST,
)

LIST_OPERATIONS: frozenset[SyncOperation] = frozenset(
    {
        SyncOperation.READ_LIST,
        SyncOperation.UPDATE_LIST,
        SyncOperation.DELETE_LIST,
    }
)


def is_list_operation(operation: SyncOperation | int) -> bool:
    """True if ``operation`` returns or receives a list of entities."""
    return operation in LIST_OPERATIONS


def iter_operations(mask: SyncOperation | int) -> Iterator[SyncOperation]:
    """Yield each operation covered by ``mask``, in ``ALL_OPERATIONS`` order."""
    for operation in ALL_OPERATIONS:
        if mask & operation:
            yield operation


def operation_name(operation: SyncOperation | int) -> str:
    """Name of a single operation, e.g. ``"READ_LIST"``."""
    for candidate in ALL_OPERATIONS:
        if candidate == operation:
            return candidate.name or str(int(candidate))
    raise ValueError(f"Not a single sync operation: {operation!r}")


class ListConformity(str, Enum):
    """
    How uniform the shape of backend records is across a list response.

    PARTIAL and COMPLETE let hydration build one constructor per batch instead
    of one per record.
    """

    NONE = "none"
    PARTIAL = "partial"
    COMPLETE = "complete"


class FilterPolicy(str, Enum):
    """Action taken when a provider leaves one or more filters unclaimed."""

    IGNORE = "ignore"
    THROW = "throw"
    RETURN_EMPTY = "return_empty"
    # Reserved: declared but not implemented
    FILTER_LOCALLY = "filter_locally"


class KeyMapFlag(IntFlag):
    """Flags controlling how a key map treats keys it does not mention."""

    NONE = 0
    # Copy backend keys absent from the map into the output
    ADD_UNMAPPED = 1
    # Emit None for mapped keys absent from the input
    ADD_MISSING = 2
    # Fail if a mapped key is absent from the input
    REQUIRE_MAPPED = 4
    # Drop None values from the output
    REMOVE_NULL = 8


class SyncEntitySource(str, Enum):
    """Where the return value of a successful CREATE, UPDATE or DELETE comes from."""

    PROVIDER_OUTPUT = "provider_output"
    OPERATION_INPUT = "operation_input"


__all__ = [
    "SyncOperation",
    "ALL_OPERATIONS",
    "LIST_OPERATIONS",
    "is_list_operation",
    "iter_operations",
    "operation_name",
    "ListConformity",
    "FilterPolicy",
    "KeyMapFlag",
    "SyncEntitySource",
]
