"""spine-sync core -- catalogs, errors, logging, settings and the service container.

Architecture::

    enums.py       SyncOperation, ListConformity, FilterPolicy, KeyMapFlag, SyncEntitySource
    errors.py      SyncError hierarchy (config, filter policy, not found, context)
    logging.py     structlog configuration and helpers
    settings.py    SyncSettings (pydantic-settings, SPINE_SYNC_* env vars)
    container.py   SyncContainer (settings, engine, entity bindings)
"""

from spine_sync.core.container import SyncContainer, get_container
from spine_sync.core.enums import (
    ALL_OPERATIONS,
    LIST_OPERATIONS,
    FilterPolicy,
    KeyMapFlag,
    ListConformity,
    SyncEntitySource,
    SyncOperation,
    is_list_operation,
    iter_operations,
    operation_name,
)
from spine_sync.core.errors import (
    ErrorCategory,
    ErrorContext,
    InvalidFilterPolicyError,
    SyncConfigError,
    SyncEntityNotFoundError,
    SyncError,
    SyncFilterPolicyViolationError,
    SyncInvalidContextError,
    SyncInvalidRecordError,
    SyncOperationNotImplementedError,
)
from spine_sync.core.settings import SyncSettings, get_settings

__all__ = [
    "ALL_OPERATIONS",
    "LIST_OPERATIONS",
    "FilterPolicy",
    "KeyMapFlag",
    "ListConformity",
    "SyncEntitySource",
    "SyncOperation",
    "is_list_operation",
    "iter_operations",
    "operation_name",
    "ErrorCategory",
    "ErrorContext",
    "InvalidFilterPolicyError",
    "SyncConfigError",
    "SyncEntityNotFoundError",
    "SyncError",
    "SyncFilterPolicyViolationError",
    "SyncInvalidContextError",
    "SyncInvalidRecordError",
    "SyncOperationNotImplementedError",
    "SyncContainer",
    "get_container",
    "SyncSettings",
    "get_settings",
]
