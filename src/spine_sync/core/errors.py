"""
Structured error types for spine-sync.

Every error raised by the sync engine extends ``SyncError`` and carries a
category, an explicit retry flag and an ``ErrorContext`` so callers can log,
route or skip failures without parsing messages.

Manifesto:
    - **Typed Error Hierarchy:** Configuration mistakes, policy violations and
      missing entities are different problems with different owners
    - **Explicit Retry Semantics:** Nothing raised here is retryable; retries
      belong to the provider code that talks to the backend
    - **Rich Context:** Errors carry provider, entity and operation metadata

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                         SyncError                            │
        │  (category, retryable, context, cause)                       │
        ├──────────────────────────────────────────────────────────────┤
        │  SyncConfigError                 SyncFilterPolicyViolation   │
        │  (CONFIG)                        (FILTER)                    │
        │       │                                                      │
        │  InvalidFilterPolicyError        SyncEntityNotFoundError     │
        │                                  (NOT_FOUND)                 │
        │  SyncInvalidContextError         SyncOperationNotImplemented │
        │  (CONTEXT)                       (CONFIG)                    │
        │                                                              │
        │  SyncInvalidRecordError                                      │
        │  (VALIDATION)                                                │
        └──────────────────────────────────────────────────────────────┘

Propagation:
    Configuration errors are never recovered. Filter policy violations and
    missing entities are expected conditions an orchestrating caller may catch
    and continue past.

Usage:
    from spine_sync.core.errors import SyncEntityNotFoundError

    try:
        contact = contacts.get(42)
    except SyncEntityNotFoundError as e:
        logger.info("contact_missing", **e.to_dict())

Tags:
    error-handling, exception-hierarchy, sync, spine-sync
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from spine_sync.core.enums import operation_name

if TYPE_CHECKING:
    from spine_sync.framework.context import SyncContext
    from spine_sync.framework.provider import SyncProvider


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"
    FILTER = "FILTER"
    NOT_FOUND = "NOT_FOUND"
    CONTEXT = "CONTEXT"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a sync error.

    Attributes:
        provider: Display name of the provider (``"<name> [#<id>]"``)
        entity: Name of the entity class being serviced
        operation: Name of the sync operation, if known
        metadata: Additional key-value pairs
    """

    provider: str | None = None
    entity: str | None = None
    operation: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["provider", "entity", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SyncError(Exception):
    """
    Base exception for all spine-sync errors.

    Subclasses set ``default_category`` and ``default_retryable``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SyncError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SyncConfigError("Bad key map").with_context(entity="Contact")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


def provider_display_name(provider: SyncProvider | None) -> str | None:
    """Name of a provider for use in error messages."""
    if provider is None:
        return None
    return f"{provider.name} [#{provider.provider_id}]"


def entity_display_name(entity: type | None) -> str | None:
    if entity is None:
        return None
    return getattr(entity, "__qualname__", str(entity))


def _sync_context(provider, entity, operation=None) -> ErrorContext:
    return ErrorContext(
        provider=provider_display_name(provider),
        entity=entity_display_name(entity),
        operation=operation_name(operation) if operation is not None else None,
    )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class SyncConfigError(SyncError):
    """
    Sync definition or provider is misconfigured.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidFilterPolicyError(SyncConfigError):
    """A filter policy is unknown or has no executable behaviour."""

    def __init__(self, policy: Any, message: str | None = None):
        self.policy = policy
        value = getattr(policy, "value", policy)
        super().__init__(message or f"FilterPolicy invalid or not implemented: {value}")


class SyncOperationNotImplementedError(SyncConfigError):
    """No strategy resolves for an operation the caller requested."""

    def __init__(self, provider: SyncProvider, entity: type, operation: Any):
        self.provider = provider
        self.entity = entity
        self.operation = operation
        super().__init__(
            f"{provider_display_name(provider)} does not implement "
            f"{operation_name(operation)} for {entity_display_name(entity)}",
            context=_sync_context(provider, entity, operation),
        )


# =============================================================================
# FILTER / LOOKUP ERRORS
# =============================================================================


class SyncFilterPolicyViolationError(SyncError):
    """Raised when a provider leaves filters unclaimed and the policy is THROW."""

    default_category = ErrorCategory.FILTER

    def __init__(self, provider: SyncProvider, entity: type, unclaimed: dict[str, Any]):
        self.provider = provider
        self.entity = entity
        self.unclaimed = dict(unclaimed)
        super().__init__(
            f"{provider_display_name(provider)} did not claim values from "
            f"{entity_display_name(entity)} filter: {', '.join(self.unclaimed)}",
            context=_sync_context(provider, entity),
        )

    @property
    def unclaimed_keys(self) -> list[str]:
        return list(self.unclaimed)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["unclaimed"] = {key: repr(value) for key, value in self.unclaimed.items()}
        return result


class SyncEntityNotFoundError(SyncError):
    """The backend has no entity with the requested identifier."""

    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, provider: SyncProvider, entity: type, entity_id: Any):
        self.provider = provider
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity_display_name(entity)} not found in "
            f"{provider_display_name(provider)}: {entity_id!r}",
            context=_sync_context(provider, entity),
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["entity_id"] = repr(self.entity_id)
        return result


class SyncInvalidContextError(SyncError):
    """A strategy cannot resolve its own parameters from the context it receives."""

    default_category = ErrorCategory.CONTEXT

    def __init__(
        self,
        message: str,
        ctx: SyncContext | None,
        provider: SyncProvider,
        entity: type,
        operation: Any,
    ):
        # Snapshot of the filters at the time of failure
        self.ctx = ctx.with_filters(ctx.filters) if ctx is not None else None
        self.provider = provider
        self.entity = entity
        self.operation = operation
        super().__init__(message, context=_sync_context(provider, entity, operation))


class SyncInvalidRecordError(SyncError):
    """A backend record does not have the shape a key map requires."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, missing_keys: list[Any] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.missing_keys = missing_keys or []

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.missing_keys:
            result["missing_keys"] = [str(key) for key in self.missing_keys]
        return result


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SyncError",
    "SyncConfigError",
    "InvalidFilterPolicyError",
    "SyncOperationNotImplementedError",
    "SyncFilterPolicyViolationError",
    "SyncEntityNotFoundError",
    "SyncInvalidContextError",
    "SyncInvalidRecordError",
    "provider_display_name",
    "entity_display_name",
]
