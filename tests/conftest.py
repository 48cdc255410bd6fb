"""
Shared pytest fixtures for spine-sync tests.

This module provides:
- Sample dataclass entities (Contact, Account)
- An in-memory provider and definition that record every resolution and
  backend call, so tests can assert on precedence and memoization
- Isolated settings/containers so no test reads a global engine

Usage:
    def test_something(memory_provider, contact_cls):
        definition = memory_provider.get_definition(contact_cls)
        ...
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generator

import pytest

# Ensure spine_sync package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spine_sync.core.container import SyncContainer
from spine_sync.core.enums import FilterPolicy, SyncOperation
from spine_sync.core.settings import SyncSettings, get_settings
from spine_sync.framework.context import SyncContext
from spine_sync.framework.definition import SyncDefinition
from spine_sync.framework.entity import SyncEntity
from spine_sync.framework.introspection import EntityIntrospector
from spine_sync.framework.provider import SyncProvider, declare_operation


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark database tests as integration, everything else as unit."""
    for item in items:
        if "db" in Path(item.fspath).stem:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Sample Entities
# =============================================================================


@dataclass
class ContactEntity(SyncEntity):
    id: int | None = None
    name: str | None = None
    email: str | None = None


@dataclass
class AccountEntity(SyncEntity):
    id: int | None = None
    title: str | None = None


# =============================================================================
# In-memory Provider / Definition
# =============================================================================


class MemoryDefinition(SyncDefinition):
    """Serves READ_LIST, READ and CREATE from the provider's record list."""

    def _get_closure(self, operation):
        self.provider.resolution_calls.append(operation)
        return {
            SyncOperation.READ_LIST: self._read_list,
            SyncOperation.READ: self._read,
            SyncOperation.CREATE: self._create,
        }.get(operation)

    def _read_list(self, ctx, *args):
        records = list(self.provider.records)
        for key in self.provider.claimable:
            if ctx.has_filter(key):
                value = ctx.claim_filter(key)
                records = [r for r in records if r.get(key) == value]
        outcome = self.apply_filter_policy(SyncOperation.READ_LIST, ctx)
        if outcome.short_circuit:
            return outcome.empty
        self.provider.backend_calls.append(SyncOperation.READ_LIST)
        return self.to_entities(records, SyncOperation.READ_LIST, ctx, *args)

    def _read(self, ctx, entity_id, *args):
        self.provider.backend_calls.append(SyncOperation.READ)
        for record in self.provider.records:
            if record.get("id") == entity_id:
                return self.build_pipeline_from_backend().send(record, (SyncOperation.READ, ctx, entity_id))
        return None

    def _create(self, ctx, entity, *args):
        self.provider.backend_calls.append(SyncOperation.CREATE)
        record = self.to_backend(entity, SyncOperation.CREATE, ctx)
        self.provider.records.append(record)
        return self.build_pipeline_from_backend().send(record, (SyncOperation.CREATE, ctx, entity))


class MemoryProvider(SyncProvider):
    """Provider whose backend is a list of dicts."""

    name = "memory"

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        *,
        filter_policy: FilterPolicy | None = None,
        claimable: tuple[str, ...] = (),
        definition_kwargs: dict[str, Any] | None = None,
    ) -> None:
        settings = SyncSettings()
        super().__init__(settings=settings, container=SyncContainer(settings))
        self.records = list(records or [])
        self.claimable = claimable
        self.backend_calls: list[Any] = []
        self.resolution_calls: list[SyncOperation] = []
        self._filter_policy = filter_policy
        self._definition_kwargs = definition_kwargs or {}

    def get_filter_policy(self):
        return self._filter_policy

    def _create_definition(self, entity):
        kwargs = {"operations": [SyncOperation.READ_LIST, SyncOperation.CREATE], **self._definition_kwargs}
        return MemoryDefinition(entity, self, **kwargs)

    @declare_operation(SyncOperation.READ_LIST, AccountEntity)
    def get_accounts(self, ctx, *args):
        outcome = ctx.apply_filter_policy()
        if outcome.short_circuit:
            return outcome.empty
        self.backend_calls.append("get_accounts")
        return [AccountEntity(id=1, title="Main")]

    @declare_operation(SyncOperation.READ, AccountEntity)
    def get_account(self, ctx, account_id, *args):
        outcome = ctx.apply_filter_policy()
        if outcome.short_circuit:
            return outcome.empty
        self.backend_calls.append("get_account")
        return AccountEntity(id=account_id, title="Declared")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_caches() -> Generator[None, None, None]:
    """Reset cached settings and introspectors around each test."""
    get_settings.cache_clear()
    EntityIntrospector.clear_cache()
    yield
    get_settings.cache_clear()
    EntityIntrospector.clear_cache()


@pytest.fixture
def contact_cls() -> type[ContactEntity]:
    return ContactEntity


@pytest.fixture
def account_cls() -> type[AccountEntity]:
    return AccountEntity


@pytest.fixture
def contact_records() -> list[dict[str, Any]]:
    return [
        {"id": 1, "name": "Ada", "email": "ada@example.com", "status": "active"},
        {"id": 2, "name": "Grace", "email": "grace@example.com", "status": "inactive"},
    ]


@pytest.fixture
def memory_provider(contact_records) -> MemoryProvider:
    return MemoryProvider(contact_records)


@pytest.fixture
def make_provider(contact_records):
    """Factory for providers with custom policy/definition arguments."""

    def factory(**kwargs: Any) -> MemoryProvider:
        records = kwargs.pop("records", contact_records)
        return MemoryProvider(records, **kwargs)

    return factory


@pytest.fixture
def make_definition():
    """Factory for MemoryDefinition instances outside a provider's memo."""

    def factory(entity, provider, **kwargs: Any) -> MemoryDefinition:
        return MemoryDefinition(entity, provider, **kwargs)

    return factory


@pytest.fixture
def ctx(memory_provider) -> SyncContext:
    return memory_provider.get_context()


@pytest.fixture
def definition_cls() -> type[MemoryDefinition]:
    return MemoryDefinition


@pytest.fixture
def provider_cls() -> type[MemoryProvider]:
    return MemoryProvider
