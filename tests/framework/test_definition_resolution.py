"""
Tests for spine_sync.framework.definition operation resolution.

Tests cover:
- Resolution precedence (override > declared method > read-from-list > definition)
- Memoization of resolved strategies
- Clone isolation for with_read_from_read_list() and get_fallback_closure()
- Override registration and the effective operation set
- Filter policy resolution order
"""

import copy

import pytest

from spine_sync.core.enums import FilterPolicy, SyncOperation
from spine_sync.core.errors import (
    InvalidFilterPolicyError,
    SyncConfigError,
    SyncEntityNotFoundError,
)


class TestResolutionPrecedence:
    """Overrides win over declared methods, which win over the definition."""

    def test_override_beats_declared_method(self, make_definition, memory_provider, account_cls, ctx):
        """An override is used even when the provider declares the operation."""
        calls = []

        def override(definition, operation, ctx, *args):
            calls.append((definition, operation, args))
            return ["from override"]

        definition = make_definition(
            account_cls,
            memory_provider,
            overrides={SyncOperation.READ_LIST: override},
        )
        closure = definition.get_sync_operation_closure(SyncOperation.READ_LIST)

        assert closure(ctx, "arg") == ["from override"]
        assert calls == [(definition, SyncOperation.READ_LIST, ("arg",))]
        assert "get_accounts" not in memory_provider.backend_calls

    def test_declared_method_used_when_not_in_operations(self, make_definition, memory_provider, account_cls, ctx):
        """Declared methods resolve even if the operation isn't configured."""
        definition = make_definition(account_cls, memory_provider, operations=[])
        closure = definition.get_sync_operation_closure(SyncOperation.READ)

        assert closure is not None
        account = closure(ctx, 5)
        assert account.id == 5
        assert account.title == "Declared"
        assert memory_provider.resolution_calls == []

    def test_declared_method_beats_definition(self, make_definition, memory_provider, account_cls, ctx):
        definition = make_definition(account_cls, memory_provider, operations=[SyncOperation.READ_LIST])
        closure = definition.get_sync_operation_closure(SyncOperation.READ_LIST)

        closure(ctx)

        assert memory_provider.backend_calls == ["get_accounts"]
        assert SyncOperation.READ_LIST not in memory_provider.resolution_calls

    def test_definition_closure_used_for_supported_operation(self, make_definition, memory_provider, contact_cls, ctx):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.READ_LIST])
        contacts = definition.get_sync_operation_closure(SyncOperation.READ_LIST)(ctx)

        assert [c.name for c in contacts] == ["Ada", "Grace"]
        assert memory_provider.resolution_calls == [SyncOperation.READ_LIST]

    def test_unsupported_operation_returns_none(self, make_definition, memory_provider, contact_cls):
        """Operations outside the effective set never reach the subclass."""
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.READ_LIST])

        assert definition.get_sync_operation_closure(SyncOperation.DELETE) is None
        assert SyncOperation.DELETE not in memory_provider.resolution_calls

    def test_subclass_may_return_none(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.UPDATE])

        assert definition.get_sync_operation_closure(SyncOperation.UPDATE) is None
        assert memory_provider.resolution_calls == [SyncOperation.UPDATE]

    def test_accepts_plain_int_operation(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.READ_LIST])

        assert definition.get_sync_operation_closure(16) is definition.get_sync_operation_closure(
            SyncOperation.READ_LIST
        )


class TestMemoization:
    """Each operation is resolved once per definition instance."""

    def test_second_call_returns_cached_closure(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.READ_LIST])

        first = definition.get_sync_operation_closure(SyncOperation.READ_LIST)
        second = definition.get_sync_operation_closure(SyncOperation.READ_LIST)

        assert first is second
        assert memory_provider.resolution_calls == [SyncOperation.READ_LIST]

    def test_absent_result_is_cached(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.UPDATE])

        assert definition.get_sync_operation_closure(SyncOperation.UPDATE) is None
        assert definition.get_sync_operation_closure(SyncOperation.UPDATE) is None
        assert memory_provider.resolution_calls == [SyncOperation.UPDATE]

    def test_declared_lookup_not_repeated(self, make_definition, memory_provider, account_cls, monkeypatch):
        lookups = []
        original = memory_provider.get_declared_operation

        def counting(operation, entity):
            lookups.append(operation)
            return original(operation, entity)

        monkeypatch.setattr(memory_provider, "get_declared_operation", counting)
        definition = make_definition(account_cls, memory_provider)

        definition.get_sync_operation_closure(SyncOperation.READ)
        definition.get_sync_operation_closure(SyncOperation.READ)

        assert lookups == [SyncOperation.READ]

    def test_provider_memoizes_definitions(self, memory_provider, contact_cls):
        assert memory_provider.get_definition(contact_cls) is memory_provider.get_definition(contact_cls)


class TestReadFromReadList:
    """READ synthesized by scanning READ_LIST."""

    def test_finds_matching_entity(self, make_definition, memory_provider, contact_cls, ctx):
        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ_LIST],
            read_from_read_list=True,
        )
        read = definition.get_sync_operation_closure(SyncOperation.READ)

        contact = read(ctx, 2)

        assert isinstance(contact, contact_cls)
        assert contact.name == "Grace"
        assert contact.provider is memory_provider

    def test_missing_id_raises_not_found(self, make_definition, memory_provider, contact_cls, ctx):
        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ_LIST],
            read_from_read_list=True,
        )
        read = definition.get_sync_operation_closure(SyncOperation.READ)

        with pytest.raises(SyncEntityNotFoundError) as exc_info:
            read(ctx, 99)

        assert exc_info.value.entity_id == 99
        assert exc_info.value.entity is contact_cls
        assert exc_info.value.provider is memory_provider

    def test_used_before_definition_read(self, make_definition, memory_provider, contact_cls, ctx):
        """The synthesized READ takes precedence over the subclass's READ."""
        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ, SyncOperation.READ_LIST],
            read_from_read_list=True,
        )
        definition.get_sync_operation_closure(SyncOperation.READ)(ctx, 1)

        assert SyncOperation.READ not in memory_provider.resolution_calls
        assert memory_provider.backend_calls == [SyncOperation.READ_LIST]

    def test_caller_filters_not_claimed(self, make_provider, make_definition, contact_cls, ctx):
        """Claims made by READ_LIST stay on its own copy of the context."""
        provider = make_provider(claimable=("status",))
        definition = make_definition(
            contact_cls,
            provider,
            operations=[SyncOperation.READ_LIST],
            read_from_read_list=True,
        )
        filtered = ctx.with_filters(status="active")

        contact = definition.get_sync_operation_closure(SyncOperation.READ)(filtered, 1)

        assert contact.name == "Ada"
        assert filtered.get_filters() == {"status": "active"}

    def test_no_read_list_falls_through(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[], read_from_read_list=True)

        assert definition.get_sync_operation_closure(SyncOperation.READ) is None

    def test_with_read_from_read_list_returns_fresh_clone(self, make_definition, memory_provider, contact_cls, ctx):
        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ, SyncOperation.READ_LIST],
        )
        direct_read = definition.get_sync_operation_closure(SyncOperation.READ)

        clone = definition.with_read_from_read_list()
        clone_read = clone.get_sync_operation_closure(SyncOperation.READ)

        assert clone is not definition
        assert clone.read_from_read_list is True
        assert definition.read_from_read_list is False
        assert clone_read is not direct_read
        assert clone_read(ctx, 1).name == "Ada"
        assert definition.get_sync_operation_closure(SyncOperation.READ) is direct_read

    def test_clone_never_reuses_source_cache(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.READ_LIST])
        source_closure = definition.get_sync_operation_closure(SyncOperation.READ_LIST)

        clone = definition.with_read_from_read_list(False)

        assert clone.get_sync_operation_closure(SyncOperation.READ_LIST) is not source_closure
        assert memory_provider.resolution_calls == [SyncOperation.READ_LIST, SyncOperation.READ_LIST]

    def test_copy_resets_cache(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.READ_LIST])
        definition.get_sync_operation_closure(SyncOperation.READ_LIST)

        clone = copy.copy(definition)

        assert clone._closures == {}
        assert definition._closures != {}


class TestFallbackClosure:
    """get_fallback_closure() ignores overrides."""

    def test_override_can_delegate_to_fallback(self, make_definition, memory_provider, contact_cls, ctx):
        def override(definition, operation, ctx, *args):
            fallback = definition.get_fallback_closure(operation)
            return [c for c in fallback(ctx, *args) if c.name != "Ada"]

        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ_LIST],
            overrides={SyncOperation.READ_LIST: override},
        )
        contacts = definition.get_sync_operation_closure(SyncOperation.READ_LIST)(ctx)

        assert [c.name for c in contacts] == ["Grace"]

    def test_fallback_sibling_is_cached(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ_LIST],
            overrides={SyncOperation.READ_LIST: lambda *a: []},
        )
        first = definition.get_fallback_closure(SyncOperation.READ_LIST)
        second = definition.get_fallback_closure(SyncOperation.READ_LIST)

        assert first is second
        assert definition.get_sync_operation_closure(SyncOperation.READ_LIST) is not first

    def test_override_only_operation_falls_back_to_definition(
        self, make_definition, memory_provider, contact_cls, ctx
    ):
        """An override for an operation missing from ``operations`` can wrap the definition's strategy."""

        def override(definition, operation, ctx, entity, *args):
            entity.email = "wrapped@example.com"
            return definition.get_fallback_closure(operation)(ctx, entity, *args)

        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ_LIST],
            overrides={SyncOperation.CREATE: override},
        )
        create = definition.get_sync_operation_closure(SyncOperation.CREATE)

        created = create(ctx, contact_cls(id=3, name="Linus"))

        assert created == contact_cls(id=3, name="Linus", email="wrapped@example.com")
        assert memory_provider.backend_calls == [SyncOperation.CREATE]
        assert SyncOperation.CREATE in memory_provider.resolution_calls

    def test_fallback_keeps_merged_operations(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[],
            overrides={SyncOperation.DELETE: lambda *a: None},
        )

        assert SyncOperation.DELETE in definition.operations
        # MemoryDefinition has no DELETE strategy, so the subclass answers None
        assert definition.get_fallback_closure(SyncOperation.DELETE) is None
        assert memory_provider.resolution_calls == [SyncOperation.DELETE]

    def test_fallback_still_uses_declared_methods(self, make_definition, memory_provider, account_cls, ctx):
        definition = make_definition(
            account_cls,
            memory_provider,
            overrides={SyncOperation.READ: lambda *a: "override"},
        )
        fallback = definition.get_fallback_closure(SyncOperation.READ)

        assert fallback(ctx, 3).title == "Declared"


class TestOverrideRegistration:
    """Override masks are expanded per operation at construction."""

    def test_mask_covers_each_operation(self, make_definition, memory_provider, contact_cls):
        override = lambda *a: None  # noqa: E731
        definition = make_definition(
            contact_cls,
            memory_provider,
            overrides={SyncOperation.CREATE | SyncOperation.UPDATE: override},
        )

        assert dict(definition.overrides) == {
            SyncOperation.CREATE: override,
            SyncOperation.UPDATE: override,
        }

    def test_overlapping_masks_raise(self, make_definition, memory_provider, contact_cls):
        """Two masks that both include UPDATE fail before any resolution."""
        with pytest.raises(SyncConfigError, match="UPDATE"):
            make_definition(
                contact_cls,
                memory_provider,
                overrides={
                    SyncOperation.CREATE | SyncOperation.UPDATE: lambda *a: None,
                    SyncOperation.UPDATE | SyncOperation.DELETE: lambda *a: None,
                },
            )
        assert memory_provider.resolution_calls == []

    def test_operations_include_override_keys_in_canonical_order(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(
            contact_cls,
            memory_provider,
            operations=[SyncOperation.READ_LIST, SyncOperation.CREATE],
            overrides={SyncOperation.DELETE_LIST | SyncOperation.READ: lambda *a: None},
        )

        assert definition.operations == (
            SyncOperation.CREATE,
            SyncOperation.READ,
            SyncOperation.READ_LIST,
            SyncOperation.DELETE_LIST,
        )

    def test_unrecognized_operations_discarded(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, operations=[SyncOperation.READ, 3, 1024])

        assert definition.operations == (SyncOperation.READ,)

    def test_overrides_are_read_only(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(
            contact_cls,
            memory_provider,
            overrides={SyncOperation.READ: lambda *a: None},
        )

        with pytest.raises(TypeError):
            definition.overrides[SyncOperation.CREATE] = lambda *a: None


class TestFilterPolicyResolution:
    """explicit value -> provider default -> THROW"""

    def test_explicit_policy_wins(self, make_provider, make_definition, contact_cls):
        provider = make_provider(filter_policy=FilterPolicy.RETURN_EMPTY)
        definition = make_definition(contact_cls, provider, filter_policy=FilterPolicy.IGNORE)

        assert definition.filter_policy is FilterPolicy.IGNORE

    def test_provider_default_used(self, make_provider, make_definition, contact_cls):
        provider = make_provider(filter_policy=FilterPolicy.RETURN_EMPTY)
        definition = make_definition(contact_cls, provider)

        assert definition.filter_policy is FilterPolicy.RETURN_EMPTY

    def test_defaults_to_throw(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider)

        assert definition.filter_policy is FilterPolicy.THROW

    def test_string_policy_coerced(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, filter_policy="return_empty")

        assert definition.filter_policy is FilterPolicy.RETURN_EMPTY

    def test_unknown_policy_rejected(self, make_definition, memory_provider, contact_cls):
        with pytest.raises(InvalidFilterPolicyError):
            make_definition(contact_cls, memory_provider, filter_policy="sometimes")

    def test_clone_keeps_policy(self, make_definition, memory_provider, contact_cls):
        definition = make_definition(contact_cls, memory_provider, filter_policy=FilterPolicy.IGNORE)

        assert definition.with_read_from_read_list().filter_policy is FilterPolicy.IGNORE
