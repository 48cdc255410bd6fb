"""
spine-sync framework -- definitions, providers, contexts and pipelines.

Usage:
    from spine_sync.framework import SyncDefinition, SyncProvider, SyncContext

    provider = CrmProvider()
    contacts = provider.with_entity(Contact)
    contact = contacts.get(42)
"""

from spine_sync.framework.builder import SyncDefinitionBuilder
from spine_sync.framework.context import SyncContext
from spine_sync.framework.db import DbSyncDefinition, DbSyncProvider
from spine_sync.framework.definition import SyncDefinition, expand_overrides
from spine_sync.framework.entity import SyncEntity
from spine_sync.framework.filter_policy import FilterPolicyOutcome, enforce_filter_policy
from spine_sync.framework.introspection import EntityIntrospector
from spine_sync.framework.keymap import KeyMapper
from spine_sync.framework.pipeline import Pipeline
from spine_sync.framework.provider import SyncEntityProvider, SyncProvider, declare_operation

__all__ = [
    "SyncDefinition",
    "SyncDefinitionBuilder",
    "DbSyncDefinition",
    "DbSyncProvider",
    "SyncProvider",
    "SyncEntityProvider",
    "declare_operation",
    "SyncContext",
    "SyncEntity",
    "EntityIntrospector",
    "FilterPolicyOutcome",
    "enforce_filter_policy",
    "KeyMapper",
    "Pipeline",
    "expand_overrides",
]
