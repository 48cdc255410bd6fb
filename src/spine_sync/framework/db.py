"""
Database-backed sync providers and definitions.

``DbSyncDefinition`` implements every sync operation against one table using
SQLAlchemy Core. Tables are reflected lazily by the provider, so a definition
needs only the table name:

    class CrmDbProvider(DbSyncProvider):
        entity_tables = {Contact: "contacts"}

    provider = CrmDbProvider(engine)
    contacts = provider.with_entity(Contact)
    contacts.get_list(status="active")   # claimed: WHERE status = 'active'

Filters whose names match a column (or the entity key a column is mapped to)
are claimed and applied as equality predicates; the definition's filter
policy handles the rest.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, ClassVar

from sqlalchemy import MetaData, Table, delete, insert, select, update
from sqlalchemy.engine import Connection, Engine

from spine_sync.core.container import SyncContainer
from spine_sync.core.enums import ALL_OPERATIONS, SyncEntitySource, SyncOperation
from spine_sync.core.errors import (
    SyncConfigError,
    SyncEntityNotFoundError,
    SyncInvalidContextError,
)
from spine_sync.core.logging import get_logger
from spine_sync.core.settings import SyncSettings
from spine_sync.framework.context import SyncContext
from spine_sync.framework.definition import Strategy, SyncDefinition
from spine_sync.framework.introspection import normalise_key
from spine_sync.framework.keymap import KeyMapper
from spine_sync.framework.provider import SyncProvider

logger = get_logger(__name__)


class DbSyncProvider(SyncProvider):
    """Provider backed by a SQLAlchemy engine."""

    # Entity class -> table name, used by the default _create_definition()
    entity_tables: ClassVar[dict[type, str]] = {}

    def __init__(
        self,
        engine: Engine | None = None,
        *,
        settings: SyncSettings | None = None,
        container: SyncContainer | None = None,
    ) -> None:
        super().__init__(settings=settings, container=container)
        self._engine = engine
        self._metadata = MetaData()
        self._tables: dict[str, Table] = {}

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self.container.engine
        return self._engine

    def get_table(self, name: str) -> Table:
        """Reflected table (cached per provider)."""
        table = self._tables.get(name)
        if table is None:
            table = self._tables[name] = Table(name, self._metadata, autoload_with=self.engine)
            logger.debug("sync_table_reflected", provider=self.name, table=name)
        return table

    def _create_definition(self, entity: type) -> DbSyncDefinition:
        table = self.entity_tables.get(entity)
        if table is None:
            raise SyncConfigError(f"{self.name} has no table for {entity.__qualname__}")
        return DbSyncDefinition(entity, self, table=table, operations=ALL_OPERATIONS)


class DbSyncDefinition(SyncDefinition):
    """Sync definition that reads and writes one database table."""

    def __init__(self, entity: type, provider: DbSyncProvider, *, table: str | None = None, **kwargs: Any):
        super().__init__(entity, provider, **kwargs)
        self._table_name = table or normalise_key(entity.__name__)
        self._key_mapper = KeyMapper(self._key_map, self._key_map_flags) if self._key_map is not None else None
        self._inverse_key_map = self._key_mapper.inverse() if self._key_mapper is not None else {}

    @property
    def table(self) -> str:
        return self._table_name

    @property
    def provider(self) -> DbSyncProvider:
        return self._provider  # type: ignore[return-value]

    def _get_closure(self, operation: SyncOperation) -> Strategy | None:
        return {
            SyncOperation.CREATE: self._create,
            SyncOperation.READ: self._read,
            SyncOperation.UPDATE: self._update,
            SyncOperation.DELETE: self._delete,
            SyncOperation.READ_LIST: self._read_list,
            SyncOperation.UPDATE_LIST: self._update_list,
            SyncOperation.DELETE_LIST: self._delete_list,
        }.get(operation)

    # ── Table helpers ────────────────────────────────────────────

    def _get_table(self) -> Table:
        return self.provider.get_table(self._table_name)

    def _primary_key(self, table: Table):
        columns = list(table.primary_key.columns)
        if len(columns) != 1:
            raise SyncConfigError(
                f"Table {table.name} must have exactly one primary key column "
                f"to service {self._entity.__qualname__}"
            )
        return columns[0]

    def _filter_key(self, column_name: str) -> str:
        """Entity-side name a caller would use to filter on ``column_name``."""
        if self._key_mapper is not None:
            targets = self._key_mapper.targets(column_name)
            if len(targets) == 1:
                return str(targets[0])
        return column_name

    def _record_for(self, operation: SyncOperation, ctx: SyncContext, entity: Any) -> dict[str, Any]:
        """Backend record for ``entity``, restricted to the table's columns."""
        record = self.to_backend(entity, operation, ctx)
        if not isinstance(record, Mapping):
            raise SyncInvalidContextError(
                f"Expected a record for {operation.name}, got {type(record).__qualname__}",
                ctx,
                self._provider,
                self._entity,
                operation,
            )
        columns = set(self._get_table().columns.keys())
        out = {}
        for key, value in record.items():
            column = self._inverse_key_map.get(key, key)
            if column in columns:
                out[column] = value
        return out

    def _fetch(self, conn: Connection, table: Table, entity_id: Any) -> dict[str, Any] | None:
        pk = self._primary_key(table)
        row = conn.execute(select(table).where(pk == entity_id)).mappings().first()
        return dict(row) if row is not None else None

    def _result(
        self,
        operation: SyncOperation,
        ctx: SyncContext,
        entity: Any,
        row: Mapping[str, Any] | None,
    ) -> Any:
        if self._return_entities_from is SyncEntitySource.OPERATION_INPUT:
            return entity
        if row is None:
            return None
        return self.build_pipeline_from_backend().send(row, (operation, ctx, entity))

    def _require_id(self, operation: SyncOperation, ctx: SyncContext, entity_id: Any) -> None:
        if entity_id is None:
            raise SyncInvalidContextError(
                f"No identifier for {operation.name}", ctx, self._provider, self._entity, operation
            )
        if not self._provider.is_valid_identifier(entity_id, self._entity):
            raise SyncInvalidContextError(
                f"Invalid identifier for {operation.name}: {entity_id!r}",
                ctx,
                self._provider,
                self._entity,
                operation,
            )

    # ── Strategies ───────────────────────────────────────────────

    def _read(self, ctx: SyncContext, entity_id: Any = None, *args: Any) -> Any:
        operation = SyncOperation.READ
        self._require_id(operation, ctx, entity_id)
        outcome = self.apply_filter_policy(operation, ctx)
        if outcome.short_circuit:
            return outcome.empty

        table = self._get_table()
        with self.provider.engine.connect() as conn:
            row = self._fetch(conn, table, entity_id)
        if row is None:
            raise SyncEntityNotFoundError(self._provider, self._entity, entity_id)
        return self.build_pipeline_from_backend().send(row, (operation, ctx, entity_id, *args))

    def _read_list(self, ctx: SyncContext, *args: Any) -> list[Any]:
        operation = SyncOperation.READ_LIST
        table = self._get_table()
        predicates = []
        for column in table.columns:
            key = self._filter_key(column.name)
            if ctx.has_filter(key):
                predicates.append(column == ctx.claim_filter(key))

        outcome = self.apply_filter_policy(operation, ctx)
        if outcome.short_circuit:
            return outcome.empty

        query = select(table).where(*predicates).order_by(self._primary_key(table))
        with self.provider.engine.connect() as conn:
            rows = [dict(row) for row in conn.execute(query).mappings()]
        logger.debug(
            "sync_rows_fetched",
            table=table.name,
            rows=len(rows),
            predicates=len(predicates),
        )
        return self.to_entities(rows, operation, ctx, *args)

    def _create(self, ctx: SyncContext, entity: Any, *args: Any) -> Any:
        operation = SyncOperation.CREATE
        outcome = self.apply_filter_policy(operation, ctx)
        if outcome.short_circuit:
            return outcome.empty
        return self._do_create(ctx, entity)

    def _do_create(self, ctx: SyncContext, entity: Any) -> Any:
        operation = SyncOperation.CREATE
        table = self._get_table()
        pk = self._primary_key(table)
        record = self._record_for(operation, ctx, entity)
        if record.get(pk.name) is None:
            record.pop(pk.name, None)
        with self.provider.engine.begin() as conn:
            result = conn.execute(insert(table).values(**record))
            entity_id = record.get(pk.name, result.inserted_primary_key[0])
            row = self._fetch(conn, table, entity_id)
        return self._result(operation, ctx, entity, row)

    def _update(self, ctx: SyncContext, entity: Any, *args: Any) -> Any:
        operation = SyncOperation.UPDATE
        outcome = self.apply_filter_policy(operation, ctx)
        if outcome.short_circuit:
            return outcome.empty
        return self._do_update(ctx, entity)

    def _do_update(self, ctx: SyncContext, entity: Any) -> Any:
        operation = SyncOperation.UPDATE
        table = self._get_table()
        pk = self._primary_key(table)
        record = self._record_for(operation, ctx, entity)
        entity_id = record.pop(pk.name, None)
        self._require_id(operation, ctx, entity_id)
        with self.provider.engine.begin() as conn:
            if record:
                result = conn.execute(update(table).where(pk == entity_id).values(**record))
                found = result.rowcount > 0
            else:
                found = self._fetch(conn, table, entity_id) is not None
            if not found:
                raise SyncEntityNotFoundError(self._provider, self._entity, entity_id)
            row = self._fetch(conn, table, entity_id)
        return self._result(operation, ctx, entity, row)

    def _delete(self, ctx: SyncContext, entity: Any, *args: Any) -> Any:
        operation = SyncOperation.DELETE
        outcome = self.apply_filter_policy(operation, ctx)
        if outcome.short_circuit:
            return outcome.empty
        return self._do_delete(ctx, entity)

    def _do_delete(self, ctx: SyncContext, entity: Any) -> Any:
        operation = SyncOperation.DELETE
        table = self._get_table()
        pk = self._primary_key(table)
        record = self._record_for(operation, ctx, entity)
        entity_id = record.get(pk.name)
        self._require_id(operation, ctx, entity_id)
        with self.provider.engine.begin() as conn:
            row = self._fetch(conn, table, entity_id)
            if row is None:
                raise SyncEntityNotFoundError(self._provider, self._entity, entity_id)
            conn.execute(delete(table).where(pk == entity_id))
        return self._result(operation, ctx, entity, row)

    def _update_list(self, ctx: SyncContext, entities: Iterable[Any], *args: Any) -> list[Any]:
        outcome = self.apply_filter_policy(SyncOperation.UPDATE_LIST, ctx)
        if outcome.short_circuit:
            return outcome.empty
        return [self._do_update(ctx, entity) for entity in entities]

    def _delete_list(self, ctx: SyncContext, entities: Iterable[Any], *args: Any) -> list[Any]:
        outcome = self.apply_filter_policy(SyncOperation.DELETE_LIST, ctx)
        if outcome.short_circuit:
            return outcome.empty
        return [self._do_delete(ctx, entity) for entity in entities]


__all__ = ["DbSyncProvider", "DbSyncDefinition"]
