"""
Entity hydration factory.

``EntityIntrospector`` inspects a dataclass entity once and hands out
constructor functions ``(record, provider, ctx) -> entity``. Record keys are
matched to fields after snake_case normalisation (``custName`` and
``cust_name`` both match a ``cust_name`` field); keys that match no field are
kept in the entity's ``meta`` mapping.

Two kinds of constructor are available:

- ``get_create_from_signature(keys)`` resolves field names once for a fixed
  key signature and is reused for a whole batch of uniform records;
- ``get_create_from()`` resolves field names per record.
"""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import fields, is_dataclass
from typing import TYPE_CHECKING, Any

from spine_sync.core.errors import SyncInvalidRecordError
from spine_sync.framework.entity import SyncEntity

if TYPE_CHECKING:
    from spine_sync.core.container import SyncContainer
    from spine_sync.framework.context import SyncContext
    from spine_sync.framework.provider import SyncProvider

Hydrator = Callable[[Mapping[str, Any], "SyncProvider | None", "SyncContext | None"], SyncEntity]

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_WORD = re.compile(r"[^a-z0-9]+")


def normalise_key(key: Any) -> str:
    """``"custName"``, ``"Cust-Name"`` and ``"cust_name"`` all become ``"cust_name"``."""
    text = _CAMEL_BOUNDARY.sub("_", str(key)).lower()
    return _NON_WORD.sub("_", text).strip("_")


class EntityIntrospector:
    """Cached field metadata and constructors for one entity class."""

    _instances: dict[type, EntityIntrospector] = {}
    _lock = threading.Lock()

    def __init__(self, entity: type[SyncEntity]):
        if not (isinstance(entity, type) and issubclass(entity, SyncEntity) and is_dataclass(entity)):
            raise TypeError(f"{entity!r} is not a dataclass extending SyncEntity")
        self.entity = entity
        self.fields: dict[str, str] = {
            normalise_key(f.name): f.name for f in fields(entity) if f.init
        }
        self._signatures: dict[tuple[Any, ...], Hydrator] = {}

    @classmethod
    def get(cls, entity: type[SyncEntity]) -> EntityIntrospector:
        introspector = cls._instances.get(entity)
        if introspector is None:
            with cls._lock:
                introspector = cls._instances.setdefault(entity, cls(entity))
        return introspector

    @classmethod
    def for_service(
        cls,
        container: SyncContainer | None,
        entity: type[SyncEntity],
    ) -> EntityIntrospector:
        """Introspector for the class ``container`` binds to ``entity``."""
        if container is not None:
            entity = container.resolve(entity)
        return cls.get(entity)

    def get_create_from_signature(self, keys: Iterable[Any]) -> Hydrator:
        """Constructor for records whose keys are ``keys``."""
        signature = tuple(keys)
        hydrator = self._signatures.get(signature)
        if hydrator is None:
            hydrator = self._signatures[signature] = self._build(signature)
        return hydrator

    def get_create_from(self) -> Hydrator:
        """Constructor that resolves field names from each record's own keys."""

        def create(record, provider=None, ctx=None):
            return self.get_create_from_signature(record.keys())(record, provider, ctx)

        return create

    def _build(self, signature: tuple[Any, ...]) -> Hydrator:
        field_keys: list[tuple[Any, str]] = []
        meta_keys: list[Any] = []
        claimed: set[str] = set()
        for key in signature:
            name = self.fields.get(normalise_key(key))
            if name is not None and name not in claimed:
                field_keys.append((key, name))
                claimed.add(name)
            else:
                meta_keys.append(key)

        entity = self.entity

        def create(record, provider=None, ctx=None):
            kwargs = {name: record[key] for key, name in field_keys if key in record}
            try:
                instance = entity(**kwargs)
            except TypeError as e:
                raise SyncInvalidRecordError(
                    f"Cannot create {entity.__qualname__} from record keys: "
                    f"{', '.join(str(key) for key in record)}",
                    cause=e,
                ) from e
            meta = {key: record[key] for key in meta_keys if key in record}
            if meta:
                instance.meta.update(meta)
            return instance.bind(provider, ctx)

        return create

    @classmethod
    def clear_cache(cls) -> None:
        """Forget all introspectors (for testing)."""
        with cls._lock:
            cls._instances.clear()


__all__ = ["EntityIntrospector", "Hydrator", "normalise_key"]
