"""Base class for entities serviced by sync providers.

Entities are plain ``@dataclass`` classes that extend ``SyncEntity``::

    @dataclass
    class Contact(SyncEntity):
        id: int | None = None
        name: str | None = None

Hydration binds the provider and context that produced an instance; neither
takes part in equality or serialization.
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from spine_sync.framework.context import SyncContext
    from spine_sync.framework.provider import SyncProvider


class SyncEntity:
    """Mixin for dataclass entities."""

    # Name of the identifier field
    id_field: ClassVar[str] = "id"

    _provider: SyncProvider | None = None
    _context: SyncContext | None = None

    @property
    def provider(self) -> SyncProvider | None:
        """The provider this entity was hydrated from, if any."""
        return self._provider

    @property
    def context(self) -> SyncContext | None:
        return self._context

    @property
    def meta(self) -> dict[str, Any]:
        """Backend values that matched no field."""
        return self.__dict__.setdefault("_meta", {})

    @property
    def entity_id(self) -> Any:
        return getattr(self, self.id_field, None)

    def bind(self, provider: SyncProvider | None, ctx: SyncContext | None) -> SyncEntity:
        # object.__setattr__ so frozen dataclasses can be bound too
        object.__setattr__(self, "_provider", provider)
        object.__setattr__(self, "_context", ctx)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize declared fields, then any meta values, to a plain dict."""
        if not is_dataclass(self):
            raise TypeError(f"{type(self).__qualname__} is not a dataclass")
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in self.meta.items():
            data.setdefault(key, value)
        return data


def entity_id_of(entity: Any, entity_cls: type | None = None) -> Any:
    """Identifier of an entity instance or a plain record."""
    id_field = getattr(entity_cls or type(entity), "id_field", "id")
    if isinstance(entity, dict):
        return entity.get(id_field)
    return getattr(entity, id_field, None)


__all__ = ["SyncEntity", "entity_id_of"]
