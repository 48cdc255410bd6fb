"""
Lazy-initialised service container.

:class:`SyncContainer` holds the settings, an optional SQLAlchemy engine and
entity class bindings. Contexts carry a container so hydration can resolve
the concrete class to instantiate for an entity type.

Usage::

    from spine_sync.core.container import SyncContainer

    container = SyncContainer()
    container.bind(Contact, CrmContact)   # hydrate Contact records as CrmContact
    engine = container.engine             # lazy-created from settings.database_url
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine

from spine_sync.core.settings import SyncSettings, get_settings


class SyncContainer:
    """Lazy-initialised dependency container.

    Components are created on first property access and disposed via
    :meth:`close` (or the context-manager protocol).
    """

    def __init__(self, settings: SyncSettings | None = None) -> None:
        self._settings = settings
        self._engine: Any | None = None
        self._bindings: dict[type, type] = {}

    # ── Properties (lazy) ────────────────────────────────────────

    @property
    def settings(self) -> SyncSettings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def engine(self) -> Any:
        """SQLAlchemy :class:`~sqlalchemy.engine.Engine`."""
        if self._engine is None:
            self._engine = create_engine(self.settings.database_url)
        return self._engine

    # ── Entity bindings ──────────────────────────────────────────

    def bind(self, service: type, concrete: type) -> SyncContainer:
        """Resolve ``service`` to ``concrete``, which must be a subclass."""
        if not issubclass(concrete, service):
            raise TypeError(f"{concrete.__qualname__} is not a subclass of {service.__qualname__}")
        self._bindings[service] = concrete
        return self

    def resolve(self, service: type) -> type:
        """Class to instantiate for ``service`` (``service`` itself if unbound)."""
        return self._bindings.get(service, service)

    def has(self, service: type) -> bool:
        return service in self._bindings

    # ── Lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        """Dispose of managed resources."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> SyncContainer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


# ── Global convenience ───────────────────────────────────────────────────

_global_container: SyncContainer | None = None


def get_container() -> SyncContainer:
    """Get (or create) a module-level :class:`SyncContainer`."""
    global _global_container
    if _global_container is None:
        _global_container = SyncContainer()
    return _global_container


__all__ = ["SyncContainer", "get_container"]
