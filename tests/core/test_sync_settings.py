"""Tests for spine_sync.core.settings and the service container."""

import pytest

from spine_sync.core.container import SyncContainer
from spine_sync.core.enums import FilterPolicy, ListConformity
from spine_sync.core.settings import SyncSettings, get_settings


class TestSyncSettings:
    """Environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SPINE_SYNC_DEFAULT_FILTER_POLICY", raising=False)
        settings = SyncSettings(_env_file=None)
        assert settings.default_filter_policy is None
        assert settings.default_conformity is ListConformity.NONE
        assert settings.log_level == "INFO"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SPINE_SYNC_DEFAULT_FILTER_POLICY", "return_empty")
        monkeypatch.setenv("SPINE_SYNC_DEFAULT_CONFORMITY", "complete")
        settings = SyncSettings(_env_file=None)
        assert settings.default_filter_policy is FilterPolicy.RETURN_EMPTY
        assert settings.default_conformity is ListConformity.COMPLETE

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestSyncContainer:
    """Lazy settings, engine and entity bindings."""

    def test_settings_lazy_default(self):
        assert SyncContainer().settings is get_settings()

    def test_bind_and_resolve(self, contact_cls):
        class Special(contact_cls):
            pass

        container = SyncContainer()
        container.bind(contact_cls, Special)

        assert container.resolve(contact_cls) is Special
        assert container.has(contact_cls)

    def test_unbound_resolves_to_itself(self, contact_cls):
        assert SyncContainer().resolve(contact_cls) is contact_cls

    def test_bind_rejects_unrelated_class(self, contact_cls, account_cls):
        with pytest.raises(TypeError):
            SyncContainer().bind(contact_cls, account_cls)

    def test_engine_from_settings(self, tmp_path):
        settings = SyncSettings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'sync.db'}")
        with SyncContainer(settings) as container:
            engine = container.engine
            assert engine is container.engine
            assert str(engine.url).endswith("sync.db")
        assert container._engine is None
