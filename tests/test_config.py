"""Tests for configuration loading and validation."""

import pytest

from planit.config import DEFAULT_STORE_PATH, Config
from planit.sql_store import SQLStore
from planit.store import JSONFileStore


class TestConfig:
    """Tests for the Config dataclass."""

    def test_defaults(self):
        config = Config()
        config.validate()
        assert config.store_path == DEFAULT_STORE_PATH
        assert config.database_url is None
        assert config.sync_timeout == 3

    def test_postgres_url_normalized(self):
        config = Config(database_url="postgres://u:p@host/db")
        assert config.database_url == "postgresql://u:p@host/db"

    @pytest.mark.parametrize("kwargs,message", [
        ({'sync_timeout': 0}, "timeout"),
        ({'weeks': [48, 54]}, "Week number 54"),
        ({'weeks': []}, "empty"),
        ({'year': 1999}, "Year"),
        ({'store_path': '', 'database_url': None}, "store"),
    ])
    def test_validate_rejects(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            Config(**kwargs).validate()

    def test_open_store_json(self, tmp_path):
        config = Config(store_path=str(tmp_path / "data.json"))
        assert isinstance(config.open_store(), JSONFileStore)

    def test_open_store_sql(self, tmp_path):
        config = Config(database_url=f"sqlite:///{tmp_path / 'x.db'}")
        store = config.open_store()
        try:
            assert isinstance(store, SQLStore)
        finally:
            store.close()


class TestFromEnv:
    """Tests for Config.from_env."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv('PLANIT_STORE', '/tmp/planit.json')
        monkeypatch.setenv('PLANIT_DATABASE_URL', 'postgres://h/db')
        monkeypatch.setenv('PLANIT_SYNC_URL', 'https://example.com/api/data')
        monkeypatch.setenv('PLANIT_SYNC_TIMEOUT', '10')

        config = Config.from_env()

        assert config.store_path == '/tmp/planit.json'
        assert config.database_url == 'postgresql://h/db'
        assert config.sync_url == 'https://example.com/api/data'
        assert config.sync_timeout == 10

    def test_overrides_win_unless_none(self, monkeypatch):
        monkeypatch.setenv('PLANIT_STORE', '/tmp/env.json')
        config = Config.from_env(store_path='cli.json', database_url=None)
        assert config.store_path == 'cli.json'

    def test_invalid_timeout(self, monkeypatch):
        monkeypatch.setenv('PLANIT_SYNC_TIMEOUT', 'soon')
        with pytest.raises(ValueError, match="PLANIT_SYNC_TIMEOUT"):
            Config.from_env()

    def test_unset_environment(self, monkeypatch):
        for name in ('PLANIT_STORE', 'PLANIT_DATABASE_URL', 'PLANIT_SYNC_URL', 'PLANIT_SYNC_TIMEOUT'):
            monkeypatch.delenv(name, raising=False)
        config = Config.from_env()
        assert config.store_path == DEFAULT_STORE_PATH
        assert config.sync_url is None
