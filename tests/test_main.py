"""Tests for application startup and the server entry point."""

import logging
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

import main
from database import InMemoryStore
from exceptions import ConfigurationError, StoreError
from logging_config import JsonFormatter


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("POSTGRES_URL", "postgresql://bank@localhost/bank")
    monkeypatch.setenv("JWT_SECRET", "test-secret-that-is-long-enough-for-hs256")
    monkeypatch.setenv("LISTEN_PORT", "3100")
    return monkeypatch


class TestLifespan:
    def test_opens_and_closes_store(self, settings, monkeypatch):
        store = InMemoryStore()
        store.close = MagicMock()
        open_store = MagicMock(return_value=store)
        monkeypatch.setattr(main, "open_store", open_store)

        app = main.create_app(settings)
        with TestClient(app) as client:
            assert client.get("/accounts").json() == []

        open_store.assert_called_once_with(settings)
        store.close.assert_called_once()

    def test_injected_store_is_not_closed(self, settings):
        store = InMemoryStore()
        store.close = MagicMock()

        with TestClient(main.create_app(settings, store)):
            pass

        store.close.assert_not_called()


class TestCreateAppFromEnvironment:
    """App built without injected settings, as `uvicorn --factory main:create_app` does."""

    @pytest.fixture(autouse=True)
    def no_database(self, monkeypatch, restore_root_logger):
        monkeypatch.setattr(main, "open_store", MagicMock(return_value=InMemoryStore()))

    def test_settings_from_environment(self, env):
        app = main.create_app()
        with TestClient(app):
            assert app.state.settings.listen_port == 3100

    def test_configures_logging(self, env):
        env.setenv("LOG_LEVEL", "WARNING")
        env.setenv("LOG_FORMAT", "json")

        main.create_app()

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_cors_origins_from_environment(self, env):
        env.setenv("CORS_ORIGINS", "https://bank.example")

        with TestClient(main.create_app()) as client:
            allowed = client.get("/accounts", headers={"Origin": "https://bank.example"})
            other = client.get("/accounts", headers={"Origin": "https://elsewhere.example"})

        assert allowed.headers["access-control-allow-origin"] == "https://bank.example"
        assert "access-control-allow-origin" not in other.headers

    def test_missing_configuration(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("POSTGRES_URL", "JWT_SECRET"):
            monkeypatch.setenv(name, "placeholder")
            monkeypatch.delenv(name)

        with pytest.raises(ConfigurationError):
            main.create_app()


class TestOpenStore:
    def test_closes_pool_when_schema_fails(self, settings, monkeypatch):
        store = MagicMock()
        store.init.side_effect = StoreError("permission denied for schema public")
        monkeypatch.setattr(main, "PostgresStore", MagicMock(return_value=store))

        with pytest.raises(StoreError):
            main.open_store(settings)

        store.close.assert_called_once()


@pytest.mark.usefixtures("restore_root_logger")
class TestRun:
    def test_missing_configuration_exits(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("POSTGRES_URL", "JWT_SECRET"):
            monkeypatch.setenv(name, "placeholder")
            monkeypatch.delenv(name)

        with pytest.raises(SystemExit) as excinfo:
            main.run()
        assert excinfo.value.code == 1

    def test_store_failure_exits(self, env, monkeypatch):
        monkeypatch.setattr(main, "open_store", MagicMock(side_effect=StoreError("connection refused")))
        serve = MagicMock()
        monkeypatch.setattr(main.uvicorn, "run", serve)

        with pytest.raises(SystemExit) as excinfo:
            main.run()

        assert excinfo.value.code == 1
        serve.assert_not_called()

    def test_serves_and_closes_store(self, env, monkeypatch):
        store = MagicMock()
        monkeypatch.setattr(main, "open_store", MagicMock(return_value=store))
        serve = MagicMock()
        monkeypatch.setattr(main.uvicorn, "run", serve)

        main.run()

        serve.assert_called_once()
        assert serve.call_args.kwargs["port"] == 3100
        assert serve.call_args.kwargs["host"] == "0.0.0.0"
        store.close.assert_called_once()
