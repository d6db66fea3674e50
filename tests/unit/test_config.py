"""AppConfig environment loading/validation and backend selection."""

import logging

import pytest

from plantcare.config import AppConfig, setup_logging
from plantcare.domain.exceptions import ConfigurationError
from plantcare.enums.common import StorageBackend
from plantcare.services.container import ServiceContainer, build_backend
from infrastructure.storage import LocalCollectionStore, RemoteCollectionStore

_ENV_VARS = [
    "PLANTCARE_ENV",
    "PLANTCARE_SECRET_KEY",
    "PLANTCARE_STORAGE_BACKEND",
    "PLANTCARE_DATA_DIR",
    "PLANTCARE_REMOTE_BASE_URL",
    "PLANTCARE_REMOTE_TIMEOUT",
    "PLANTCARE_REMOTE_API_TOKEN",
    "PLANTCARE_CACHE_ENABLED",
    "PLANTCARE_UPCOMING_HORIZON_DAYS",
    "PLANTCARE_FEEDING_STALENESS_DAYS",
    "PLANTCARE_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AppConfig()
    assert config.backend is StorageBackend.OFFLINE
    assert config.upcoming_horizon_days == 3
    assert config.feeding_staleness_days == 30
    assert config.cache_enabled is True


def test_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PLANTCARE_STORAGE_BACKEND", "REMOTE")
    monkeypatch.setenv("PLANTCARE_REMOTE_BASE_URL", "https://plants.example")
    monkeypatch.setenv("PLANTCARE_REMOTE_TIMEOUT", "2.5")
    monkeypatch.setenv("PLANTCARE_CACHE_ENABLED", "no")
    monkeypatch.setenv("PLANTCARE_FEEDING_STALENESS_DAYS", "21")

    config = AppConfig()
    assert config.backend is StorageBackend.REMOTE
    assert config.remote_timeout == 2.5
    assert config.cache_enabled is False
    assert config.feeding_staleness_days == 21


@pytest.mark.parametrize(
    "env",
    [
        {"PLANTCARE_STORAGE_BACKEND": "cloud"},
        {"PLANTCARE_STORAGE_BACKEND": "remote"},
        {"PLANTCARE_REMOTE_TIMEOUT": "0"},
        {"PLANTCARE_REMOTE_TIMEOUT": "soon"},
        {"PLANTCARE_UPCOMING_HORIZON_DAYS": "-1"},
        {"PLANTCARE_FEEDING_STALENESS_DAYS": "0"},
        {"PLANTCARE_FEEDING_STALENESS_DAYS": "a month"},
        {"PLANTCARE_ENV": "production"},
        {"PLANTCARE_LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_environment(monkeypatch, env):
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    with pytest.raises(ConfigurationError):
        AppConfig()


def test_production_with_real_secret(monkeypatch):
    monkeypatch.setenv("PLANTCARE_ENV", "production")
    monkeypatch.setenv("PLANTCARE_SECRET_KEY", "a-real-secret")
    assert AppConfig().environment == "production"


def test_build_backend_follows_config(tmp_path):
    offline = AppConfig(data_dir=str(tmp_path))
    assert isinstance(build_backend(offline), LocalCollectionStore)

    remote = AppConfig(storage_backend="remote", remote_base_url="https://plants.example", remote_api_token="tok")
    store = build_backend(remote)
    assert isinstance(store, RemoteCollectionStore)
    assert store._headers["Authorization"] == "Bearer tok"
    assert isinstance(build_backend(remote, force_offline=True), LocalCollectionStore)


def test_container_wires_policy(tmp_path):
    config = AppConfig(data_dir=str(tmp_path), upcoming_horizon_days=5, cache_enabled=False)
    container = ServiceContainer.build(config)
    assert container.gateway.backend is container.backend
    assert container.gateway.cache.enabled is False
    assert container.plant_service._upcoming_horizon_days == 5
    container.shutdown()


def test_setup_logging_is_idempotent(tmp_path):
    root = logging.getLogger()
    log_path = str(tmp_path / "logs" / "plantcare.log")
    try:
        setup_logging(log_path=log_path)
        setup_logging(log_path=log_path)
        names = [h.name for h in root.handlers if h.name in {"plantcare_console", "plantcare_file"}]
        assert sorted(names) == ["plantcare_console", "plantcare_file"]
    finally:
        for handler in list(root.handlers):
            if handler.name in {"plantcare_console", "plantcare_file"}:
                root.removeHandler(handler)
                handler.close()
