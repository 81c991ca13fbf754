"""Tests for config loading and server URL normalization."""

import json

import pytest

from pin_client.config import (
    DEFAULT_BACKEND_URL,
    DEFAULT_SERVER_URL,
    PinConfig,
    get_config_path,
    get_data_dir,
    load_config,
    normalize_server_url,
)


@pytest.fixture
def clean_env(monkeypatch, data_dir):
    for name in ("PIN_SERVER_URL", "PIN_BACKEND_URL", "PIN_CLIENT_ID", "PIN_CONCURRENT_REQUESTS"):
        monkeypatch.delenv(name, raising=False)
    load_config.cache_clear()
    yield monkeypatch
    load_config.cache_clear()


class TestNormalizeServerUrl:

    @pytest.mark.parametrize("given, expected", [
        ("https://dispatch.example.com", "wss://dispatch.example.com/api/v1/pin/ws"),
        ("https://dispatch.example.com/", "wss://dispatch.example.com/api/v1/pin/ws"),
        ("http://localhost:5000", "ws://localhost:5000/api/v1/pin/ws"),
        ("wss://dispatch.example.com/custom", "wss://dispatch.example.com/custom"),
        ("ws://localhost:5000/api/v1/pin/ws", "ws://localhost:5000/api/v1/pin/ws"),
        ("  https://dispatch.example.com  ", "wss://dispatch.example.com/api/v1/pin/ws"),
        ("", DEFAULT_SERVER_URL),
    ])
    def test_normalize(self, given, expected):
        assert normalize_server_url(given) == expected


class TestPinConfig:

    def test_data_dir_override(self, data_dir):
        assert get_data_dir() == data_dir
        assert get_config_path() == data_dir / "config.json"

    def test_defaults(self, clean_env):
        config = PinConfig.load()
        assert config.client_id == ""
        assert config.resolved_server_url() == DEFAULT_SERVER_URL
        assert config.resolved_backend_url() == DEFAULT_BACKEND_URL
        assert config.concurrent_requests is False

    def test_save_and_load(self, clean_env):
        PinConfig(
            client_id="my-pc",
            server_url="https://dispatch.example.com",
            backend_url="http://gpu-box:11434",
            concurrent_requests=True,
        ).save()

        config = PinConfig.load()
        assert config.client_id == "my-pc"
        assert config.resolved_server_url() == "wss://dispatch.example.com/api/v1/pin/ws"
        assert config.resolved_backend_url() == "http://gpu-box:11434"
        assert config.concurrent_requests is True

    def test_secret_never_saved(self, clean_env, data_dir):
        PinConfig(client_id="my-pc").save()
        saved = json.loads((data_dir / "config.json").read_text())
        assert "secret" not in saved

    def test_environment_fills_gaps(self, clean_env):
        clean_env.setenv("PIN_CLIENT_ID", "env-pc")
        clean_env.setenv("PIN_BACKEND_URL", "http://env-backend:11434")
        clean_env.setenv("PIN_CONCURRENT_REQUESTS", "true")
        load_config.cache_clear()
        PinConfig(backend_url="http://file-backend:11434").save()

        config = PinConfig.load()
        assert config.client_id == "env-pc"
        assert config.backend_url == "http://file-backend:11434"
        assert config.concurrent_requests is True

    def test_concurrent_env_survives_saved_default(self, clean_env):
        PinConfig(client_id="c1").save()
        clean_env.setenv("PIN_CONCURRENT_REQUESTS", "true")
        load_config.cache_clear()

        assert PinConfig.load().concurrent_requests is True

    def test_concurrent_saved_and_cleared(self, clean_env):
        config = PinConfig(client_id="c1", concurrent_requests=True)
        config.save()
        assert PinConfig.load().concurrent_requests is True

        config.concurrent_requests = False
        config.save()
        assert PinConfig.load().concurrent_requests is False

    def test_environment_used_without_file(self, clean_env):
        clean_env.setenv("PIN_CONCURRENT_REQUESTS", "TRUE")
        clean_env.setenv("PIN_SERVER_URL", "http://localhost:5000")
        load_config.cache_clear()

        config = PinConfig.load()
        assert config.concurrent_requests is True
        assert config.resolved_server_url() == "ws://localhost:5000/api/v1/pin/ws"

    def test_corrupt_file_is_ignored(self, clean_env, data_dir):
        (data_dir / "config.json").write_text("{not json")
        config = PinConfig.load()
        assert config.client_id == ""

    def test_timeouts_from_environment(self, clean_env):
        clean_env.setenv("CHAT_TIMEOUT", "30")
        load_config.cache_clear()
        assert load_config()["CHAT_TIMEOUT"] == 30.0
        assert load_config()["LIST_MODELS_TIMEOUT"] == 10.0
