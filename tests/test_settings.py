"""Tests for module_runtime.settings.Settings behavior."""

import pytest
from pydantic import ValidationError

from module_runtime.settings import Settings, get_settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch):
    """Defaults should be stable even if external env or .env sets values.

    We explicitly delete the relevant variables and bypass .env loading
    by passing `_env_file=None`.
    """
    for var in [
        "MODULE_RUNTIME_HOST",
        "MODULE_RUNTIME_PORT",
        "MODULE_RUNTIME_LOG_LEVEL",
        "MODULE_RUNTIME_RELOAD",
        "MODULE_RUNTIME_REQUEST_TIMEOUT",
        "MODULE_RUNTIME_RETRY_ATTEMPTS",
        "MODULE_RUNTIME_CACHE_TTL",
        "module_runtime_host",
    ]:
        monkeypatch.delenv(var, raising=False)
    s = Settings(_env_file=None)  # ignore project .env file if present
    assert s.host == "0.0.0.0"
    assert s.port == 8080
    assert s.log_level == "INFO"
    assert s.reload is False
    assert s.request_timeout == 10.0
    assert s.retry_attempts == 3
    assert s.retry_base_delay == 1.0
    assert s.cache_ttl == 300.0
    assert s.loader_max_retries == 3
    assert s.boundary_max_retries == 3


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("MODULE_RUNTIME_PORT", "9090")
    monkeypatch.setenv("MODULE_RUNTIME_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("MODULE_RUNTIME_API_BASE_URL", "http://backend:5000")
    s = Settings(_env_file=None)
    assert s.port == 9090
    assert s.retry_attempts == 5
    assert s.api_base_url == "http://backend:5000"


def test_case_insensitive_env_name(monkeypatch: pytest.MonkeyPatch):
    # lower-case variable name should still be picked up due to case_sensitive=False
    monkeypatch.setenv("module_runtime_host", "10.10.10.10")  # type: ignore[arg-type]
    s = Settings(_env_file=None)
    assert s.host == "10.10.10.10"


def test_log_level_is_normalized():
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"


def test_invalid_log_level():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="verbose")


def test_retry_attempts_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, retry_attempts=0)


def test_get_settings_singleton():
    a = get_settings()
    b = get_settings()
    assert a is b
