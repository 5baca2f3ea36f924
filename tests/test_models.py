"""Tests for the runtime data models."""

import pytest
from pydantic import ValidationError

from module_runtime.models import CacheEntry, ModuleConfig, ModuleEndpoints, merge_config


def test_name_defaults_to_id():
    assert ModuleConfig(id="dashboard").name == "dashboard"
    assert ModuleConfig(id="dashboard", name="Dashboard").name == "Dashboard"


def test_empty_id_is_rejected():
    with pytest.raises(ValidationError):
        ModuleConfig(id="  ")


def test_self_dependency_is_rejected():
    with pytest.raises(ValidationError):
        ModuleConfig(id="dashboard", dependencies=["dashboard"])


def test_config_is_frozen():
    config = ModuleConfig(id="dashboard")
    with pytest.raises(ValidationError):
        config.version = "2.0.0"  # type: ignore[misc]


def test_endpoints_order():
    endpoints = ModuleEndpoints(primary="/api", fallback=["/api/v1", "/api/backup"])
    assert endpoints.all() == ["/api", "/api/v1", "/api/backup"]


def test_merge_config_is_shallow():
    base = ModuleConfig(
        id="dashboard",
        version="1.0.0",
        endpoints=ModuleEndpoints(primary="/api", fallback=["/api/v1"]),
    )

    merged = merge_config(base, {"version": "1.1.0", "endpoints": {"primary": "/v2"}})

    assert merged.version == "1.1.0"
    assert merged.endpoints.primary == "/v2"
    assert merged.endpoints.fallback == ()
    assert base.version == "1.0.0"
    assert merge_config(base, None) is base


def test_cache_entry_validity():
    entry = CacheEntry(data={"a": 1}, timestamp=100.0, ttl=10.0)
    assert entry.is_valid(109.9)
    assert not entry.is_valid(110.0)
