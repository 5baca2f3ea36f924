"""Tests for the resilient module API client."""

import asyncio
import json

import httpx
import pytest
from conftest import FakeClock, SleepRecorder

from module_runtime.api_client import ModuleApiClient
from module_runtime.exceptions import ModuleError, ModuleRequestError
from module_runtime.models import ModuleConfig, ModuleEndpoints, ModuleFeatures
from module_runtime.settings import Settings


def dashboard_config(cache: bool = True, fallback: list[str] | None = None) -> ModuleConfig:
    return ModuleConfig(
        id="dashboard",
        version="1.0.0",
        endpoints=ModuleEndpoints(primary="/api", fallback=fallback if fallback is not None else ["/api/v1"]),
        features=ModuleFeatures(cache=cache),
    )


class RecordingHandler:
    """MockTransport handler that answers per endpoint prefix and records calls."""

    def __init__(self, responses: dict[str, int]):
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for prefix, status in sorted(self.responses.items(), key=lambda item: -len(item[0])):
            if request.url.path.startswith(prefix):
                if status >= 400:
                    return httpx.Response(status, json={"error": "failure"})
                return httpx.Response(status, json={"path": request.url.path})
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def make_client(
    handler,
    settings: Settings,
    sleep: SleepRecorder,
    clock: FakeClock | None = None,
    config: ModuleConfig | None = None,
) -> ModuleApiClient:
    kwargs = {"clock": clock} if clock is not None else {}
    return ModuleApiClient(
        config or dashboard_config(),
        settings=settings,
        transport=httpx.MockTransport(handler),
        sleep=sleep,
        **kwargs,
    )


class TestRequest:
    """Basic request behavior."""

    @pytest.mark.asyncio
    async def test_sends_module_headers(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            response = await client.get("/tasks")

        request = handler.requests[0]
        assert response.success is True
        assert response.data == {"path": "/api/tasks"}
        assert request.headers["X-Module-ID"] == "dashboard"
        assert request.headers["X-Module-Version"] == "1.0.0"
        assert request.headers["Content-Type"] == "application/json"
        assert response.metadata["status"] == 200
        assert response.metadata["endpoint"] == "/api"
        assert response.metadata["attempt"] == 1

    @pytest.mark.asyncio
    async def test_caller_headers_are_merged(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            await client.request("/tasks", {"headers": {"Authorization": "Bearer t"}})

        assert handler.requests[0].headers["Authorization"] == "Bearer t"
        assert handler.requests[0].headers["X-Module-ID"] == "dashboard"

    @pytest.mark.asyncio
    async def test_get_encodes_params(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            await client.get("/tasks", params={"status": "open"})

        assert handler.requests[0].url.params["status"] == "open"

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 201})
        async with make_client(handler, settings, sleep_recorder) as client:
            await client.post("/tasks", {"title": "Write report"})

        request = handler.requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {"title": "Write report"}


class TestCache:
    """Response cache with lazy TTL expiry."""

    @pytest.mark.asyncio
    async def test_cached_get_skips_network_until_ttl(
        self, settings: Settings, sleep_recorder: SleepRecorder, fake_clock: FakeClock
    ):
        handler = RecordingHandler({"/api": 200})
        async with make_client(handler, settings, sleep_recorder, fake_clock) as client:
            await client.get("/tasks")

            fake_clock.advance(settings.cache_ttl - 1)
            cached = await client.get("/tasks")
            assert cached.metadata == {"cached": True}
            assert len(handler.requests) == 1

            fake_clock.advance(1)
            fresh = await client.get("/tasks")
            assert fresh.metadata.get("cached") is None
            assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_cache_disabled_by_feature_flag(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 200})
        config = dashboard_config(cache=False)
        async with make_client(handler, settings, sleep_recorder, config=config) as client:
            await client.get("/tasks")
            await client.get("/tasks")

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_writes_are_not_cached(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            await client.post("/tasks", {"title": "a"})
            await client.post("/tasks", {"title": "a"})

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_clear_cache(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            await client.get("/tasks")
            client.clear_cache()
            await client.get("/tasks")

        assert len(handler.requests) == 2


class TestFailover:
    """Retry with backoff and endpoint failover."""

    @pytest.mark.asyncio
    async def test_primary_exhausted_before_fallback(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 500, "/api/v1": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            response = await client.request("/tasks", retry_attempts=3)

        assert handler.paths() == ["/api/tasks", "/api/tasks", "/api/tasks", "/api/v1/tasks"]
        assert response.metadata["endpoint"] == "/api/v1"
        assert response.metadata["attempt"] == 1
        # No wait after the last attempt on the primary
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_all_endpoints_failing_raises_request_error(
        self, settings: Settings, sleep_recorder: SleepRecorder
    ):
        handler = RecordingHandler({"/api": 503})
        config = dashboard_config(fallback=["/api/v1", "/api/backup"])
        async with make_client(handler, settings, sleep_recorder, config=config) as client:
            with pytest.raises(ModuleError) as exc_info:
                await client.get("/tasks")

        error = exc_info.value
        assert isinstance(error, ModuleRequestError)
        assert error.code == "REQUEST_FAILED"
        assert error.module_id == "dashboard"
        assert error.timestamp is not None
        assert error.details["endpoints"] == ["/api", "/api/v1", "/api/backup"]
        assert len(handler.requests) == 9

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, settings: Settings, sleep_recorder: SleepRecorder):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ok": True})

        async with make_client(handler, settings, sleep_recorder) as client:
            response = await client.get("/health")

        assert response.data == {"ok": True}
        assert response.metadata["attempt"] == 3

    @pytest.mark.asyncio
    async def test_slow_attempt_times_out(self, sleep_recorder: SleepRecorder):
        settings = Settings(_env_file=None, request_timeout=0.01, retry_attempts=1)

        async def handler(_request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200)

        config = dashboard_config(fallback=[])
        async with make_client(handler, settings, sleep_recorder, config=config) as client:
            with pytest.raises(ModuleRequestError) as exc_info:
                await client.get("/tasks")

        assert exc_info.value.details["error_type"] == "TimeoutError"

    @pytest.mark.asyncio
    async def test_malformed_primary_falls_over_to_fallback(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api/v1": 200})
        config = ModuleConfig(
            id="dashboard",
            endpoints=ModuleEndpoints(primary="http://localhost:notaport", fallback=["/api/v1"]),
        )
        async with make_client(handler, settings, sleep_recorder, config=config) as client:
            response = await client.get("/tasks")

        assert response.metadata["endpoint"] == "/api/v1"
        assert handler.paths() == ["/api/v1/tasks"]

    @pytest.mark.asyncio
    async def test_unencodable_body_raises_request_error(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            with pytest.raises(ModuleRequestError) as exc_info:
                await client.post("/tasks", {"due": object()})

        assert exc_info.value.details["error_type"] == "TypeError"
        assert handler.requests == []


class TestHealthAndConfig:
    """health_check and update_config."""

    @pytest.mark.asyncio
    async def test_health_check(self, settings: Settings, sleep_recorder: SleepRecorder):
        async with make_client(RecordingHandler({"/api": 200}), settings, sleep_recorder) as client:
            assert await client.health_check() is True

        async with make_client(RecordingHandler({"/api": 500}), settings, sleep_recorder) as client:
            assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_update_config_changes_endpoints(self, settings: Settings, sleep_recorder: SleepRecorder):
        handler = RecordingHandler({"/api": 500, "/v2": 200})
        async with make_client(handler, settings, sleep_recorder) as client:
            client.update_config({"endpoints": {"primary": "/v2", "fallback": []}})
            response = await client.get("/tasks")

        assert client.config.endpoints.primary == "/v2"
        assert response.metadata["endpoint"] == "/v2"
