"""Resilient per-module API client.

Every module talks to the backend through its own ``ModuleApiClient``. The
client makes those calls robust:

- **Response cache**: GET responses are cached per module for ``cache_ttl``
  seconds when the module enables the ``cache`` feature. Expired entries
  are ignored, not purged.
- **Endpoint failover**: the primary endpoint is tried first, then each
  fallback in order. The first success wins.
- **Retry with backoff**: each endpoint gets ``retry_attempts`` attempts with
  ``2^attempt * retry_base_delay`` seconds between them.
- **Per-attempt timeout**: each attempt is cancelled after ``request_timeout``
  seconds and counts as a failed attempt.

Only when every attempt against every endpoint has failed does the caller see
a ``ModuleRequestError``.

Example:
    ```python
    async with ModuleApiClient(dashboard_config) as client:
        response = await client.get("/tasks", params={"status": "open"})
        print(response.data)
    ```
"""

import asyncio
import json
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import arrow
import httpx
from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from module_runtime.constants import (
    CACHEABLE_METHODS,
    HEADER_CONTENT_TYPE,
    HEADER_MODULE_ID,
    HEADER_MODULE_VERSION,
    HEALTH_ENDPOINT,
    JSON_CONTENT_TYPE,
)
from module_runtime.exceptions import ModuleRequestError
from module_runtime.models import ApiResponse, CacheEntry, ModuleConfig, merge_config
from module_runtime.settings import Settings, get_settings

# Failures that count against an attempt: transport errors, non-2xx statuses
# (HTTPStatusError), attempt timeouts and undecodable JSON bodies.
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (httpx.HTTPError, httpx.StreamError, TimeoutError, ValueError)

# Failures that give up on an endpoint at once and move to the next one:
# a malformed endpoint URL or a body that cannot be encoded.
ENDPOINT_ERRORS: tuple[type[Exception], ...] = (*RETRYABLE_ERRORS, httpx.InvalidURL, TypeError)

RequestOptions = Mapping[str, Any]


def _now() -> float:
    return arrow.utcnow().float_timestamp


class ModuleApiClient:
    """HTTP access for one module with caching, failover and retry.

    Args:
        config: Configuration of the module the client works for
        settings: Runtime settings (timeouts, retry policy, cache TTL, base URL)
        transport: Optional httpx transport, e.g. ``httpx.MockTransport`` in tests
        sleep: Coroutine used to wait between attempts
        clock: Returns the current time in seconds, used for cache expiry
    """

    def __init__(
        self,
        config: ModuleConfig,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = _now,
    ):
        self._config = config
        self.settings = settings or get_settings()
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> ModuleConfig:
        return self._config

    @property
    def module_id(self) -> str:
        return self._config.id

    async def __aenter__(self) -> "ModuleApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            # Timeouts are enforced per attempt with asyncio.timeout
            self._client = httpx.AsyncClient(
                base_url=self.settings.api_base_url,
                transport=self._transport,
                timeout=None,
            )
        return self._client

    async def request(
        self,
        endpoint: str,
        options: RequestOptions | None = None,
        retry_attempts: int | None = None,
    ) -> ApiResponse:
        """Send a request with caching, endpoint failover and retries.

        Only GET and HEAD responses are cached; POST and other writes always
        reach the network.

        Args:
            endpoint: Path appended to each module endpoint, e.g. ``/tasks``
            options: ``method``, ``headers``, ``params``, ``json`` or ``content``
            retry_attempts: Attempts per endpoint, defaults to ``settings.retry_attempts``

        Returns:
            The first successful response, or the cached one

        Raises:
            ModuleRequestError: If every attempt against every endpoint failed
        """
        options = dict(options or {})
        method = str(options.get("method", "GET")).upper()
        cache_key = self._cache_key(endpoint, options)
        use_cache = self._config.features.cache and method in CACHEABLE_METHODS

        if use_cache:
            entry = self._cache.get(cache_key)
            if entry is not None and entry.is_valid(self._clock()):
                logger.trace(f"Cache hit for module '{self.module_id}': {cache_key}")
                return ApiResponse(success=True, data=entry.data, metadata={"cached": True})

        attempts = max(1, retry_attempts if retry_attempts is not None else self.settings.retry_attempts)
        last_error: Exception | None = None

        for base_url in self._config.endpoints.all():
            try:
                response = await self._request_with_retry(base_url, endpoint, method, options, attempts)
            except ENDPOINT_ERRORS as e:
                last_error = e
                logger.warning(
                    f"Module '{self.module_id}' endpoint '{base_url}' failed after {attempts} attempts: {e}"
                )
                continue

            if use_cache:
                self._cache[cache_key] = CacheEntry(data=response.data, timestamp=self._clock(), ttl=self.settings.cache_ttl)
            return response

        message = str(last_error) if last_error is not None else "All endpoints failed"
        logger.error(f"Request {method} {endpoint} failed for module '{self.module_id}': {message}")
        error = ModuleRequestError(
            self.module_id,
            message,
            details={
                "endpoint": endpoint,
                "method": method,
                "endpoints": self._config.endpoints.all(),
                "attempts_per_endpoint": attempts,
                "error_type": type(last_error).__name__ if last_error is not None else None,
            },
        )
        raise error from last_error

    async def _request_with_retry(
        self,
        base_url: str,
        endpoint: str,
        method: str,
        options: dict[str, Any],
        attempts: int,
    ) -> ApiResponse:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.settings.retry_base_delay),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            reraise=True,
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )
        async for attempt in retrying:
            with attempt:
                return await self._execute_request(
                    base_url, endpoint, method, options, attempt.retry_state.attempt_number
                )
        raise RuntimeError("Retry loop ended without a result")  # pragma: no cover

    async def _execute_request(
        self,
        base_url: str,
        endpoint: str,
        method: str,
        options: dict[str, Any],
        attempt_number: int,
    ) -> ApiResponse:
        headers = {
            HEADER_CONTENT_TYPE: JSON_CONTENT_TYPE,
            HEADER_MODULE_ID: self._config.id,
            HEADER_MODULE_VERSION: self._config.version,
            **(options.get("headers") or {}),
        }
        client = self._get_client()

        async with asyncio.timeout(self.settings.request_timeout):
            response = await client.request(
                method,
                f"{base_url}{endpoint}",
                headers=headers,
                params=options.get("params"),
                json=options.get("json"),
                content=options.get("content"),
            )

        response.raise_for_status()
        data = response.json() if response.content else None

        return ApiResponse(
            success=True,
            data=data,
            metadata={
                "status": response.status_code,
                "headers": dict(response.headers),
                "endpoint": base_url,
                "attempt": attempt_number,
            },
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action is not None else 0
        logger.debug(
            f"Module '{self.module_id}' attempt {retry_state.attempt_number} failed ({error}); retrying in {delay:.1f}s"
        )

    @staticmethod
    def _cache_key(endpoint: str, options: Mapping[str, Any]) -> str:
        return f"{endpoint}-{json.dumps(options, sort_keys=True, default=str)}"

    # HTTP method wrappers

    async def get(self, endpoint: str, params: Mapping[str, Any] | None = None) -> ApiResponse:
        if params:
            endpoint = f"{endpoint}?{httpx.QueryParams(params)}"
        return await self.request(endpoint, {"method": "GET"})

    async def post(self, endpoint: str, data: Any = None) -> ApiResponse:
        return await self.request(endpoint, {"method": "POST", "json": data})

    async def put(self, endpoint: str, data: Any = None) -> ApiResponse:
        return await self.request(endpoint, {"method": "PUT", "json": data})

    async def patch(self, endpoint: str, data: Any = None) -> ApiResponse:
        return await self.request(endpoint, {"method": "PATCH", "json": data})

    async def delete(self, endpoint: str) -> ApiResponse:
        return await self.request(endpoint, {"method": "DELETE"})

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()
        logger.debug(f"Cache cleared for module '{self.module_id}'")

    def update_config(self, partial: Mapping[str, Any]) -> ModuleConfig:
        """Merge ``partial`` into the client's module configuration."""
        self._config = merge_config(self._config, partial)
        return self._config

    async def health_check(self) -> bool:
        """Return True if ``GET /health`` succeeds on any endpoint."""
        try:
            await self.get(HEALTH_ENDPOINT)
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Health check failed for module '{self.module_id}': {e}")
            return False
        return True
