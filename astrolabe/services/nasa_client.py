"""NASA Open API client with keyed caching and bounded retries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

import httpx

from astrolabe.config import settings
from astrolabe.observability.metrics import UPSTREAM_REQUESTS
from astrolabe.services.cache import CacheBackend, cache_key

logger = logging.getLogger(__name__)

APOD_PATH = "/planetary/apod"
NEO_FEED_PATH = "/neo/rest/v1/feed"
MARS_PHOTOS_PATH = "/mars-photos/api/v1/rovers/{rover}/photos"
MARS_MANIFEST_PATH = "/mars-photos/api/v1/manifests/{rover}"

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


@dataclass(frozen=True)
class Success:
    """Decoded JSON payload, either fresh or served from the cache."""

    payload: Any
    cached: bool = False
    ok: bool = True


@dataclass(frozen=True)
class Failure:
    """Upstream call that could not produce a payload.

    ``status_code`` is None for transport errors (timeouts, DNS, resets).
    """

    message: str
    status_code: int | None = None
    ok: bool = False


FetchResult = Success | Failure


class NASAClient:
    """Fetch JSON from api.nasa.gov through an injected cache.

    Every call carries the API key as the ``api_key`` query parameter. Only
    successful payloads are cached; a ``Failure`` is returned, never raised.
    """

    def __init__(
        self,
        cache: CacheBackend,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.cache = cache
        self.api_key = api_key or settings.resolved_nasa_api_key
        self.base_url = base_url or settings.nasa_base_url
        self.timeout = (
            timeout if timeout is not None else settings.nasa_timeout_seconds
        )
        self.max_attempts = max(1, max_attempts or settings.nasa_max_attempts)
        self.retry_delay = (
            retry_delay
            if retry_delay is not None
            else settings.nasa_retry_delay_seconds
        )
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

        if self.api_key == "DEMO_KEY":
            logger.warning("NASA client is using DEMO_KEY; rate limits are very low")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": "astrolabe-ingest/1.0"},
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> NASAClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def fetch(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        ttl: timedelta = timedelta(minutes=60),
    ) -> FetchResult:
        """GET ``path`` and return its decoded JSON, cached for ``ttl``."""
        params = dict(params or {})
        key = cache_key(path, params)

        cached = self.cache.get(key)
        if cached is not None:
            UPSTREAM_REQUESTS.labels("cache_hit").inc()
            logger.debug("Cache hit for %s", path, extra={"params": params})
            return Success(cached, cached=True)

        result = await self._request(path, params)
        if isinstance(result, Success):
            self.cache.set(key, result.payload, ttl, path=path)
            UPSTREAM_REQUESTS.labels("fetched").inc()
        else:
            UPSTREAM_REQUESTS.labels("failed").inc()
        return result

    async def _request(self, path: str, params: dict[str, Any]) -> FetchResult:
        query = {**params, "api_key": self.api_key}
        failure = Failure("no attempt made")

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.client.get(path, params=query)
            except httpx.TransportError as exc:
                failure = Failure(f"{type(exc).__name__}: {exc}")
            else:
                if response.status_code in RETRYABLE_STATUS:
                    failure = Failure(
                        f"upstream returned {response.status_code}",
                        response.status_code,
                    )
                elif response.is_error:
                    # Client errors will not change on retry.
                    logger.error(
                        "NASA API rejected request",
                        extra={
                            "path": path,
                            "params": params,
                            "status_code": response.status_code,
                        },
                    )
                    return Failure(
                        f"upstream returned {response.status_code}: "
                        f"{response.text[:200]}",
                        response.status_code,
                    )
                else:
                    try:
                        return Success(response.json())
                    except ValueError:
                        failure = Failure(
                            "upstream returned malformed JSON", response.status_code
                        )

            logger.warning(
                "NASA API attempt %d/%d failed: %s",
                attempt,
                self.max_attempts,
                failure.message,
                extra={"path": path, "params": params},
            )
            if attempt < self.max_attempts:
                await self._sleep(self.retry_delay * attempt)

        logger.error(
            "NASA API request failed after %d attempts",
            self.max_attempts,
            extra={
                "path": path,
                "params": params,
                "status_code": failure.status_code,
                "error": failure.message,
            },
        )
        return failure

    # ── Resource helpers ────────────────────────────────────────

    async def fetch_apod(self, day: date) -> FetchResult:
        """Astronomy Picture of the Day for ``day``."""
        return await self.fetch(
            APOD_PATH,
            {"date": day.isoformat()},
            timedelta(minutes=settings.apod_cache_ttl_minutes),
        )

    async def fetch_neo_feed(
        self, start: date, end: date | None = None
    ) -> FetchResult:
        """Near-Earth objects approaching between ``start`` and ``end``."""
        return await self.fetch(
            NEO_FEED_PATH,
            {"start_date": start.isoformat(), "end_date": (end or start).isoformat()},
            timedelta(minutes=settings.neows_cache_ttl_minutes),
        )

    async def fetch_mars_photos(
        self, rover: str, sol: int, page: int = 1, camera: str | None = None
    ) -> FetchResult:
        """One page of rover photos for a Martian day."""
        params: dict[str, Any] = {"sol": sol, "page": page}
        if camera:
            params["camera"] = camera
        return await self.fetch(
            MARS_PHOTOS_PATH.format(rover=rover),
            params,
            timedelta(minutes=settings.mars_photos_cache_ttl_minutes),
        )

    async def fetch_rover_manifest(self, rover: str) -> FetchResult:
        """Mission manifest, including the latest available sol."""
        return await self.fetch(
            MARS_MANIFEST_PATH.format(rover=rover),
            None,
            timedelta(minutes=settings.mars_manifest_cache_ttl_minutes),
        )
