"""
Base client for external data source clients.

Provides: rate limiting, retry via an injected RetryPolicy, and structured
logging. Response caching is left to subclasses, which know what a
"repeated identical request" means for their API.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp
from pydantic import BaseModel

from med_evidence.constants import (
    DEFAULT_TIMEOUT,
    PUBMED_CACHE_TTL,
    PUBMED_RATE_LIMIT,
    RETRYABLE_STATUS_CODES,
)
from med_evidence.utils.retry import (
    ExponentialBackoffRetry,
    RetryExhaustedError,
    RetryPolicy,
)

logger = logging.getLogger("med_evidence.data_sources")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class RetryConfig(BaseModel):
    """Retry behaviour for failed requests."""

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    backoff_factor: float = 2.0
    retryable_status_codes: frozenset[int] = RETRYABLE_STATUS_CODES


class RateLimitConfig(BaseModel):
    """Token-bucket rate limiter settings."""

    requests_per_second: float = PUBMED_RATE_LIMIT
    burst: int = 1


class CacheConfig(BaseModel):
    """In-memory cache settings. A ttl of 0 disables caching."""

    ttl_seconds: int = PUBMED_CACHE_TTL
    max_entries: int = 1024


class ClientConfig(BaseModel):
    """Top-level config aggregating retry, rate limit, and cache."""

    retry: RetryConfig = RetryConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    cache: CacheConfig = CacheConfig()
    timeout_seconds: float = DEFAULT_TIMEOUT


# ---------------------------------------------------------------------------
# Rate limiter (async token bucket)
# ---------------------------------------------------------------------------


class TokenBucketRateLimiter:
    """
    Async token-bucket rate limiter.

    Allows `burst` requests immediately, then refills at
    `requests_per_second`.  Callers await `acquire()` before
    making a request; it sleeps only when the bucket is empty.
    With burst=1 this simply spaces calls 1/rate seconds apart.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.rate = config.requests_per_second
        self.max_tokens = config.burst
        self.tokens = float(config.burst)
        self._clock = clock
        self._sleep = sleep
        self.last_refill = clock()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            elapsed = now - self.last_refill
            self.tokens = min(self.max_tokens, self.tokens + elapsed * self.rate)
            self.last_refill = now

            if self.tokens < 1.0:
                wait = (1.0 - self.tokens) / self.rate
                logger.debug("Rate limiter: sleeping %.2fs", wait)
                await (self._sleep or asyncio.sleep)(wait)
                self.tokens = 0.0
                self.last_refill = self._clock()
            else:
                self.tokens -= 1.0


# ---------------------------------------------------------------------------
# Request context (for structured logging)
# ---------------------------------------------------------------------------


class RequestContext(BaseModel):
    """Metadata attached to every outgoing request for logging."""

    source: str  # e.g. "pubmed"
    method: str  # e.g. "esearch"
    params: dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DataSourceError(Exception):
    """Base exception for data source failures."""

    def __init__(self, source: str, message: str, status_code: int | None = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"[{source}] {message}")


class TransientDataSourceError(DataSourceError):
    """A failure worth retrying: 429/5xx, timeouts, dropped connections.

    `retry_after` carries the server's Retry-After delay when it sent one;
    the retry policy waits that long instead of its own backoff.
    """

    def __init__(
        self,
        source: str,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(source, message, status_code)


def parse_retry_after(value: str | None) -> float | None:
    """Seconds from a Retry-After header. HTTP-date values are ignored."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Base client
# ---------------------------------------------------------------------------


class BaseClient(ABC):
    """
    Abstract base for HTTP data source clients.

    Subclasses implement `_source_name` and their own typed methods that
    call `_rest_get()` (JSON) or `_rest_get_xml()` (raw text).
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        max_retries: int | None = None,
    ):
        self.config = config or ClientConfig()
        if max_retries is not None:
            self.config = self.config.model_copy(
                update={
                    "retry": self.config.retry.model_copy(
                        update={"max_retries": max_retries}
                    )
                }
            )
        retry = self.config.retry
        self.retry_policy = retry_policy or ExponentialBackoffRetry(
            retry.max_retries + 1,
            base_delay=retry.base_delay,
            max_delay=retry.max_delay,
            backoff_factor=retry.backoff_factor,
            jitter=False,
        )
        self.rate_limiter = TokenBucketRateLimiter(self.config.rate_limit)
        self._session: aiohttp.ClientSession | None = None

    @property
    @abstractmethod
    def _source_name(self) -> str:
        """Identifier for this data source, e.g. 'pubmed'."""
        ...

    @property
    def _default_headers(self) -> dict[str, str]:
        return {}

    # -- Session management --------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(
                timeout=timeout, headers=self._default_headers
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # -- Core request with retry + rate limiting -----------------------------

    async def _request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        as_text: bool = False,
        context: RequestContext | None = None,
    ) -> Any:
        """
        Make a GET request with rate limiting and retry.

        Parameters
        ----------
        url : str
            Full URL.
        params : dict, optional
            Query string parameters.
        as_text : bool
            Return the raw body instead of decoded JSON.
        context : RequestContext, optional
            Logging context.

        Raises
        ------
        DataSourceError
            On a non-retryable HTTP error, an undecodable body, or once the
            retry policy is exhausted.
        """
        ctx = context or RequestContext(source=self._source_name, method="unknown")
        retryable = self.config.retry.retryable_status_codes
        start = time.monotonic()
        attempt = 0

        async def attempt_once() -> Any:
            nonlocal attempt
            attempt += 1
            await self.rate_limiter.acquire()
            session = await self._get_session()

            logger.info(
                "Request [%s.%s] attempt=%d url=%s",
                ctx.source,
                ctx.method,
                attempt,
                url,
            )

            try:
                resp = await session.get(url, params=params)

                if resp.status in retryable:
                    body = await resp.text(errors="replace")
                    retry_after = None
                    if resp.status == 429:
                        # Respect Retry-After header if present
                        retry_after = parse_retry_after(
                            resp.headers.get("Retry-After")
                        )
                    raise TransientDataSourceError(
                        ctx.source,
                        f"HTTP {resp.status}: {body[:200]}",
                        status_code=resp.status,
                        retry_after=retry_after,
                    )

                if resp.status >= 400:
                    body = await resp.text(errors="replace")
                    raise DataSourceError(
                        ctx.source,
                        f"HTTP {resp.status}: {body[:500]}",
                        status_code=resp.status,
                    )

                if as_text:
                    try:
                        return await resp.text()
                    except UnicodeDecodeError as e:
                        raise DataSourceError(
                            ctx.source, f"Undecodable response body: {e}"
                        ) from e
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise DataSourceError(ctx.source, f"Invalid JSON: {e}") from e

            except asyncio.TimeoutError as e:
                elapsed = time.monotonic() - start
                raise TransientDataSourceError(
                    ctx.source, f"Timeout after {elapsed:.1f}s"
                ) from e
            except aiohttp.ClientError as e:
                raise TransientDataSourceError(
                    ctx.source, f"Connection error: {e}"
                ) from e

        try:
            data = await self.retry_policy.run(
                attempt_once,
                retry_on=(TransientDataSourceError,),
                label=f"{ctx.source}.{ctx.method}",
            )
        except RetryExhaustedError as e:
            logger.error(
                "All retries exhausted [%s.%s] after %.1fs: %s",
                ctx.source,
                ctx.method,
                time.monotonic() - start,
                e.last_error,
            )
            raise e.last_error from e

        logger.info(
            "Success [%s.%s] elapsed=%.2fs",
            ctx.source,
            ctx.method,
            time.monotonic() - start,
        )
        return data

    # -- Convenience methods for subclasses ----------------------------------

    async def _rest_get(
        self,
        url: str,
        params: dict[str, Any],
        *,
        context: RequestContext | None = None,
    ) -> Any:
        """GET a JSON endpoint and return the decoded body."""
        return await self._request(url, params=params, context=context)

    async def _rest_get_xml(
        self,
        url: str,
        params: dict[str, Any],
        *,
        context: RequestContext | None = None,
    ) -> str:
        """GET an XML endpoint and return the raw body text."""
        return await self._request(url, params=params, as_text=True, context=context)
