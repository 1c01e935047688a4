"""
HTTP infrastructure layer with retry logic and API key rotation.

Provides:
- APIKeyRotator: Round-robin rotation for comma-separated API keys
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client with bounded retry

Remote feeds are unreliable, so every non-2xx status and every transport
failure is retried. Exhausting the retry budget raises FetchError, which
fetchers catch per source.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from techupkeep.config.settings import get_settings

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class APIKeyRotator:
    """
    Round-robin API key rotation from comma-separated environment variable.

    Lets several YouTube Data API keys share the daily quota.

    Example:
        rotator = APIKeyRotator.from_env_var("key1,key2,key3")
        key = await rotator.get_key()  # Returns keys in round-robin order
    """

    keys: list[str]
    _current_index: int = field(default=0, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_env_var(cls, value: str | None) -> "APIKeyRotator | None":
        """
        Create rotator from comma-separated environment variable value.

        Args:
            value: Comma-separated API keys or single key, or None

        Returns:
            APIKeyRotator instance or None if no keys provided
        """
        if not value:
            return None

        keys = [k.strip() for k in value.split(",") if k.strip()]

        if not keys:
            return None

        return cls(keys=keys)

    async def get_key(self) -> str:
        """Get the next API key in round-robin rotation."""
        async with self._lock:
            key = self.keys[self._current_index]
            self._current_index = (self._current_index + 1) % len(self.keys)
            return key


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * multiplier^attempt) * (1 + random(0, jitter_factor))

    With the defaults the waits are 0.3s, 0.9s, 2.7s, ...
    """

    max_retries: int = 2
    base_delay: float = 0.3
    multiplier: float = 3.0
    max_backoff_seconds: float = 30.0
    jitter_factor: float = 0.0

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        settings = get_settings()
        return cls(
            max_retries=settings.fetch_max_retries,
            base_delay=settings.backoff_base_seconds,
            multiplier=settings.backoff_multiplier,
        )

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds
        """
        delay = self.base_delay * (self.multiplier**attempt)
        delay = min(delay, self.max_backoff_seconds)

        if self.jitter_factor:
            delay += delay * self.jitter_factor * random.random()

        return delay

    def is_retryable_status(self, status_code: int) -> bool:
        """Any status outside 2xx is retried."""
        return not 200 <= status_code < 300

    def is_retryable_exception(self, exc: Exception) -> bool:
        """
        Check if an exception should trigger a retry.

        httpx.TransportError covers timeouts, connection and read failures.
        """
        return isinstance(exc, httpx.TransportError)


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class FetchError(HTTPClientError):
    """Raised when a URL could not be fetched within the retry budget."""

    def __init__(
        self,
        message: str,
        url: str,
        attempts: int,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message, status_code=status_code, response_body=response_body)
        self.url = url
        self.attempts = attempts


class HTTPClient:
    """
    Async HTTP client with bounded exponential-backoff retry.

    Features:
    - Iterative retry loop, one attempt counter, injectable sleep
    - Retry on non-2xx status codes and transport errors
    - Per-request timeout override
    - Optional API key rotation in a query parameter
    - Context manager for proper resource cleanup

    Example:
        async with HTTPClient() as client:
            xml = await client.fetch_text("https://example.com/feed")
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        sleep: SleepFunc | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize HTTP client.

        Args:
            retry_config: Configuration for retry behavior. Uses settings if None.
            timeout: Default request timeout in seconds.
            user_agent: User-Agent header sent with every request.
            sleep: Coroutine used to wait between attempts (asyncio.sleep by default).
            transport: Optional httpx transport, mainly for tests.
        """
        settings = get_settings()
        self.retry_config = retry_config or RetryConfig.from_settings()
        self.timeout = timeout if timeout is not None else settings.fetch_timeout_seconds
        self.user_agent = user_agent or settings.user_agent
        self._sleep = sleep or asyncio.sleep
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        """Enter async context manager, create client."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_text(
        self,
        url: str,
        timeout: float | None = None,
        max_retries: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """
        Fetch a URL and return the response body as text.

        Args:
            url: Request URL
            timeout: Per-request timeout override
            max_retries: Per-request retry budget override
            headers: Extra request headers

        Returns:
            Response body of a 2xx response

        Raises:
            FetchError: When every attempt failed
        """
        response = await self._request_with_retry(
            url,
            timeout=timeout,
            max_retries=max_retries,
            headers=headers,
        )
        return response.text

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_param: str | None = None,
    ) -> Any:
        """
        GET a JSON endpoint with retry logic.

        Args:
            url: Request URL
            params: Query parameters
            headers: Request headers
            timeout: Per-request timeout override
            max_retries: Per-request retry budget override
            api_key_rotator: Optional key rotator for authentication
            api_key_param: Query parameter name that carries the API key

        Returns:
            Decoded JSON body

        Raises:
            FetchError: When every attempt failed or the body is not JSON
        """
        response = await self._request_with_retry(
            url,
            params=params,
            headers=headers,
            timeout=timeout,
            max_retries=max_retries,
            api_key_rotator=api_key_rotator,
            api_key_param=api_key_param,
        )
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(
                f"Invalid JSON from {url}: {e}",
                url=url,
                attempts=1,
                status_code=response.status_code,
            ) from e

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        api_key_rotator: APIKeyRotator | None = None,
        api_key_param: str | None = None,
    ) -> httpx.Response:
        """
        Execute a GET request with retry logic.

        Waits calculate_backoff(attempt) between attempts and raises the
        last failure once the budget is spent.
        """
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        retries = self.retry_config.max_retries if max_retries is None else max_retries
        request_timeout = self.timeout if timeout is None else timeout

        attempt = 0
        while True:
            request_params = dict(params) if params else {}
            if api_key_rotator and api_key_param:
                request_params[api_key_param] = await api_key_rotator.get_key()

            try:
                response = await self._client.get(
                    url,
                    params=request_params or None,
                    headers=headers,
                    timeout=request_timeout,
                )
            except httpx.HTTPError as e:
                error = FetchError(
                    f"Request to {url} failed after {attempt + 1} attempts: "
                    f"{type(e).__name__}: {e}",
                    url=url,
                    attempts=attempt + 1,
                )
                if not self.retry_config.is_retryable_exception(e):
                    raise error from e
                error.__cause__ = e
            else:
                if not self.retry_config.is_retryable_status(response.status_code):
                    return response

                error = FetchError(
                    f"Request to {url} failed with status {response.status_code} "
                    f"after {attempt + 1} attempts",
                    url=url,
                    attempts=attempt + 1,
                    status_code=response.status_code,
                    response_body=response.text[:500],
                )

            if attempt >= retries:
                raise error

            backoff = self.retry_config.calculate_backoff(attempt)
            logger.warning(
                f"Fetch failed for {url}, "
                f"attempt {attempt + 1}/{retries + 1}, "
                f"backing off {backoff:.2f}s: {error}"
            )
            await self._sleep(backoff)
            attempt += 1
