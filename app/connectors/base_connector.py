"""
Base connector class for the marketing platforms
"""
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, TypeVar
import asyncio
import time

import aiohttp

from app.config import Settings
from app.models.common import ApiResponse
from app.utils.logger import log
from app.utils.retry import calculate_backoff, is_retryable_error

T = TypeVar("T")

# Raised by normalization code on payloads that are not shaped like the vendor's envelope
MALFORMED_PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


class ConnectorError(Exception):
    """Transport, auth or payload failure talking to a platform."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: Optional[bool] = None):
        super().__init__(message)
        self.status_code = status_code
        if retryable is not None:
            self.retryable = retryable


class BaseConnector(ABC):
    """
    Base class for platform connectors.

    Connectors are built per request and hold no state between requests.
    Every read operation goes through `_respond`, which tags the result as
    live data or as the operation's fixed fallback value.
    """

    def __init__(self, name: str, settings: Settings):
        self.name = name
        self.settings = settings
        self.base_url = ""
        self.headers: Dict[str, str] = {}

    @abstractmethod
    async def test_connection(self) -> bool:
        """Check credentials against the platform; never raises"""
        pass

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Issue one API call with retry on transient failures.

        `path` may be relative to `base_url` or an absolute URL (pagination links).
        """
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        max_attempts = max(1, self.settings.retry_max_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                return await self._send(method, url, params=params, json=json)
            except ConnectorError as e:
                if attempt >= max_attempts or not is_retryable_error(e):
                    raise

                delay = calculate_backoff(
                    attempt,
                    base_delay=self.settings.retry_base_delay,
                    max_delay=self.settings.retry_max_delay
                )
                log.warning(
                    f"{self.name} {method} {url} attempt {attempt} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        raise ConnectorError(f"{self.name} retries exhausted for {url}")

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Single HTTP round trip; every failure surfaces as ConnectorError"""
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
        start_time = time.time()

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, headers=self.headers, params=params, json=json
                ) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise ConnectorError(
                            f"{self.name} API error: {response.status} {response.reason} - {body[:200]}",
                            status_code=response.status
                        )

                    if response.status == 204:
                        return {}

                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise ConnectorError(f"{self.name} returned invalid JSON: {e}", retryable=False)

        except asyncio.TimeoutError:
            raise ConnectorError(
                f"{self.name} request timed out after {self.settings.request_timeout_seconds}s",
                retryable=True
            )
        except aiohttp.ClientError as e:
            raise ConnectorError(f"{self.name} transport error: {e}", retryable=True)

        log.debug(f"{self.name} {method} {url} -> {time.time() - start_time:.2f}s")

        if not isinstance(data, dict):
            raise ConnectorError(f"{self.name} returned unexpected payload type {type(data).__name__}", retryable=False)
        return data

    async def _respond(
        self,
        operation: str,
        fetch: Callable[[], Awaitable[T]],
        fallback: Callable[[], T],
        allow_fallback: bool = True
    ) -> ApiResponse[T]:
        """
        Run a fetch and wrap it in an ApiResponse.

        On failure either return the tagged fallback value or, with
        allow_fallback=False, raise ConnectorError to the caller.
        """
        try:
            data = await fetch()
        except ConnectorError as e:
            error = e
        except MALFORMED_PAYLOAD_ERRORS as e:
            error = ConnectorError(f"{self.name} {operation}: malformed response ({type(e).__name__}: {e})")
        else:
            return ApiResponse(data=data, success=True, source="live")

        if not allow_fallback:
            log.error(f"{self.name} {operation} failed: {error}")
            raise error

        log.warning(f"{self.name} {operation} failed, serving fallback data: {error}")
        return ApiResponse(data=fallback(), success=False, source="fallback", error=str(error))

    def _derive(
        self,
        operation: str,
        inputs: Iterable[ApiResponse],
        build: Callable[[], T],
        fallback: Callable[[], T]
    ) -> ApiResponse[T]:
        """
        Build a response from responses already fetched in this request.

        The result is live only when every input is live; otherwise the
        operation's fallback value is served, carrying the inputs' errors.
        """
        failed = [response for response in inputs if not response.is_live]
        if not failed:
            return ApiResponse(data=build(), success=True, source="live")

        error = "; ".join(response.error or "fallback input" for response in failed)
        log.warning(f"{self.name} {operation} has fallback inputs, serving fallback data: {error}")
        return ApiResponse(data=fallback(), success=False, source="fallback", error=error)
