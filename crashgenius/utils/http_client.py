"""Shared HTTP transport for LLM provider adapters."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .errors import (
    ProviderError,
    ProviderProtocolError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data:"

_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
_RETRY_BACKOFF_BASE = 2.0  # exponential: 1s, 2s, 4s, ...


class ProviderHttpClient:
    """
    Wrapper around one httpx.AsyncClient shared by every provider adapter.

    Constructed once by the orchestrator (or handed a pre-built client in
    tests) and injected into adapters, so no adapter owns global state.

    Provides methods for:
    - JSON POST with provider error mapping
    - Line-by-line streaming reads for server-sent events
    - Optional retry with exponential backoff (off by default)
    """

    def __init__(
        self,
        timeout: float = 120.0,
        max_retries: int = 0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the transport.

        Args:
            timeout: Request timeout in seconds
            max_retries: Extra attempts on 429/5xx; 0 disables retrying
            client: Optional pre-configured httpx client (fakes in tests)
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

        logger.info(
            f"Initialized ProviderHttpClient: timeout={timeout}s, max_retries={max_retries}"
        )

    async def __aenter__(self) -> "ProviderHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        provider: str,
        operation: str
    ) -> Dict[str, Any]:
        """
        POST a JSON body and return the decoded JSON response.

        Raises:
            ProviderError: Mapped from the HTTP status (auth/quota/format/...)
            ProviderUnavailableError: Network failure
            ProviderProtocolError: Success status with a non-JSON body
        """
        response = await self._post_with_retries(url, payload, headers, provider, operation)

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ProviderProtocolError.build(
                provider=provider,
                message=f"{provider} returned a non-JSON body during {operation}",
                status_code=response.status_code,
                operation=operation,
                original_exception=e
            )

        if not isinstance(data, dict):
            raise ProviderProtocolError.build(
                provider=provider,
                message=f"{provider} returned unexpected JSON during {operation}",
                status_code=response.status_code,
                operation=operation
            )

        return data

    async def _post_with_retries(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        provider: str,
        operation: str
    ) -> httpx.Response:
        for attempt in range(self.max_retries + 1):
            try:
                logger.debug(
                    f"POST {provider} {operation} (attempt {attempt + 1}/{self.max_retries + 1})"
                )
                response = await self._client.post(url, json=payload, headers=headers)
            except httpx.HTTPError as e:
                logger.warning(f"{provider} network error during {operation}: {e}")
                if attempt < self.max_retries:
                    await self._backoff(attempt)
                    continue
                raise ProviderUnavailableError.build(
                    provider=provider,
                    message=f"Network error talking to {provider} during {operation}: {e}",
                    operation=operation,
                    original_exception=e
                )

            if response.is_success:
                return response

            if response.status_code in _RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                logger.warning(
                    f"{provider} HTTP {response.status_code} during {operation}; retrying"
                )
                await self._backoff(attempt)
                continue

            raise self._error_for(response, provider, operation)

        # Loop always returns or raises; kept for type checkers
        raise ProviderUnavailableError.build(
            provider=provider,
            message=f"{provider} {operation} failed after {self.max_retries + 1} attempts",
            operation=operation
        )

    async def stream_lines(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
        provider: str,
        operation: str
    ) -> AsyncIterator[str]:
        """
        POST and yield the streamed response body one text line at a time.

        Bytes are buffered until a newline; a trailing partial line is
        flushed at EOF. Closing the generator early closes the response.
        Streams are never retried: a partial reply cannot be replayed.
        """
        try:
            async with self._client.stream("POST", url, json=payload, headers=headers) as response:
                if not response.is_success:
                    await response.aread()
                    raise self._error_for(response, provider, operation)

                buffer = b""
                async for chunk in response.aiter_bytes():
                    buffer += chunk
                    while b"\n" in buffer:
                        raw_line, buffer = buffer.split(b"\n", 1)
                        yield raw_line.decode("utf-8", errors="replace").rstrip("\r")

                if buffer:
                    yield buffer.decode("utf-8", errors="replace").rstrip("\r")
        except httpx.HTTPError as e:
            logger.warning(f"{provider} stream interrupted during {operation}: {e}")
            raise ProviderUnavailableError.build(
                provider=provider,
                message=f"Network error while streaming from {provider}: {e}",
                operation=operation,
                original_exception=e
            )

    async def _backoff(self, attempt: int) -> None:
        wait_time = _RETRY_BACKOFF_BASE ** attempt
        logger.info(f"Retrying in {wait_time} seconds...")
        await asyncio.sleep(wait_time)

    @staticmethod
    def _error_for(response: httpx.Response, provider: str, operation: str) -> ProviderError:
        try:
            body: Any = response.json()
        except (json.JSONDecodeError, ValueError):
            body = response.text
        error = ProviderError.from_response(provider, response.status_code, body, operation)
        logger.error(f"{provider} API call failed: {error}")
        return error


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Yield the payload of each "data:" line of a server-sent-event stream.

    Comments (":"), blank separators and other SSE fields (event, id,
    retry) are skipped.
    """
    async for line in lines:
        if not line.startswith(SSE_DATA_PREFIX):
            continue
        data = line[len(SSE_DATA_PREFIX):]
        if data.startswith(" "):
            data = data[1:]
        yield data
