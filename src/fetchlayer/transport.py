"""HTTP transport with outcome classification and bounded retries."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import httpx

from fetchlayer.errors import (
    AuthExpiredError,
    ClientError,
    FetchError,
    ParseError,
    ServerError,
    TransportError,
)
from fetchlayer.log import get_logger
from fetchlayer.types import Method

HTTP_STATUS_NO_CONTENT = 204
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_SERVER_ERROR_MIN = 500


class RetryingTransport:
    """Performs HTTP attempts and re-issues retryable failures.

    Transport failures and 5xx responses are retryable; 401 and other
    non-success responses are returned to the caller immediately. Attempts
    are re-issued back to back unless ``retry_delay_ms`` is set.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        retry_delay_ms: int = 0,
    ) -> None:
        self._client = client
        self._retry_delay_ms = retry_delay_ms
        self._log = get_logger(__name__).bind(component="transport")

    async def attempt(
        self,
        method: Method,
        url: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Perform a single HTTP attempt and return the parsed JSON body."""
        kwargs: dict[str, Any] = {"headers": dict(headers or {})}
        if body is not None:
            if isinstance(body, (bytes, str)):
                kwargs["content"] = body
            else:
                kwargs["json"] = body

        try:
            response = await self._client.request(method.value, url, **kwargs)
        except httpx.DecodingError as e:
            raise ParseError(f"Undecodable response body: {e}") from e
        except httpx.RequestError as e:
            # Redirect loops are transport failures too.
            raise TransportError(str(e) or type(e).__name__) from e

        if response.status_code == HTTP_STATUS_UNAUTHORIZED:
            raise AuthExpiredError()
        if response.status_code >= HTTP_STATUS_SERVER_ERROR_MIN:
            message, details = _error_message(response)
            raise ServerError(
                message, status_code=response.status_code, details=details
            )
        if not response.is_success:
            message, details = _error_message(response)
            raise ClientError(
                message, status_code=response.status_code, details=details
            )

        return _parse_body(response)

    async def send(
        self,
        method: Method,
        url: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        retries: int = 1,
    ) -> Any:
        """Attempt up to ``retries + 1`` times; raise the last error."""
        for attempt in range(retries + 1):
            try:
                return await self.attempt(method, url, body=body, headers=headers)
            except FetchError as e:
                if not e.retryable or attempt >= retries:
                    raise
                self._log.info(
                    "retry_attempt",
                    method=method.value,
                    url=url,
                    attempt=attempt + 1,
                    retries_left=retries - attempt,
                    error_kind=e.kind.value,
                )
                if self._retry_delay_ms > 0:
                    await asyncio.sleep(self._retry_delay_ms / 1000)
        raise AssertionError("unreachable")  # pragma: no cover

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


def _parse_body(response: httpx.Response) -> Any:
    """Decode a successful response; an empty body decodes to None."""
    if response.status_code == HTTP_STATUS_NO_CONTENT or not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(
            f"Invalid JSON in response: {e}", status_code=response.status_code
        ) from e


def _error_message(response: httpx.Response) -> tuple[str, list[str]]:
    """Extract a human-readable message from an error response."""
    text = response.text
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None

    if isinstance(payload, dict):
        details = payload.get("errorDetails") or []
        if not isinstance(details, list):
            details = [str(details)]
        message = payload.get("errorMessage") or payload.get("error")
        if message:
            return str(message), [str(d) for d in details]
    if text:
        return text, []
    return f"HTTP {response.status_code}", []
