"""Async fetcher: the single entry point for network calls.

Every request goes through :meth:`AsyncFetcher.send`, which

1. fingerprints the request,
2. serves read requests from the response cache while fresh,
3. joins an identical read request that is already in flight,
4. otherwise attaches the bearer token, dispatches through the retrying
   transport and caches successful reads.

Steps 1-3 and the registration of a new in-flight task happen without
yielding to the event loop, which is what makes deduplication reliable.
"""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import Mapping
from dataclasses import replace
from types import TracebackType
from typing import Any

import httpx

from fetchlayer.cache import MISS, ResponseCache
from fetchlayer.config import FetcherConfig
from fetchlayer.duration import parse_duration
from fetchlayer.errors import (
    AuthExpiredError,
    ErrorKind,
    FetchError,
    StorageUnavailableError,
)
from fetchlayer.inflight import InFlightRegistry
from fetchlayer.log import get_logger
from fetchlayer.result import Failure, Result, Success, parse_envelope
from fetchlayer.storage.base import KeyValueStore
from fetchlayer.storage.memory import MemoryStore
from fetchlayer.token_store import TokenStore
from fetchlayer.transport import RetryingTransport
from fetchlayer.types import Duration, Method, RequestDescriptor

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


class AsyncFetcher:
    """Request façade with auth, caching, deduplication and retries."""

    def __init__(
        self,
        config: FetcherConfig,
        *,
        transport: RetryingTransport,
        token_store: TokenStore,
        cache: ResponseCache | None = None,
        inflight: InFlightRegistry | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._tokens = token_store
        self._cache = cache if cache is not None else ResponseCache(
            max_items=config.max_cache_entries
        )
        self._inflight = inflight if inflight is not None else InFlightRegistry()
        self._log = get_logger(__name__).bind(component="fetcher")

    @property
    def config(self) -> FetcherConfig:
        return self._config

    @property
    def tokens(self) -> TokenStore:
        return self._tokens

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def request(
        self,
        path: str,
        *,
        method: Method | str = Method.GET,
        body: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        skip_auth: bool = False,
        cache_time: Duration | None = None,
        retries: int | None = None,
        dedupe: bool = True,
    ) -> Any:
        """Perform a request and return the decoded JSON body.

        Raises:
            FetchError: A subclass matching how the request failed.
        """
        descriptor = RequestDescriptor(
            path=path,
            method=method,  # type: ignore[arg-type]
            body=body,
            params=params,
            headers=dict(headers or {}),
            skip_auth=skip_auth,
            cache_time=cache_time,
            retries=retries,
            dedupe=dedupe,
        )
        return await self.send(descriptor)

    async def send(self, descriptor: RequestDescriptor) -> Any:
        """Run a request descriptor through cache, dedupe and transport."""
        key = self.fingerprint(descriptor)
        ttl_ms = self._resolve_cache_time(descriptor)
        is_read = descriptor.method.is_read

        # No awaits until the in-flight task is registered.
        if is_read and ttl_ms > 0:
            cached = self._cache.lookup(key)
            if cached is not MISS:
                self._log.debug("cache_hit", key=key)
                return cached

        if not (is_read and descriptor.dedupe):
            return await self._dispatch(descriptor, key, ttl_ms)

        pending = self._inflight.join(key)
        if pending is None:
            pending = asyncio.create_task(self._dispatch(descriptor, key, ttl_ms))
            self._inflight.register(key, pending)
        else:
            self._log.debug("request_joined", key=key)

        # Cancelling one caller must not cancel the request for other joiners.
        return await asyncio.shield(pending)

    async def get(
        self, path: str, *, params: Mapping[str, Any] | None = None, **options: Any
    ) -> Any:
        return await self.request(path, method=Method.GET, params=params, **options)

    async def post(self, path: str, body: Any = None, **options: Any) -> Any:
        return await self.request(path, method=Method.POST, body=body, **options)

    async def put(self, path: str, body: Any = None, **options: Any) -> Any:
        return await self.request(path, method=Method.PUT, body=body, **options)

    async def delete(self, path: str, **options: Any) -> Any:
        return await self.request(path, method=Method.DELETE, **options)

    async def call(self, path: str, **options: Any) -> Result[Any]:
        """Like :meth:`request`, but returns a tagged result instead of raising.

        Backend envelopes (``{"success": ..., "data": ...}``) are unwrapped;
        any other body becomes ``Success(body)``.
        """
        try:
            payload = await self.request(path, **options)
        except FetchError as e:
            return Failure.from_error(e)
        return parse_envelope(payload)

    async def login(
        self,
        username: str,
        password: str,
        *,
        path: str = "/api/auth/login",
    ) -> Result[Any]:
        """Exchange credentials for a token and store it.

        The token may arrive at the top level or under ``data``. On success
        the returned data is the user blob that was stored.
        """
        try:
            payload = await self.request(
                path,
                method=Method.POST,
                body={"username": username, "password": password},
                skip_auth=True,
            )
        except FetchError as e:
            self._log.warning("login_failed", error_kind=e.kind.value)
            return Failure.from_error(e)

        envelope = parse_envelope(payload)
        if isinstance(envelope, Failure):
            return envelope

        token, user = _extract_credentials(payload)
        if not token:
            return Failure(
                kind=ErrorKind.REJECTED,
                message="Login response did not include a token",
            )
        user = user or {"username": username}
        try:
            self._tokens.set(token, self._config.token_ttl_hours, user=user)
        except StorageUnavailableError as e:
            self._log.warning("token_store_unavailable", error=str(e))
            return Failure.from_error(e)
        self._log.info("login_succeeded")
        return Success(user, envelope.message)

    def logout(self) -> None:
        """Forget the current token and user."""
        self._tokens.clear()

    def set_token(self, value: str, ttl_hours: float | None = None) -> None:
        """Store a token obtained elsewhere."""
        self._tokens.set(
            value, ttl_hours if ttl_hours is not None else self._config.token_ttl_hours
        )

    def is_authenticated(self) -> bool:
        return self._tokens.is_authenticated()

    def invalidate_cache(self, matcher: str | re.Pattern[str]) -> int:
        """Drop cached responses by key prefix or pattern.

        Keys start with the request path (relative to ``base_url``), so
        ``invalidate_cache("/api/blogs")`` drops every cached blog listing and
        blog detail. A full URL under ``base_url`` is accepted too.
        """
        if isinstance(matcher, str):
            matcher = self._relative(matcher)
        removed = self._cache.invalidate(matcher)
        self._log.debug(
            "cache_invalidated",
            matcher=matcher if isinstance(matcher, str) else matcher.pattern,
            removed=removed,
        )
        return removed

    def clear_cache(self) -> None:
        """Drop every cached response."""
        self._cache.clear()

    def fingerprint(self, descriptor: RequestDescriptor) -> str:
        """Deterministic key for a request: path, method and body."""
        target = self._relative(_with_query(descriptor.path, descriptor.params))
        return f"{target}|{descriptor.method.value}|{_serialize_body(descriptor.body)}"

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._transport.aclose()

    async def __aenter__(self) -> AsyncFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _dispatch(
        self, descriptor: RequestDescriptor, key: str, ttl_ms: int
    ) -> Any:
        # Release before the task settles; a settled request is never joinable.
        try:
            return await self._perform(descriptor, key, ttl_ms)
        finally:
            self._inflight.release(key, asyncio.current_task())

    async def _perform(
        self, descriptor: RequestDescriptor, key: str, ttl_ms: int
    ) -> Any:
        url = self._resolve_url(descriptor)
        headers = self._build_headers(descriptor)
        retries = (
            descriptor.retries
            if descriptor.retries is not None
            else self._config.default_retries
        )
        self._log.debug(
            "request_dispatched",
            method=descriptor.method.value,
            url=url,
            retries=retries,
        )

        try:
            data = await self._transport.send(
                descriptor.method,
                url,
                body=descriptor.body,
                headers=headers,
                retries=retries,
            )
        except AuthExpiredError:
            self._tokens.clear()
            self._log.warning("auth_expired", method=descriptor.method.value, url=url)
            raise
        except FetchError as e:
            self._log.warning(
                "request_failed",
                method=descriptor.method.value,
                url=url,
                error_kind=e.kind.value,
                status_code=e.status_code,
            )
            raise

        if descriptor.method.is_read and ttl_ms > 0:
            self._cache.insert(key, data, ttl_ms)
        return data

    def _build_headers(self, descriptor: RequestDescriptor) -> httpx.Headers:
        headers = httpx.Headers(dict(descriptor.headers))
        if descriptor.body is not None and "content-type" not in headers:
            headers["Content-Type"] = "application/json"
        if not descriptor.skip_auth:
            token = self._tokens.get()
            if token is not None:
                headers["Authorization"] = f"Bearer {token.value}"
        return headers

    def _resolve_cache_time(self, descriptor: RequestDescriptor) -> int:
        if descriptor.cache_time is None:
            return self._config.cache_time_ms
        return parse_duration(descriptor.cache_time)

    def _resolve_url(self, descriptor: RequestDescriptor) -> str:
        target = _with_query(descriptor.path, descriptor.params)
        if _ABSOLUTE_URL.match(target):
            return target
        if not self._config.base_url:
            raise ValueError(
                f"Relative path {descriptor.path!r} requires a configured base_url"
            )
        return f"{self._config.base_url}/{target.lstrip('/')}"

    def _relative(self, target: str) -> str:
        """Strip base_url so absolute and relative spellings share a key."""
        base = self._config.base_url
        if base and target.lower().startswith(base.lower()):
            rest = target[len(base) :]
            # Only a whole path segment of base_url may be stripped.
            if rest[:1] in ("", "/", "?"):
                target = rest
        if not _ABSOLUTE_URL.match(target) and not target.startswith("/"):
            target = f"/{target}"
        return target


def create_fetcher(
    *,
    base_url: str | None = None,
    config: FetcherConfig | None = None,
    store: KeyValueStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncFetcher:
    """Create a fetcher with in-memory cache and token storage.

    Args:
        base_url: Overrides ``config.base_url``.
        config: Settings; read from ``FETCHLAYER_*`` variables when omitted.
        store: Backing store for the token (default: a fresh MemoryStore).
        http_client: HTTP client to send requests with.

    Returns:
        AsyncFetcher ready for use.
    """
    config = config if config is not None else FetcherConfig.from_env()
    if base_url is not None:
        config = replace(config, base_url=base_url)

    client = http_client or httpx.AsyncClient(
        timeout=config.timeout_ms / 1000, follow_redirects=True
    )
    return AsyncFetcher(
        config,
        transport=RetryingTransport(client, retry_delay_ms=config.retry_delay_ms),
        token_store=TokenStore(
            store if store is not None else MemoryStore(),
            prefix=config.store_prefix,
        ),
    )


def _with_query(path: str, params: Mapping[str, Any] | None) -> str:
    """Append non-empty params, sorted so ordering never changes the key."""
    if not params:
        return path
    pairs = sorted(
        (name, _param_value(value))
        for name, value in params.items()
        if value is not None and value != ""
    )
    if not pairs:
        return path
    query = str(httpx.QueryParams(pairs))
    separator = "&" if "?" in path else "?"
    return f"{path}{separator}{query}"


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _serialize_body(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    try:
        return json.dumps(body, sort_keys=True, default=str)
    except TypeError:
        # Mixed key types cannot be sorted.
        return json.dumps(body, default=str)


def _extract_credentials(payload: Any) -> tuple[str | None, Any]:
    """Pull the token and user out of a login response."""
    if not isinstance(payload, Mapping):
        return None, None
    data = payload.get("data")
    nested = data if isinstance(data, Mapping) else {}
    token = payload.get("token") or nested.get("token")
    user = payload.get("user") or nested.get("user")
    return (str(token) if token else None), user
