"""Core types for the fetchlayer request layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# Duration type alias: "30s", "5m", "2h", "1d", a timedelta, or milliseconds
Duration = str | int | timedelta


class Method(str, Enum):
    """HTTP methods understood by the fetcher."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def is_read(self) -> bool:
        """Read methods are eligible for caching and deduplication."""
        return self in (Method.GET, Method.HEAD)


@dataclass(frozen=True, slots=True)
class Token:
    """A bearer token and the instant (epoch ms) it stops being valid."""

    value: str
    expires_at: int

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached response body with metadata."""

    key: str
    value: T
    inserted_at: int  # Unix timestamp ms
    expires_at: int  # inserted_at + TTL


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """Everything a call site supplies for one logical request.

    ``cache_time`` and ``retries`` fall back to the fetcher defaults when
    left as ``None``. A ``cache_time`` of zero disables both cache lookup and
    cache insertion for the call.
    """

    path: str
    method: Method = Method.GET
    body: Any = None
    params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    skip_auth: bool = False
    cache_time: Duration | None = None
    retries: int | None = None
    dedupe: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.method, Method):
            object.__setattr__(self, "method", Method(str(self.method).upper()))
        if self.retries is not None and self.retries < 0:
            raise ValueError("retries must be >= 0")
