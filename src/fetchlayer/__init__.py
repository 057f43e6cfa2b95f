"""fetchlayer - Cached, deduplicated, authenticated HTTP requests for asyncio."""

from contextlib import suppress

from fetchlayer.cache import DEFAULT_CACHE_TTL_MS, MISS, ResponseCache
from fetchlayer.client import AsyncFetcher, create_fetcher
from fetchlayer.config import FetcherConfig

# Duration parsing
from fetchlayer.duration import parse_duration

# Errors
from fetchlayer.errors import (
    AuthExpiredError,
    ClientError,
    ErrorKind,
    FetchError,
    ParseError,
    RejectedError,
    ServerError,
    StorageUnavailableError,
    TransportError,
)
from fetchlayer.inflight import InFlightRegistry
from fetchlayer.log import configure_logging, get_logger
from fetchlayer.result import Failure, Result, Success, parse_envelope

# Token storage
from fetchlayer.storage import KeyValueStore, MemoryStore
from fetchlayer.token_store import TokenStore
from fetchlayer.transport import RetryingTransport

# Core types
from fetchlayer.types import CacheEntry, Duration, Method, RequestDescriptor, Token

# Optional stores - only available when dependencies are installed
with suppress(ImportError):
    from fetchlayer.storage import RedisStore

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CACHE_TTL_MS",
    "MISS",
    "AsyncFetcher",
    "AuthExpiredError",
    "CacheEntry",
    "ClientError",
    "Duration",
    "ErrorKind",
    "Failure",
    "FetchError",
    "FetcherConfig",
    "InFlightRegistry",
    "KeyValueStore",
    "MemoryStore",
    "Method",
    "ParseError",
    "RedisStore",
    "RejectedError",
    "RequestDescriptor",
    "ResponseCache",
    "Result",
    "RetryingTransport",
    "ServerError",
    "StorageUnavailableError",
    "Success",
    "Token",
    "TokenStore",
    "TransportError",
    "configure_logging",
    "create_fetcher",
    "get_logger",
    "parse_duration",
    "parse_envelope",
]
