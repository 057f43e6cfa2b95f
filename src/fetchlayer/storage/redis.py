"""Redis-backed key-value store."""

from __future__ import annotations

from typing import Any

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from fetchlayer.duration import parse_duration
from fetchlayer.errors import StorageUnavailableError
from fetchlayer.types import Duration

_UNAVAILABLE = (RedisConnectionError, RedisTimeoutError)


class RedisStore:
    """Sync Redis store, for sessions shared between worker processes."""

    def __init__(
        self,
        client: Any,  # redis.Redis
        *,
        prefix: str = "fetchlayer",
        session_ttl: Duration | None = None,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._session_ttl = (
            parse_duration(session_ttl) if session_ttl is not None else None
        )

    def _key(self, key: str) -> str:
        """Generate full Redis key."""
        return f"{self._prefix}:{key}"

    def get_item(self, key: str) -> str | None:
        try:
            data = self._client.get(self._key(key))
        except _UNAVAILABLE as e:
            raise StorageUnavailableError(str(e)) from e
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return str(data)

    def set_item(self, key: str, value: str) -> None:
        """Store a value, expiring with the session when a TTL is set."""
        try:
            self._client.set(self._key(key), value, px=self._session_ttl)
        except _UNAVAILABLE as e:
            raise StorageUnavailableError(str(e)) from e

    def remove_item(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
        except _UNAVAILABLE as e:
            raise StorageUnavailableError(str(e)) from e

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
