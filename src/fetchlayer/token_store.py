"""Bearer token persistence with lazy expiration."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

from fetchlayer.errors import StorageUnavailableError
from fetchlayer.log import get_logger
from fetchlayer.storage.base import KeyValueStore
from fetchlayer.types import Token

DEFAULT_TOKEN_TTL_HOURS = 4.0


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenStore:
    """Holds the current bearer token in a session-scoped key-value store.

    Three keys are used under ``prefix``: ``token``, ``expiration`` (epoch
    milliseconds) and ``user`` (a JSON blob describing the signed-in user).
    An expired token is cleared the next time it is read; nothing sweeps it
    in the background.

    With ``store=None`` there is no session to persist into: ``get`` always
    reports no token and writes are dropped.
    """

    def __init__(
        self,
        store: KeyValueStore | None,
        *,
        prefix: str = "auth",
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._clock = clock
        self._token_key = f"{prefix}-token"
        self._expiration_key = f"{prefix}-expiration"
        self._user_key = f"{prefix}-user"
        self._log = get_logger(__name__).bind(component="token_store")

    def get(self) -> Token | None:
        """Return the current token, or None if absent or expired."""
        if self._store is None:
            return None
        try:
            value = self._store.get_item(self._token_key)
            expiration = self._store.get_item(self._expiration_key)
        except StorageUnavailableError as e:
            self._log.warning("token_store_unavailable", error=str(e))
            return None

        if not value:
            return None

        expires_at = _parse_expiration(expiration)
        token = Token(value=value, expires_at=expires_at)
        if expires_at > 0 and token.is_expired(self._clock()):
            self._log.info("token_expired", expires_at=expires_at)
            self.clear()
            return None
        return token

    def set(
        self,
        value: str,
        ttl_hours: float = DEFAULT_TOKEN_TTL_HOURS,
        *,
        user: dict[str, Any] | None = None,
    ) -> Token | None:
        """Store a token valid for ``ttl_hours`` from now."""
        if ttl_hours <= 0:
            raise ValueError("ttl_hours must be positive")
        if self._store is None:
            return None
        token = Token(
            value=value,
            expires_at=self._clock() + int(ttl_hours * 3_600_000),
        )
        self._store.set_item(self._token_key, token.value)
        self._store.set_item(self._expiration_key, str(token.expires_at))
        if user is not None:
            self._store.set_item(self._user_key, json.dumps(user))
        return token

    def clear(self) -> None:
        """Forget the token, its expiration and the user blob."""
        if self._store is None:
            return
        try:
            for key in (self._token_key, self._user_key, self._expiration_key):
                self._store.remove_item(key)
        except StorageUnavailableError as e:
            self._log.warning("token_store_unavailable", error=str(e))

    def get_user(self) -> Any | None:
        """Return the stored user blob, if any."""
        if self._store is None:
            return None
        try:
            raw = self._store.get_item(self._user_key)
        except StorageUnavailableError:
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def expires_at(self) -> int | None:
        token = self.get()
        return token.expires_at if token is not None else None

    def is_authenticated(self) -> bool:
        return self.get() is not None


def _parse_expiration(raw: str | None) -> int:
    """Parse the stored expiration; 0 means no expiration recorded."""
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0
