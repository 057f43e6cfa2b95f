"""Registry of in-flight requests for join-not-duplicate semantics."""

from __future__ import annotations

import asyncio
from typing import Any


class InFlightRegistry:
    """Maps a request fingerprint to the task currently serving it.

    ``join`` and ``register`` never suspend, so a caller that checks and
    then registers cannot be overtaken by another caller for the same key.
    The registry holds at most one task per key.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    def join(self, key: str) -> asyncio.Task[Any] | None:
        """Return the pending task for key, if there is one."""
        return self._pending.get(key)

    def register(self, key: str, handle: asyncio.Task[Any]) -> None:
        """Register handle as the pending task for key.

        The slot is released automatically when the task settles, whether it
        succeeds, fails or is cancelled.
        """
        if key in self._pending:
            raise RuntimeError(f"Request already in flight for key {key!r}")
        self._pending[key] = handle
        handle.add_done_callback(lambda done: self._settle(key, done))

    def release(self, key: str, handle: asyncio.Task[Any] | None = None) -> None:
        """Free the slot for key.

        When ``handle`` is given the slot is only freed if it still belongs
        to that task.
        """
        current = self._pending.get(key)
        if current is None:
            return
        if handle is None or current is handle:
            del self._pending[key]

    def _settle(self, key: str, handle: asyncio.Task[Any]) -> None:
        self.release(key, handle)
        # Mark the exception retrieved; joiners re-raise it from their own await.
        if not handle.cancelled():
            handle.exception()

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)
