"""Base protocol for session-scoped key-value stores."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """String key-value store with session lifetime.

    Implementations raise :class:`~fetchlayer.errors.StorageUnavailableError`
    when the backend cannot be reached.
    """

    def get_item(self, key: str) -> str | None:
        """Get the value stored under key."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a value under key."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove key if present."""
        ...
