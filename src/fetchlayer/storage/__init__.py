"""Key-value backing stores for token persistence."""

from contextlib import suppress

from fetchlayer.storage.base import KeyValueStore
from fetchlayer.storage.memory import MemoryStore

# Optional stores - only available when dependencies are installed
with suppress(ImportError):
    from fetchlayer.storage.redis import RedisStore

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "RedisStore",
]
