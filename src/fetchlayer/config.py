"""Fetcher configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from fetchlayer.duration import parse_duration
from fetchlayer.types import Duration

ENV_PREFIX = "FETCHLAYER_"


@dataclass(frozen=True, slots=True)
class FetcherConfig:
    """Settings shared by every request a fetcher makes.

    Durations are normalised to milliseconds on construction.
    """

    base_url: str = ""
    default_cache_time: Duration = "60s"
    default_retries: int = 1
    timeout: Duration = "30s"
    retry_delay: Duration = 0
    token_ttl_hours: float = 4.0
    store_prefix: str = "auth"
    max_cache_entries: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        for name in ("default_cache_time", "timeout", "retry_delay"):
            object.__setattr__(self, name, parse_duration(getattr(self, name)))
        if self.default_retries < 0:
            raise ValueError("default_retries must be >= 0")
        if self.token_ttl_hours <= 0:
            raise ValueError("token_ttl_hours must be positive")
        if self.max_cache_entries is not None and self.max_cache_entries <= 0:
            raise ValueError("max_cache_entries must be positive")

    @property
    def cache_time_ms(self) -> int:
        return int(self.default_cache_time)  # normalised in __post_init__

    @property
    def timeout_ms(self) -> int:
        return int(self.timeout)

    @property
    def retry_delay_ms(self) -> int:
        return int(self.retry_delay)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FetcherConfig:
        """Build a config from ``FETCHLAYER_*`` environment variables.

        Recognised: ``API_URL``, ``CACHE_TTL``, ``RETRIES``, ``TIMEOUT``,
        ``RETRY_DELAY``. Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        if url := env.get(f"{ENV_PREFIX}API_URL"):
            values["base_url"] = url
        for var, name in (
            ("CACHE_TTL", "default_cache_time"),
            ("TIMEOUT", "timeout"),
            ("RETRY_DELAY", "retry_delay"),
        ):
            raw = env.get(f"{ENV_PREFIX}{var}")
            if raw:
                values[name] = _env_duration(f"{ENV_PREFIX}{var}", raw)
        if raw_retries := env.get(f"{ENV_PREFIX}RETRIES"):
            try:
                values["default_retries"] = int(raw_retries)
            except ValueError:
                raise ValueError(
                    f"{ENV_PREFIX}RETRIES must be an integer, got {raw_retries!r}"
                ) from None

        return cls(**values)  # type: ignore[arg-type]


def _env_duration(var: str, raw: str) -> int:
    value: Duration = int(raw) if raw.isdigit() else raw
    try:
        return parse_duration(value)
    except ValueError as e:
        raise ValueError(f"{var}: {e}") from None
