"""Shared pytest fixtures."""

from collections.abc import AsyncIterator, Iterator

import pytest
import respx

from fetchlayer import (
    AsyncFetcher,
    FetcherConfig,
    MemoryStore,
    ResponseCache,
    TokenStore,
    create_fetcher,
)

BASE_URL = "https://api.test.dev"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    """Create a fresh MemoryStore for each test."""
    return MemoryStore()


@pytest.fixture
def token_store(store: MemoryStore, clock: FakeClock) -> TokenStore:
    return TokenStore(store, clock=clock)


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(clock=clock)


@pytest.fixture
def api() -> Iterator[respx.MockRouter]:
    """Mock the test API; unmatched requests fail the test."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture
async def fetcher(api: respx.MockRouter, store: MemoryStore) -> AsyncIterator[AsyncFetcher]:
    """Create a fetcher pointed at the mocked API."""
    client = create_fetcher(config=FetcherConfig(base_url=BASE_URL), store=store)
    yield client
    await client.aclose()
