"""Shared pytest fixtures for book-acquisition tests."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from book_acquisition.fetcher import RelayFetcher
from book_acquisition.models import Book, BudgetSettings, CategoryAllocation

TEST_RELAYS = ["https://relay-one.test/raw?url={url}", "https://relay-two.test/?{url}"]


def make_response(status_code: int = 200, json_data=None, text: str | None = None):
    """Build a real httpx.Response so raise_for_status/json behave normally."""
    request = httpx.Request("GET", "https://relay.test/")
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


@pytest.fixture
def mock_http():
    """Patch httpx.AsyncClient and yield the client used inside `async with`."""
    with patch("httpx.AsyncClient") as MockClient:
        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.__aexit__.return_value = None
        MockClient.return_value = mock_client
        yield mock_client


@pytest.fixture
def fetcher():
    """A relay fetcher with two test relays and no backoff."""
    return RelayFetcher(relays=TEST_RELAYS, attempts_per_relay=2, backoff_seconds=0)


@pytest.fixture
def mock_fetcher():
    """A RelayFetcher stand-in whose fetch() is an AsyncMock."""
    return AsyncMock(spec=RelayFetcher)


@pytest.fixture
def make_book():
    """Factory for Books with sensible defaults."""

    def _make_book(book_id: str = "1", **fields) -> Book:
        fields.setdefault("title", f"Book {book_id}")
        return Book(id=book_id, **fields)

    return _make_book


@pytest.fixture
def literature_settings():
    """1,000,000 budget split between literature and a catch-all."""
    return BudgetSettings(
        total_budget=1_000_000,
        start_date="2025-01-01",
        end_date="2025-12-31",
        allocations=[
            CategoryAllocation(id="lit", name="문학", percentage=70),
            CategoryAllocation(id="other", name="기타", percentage=30),
        ],
    )


@pytest.fixture
def http_response():
    """Factory for httpx responses."""
    return make_response
