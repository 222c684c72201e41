"""
JSON catalog API adapter for book-acquisition.

Supports the bestseller and new-arrivals item lists, both lists combined,
and keyword/title/author/publisher search limited to recent publications.
"""

import asyncio
import logging
import re
import time
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

from .errors import ConfigurationError, FetchFailure, SourceError
from .fetcher import RelayFetcher
from .merge import COMIC_MARKER, dedupe_by_id, exclude_genre
from .models import Book, FetchSource, SearchTarget, strip_markup

logger = logging.getLogger(__name__)

SOURCE_NAME = "catalog"
API_VERSION = "20131101"

LIST_QUERY_TYPES = {
    FetchSource.BESTSELLER: "Bestseller",
    FetchSource.NEW_ARRIVALS: "ItemNewSpecial",
}

YEAR_ONLY = re.compile(r"^(\d{4})$")
YEAR_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def catalog_item_to_book(item: dict[str, Any]) -> Book:
    """Convert one catalog API item to a Book."""
    return Book(
        id=str(item.get("itemId", "")),
        title=item.get("title") or "",
        author=item.get("author") or "",
        publisher=item.get("publisher") or "",
        pub_date=item.get("pubDate") or "",
        cover=item.get("cover") or "",
        description=strip_markup(item.get("description")),
        isbn13=item.get("isbn13") or "",
        price_standard=_to_int(item.get("priceStandard")),
        price_sales=_to_int(item.get("priceSales")),
        link=item.get("link") or "",
        category_name=item.get("categoryName"),
    )


def parse_pub_date(value: str | None) -> datetime | None:
    """
    Parse a publication date.

    Accepts ISO dates and datetimes, "YYYY-MM" and bare years. Returns None
    for anything else.
    """
    if not value:
        return None
    text = value.strip()

    match = YEAR_ONLY.match(text)
    if match:
        return datetime(int(match.group(1)), 1, 1, tzinfo=UTC)

    match = YEAR_MONTH.match(text)
    if match:
        try:
            return datetime(int(match.group(1)), int(match.group(2)), 1, tzinfo=UTC)
        except ValueError:
            return None

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_within_recency_window(
    pub_date: str | None,
    now: datetime | None = None,
    days: int = 365,
) -> bool:
    """
    Check whether a publication date falls inside the recency window.

    Unparsable dates are kept; a missing date is not.
    """
    if not pub_date:
        return False
    parsed = parse_pub_date(pub_date)
    if parsed is None:
        return True
    now = now or datetime.now(UTC)
    return parsed >= now - timedelta(days=days)


class CatalogClient:
    """
    Client for the JSON catalog API.

    Every call goes through a RelayFetcher; upstream error codes become
    SourceError.
    """

    def __init__(
        self,
        api_key: str | None,
        fetcher: RelayFetcher,
        api_base: str = "https://www.aladin.co.kr/ttb/api",
        max_results: int = 50,
        recency_days: int = 365,
        excluded_genre_marker: str = COMIC_MARKER,
    ):
        if not api_key or not api_key.strip():
            raise ConfigurationError("Catalog API key is required")
        self.api_key = api_key.strip()
        self.fetcher = fetcher
        self.api_base = api_base.rstrip("/")
        self.max_results = max_results
        self.recency_days = recency_days
        self.excluded_genre_marker = excluded_genre_marker

    def build_url(self, endpoint: str, page: int = 1, **params: Any) -> str:
        """Build a catalog API URL with the common query parameters."""
        query: dict[str, Any] = {
            "ttbkey": self.api_key,
            "MaxResults": self.max_results,
            "start": page,
            "SearchTarget": "Book",
            "output": "js",
            "Version": API_VERSION,
            "Cover": "Big",
        }
        query.update(params)
        # Cache buster
        query["_t"] = int(time.time() * 1000)
        return f"{self.api_base}/{endpoint}?{urlencode(query)}"

    async def _get_items(self, url: str, label: str) -> list[Book]:
        """Fetch a catalog payload and map its items."""
        data = await self.fetcher.fetch(url, expect_json=True)
        if not isinstance(data, dict):
            raise SourceError(
                SOURCE_NAME,
                "malformed",
                f"Unexpected {label} payload type: {type(data).__name__}",
            )

        error_code = data.get("errorCode")
        if error_code:
            raise SourceError(SOURCE_NAME, error_code, data.get("errorMessage"))

        items = data.get("item")
        if not isinstance(items, list):
            return []

        books = [catalog_item_to_book(item) for item in items if isinstance(item, dict)]
        logger.debug(f"Catalog {label}: {len(books)} items")
        return books

    async def _get_list(self, source: FetchSource, page: int) -> list[Book]:
        url = self.build_url(
            "ItemList.aspx", page=page, QueryType=LIST_QUERY_TYPES[source]
        )
        books = await self._get_items(url, source.value)
        return exclude_genre(books, self.excluded_genre_marker)

    async def fetch_list(self, source: FetchSource, page: int = 1) -> list[Book]:
        """Fetch the bestseller or new-arrivals list."""
        source = FetchSource(source)
        if source not in LIST_QUERY_TYPES:
            raise ValueError(f"Not a catalog list source: {source.value}")
        return await self._get_list(source, page)

    async def fetch_combined(self, page: int = 1) -> list[Book]:
        """
        Fetch bestsellers and new arrivals concurrently and merge them.

        Both requests settle before anything is merged. If either fails the
        whole call fails. Same-id records are deduplicated with the
        new-arrivals record winning.
        """
        results = await asyncio.gather(
            self._get_list(FetchSource.BESTSELLER, page),
            self._get_list(FetchSource.NEW_ARRIVALS, page),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        bestsellers, new_arrivals = results
        merged = dedupe_by_id([*bestsellers, *new_arrivals])
        logger.info(
            f"Combined {len(bestsellers)} bestsellers and {len(new_arrivals)} "
            f"new arrivals into {len(merged)} books"
        )
        return merged

    async def search(
        self,
        query: str,
        target: SearchTarget = SearchTarget.KEYWORD,
        page: int = 1,
        now: datetime | None = None,
    ) -> list[Book]:
        """
        Search the catalog.

        Args:
            query: Search text
            target: Field to search
            page: 1-based result page
            now: Reference time for the recency window

        Returns:
            Matching books published within the recency window (empty list
            when nothing matches)
        """
        if not query or not query.strip():
            return []

        target = SearchTarget(target)
        url = self.build_url(
            "ItemSearch.aspx", page=page, Query=query.strip(), QueryType=target.value
        )
        books = await self._get_items(url, f"search {target.value}")
        recent = [
            book
            for book in books
            if is_within_recency_window(book.pub_date, now, self.recency_days)
        ]
        return exclude_genre(recent, self.excluded_genre_marker)

    async def validate_key(self) -> bool:
        """Probe the API with a one-item bestseller request."""
        query: dict[str, Any] = {
            "ttbkey": self.api_key,
            "QueryType": "Bestseller",
            "MaxResults": 1,
            "start": 1,
            "SearchTarget": "Book",
            "output": "js",
            "Version": API_VERSION,
            "_t": int(time.time() * 1000),
        }
        url = f"{self.api_base}/ItemList.aspx?{urlencode(query)}"
        try:
            data = await self.fetcher.fetch(url, expect_json=True)
        except FetchFailure:
            logger.warning("Catalog key validation request failed")
            return False

        if not isinstance(data, dict) or data.get("errorCode"):
            return False
        return isinstance(data.get("item"), list)
