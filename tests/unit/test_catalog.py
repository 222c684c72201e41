"""Tests for the JSON catalog adapter."""

from datetime import UTC, datetime
from urllib.parse import parse_qs, urlparse

import pytest

from book_acquisition.catalog import (
    CatalogClient,
    catalog_item_to_book,
    is_within_recency_window,
    parse_pub_date,
)
from book_acquisition.errors import ConfigurationError, FetchFailure, SourceError
from book_acquisition.models import FetchSource, SearchTarget, WorkflowStage

NOW = datetime(2025, 6, 1, tzinfo=UTC)


def make_item(item_id: int, **fields) -> dict:
    """Create a raw catalog item."""
    item = {
        "itemId": item_id,
        "title": f"Title {item_id}",
        "author": "Author",
        "publisher": "Publisher",
        "pubDate": "2025-03-01",
        "cover": f"https://image.test/{item_id}.jpg",
        "description": "Description",
        "isbn13": f"97900000{item_id:05d}",
        "priceStandard": 18000,
        "priceSales": 16200,
        "link": f"https://catalog.test/item/{item_id}",
        "categoryName": "국내도서>소설/시/희곡>한국소설",
    }
    item.update(fields)
    return item


def query_of(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


class TestCatalogItemToBook:
    """Test raw item mapping."""

    def test_maps_all_fields(self):
        """Should map every field of a full item."""
        book = catalog_item_to_book(make_item(123))
        assert book.id == "123"
        assert book.title == "Title 123"
        assert book.price_standard == 18000
        assert book.price_sales == 16200
        assert book.category_name == "국내도서>소설/시/희곡>한국소설"
        assert book.link == "https://catalog.test/item/123"
        assert book.workflow_stage == WorkflowStage.DISCOVERY

    def test_missing_fields(self):
        """Missing fields should default; missing category stays absent."""
        book = catalog_item_to_book({"itemId": 7, "title": "Bare"})
        assert book.id == "7"
        assert book.price_sales == 0
        assert book.description == ""
        assert book.category_name is None

    def test_strips_description_markup(self):
        """HTML in descriptions should be removed."""
        book = catalog_item_to_book(make_item(1, description="<b>Bold</b> text<br/>"))
        assert book.description == "Bold text"


class TestRecencyWindow:
    """Test publication date parsing and the recency filter."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2025-03-01", datetime(2025, 3, 1, tzinfo=UTC)),
            ("2024", datetime(2024, 1, 1, tzinfo=UTC)),
            ("2024-07", datetime(2024, 7, 1, tzinfo=UTC)),
            ("2024-07-10T12:00:00", datetime(2024, 7, 10, 12, tzinfo=UTC)),
        ],
    )
    def test_parse_pub_date(self, value, expected):
        assert parse_pub_date(value) == expected

    @pytest.mark.parametrize("value", ["", None, "unknown", "2024-13", "봄 2024"])
    def test_parse_pub_date_unparsable(self, value):
        assert parse_pub_date(value) is None

    def test_recent_date_kept(self):
        assert is_within_recency_window("2025-01-15", now=NOW) is True

    def test_old_date_dropped(self):
        assert is_within_recency_window("2023-01-15", now=NOW) is False

    def test_boundary(self):
        """Exactly 365 days old is still inside the window."""
        assert is_within_recency_window("2024-06-01", now=NOW) is True
        assert is_within_recency_window("2024-05-31", now=NOW) is False

    def test_unparsable_date_kept(self):
        """Unparsable dates are kept to avoid false negatives."""
        assert is_within_recency_window("출간 예정", now=NOW) is True

    def test_missing_date_dropped(self):
        assert is_within_recency_window("", now=NOW) is False


class TestCatalogClient:
    """Test CatalogClient queries."""

    @pytest.fixture
    def client(self, mock_fetcher):
        return CatalogClient(
            api_key=" test-key ",
            fetcher=mock_fetcher,
            api_base="https://catalog.test/ttb/api",
        )

    def test_requires_key(self, mock_fetcher):
        """A missing key should fail before any request."""
        with pytest.raises(ConfigurationError):
            CatalogClient(api_key="  ", fetcher=mock_fetcher)
        mock_fetcher.fetch.assert_not_called()

    def test_build_url(self, client):
        """URLs carry the common parameters and a trimmed key."""
        url = client.build_url("ItemList.aspx", page=3, QueryType="Bestseller")
        query = query_of(url)
        assert url.startswith("https://catalog.test/ttb/api/ItemList.aspx?")
        assert query["ttbkey"] == "test-key"
        assert query["start"] == "3"
        assert query["MaxResults"] == "50"
        assert query["output"] == "js"
        assert query["Version"] == "20131101"
        assert query["QueryType"] == "Bestseller"
        assert "_t" in query

    async def test_fetch_bestsellers(self, client, mock_fetcher):
        """Should map bestseller items and request the right query type."""
        mock_fetcher.fetch.return_value = {"item": [make_item(1), make_item(2)]}

        books = await client.fetch_list(FetchSource.BESTSELLER)

        assert [b.id for b in books] == ["1", "2"]
        url = mock_fetcher.fetch.call_args.args[0]
        assert query_of(url)["QueryType"] == "Bestseller"
        assert mock_fetcher.fetch.call_args.kwargs["expect_json"] is True

    async def test_fetch_new_arrivals(self, client, mock_fetcher):
        mock_fetcher.fetch.return_value = {"item": [make_item(5)]}

        books = await client.fetch_list(FetchSource.NEW_ARRIVALS, page=2)

        assert [b.id for b in books] == ["5"]
        query = query_of(mock_fetcher.fetch.call_args.args[0])
        assert query["QueryType"] == "ItemNewSpecial"
        assert query["start"] == "2"

    async def test_fetch_list_rejects_combined(self, client):
        with pytest.raises(ValueError):
            await client.fetch_list(FetchSource.COMBINED)

    async def test_comics_excluded(self, client, mock_fetcher):
        """Items in the comic category should be dropped."""
        mock_fetcher.fetch.return_value = {
            "item": [
                make_item(1),
                make_item(2, categoryName="국내도서>만화>소년만화"),
                make_item(3, categoryName=None),
            ]
        }

        books = await client.fetch_list(FetchSource.BESTSELLER)

        assert [b.id for b in books] == ["1", "3"]

    async def test_error_code_raises_source_error(self, client, mock_fetcher):
        """An upstream error code should raise SourceError."""
        mock_fetcher.fetch.return_value = {
            "errorCode": 100,
            "errorMessage": "잘못된 TTBKey 입니다.",
        }

        with pytest.raises(SourceError) as exc_info:
            await client.fetch_list(FetchSource.BESTSELLER)

        assert exc_info.value.code == 100
        assert "TTBKey" in exc_info.value.message

    async def test_missing_item_list_is_empty(self, client, mock_fetcher):
        """A payload without items is an empty result, not an error."""
        mock_fetcher.fetch.return_value = {"totalResults": 0}
        assert await client.fetch_list(FetchSource.BESTSELLER) == []

    @pytest.mark.parametrize("payload", [None, [], "<html>blocked</html>"])
    async def test_malformed_payload_raises(self, client, mock_fetcher, payload):
        """A non-object payload is a failure, not an empty list."""
        mock_fetcher.fetch.return_value = payload

        with pytest.raises(SourceError) as exc_info:
            await client.fetch_list(FetchSource.BESTSELLER)

        assert exc_info.value.code == "malformed"

    async def test_malformed_search_payload_raises(self, client, mock_fetcher):
        mock_fetcher.fetch.return_value = [{"itemId": 1}]
        with pytest.raises(SourceError):
            await client.search("python", now=NOW)

    async def test_fetch_failure_propagates(self, client, mock_fetcher):
        mock_fetcher.fetch.side_effect = FetchFailure("https://catalog.test", None)
        with pytest.raises(FetchFailure):
            await client.fetch_list(FetchSource.BESTSELLER)


class TestCombined:
    """Test the combined bestseller + new-arrivals mode."""

    @pytest.fixture
    def client(self, mock_fetcher):
        return CatalogClient(api_key="k", fetcher=mock_fetcher)

    def route(self, mock_fetcher, bestsellers, new_arrivals):
        async def _fetch(url, expect_json=True):
            query_type = query_of(url)["QueryType"]
            payload = bestsellers if query_type == "Bestseller" else new_arrivals
            if isinstance(payload, Exception):
                raise payload
            return payload

        mock_fetcher.fetch.side_effect = _fetch

    async def test_shared_id_appears_once(self, client, mock_fetcher):
        """A book in both lists should appear exactly once."""
        self.route(
            mock_fetcher,
            {"item": [make_item(1), make_item(2)]},
            {"item": [make_item(2), make_item(3)]},
        )

        books = await client.fetch_combined()

        ids = [b.id for b in books]
        assert sorted(ids) == ["1", "2", "3"]
        assert ids.count("2") == 1
        assert mock_fetcher.fetch.call_count == 2

    async def test_last_seen_wins(self, client, mock_fetcher):
        """The new-arrivals record replaces the bestseller record for a shared id."""
        self.route(
            mock_fetcher,
            {"item": [make_item(2, priceSales=16200)]},
            {"item": [make_item(2, priceSales=15000)]},
        )

        books = await client.fetch_combined()

        assert len(books) == 1
        assert books[0].price_sales == 15000

    async def test_either_failure_fails_whole_call(self, client, mock_fetcher):
        """No partial merge when one list fails."""
        self.route(
            mock_fetcher,
            {"item": [make_item(1)]},
            SourceError("catalog", 3, "quota exceeded"),
        )

        with pytest.raises(SourceError):
            await client.fetch_combined()

    async def test_comics_excluded(self, client, mock_fetcher):
        self.route(
            mock_fetcher,
            {"item": [make_item(1, categoryName="국내도서>만화")]},
            {"item": [make_item(2)]},
        )

        books = await client.fetch_combined()

        assert [b.id for b in books] == ["2"]


class TestSearch:
    """Test catalog search."""

    @pytest.fixture
    def client(self, mock_fetcher):
        return CatalogClient(api_key="k", fetcher=mock_fetcher)

    async def test_search_params(self, client, mock_fetcher):
        """Query and target should be passed through."""
        mock_fetcher.fetch.return_value = {"item": [make_item(1)]}

        await client.search("한강", SearchTarget.AUTHOR, page=2, now=NOW)

        url = mock_fetcher.fetch.call_args.args[0]
        assert "/ItemSearch.aspx?" in url
        query = query_of(url)
        assert query["Query"] == "한강"
        assert query["QueryType"] == "Author"
        assert query["start"] == "2"

    async def test_recency_filter(self, client, mock_fetcher):
        """Only recent or unparsable-date books should be returned."""
        mock_fetcher.fetch.return_value = {
            "item": [
                make_item(1, pubDate="2025-04-01"),
                make_item(2, pubDate="2020-04-01"),
                make_item(3, pubDate="미정"),
                make_item(4, pubDate=""),
            ]
        }

        books = await client.search("python", now=NOW)

        assert [b.id for b in books] == ["1", "3"]
        for book in books:
            parsed = parse_pub_date(book.pub_date)
            assert parsed is None or (NOW - parsed).days <= 365

    async def test_search_excludes_comics(self, client, mock_fetcher):
        mock_fetcher.fetch.return_value = {
            "item": [make_item(1, categoryName="국내도서>만화>웹툰")]
        }
        assert await client.search("웹툰", now=NOW) == []

    async def test_no_results(self, client, mock_fetcher):
        """No results is an empty list."""
        mock_fetcher.fetch.return_value = {"item": []}
        assert await client.search("zzzz", now=NOW) == []

    async def test_empty_query_skips_request(self, client, mock_fetcher):
        assert await client.search("   ") == []
        mock_fetcher.fetch.assert_not_called()

    async def test_search_error_code(self, client, mock_fetcher):
        mock_fetcher.fetch.return_value = {"errorCode": 2, "errorMessage": "bad query"}
        with pytest.raises(SourceError):
            await client.search("x", now=NOW)


class TestValidateKey:
    """Test catalog key validation."""

    @pytest.fixture
    def client(self, mock_fetcher):
        return CatalogClient(api_key="k", fetcher=mock_fetcher)

    async def test_valid(self, client, mock_fetcher):
        mock_fetcher.fetch.return_value = {"item": [make_item(1)]}
        assert await client.validate_key() is True
        assert query_of(mock_fetcher.fetch.call_args.args[0])["MaxResults"] == "1"

    async def test_error_code(self, client, mock_fetcher):
        mock_fetcher.fetch.return_value = {"errorCode": 100, "errorMessage": "bad key"}
        assert await client.validate_key() is False

    async def test_network_failure(self, client, mock_fetcher):
        mock_fetcher.fetch.side_effect = FetchFailure("https://catalog.test", None)
        assert await client.validate_key() is False
