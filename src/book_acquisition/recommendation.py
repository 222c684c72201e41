"""
XML recommendation feed adapter for book-acquisition.

The feed is a paginated list of librarian recommendations. It carries no
price data and no detail link, so those Book fields stay at their zero
values. A malformed document or an embedded error marker yields an empty
page instead of an error; transport failures still propagate.
"""

import logging
import xml.etree.ElementTree as ET
from urllib.parse import urlencode

from .errors import ConfigurationError, FetchFailure
from .fetcher import RelayFetcher
from .models import Book, strip_markup

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
ID_PREFIX = "nlk"


def page_bounds(page: int, page_size: int = PAGE_SIZE) -> tuple[int, int]:
    """1-based inclusive row bounds for a page."""
    page = max(1, page)
    return (page - 1) * page_size + 1, page * page_size


def _element_text(element: ET.Element, tag: str) -> str:
    found = element.find(f".//{tag}")
    if found is None:
        return ""
    return (found.text or "").strip()


def _has_error_marker(root: ET.Element) -> bool:
    if root.tag == "error":
        return True
    return root.find(".//error_code") is not None


def recommendation_item_to_book(
    item: ET.Element,
    index: int,
    id_prefix: str = ID_PREFIX,
) -> Book:
    """Convert one recommendation `item` element to a Book."""
    recom_no = _element_text(item, "recomNo")
    isbn_tokens = _element_text(item, "recomisbn").split()

    return Book(
        id=f"{id_prefix}-{recom_no or index}",
        title=_element_text(item, "recomtitle"),
        author=_element_text(item, "recomauthor"),
        publisher=_element_text(item, "recompublisher"),
        pub_date=_element_text(item, "publishYear"),
        cover=_element_text(item, "recomfilepath"),
        description=strip_markup(_element_text(item, "recomcontents")),
        isbn13=isbn_tokens[0] if isbn_tokens else "",
        price_standard=0,
        price_sales=0,
        link="",
        category_name=_element_text(item, "drCodeName"),
    )


def parse_recommendation_xml(xml_text: str, id_prefix: str = ID_PREFIX) -> list[Book]:
    """
    Parse a recommendation feed document into Books.

    Returns an empty list for malformed XML or an error document.
    """
    if not xml_text or not xml_text.strip():
        logger.warning("Empty recommendation response")
        return []

    try:
        root = ET.fromstring(xml_text.strip())
    except ET.ParseError as e:
        logger.warning(f"Malformed recommendation XML: {e}")
        return []

    if _has_error_marker(root):
        message = _element_text(root, "error_msg") or _element_text(root, "message")
        logger.warning(f"Recommendation feed returned an error: {message or 'unknown'}")
        return []

    return [
        recommendation_item_to_book(item, index, id_prefix)
        for index, item in enumerate(root.iter("item"))
    ]


class RecommendationClient:
    """Client for the XML recommendation feed."""

    def __init__(
        self,
        api_key: str | None,
        fetcher: RelayFetcher,
        api_url: str = "https://nl.go.kr/NL/search/openApi/saseoApi.do",
        page_size: int = PAGE_SIZE,
        id_prefix: str = ID_PREFIX,
    ):
        if not api_key or not api_key.strip():
            raise ConfigurationError("Recommendation API key is required")
        self.api_key = api_key.strip()
        self.fetcher = fetcher
        self.api_url = api_url
        self.page_size = page_size
        self.id_prefix = id_prefix

    def build_url(self, start: int, end: int) -> str:
        query = {
            "key": self.api_key,
            "startRowNumApi": start,
            "endRowNumApi": end,
        }
        return f"{self.api_url}?{urlencode(query)}"

    async def fetch_page(self, page: int = 1) -> list[Book]:
        """
        Fetch one page of recommendations.

        Raises:
            FetchFailure: every relay and attempt failed
        """
        start, end = page_bounds(page, self.page_size)
        xml_text = await self.fetcher.fetch(self.build_url(start, end), expect_json=False)
        books = parse_recommendation_xml(xml_text, self.id_prefix)
        logger.info(f"Recommendation rows {start}-{end}: {len(books)} books")
        return books

    async def validate_key(self) -> bool:
        """Probe the feed with a one-row request."""
        try:
            xml_text = await self.fetcher.fetch(self.build_url(1, 1), expect_json=False)
        except FetchFailure:
            logger.warning("Recommendation key validation request failed")
            return False

        if not xml_text:
            return False
        try:
            root = ET.fromstring(xml_text.strip())
        except ET.ParseError as e:
            logger.warning(f"Recommendation key validation got malformed XML: {e}")
            return False

        # The feed also reports key problems in a bare <message> element
        if _has_error_marker(root) or next(root.iter("message"), None) is not None:
            return False
        return root.find(".//totalCount") is not None or root.find(".//list") is not None
