"""
Merge and filter steps applied to adapter results.

Genre and recency filtering are source-specific and run inside the catalog
adapter; dedup runs when two catalog lists are merged; triage exclusion runs
last, once the caller's stage membership is known.
"""

from collections.abc import Iterable

from .models import Book

COMIC_MARKER = "만화"


def is_excluded_genre(book: Book, marker: str = COMIC_MARKER) -> bool:
    """True when the book's category mentions the excluded genre."""
    if not book.category_name or not marker:
        return False
    return marker in book.category_name


def exclude_genre(books: Iterable[Book], marker: str = COMIC_MARKER) -> list[Book]:
    """Drop books in the excluded genre (comics by default)."""
    return [book for book in books if not is_excluded_genre(book, marker)]


def dedupe_by_id(books: Iterable[Book]) -> list[Book]:
    """
    Deduplicate by id, last record wins.

    Position follows the first appearance of each id; the record kept is the
    last one seen for that id.
    """
    by_id: dict[str, Book] = {}
    for book in books:
        by_id[book.id] = book
    return list(by_id.values())


def exclude_triaged(books: Iterable[Book], triaged_ids: Iterable[str]) -> list[Book]:
    """Drop books already in the review or confirmed stage."""
    excluded = set(triaged_ids)
    if not excluded:
        return list(books)
    return [book for book in books if book.id not in excluded]
