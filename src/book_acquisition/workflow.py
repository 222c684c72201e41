"""
Three-stage triage workflow: discovery -> review -> confirmed.

Transitions never mutate the state they are called on; each returns a new
WorkflowState. Moved books are inserted at the front of their new stage.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .errors import WorkflowError
from .merge import exclude_triaged
from .models import Book, WorkflowStage


def _find(books: list[Book], book_id: str) -> Book | None:
    for book in books:
        if book.id == book_id:
            return book
    return None


def _without(books: list[Book], book_id: str) -> list[Book]:
    return [book for book in books if book.id != book_id]


@dataclass
class WorkflowState:
    """Books in each triage stage."""

    discovery: list[Book] = field(default_factory=list)
    review: list[Book] = field(default_factory=list)
    confirmed: list[Book] = field(default_factory=list)

    def triaged_ids(self) -> set[str]:
        """Ids already in review or confirmed; hidden from discovery feeds."""
        return {book.id for book in self.review} | {book.id for book in self.confirmed}

    def stage_of(self, book_id: str) -> WorkflowStage | None:
        if _find(self.confirmed, book_id):
            return WorkflowStage.CONFIRMED
        if _find(self.review, book_id):
            return WorkflowStage.REVIEW
        if _find(self.discovery, book_id):
            return WorkflowStage.DISCOVERY
        return None

    def with_discovery(self, books: Iterable[Book]) -> "WorkflowState":
        """Replace the discovery feed, dropping already-triaged books."""
        fresh = [
            book.with_stage(WorkflowStage.DISCOVERY)
            for book in exclude_triaged(books, self.triaged_ids())
        ]
        return WorkflowState(
            discovery=fresh,
            review=list(self.review),
            confirmed=list(self.confirmed),
        )

    def shortlist(self, book_id: str) -> "WorkflowState":
        """discovery -> review"""
        book = self._require(self.discovery, book_id, WorkflowStage.DISCOVERY)
        return WorkflowState(
            discovery=_without(self.discovery, book_id),
            review=[book.with_stage(WorkflowStage.REVIEW), *self.review],
            confirmed=list(self.confirmed),
        )

    def confirm(self, book_id: str) -> "WorkflowState":
        """review -> confirmed"""
        book = self._require(self.review, book_id, WorkflowStage.REVIEW)
        return WorkflowState(
            discovery=list(self.discovery),
            review=_without(self.review, book_id),
            confirmed=[book.with_stage(WorkflowStage.CONFIRMED), *self.confirmed],
        )

    def return_to_review(self, book_id: str) -> "WorkflowState":
        """confirmed -> review"""
        book = self._require(self.confirmed, book_id, WorkflowStage.CONFIRMED)
        return WorkflowState(
            discovery=list(self.discovery),
            review=[book.with_stage(WorkflowStage.REVIEW), *self.review],
            confirmed=_without(self.confirmed, book_id),
        )

    def remove(self, book_id: str) -> "WorkflowState":
        """
        Drop a book from review.

        The book is no longer triaged, so a later discovery fetch may show
        it again.
        """
        self._require(self.review, book_id, WorkflowStage.REVIEW)
        return WorkflowState(
            discovery=list(self.discovery),
            review=_without(self.review, book_id),
            confirmed=list(self.confirmed),
        )

    @staticmethod
    def _require(books: list[Book], book_id: str, stage: WorkflowStage) -> Book:
        book = _find(books, book_id)
        if book is None:
            raise WorkflowError(f"Book {book_id} is not in the {stage.value} stage")
        return book

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "discovery": [b.to_dict() for b in self.discovery],
            "review": [b.to_dict() for b in self.review],
            "confirmed": [b.to_dict() for b in self.confirmed],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowState":
        """Create from dictionary; stage fields are normalized to the list they are in."""
        return cls(
            discovery=[
                Book.from_dict(b).with_stage(WorkflowStage.DISCOVERY)
                for b in data.get("discovery", [])
            ],
            review=[
                Book.from_dict(b).with_stage(WorkflowStage.REVIEW)
                for b in data.get("review", [])
            ],
            confirmed=[
                Book.from_dict(b).with_stage(WorkflowStage.CONFIRMED)
                for b in data.get("confirmed", [])
            ],
        )
