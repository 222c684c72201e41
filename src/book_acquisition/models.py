"""
Data models for book-acquisition.

Books are the canonical candidates produced by the source adapters; budget
settings and statuses are the inputs and outputs of the allocation engine.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

MARKUP_PATTERN = re.compile(r"<[^>]*>?")


def strip_markup(text: str | None) -> str:
    """Remove HTML/XML tags from a text field."""
    if not text:
        return ""
    return MARKUP_PATTERN.sub("", text).strip()


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class WorkflowStage(str, Enum):
    """Triage stage of a candidate book."""

    DISCOVERY = "discovery"
    REVIEW = "review"
    CONFIRMED = "confirmed"


class AlertLevel(str, Enum):
    """Budget consumption alert tier."""

    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


class FetchSource(str, Enum):
    """Discovery feeds that can be requested."""

    COMBINED = "combined"
    BESTSELLER = "bestseller"
    NEW_ARRIVALS = "new-arrivals"
    RECOMMENDATION = "recommendation"


class SearchTarget(str, Enum):
    """Search field for catalog searches (values are the API's QueryType)."""

    KEYWORD = "Keyword"
    TITLE = "Title"
    AUTHOR = "Author"
    PUBLISHER = "Publisher"


@dataclass
class Book:
    """A canonical acquisition candidate."""

    id: str
    title: str
    author: str = ""
    publisher: str = ""
    pub_date: str = ""  # free-form: "2024-05-10", "2024", or garbage
    cover: str = ""
    description: str = ""
    isbn13: str = ""
    price_standard: int = 0  # 0 means unknown
    price_sales: int = 0  # 0 means unknown
    link: str = ""
    category_name: str | None = None  # e.g. "국내도서>소설/시/희곡>한국소설"
    workflow_stage: WorkflowStage = WorkflowStage.DISCOVERY

    @property
    def has_price(self) -> bool:
        """Recommendation-feed books carry no price data."""
        return self.price_sales > 0 or self.price_standard > 0

    def with_stage(self, stage: WorkflowStage) -> "Book":
        """Return a copy of this book in another workflow stage."""
        return replace(self, workflow_stage=stage)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "publisher": self.publisher,
            "pub_date": self.pub_date,
            "cover": self.cover,
            "description": self.description,
            "isbn13": self.isbn13,
            "price_standard": self.price_standard,
            "price_sales": self.price_sales,
            "link": self.link,
            "workflow_stage": self.workflow_stage.value,
        }
        if self.category_name is not None:
            result["category_name"] = self.category_name
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Book":
        """Create from dictionary."""
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            author=data.get("author", ""),
            publisher=data.get("publisher", ""),
            pub_date=data.get("pub_date", ""),
            cover=data.get("cover", ""),
            description=data.get("description", ""),
            isbn13=data.get("isbn13", ""),
            price_standard=int(data.get("price_standard") or 0),
            price_sales=int(data.get("price_sales") or 0),
            link=data.get("link", ""),
            category_name=data.get("category_name"),
            workflow_stage=WorkflowStage(data.get("workflow_stage", "discovery")),
        )


@dataclass
class CategoryAllocation:
    """A named percentage share of the total budget."""

    id: str
    name: str
    percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "percentage": self.percentage}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CategoryAllocation":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            percentage=_to_float(data.get("percentage")),
        )


@dataclass
class BudgetSettings:
    """
    Total budget and its category allocations.

    Start and end dates are informational only. Allocation order is display
    order. Percentages should sum to 100, but nothing here relies on it.
    """

    total_budget: int
    start_date: str = ""
    end_date: str = ""
    allocations: list[CategoryAllocation] = field(default_factory=list)

    def allocation_total(self) -> float:
        """Sum of allocation percentages."""
        return sum(a.percentage for a in self.allocations)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_budget": self.total_budget,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "allocations": [a.to_dict() for a in self.allocations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BudgetSettings":
        """Create from dictionary."""
        return cls(
            total_budget=int(data.get("total_budget") or 0),
            start_date=data.get("start_date", ""),
            end_date=data.get("end_date", ""),
            allocations=[
                CategoryAllocation.from_dict(a) for a in data.get("allocations", [])
            ],
        )


@dataclass
class CategoryStatus:
    """Spending status of one allocation."""

    id: str
    name: str
    allocated_amount: int
    used_amount: int = 0
    remaining_amount: int = 0
    usage_percentage: float = 0.0
    book_count: int = 0
    is_exceeded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "allocated_amount": self.allocated_amount,
            "used_amount": self.used_amount,
            "remaining_amount": self.remaining_amount,
            "usage_percentage": self.usage_percentage,
            "book_count": self.book_count,
            "is_exceeded": self.is_exceeded,
        }


@dataclass
class BudgetStatus:
    """Derived spending status for the whole budget."""

    total_budget: int
    total_used: int
    total_remaining: int
    total_usage_percentage: float
    category_statuses: list[CategoryStatus] = field(default_factory=list)
    is_total_exceeded: bool = False
    alert_level: AlertLevel = AlertLevel.SAFE

    def get_category(self, category_id: str) -> CategoryStatus | None:
        """Look up a category status by allocation id."""
        for status in self.category_statuses:
            if status.id == category_id:
                return status
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_budget": self.total_budget,
            "total_used": self.total_used,
            "total_remaining": self.total_remaining,
            "total_usage_percentage": self.total_usage_percentage,
            "category_statuses": [c.to_dict() for c in self.category_statuses],
            "is_total_exceeded": self.is_total_exceeded,
            "alert_level": self.alert_level.value,
        }
