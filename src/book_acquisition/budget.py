"""
Budget allocation engine for book-acquisition.

Maps confirmed books to allocation buckets and computes spending status.
Everything here is a pure function of its arguments and never raises on
odd settings: allocations that do not sum to 100, a zero budget, or
unmatched categories all degrade to well-defined numbers.

Category matching is an approximate heuristic (substring plus a short list
of synonyms). Mismatches are expected.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from .models import (
    AlertLevel,
    Book,
    BudgetSettings,
    BudgetStatus,
    CategoryAllocation,
    CategoryStatus,
)

OTHER_CATEGORY_ID = "other"
UNKNOWN_CATEGORY_ID = "unknown"

WARNING_THRESHOLD = 80
DANGER_THRESHOLD = 100


@dataclass(frozen=True)
class CategoryRule:
    """Extra keywords that map a book category onto a named allocation."""

    allocation_name: str
    keywords: tuple[str, ...]

    def matches(self, allocation_name: str, category_name: str) -> bool:
        if allocation_name != self.allocation_name:
            return False
        return any(keyword in category_name for keyword in self.keywords)


# Checked in order, after the plain name-substring test for each allocation.
CATEGORY_SYNONYM_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("문학", ("소설", "에세이", "시")),  # literature: novel, essay, poetry
    CategoryRule("기술/컴퓨터", ("공학", "IT")),  # tech: engineering, IT
    CategoryRule("사회과학", ("경제", "경영", "정치")),  # economics, management, politics
)


def is_catch_all(allocation: CategoryAllocation) -> bool:
    """The "other" bucket that collects unmatched books."""
    return allocation.id == OTHER_CATEGORY_ID or (allocation.name or "").lower() == "other"


def _fallback_category(allocations: Sequence[CategoryAllocation]) -> str:
    for allocation in allocations:
        if is_catch_all(allocation):
            return allocation.id
    if allocations:
        return allocations[0].id
    return UNKNOWN_CATEGORY_ID


def match_category(
    category_name: str | None,
    allocations: Sequence[CategoryAllocation],
    rules: Sequence[CategoryRule] = CATEGORY_SYNONYM_RULES,
) -> str:
    """
    Resolve a free-text book category to an allocation id.

    Returns the first non-catch-all allocation whose name appears in the
    category string or whose synonym rule matches. Falls back to the
    catch-all allocation, then the first allocation, then "unknown".
    """
    if category_name:
        for allocation in allocations:
            if is_catch_all(allocation):
                continue
            if allocation.name and allocation.name in category_name:
                return allocation.id
            if any(rule.matches(allocation.name, category_name) for rule in rules):
                return allocation.id

    return _fallback_category(allocations)


def allocated_amount(total_budget: int, percentage: float) -> int:
    """floor(total * percentage / 100); non-finite percentages allocate 0."""
    try:
        amount = total_budget * percentage / 100
    except TypeError:
        return 0
    if not math.isfinite(amount):
        return 0
    return math.floor(amount)


def get_alert_level(percentage: float) -> AlertLevel:
    if percentage >= DANGER_THRESHOLD:
        return AlertLevel.DANGER
    if percentage >= WARNING_THRESHOLD:
        return AlertLevel.WARNING
    return AlertLevel.SAFE


def _usage_percentage(used: int, allocated: int) -> float:
    if allocated <= 0:
        return 0.0
    return used / allocated * 100


def calculate_budget_status(
    confirmed_books: Iterable[Book],
    settings: BudgetSettings,
) -> BudgetStatus:
    """
    Compute budget usage for the confirmed books.

    Args:
        confirmed_books: Books in the confirmed stage
        settings: Total budget and allocations

    Returns:
        A freshly built BudgetStatus with one CategoryStatus per allocation,
        in allocation order
    """
    total_budget = settings.total_budget or 0
    allocations = list(settings.allocations)

    used: dict[str, int] = {a.id: 0 for a in allocations}
    counts: dict[str, int] = {a.id: 0 for a in allocations}
    total_used = 0

    for book in confirmed_books:
        price = book.price_sales or 0
        total_used += price
        category_id = match_category(book.category_name, allocations)
        if category_id in used:
            used[category_id] += price
            counts[category_id] += 1

    category_statuses = []
    for allocation in allocations:
        amount = allocated_amount(total_budget, allocation.percentage)
        used_amount = used[allocation.id]
        category_statuses.append(
            CategoryStatus(
                id=allocation.id,
                name=allocation.name,
                allocated_amount=amount,
                used_amount=used_amount,
                remaining_amount=amount - used_amount,
                usage_percentage=_usage_percentage(used_amount, amount),
                book_count=counts[allocation.id],
                is_exceeded=used_amount > amount,
            )
        )

    # A zero budget reports 0% even with spending; is_total_exceeded still flags it.
    total_usage_percentage = _usage_percentage(total_used, total_budget)

    return BudgetStatus(
        total_budget=total_budget,
        total_used=total_used,
        total_remaining=total_budget - total_used,
        total_usage_percentage=total_usage_percentage,
        category_statuses=category_statuses,
        is_total_exceeded=total_used > total_budget,
        alert_level=get_alert_level(total_usage_percentage),
    )


def default_budget_settings(today: date | None = None) -> BudgetSettings:
    """Starting settings: 10,000,000 over one year, seven allocations."""
    today = today or date.today()
    try:
        end = today.replace(year=today.year + 1)
    except ValueError:
        # Feb 29
        end = today.replace(year=today.year + 1, day=28)

    return BudgetSettings(
        total_budget=10_000_000,
        start_date=today.isoformat(),
        end_date=end.isoformat(),
        allocations=[
            CategoryAllocation(id="lit", name="문학", percentage=30),
            CategoryAllocation(id="soc", name="사회과학", percentage=20),
            CategoryAllocation(id="sci", name="자연과학", percentage=15),
            CategoryAllocation(id="art", name="예술", percentage=10),
            CategoryAllocation(id="tech", name="기술/컴퓨터", percentage=10),
            CategoryAllocation(id="child", name="아동/청소년", percentage=10),
            CategoryAllocation(id=OTHER_CATEGORY_ID, name="기타", percentage=5),
        ],
    )
