"""
Unit tests for review queue ordering, priority ranking and pagination.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

import pytest

from app.services.review.ranking import (
    Page,
    is_due,
    mastery_distribution,
    order_due,
    overdue_days,
    paginate,
    rank_by_priority,
)

AS_OF = date(2024, 3, 15)


@dataclass
class Item:
    problem_id: str
    mastery_level: int
    scheduled_date: Optional[date]


def days_ago(n: int) -> date:
    return AS_OF - timedelta(days=n)


class TestDueSelection:
    """Tests for is_due() and order_due()."""

    def test_due_today_and_earlier(self):
        assert is_due(Item("a", 0, AS_OF), AS_OF)
        assert is_due(Item("b", 2, days_ago(3)), AS_OF)

    def test_future_items_not_due(self):
        assert not is_due(Item("a", 0, AS_OF + timedelta(days=1)), AS_OF)

    def test_completed_items_never_due(self):
        assert not is_due(Item("a", 4, None), AS_OF)

    def test_order_by_date_then_problem_id(self):
        items = [
            Item("p3", 1, AS_OF),
            Item("p2", 0, days_ago(2)),
            Item("p1", 3, AS_OF),
            Item("p9", 0, AS_OF + timedelta(days=1)),
            Item("p5", 4, None),
        ]

        ordered = order_due(items, AS_OF)

        assert [i.problem_id for i in ordered] == ["p2", "p1", "p3"]


class TestPriorityRanking:
    """Tests for rank_by_priority()."""

    def test_overdue_days(self):
        assert overdue_days(Item("a", 0, days_ago(5)), AS_OF) == 5
        assert overdue_days(Item("a", 0, AS_OF), AS_OF) == 0
        assert overdue_days(Item("a", 4, None), AS_OF) == 0

    def test_most_overdue_first_then_lowest_level(self):
        items = [
            Item("p1", 2, days_ago(1)),
            Item("p2", 0, days_ago(1)),
            Item("p3", 3, days_ago(6)),
            Item("p4", 1, AS_OF),
            Item("p0", 0, days_ago(1)),
        ]

        ranked = rank_by_priority(items, AS_OF)

        assert [r.item.problem_id for r in ranked] == ["p3", "p0", "p2", "p1", "p4"]
        assert [r.overdue_days for r in ranked] == [6, 1, 1, 1, 0]

    def test_cap_excludes_items_overdue_past_it(self):
        items = [
            Item("p1", 0, days_ago(10)),
            Item("p2", 0, days_ago(3)),
            Item("p3", 0, days_ago(4)),
        ]

        ranked = rank_by_priority(items, AS_OF, max_overdue_days=3)

        assert [r.item.problem_id for r in ranked] == ["p2"]
        assert all(r.overdue_days <= 3 for r in ranked)

    def test_zero_cap_keeps_only_items_due_today(self):
        items = [Item("p1", 0, AS_OF), Item("p2", 0, days_ago(1))]

        ranked = rank_by_priority(items, AS_OF, max_overdue_days=0)

        assert [r.item.problem_id for r in ranked] == ["p1"]

    def test_negative_cap_rejected(self):
        with pytest.raises(ValueError):
            rank_by_priority([], AS_OF, max_overdue_days=-1)

    def test_not_due_items_excluded(self):
        items = [Item("p1", 0, AS_OF + timedelta(days=2)), Item("p2", 4, None)]

        assert rank_by_priority(items, AS_OF) == []


class TestPagination:
    """Tests for paginate()."""

    def test_first_page(self):
        page = paginate(list(range(45)), page=1, page_size=20)

        assert page.items == list(range(20))
        assert page.total == 45
        assert page.total_pages == 3

    def test_last_partial_page(self):
        page = paginate(list(range(45)), page=3, page_size=20)

        assert page.items == list(range(40, 45))

    def test_page_past_the_end_is_empty(self):
        page = paginate(list(range(5)), page=4, page_size=5)

        assert page.items == []
        assert page.total == 5

    def test_empty_result(self):
        page = paginate([], page=1, page_size=20)

        assert page == Page(items=[], total=0, page=1, page_size=20)
        assert page.total_pages == 0

    @pytest.mark.parametrize("page_number,page_size", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_arguments(self, page_number, page_size):
        with pytest.raises(ValueError):
            paginate([1, 2, 3], page=page_number, page_size=page_size)


class TestMasteryDistribution:
    """Tests for mastery_distribution()."""

    def test_counts_per_level(self):
        items = [Item("a", 0, AS_OF), Item("b", 0, AS_OF), Item("c", 3, AS_OF)]

        distribution = mastery_distribution(items, completed_count=2)

        assert distribution == {
            "level0": 2,
            "level1": 0,
            "level2": 0,
            "level3": 1,
            "completed": 2,
        }

    def test_empty(self):
        assert sum(mastery_distribution([]).values()) == 0
