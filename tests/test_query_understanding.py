"""Tests for smart query understanding."""

import pytest
from datetime import datetime, time

from transaction_search.core.query_understanding import SmartQueryParser
from transaction_search.models.transaction import TransactionType

from conftest import FIXED_NOW


def end_of(year, month, day):
    return datetime.combine(datetime(year, month, day).date(), time.max)


class TestDateRules:
    """FIXED_NOW is Tuesday 2024-06-18 15:30."""

    @pytest.mark.parametrize("phrase, start, end", [
        ("last month", datetime(2024, 5, 1), end_of(2024, 5, 31)),
        ("this month", datetime(2024, 6, 1), FIXED_NOW),
        ("last year", datetime(2023, 1, 1), end_of(2023, 12, 31)),
        ("this year", datetime(2024, 1, 1), FIXED_NOW),
        ("last week", datetime(2024, 6, 10), end_of(2024, 6, 16)),
        ("this week", datetime(2024, 6, 17), FIXED_NOW),
        ("yesterday", datetime(2024, 6, 17), end_of(2024, 6, 17)),
        ("today", datetime(2024, 6, 18), FIXED_NOW),
    ])
    def test_phrase_ranges(self, parser, phrase, start, end):
        context = parser.parse(f"cement {phrase}")

        assert context.filters.date_range.start == start
        assert context.filters.date_range.end == end
        assert context.residual_query == "cement"
        assert context.matched_rules == [phrase]

    def test_last_month_in_january(self):
        parser = SmartQueryParser(clock=lambda: datetime(2024, 1, 15, 9, 0))

        date_range = parser.parse("rent last month").filters.date_range

        assert date_range.start == datetime(2023, 12, 1)
        assert date_range.end == end_of(2023, 12, 31)

    def test_last_week_on_monday(self):
        parser = SmartQueryParser(clock=lambda: datetime(2024, 6, 17, 8, 0))

        date_range = parser.parse("last week").filters.date_range

        assert date_range.start == datetime(2024, 6, 10)
        assert date_range.end == end_of(2024, 6, 16)

    def test_first_rule_in_order_wins(self, parser):
        context = parser.parse("payments last year and this month")

        assert context.matched_rules == ["this month"]
        assert context.filters.date_range.start == datetime(2024, 6, 1)
        assert context.residual_query == "payments last year and"

    def test_case_insensitive(self, parser):
        context = parser.parse("Concrete LAST   Month")

        assert context.matched_rules == ["last month"]
        assert context.residual_query == "concrete"

    def test_whole_words_only(self, parser):
        context = parser.parse("todays deliveries")

        assert context.filters.date_range is None
        assert context.residual_query == "todays deliveries"


class TestTypeRules:

    @pytest.mark.parametrize("query, expected", [
        ("income from client", TransactionType.INCOME),
        ("consulting revenue", TransactionType.INCOME),
        ("incomes", TransactionType.INCOME),
        ("site expenses", TransactionType.EXPENSE),
        ("fuel spending", TransactionType.EXPENSE),
    ])
    def test_keywords(self, parser, query, expected):
        assert parser.parse(query).filters.type == expected

    def test_income_checked_before_expense(self, parser):
        context = parser.parse("income and expenses")

        assert context.filters.type == TransactionType.INCOME
        assert context.matched_rules == ["type:income"]
        assert context.residual_query == "and expenses"

    def test_date_and_type_combined(self, parser):
        context = parser.parse("Cement expenses last month")

        assert context.matched_rules == ["last month", "type:expense"]
        assert context.residual_query == "cement"
        assert context.effective_query == "cement"
        assert context.original_query == "Cement expenses last month"


class TestPassThrough:

    def test_no_rules_match(self, parser):
        context = parser.parse("Concrete  mix")

        assert context.filters.is_empty
        assert context.matched_rules == []
        assert context.residual_query == "concrete mix"

    def test_only_keywords_leaves_empty_residual(self, parser):
        context = parser.parse("expenses yesterday")

        assert context.residual_query == ""
        assert context.effective_query == "expenses yesterday"
