"""Heuristic extraction of date and type filters from free-text queries.

Rules are evaluated in the fixed order in which they are listed below. For
dates the first matching phrase wins ("last month" is checked before
"this month", and so on); for types, income keywords are checked before
expense keywords. Unmatched text passes through verbatim.
"""

import logging
import re
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional, Pattern, Tuple

from ..models.transaction import TransactionType
from ..models.query import DateRange, SearchFilters, QueryContext
from ..utils.text_processing import TextProcessor

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
RangeBuilder = Callable[[datetime], Tuple[datetime, datetime]]


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def _end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max)


def _last_month(now: datetime) -> Tuple[datetime, datetime]:
    last_day = now.replace(day=1) - timedelta(days=1)
    return _start_of_day(last_day.replace(day=1)), _end_of_day(last_day)


def _this_month(now: datetime) -> Tuple[datetime, datetime]:
    return _start_of_day(now.replace(day=1)), now


def _last_year(now: datetime) -> Tuple[datetime, datetime]:
    year = now.year - 1
    return datetime(year, 1, 1), _end_of_day(datetime(year, 12, 31))


def _this_year(now: datetime) -> Tuple[datetime, datetime]:
    return datetime(now.year, 1, 1), now


def _last_week(now: datetime) -> Tuple[datetime, datetime]:
    monday = now - timedelta(days=now.weekday())
    return _start_of_day(monday - timedelta(days=7)), _end_of_day(monday - timedelta(days=1))


def _this_week(now: datetime) -> Tuple[datetime, datetime]:
    return _start_of_day(now - timedelta(days=now.weekday())), now


def _yesterday(now: datetime) -> Tuple[datetime, datetime]:
    day = now - timedelta(days=1)
    return _start_of_day(day), _end_of_day(day)


def _today(now: datetime) -> Tuple[datetime, datetime]:
    return _start_of_day(now), now


def _phrase(text: str) -> Pattern[str]:
    words = r'\s+'.join(re.escape(word) for word in text.split())
    return re.compile(rf'\b{words}\b')


DATE_RULES: List[Tuple[str, Pattern[str], RangeBuilder]] = [
    ("last month", _phrase("last month"), _last_month),
    ("this month", _phrase("this month"), _this_month),
    ("last year", _phrase("last year"), _last_year),
    ("this year", _phrase("this year"), _this_year),
    ("last week", _phrase("last week"), _last_week),
    ("this week", _phrase("this week"), _this_week),
    ("yesterday", _phrase("yesterday"), _yesterday),
    ("today", _phrase("today"), _today),
]

TYPE_RULES: List[Tuple[TransactionType, Pattern[str]]] = [
    (TransactionType.INCOME, re.compile(r'\b(?:incomes?|revenues?)\b')),
    (TransactionType.EXPENSE, re.compile(r'\b(?:expenses?|spending)\b')),
]


class SmartQueryParser:
    """Turns a natural-language query into a residual query plus filters."""

    def __init__(self, clock: Optional[Clock] = None):
        """
        Args:
            clock: Returns "now"; injectable so date ranges are testable
        """
        self.clock = clock or datetime.now
        self.text_processor = TextProcessor()

    def parse(self, query: str) -> QueryContext:
        """
        Extract date and type filters from ``query``.

        Returns:
            QueryContext with the residual query and accumulated filters
        """
        text = self.text_processor.normalize(query)
        filters = SearchFilters()
        matched: List[str] = []

        for name, pattern, build_range in DATE_RULES:
            if pattern.search(text):
                start, end = build_range(self.clock())
                filters.date_range = DateRange(start=start, end=end)
                text, _ = self.text_processor.strip_pattern(text, pattern)
                matched.append(name)
                break

        for transaction_type, pattern in TYPE_RULES:
            text, found = self.text_processor.strip_pattern(text, pattern)
            if found:
                filters.type = transaction_type
                matched.append(f"type:{transaction_type.value}")
                break

        context = QueryContext(
            original_query=query,
            residual_query=text,
            filters=filters,
            matched_rules=matched
        )
        if matched:
            logger.debug(f"Query understanding matched {matched}; residual: '{text}'")
        return context
