"""Query data models: filters, fusion options and parsed query context."""

from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
from dataclasses import dataclass, field
from pydantic import BaseModel, Field, field_validator

from .transaction import Transaction, TransactionType


def _aligned(a: datetime, b: datetime) -> Tuple[datetime, datetime]:
    """Make two datetimes comparable; naive values are taken as local time."""
    if (a.tzinfo is None) == (b.tzinfo is None):
        return a, b
    return a.astimezone(), b.astimezone()


@dataclass
class DateRange:
    """
    Inclusive date range filter for queries.

    Bounds and dates may differ in timezone awareness; a naive value is
    interpreted in the local timezone when compared with an aware one.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate date range."""
        if self.start and self.end:
            start, end = _aligned(self.start, self.end)
            if start > end:
                raise ValueError("Start date must be before or equal to end date")

    def contains(self, date: datetime) -> bool:
        """Check if date falls within range."""
        if self.start:
            start, moment = _aligned(self.start, date)
            if moment < start:
                return False
        if self.end:
            end, moment = _aligned(self.end, date)
            if moment > end:
                return False
        return True


@dataclass
class SearchFilters:
    """
    Structured predicates shared by every retrieval path.

    Attributes:
        date_range: Inclusive date range (None = all dates)
        type: Income or expense (None = both)
        project_id: Opaque project identifier (None = all projects)
        category_id: Opaque category identifier (None = all categories)
    """
    date_range: Optional[DateRange] = None
    type: Optional[TransactionType] = None
    project_id: Optional[str] = None
    category_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type is not None and not isinstance(self.type, TransactionType):
            try:
                self.type = TransactionType(self.type)
            except ValueError:
                raise ValueError(f"Invalid transaction type: {self.type}")

    @property
    def is_empty(self) -> bool:
        return (
            self.date_range is None and self.type is None
            and self.project_id is None and self.category_id is None
        )

    def matches(self, transaction: Transaction) -> bool:
        """Check whether a transaction satisfies every active predicate."""
        if self.date_range and not self.date_range.contains(transaction.date):
            return False
        if self.type and transaction.type != self.type:
            return False
        if self.project_id and transaction.project_id != self.project_id:
            return False
        if self.category_id and transaction.category_id != self.category_id:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.date_range.start.isoformat()
            if self.date_range and self.date_range.start else None,
            "end_date": self.date_range.end.isoformat()
            if self.date_range and self.date_range.end else None,
            "type": self.type.value if self.type else None,
            "project_id": self.project_id,
            "category_id": self.category_id
        }


@dataclass
class SearchOptions:
    """
    Fusion configuration for a single hybrid search call.

    Attributes:
        vector_weight: Weight applied to the vector similarity score
        text_weight: Weight applied to the lexical relevance score
        limit: Maximum number of results to return
        timeout: Per-branch retrieval timeout in seconds (None = no timeout)
    """
    vector_weight: float = 0.4
    text_weight: float = 0.6
    limit: int = 20
    timeout: Optional[float] = None

    def __post_init__(self) -> None:
        """Validate fusion options."""
        if not 0.0 <= self.vector_weight <= 1.0:
            raise ValueError("Vector weight must be between 0.0 and 1.0")
        if not 0.0 <= self.text_weight <= 1.0:
            raise ValueError("Text weight must be between 0.0 and 1.0")
        if self.limit <= 0:
            raise ValueError("Limit must be positive")
        if self.limit > 1000:
            raise ValueError("Limit cannot exceed 1000")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("Timeout must be positive")


@dataclass
class QueryContext:
    """Result of smart query understanding."""
    original_query: str
    residual_query: str
    filters: SearchFilters = field(default_factory=SearchFilters)
    matched_rules: List[str] = field(default_factory=list)

    @property
    def effective_query(self) -> str:
        """Query text handed to hybrid search."""
        return self.residual_query or self.original_query

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_query": self.original_query,
            "residual_query": self.residual_query,
            "filters": self.filters.to_dict(),
            "matched_rules": self.matched_rules
        }


class SearchRequestModel(BaseModel):
    """Pydantic model for hybrid search requests in API contexts."""

    query: str = Field("", description="Search query text")
    start_date: Optional[datetime] = Field(None, description="Inclusive start date")
    end_date: Optional[datetime] = Field(None, description="Inclusive end date")
    type: Optional[TransactionType] = Field(None, description="Income or expense")
    project_id: Optional[str] = Field(None, description="Project filter")
    category_id: Optional[str] = Field(None, description="Category filter")
    vector_weight: float = Field(0.4, ge=0.0, le=1.0, description="Vector score weight")
    text_weight: float = Field(0.6, ge=0.0, le=1.0, description="Text score weight")
    limit: int = Field(20, ge=1, le=1000, description="Maximum results to return")
    timeout: Optional[float] = Field(None, gt=0, description="Retrieval timeout in seconds")

    @field_validator('query')
    @classmethod
    def strip_query(cls, v: str) -> str:
        return v.strip()

    def to_filters(self) -> SearchFilters:
        """Convert to SearchFilters dataclass."""
        date_range = None
        if self.start_date or self.end_date:
            date_range = DateRange(start=self.start_date, end=self.end_date)
        return SearchFilters(
            date_range=date_range,
            type=self.type,
            project_id=self.project_id,
            category_id=self.category_id
        )

    def to_options(self) -> SearchOptions:
        """Convert to SearchOptions dataclass."""
        return SearchOptions(
            vector_weight=self.vector_weight,
            text_weight=self.text_weight,
            limit=self.limit,
            timeout=self.timeout
        )
