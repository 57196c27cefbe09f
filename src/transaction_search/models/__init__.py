"""Data models for transaction search."""

from .transaction import Transaction, TransactionType, TransactionModel
from .query import DateRange, SearchFilters, SearchOptions, QueryContext, SearchRequestModel
from .result import FusionWeights, SearchResult, SearchMetadata, HybridSearchResponse

__all__ = [
    "Transaction",
    "TransactionType",
    "TransactionModel",
    "DateRange",
    "SearchFilters",
    "SearchOptions",
    "QueryContext",
    "SearchRequestModel",
    "FusionWeights",
    "SearchResult",
    "SearchMetadata",
    "HybridSearchResponse",
]
