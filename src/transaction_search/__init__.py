"""
Hybrid Search for Financial Transactions

Finds transactions from natural-language queries by fusing sentence-transformer
similarity with keyword relevance, degrading gracefully when either path fails.
"""

from .config import SearchSettings
from .core.hybrid_engine import HybridSearchEngine
from .core.embeddings import EmbeddingGenerator
from .api.service import TransactionSearchService
from .models.transaction import Transaction, TransactionType
from .models.query import DateRange, SearchFilters, SearchOptions, QueryContext
from .models.result import SearchResult, SearchMetadata, HybridSearchResponse
from .storage import TransactionStore, InMemoryTransactionStore

__version__ = "1.0.0"
__author__ = "Karthikay Gundepudi"

__all__ = [
    "SearchSettings",
    "TransactionSearchService",
    "HybridSearchEngine",
    "EmbeddingGenerator",
    "Transaction",
    "TransactionType",
    "DateRange",
    "SearchFilters",
    "SearchOptions",
    "QueryContext",
    "SearchResult",
    "SearchMetadata",
    "HybridSearchResponse",
    "TransactionStore",
    "InMemoryTransactionStore",
]
