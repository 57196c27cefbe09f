"""Core engine components for transaction search."""

from .exceptions import (
    TransactionSearchError,
    EmptyInputError,
    DimensionMismatchError,
    ModelUnavailableError,
    IndexUnavailableError,
    ValidationError,
    InvalidQueryError,
    ConfigurationError,
    SearchUnavailableError
)
from .embeddings import EmbeddingGenerator, cosine_similarity
from .lexical import LexicalSearch, FuzzySearch
from .query_understanding import SmartQueryParser
from .hybrid_engine import HybridSearchEngine

__all__ = [
    "HybridSearchEngine",
    "EmbeddingGenerator",
    "cosine_similarity",
    "LexicalSearch",
    "FuzzySearch",
    "SmartQueryParser",
    "TransactionSearchError",
    "EmptyInputError",
    "DimensionMismatchError",
    "ModelUnavailableError",
    "IndexUnavailableError",
    "ValidationError",
    "InvalidQueryError",
    "ConfigurationError",
    "SearchUnavailableError"
]
