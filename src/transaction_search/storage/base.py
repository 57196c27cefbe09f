"""Transaction store interface.

Defines the contract the search engine depends on, independent of the
backing implementation (document database with vector and text indexes,
an in-memory index, etc.). All three retrieval paths share one identifier
space so results can be merged by transaction id.

Implementations raise ``IndexUnavailableError`` when their backend fails
and ``DimensionMismatchError`` when a query vector does not match the
stored embedding dimension.
"""

from abc import ABC, abstractmethod
from typing import List, Tuple

import numpy as np

from ..models.transaction import Transaction
from ..models.query import SearchFilters

SUGGESTION_FIELDS = ("description", "project_name", "category_name", "source")


class TransactionStore(ABC):
    """Abstract base class for transaction stores."""

    @abstractmethod
    async def vector_search(
        self,
        query_vector: np.ndarray,
        filters: SearchFilters,
        num_candidates: int,
        limit: int
    ) -> List[Tuple[Transaction, float]]:
        """Approximate nearest-neighbour search over stored embeddings.

        Only transactions with an embedding and matching ``filters`` are
        eligible.

        Returns
        - ``(transaction, similarity)`` pairs sorted by descending similarity
        """
        pass

    @abstractmethod
    async def text_search(
        self,
        query: str,
        filters: SearchFilters,
        limit: int
    ) -> List[Tuple[Transaction, float]]:
        """Full-text search with a graded relevance score.

        Returns
        - ``(transaction, text_score)`` pairs for matching transactions only
        """
        pass

    @abstractmethod
    async def fuzzy_search(
        self,
        query: str,
        filters: SearchFilters,
        limit: int
    ) -> List[Transaction]:
        """Case-insensitive substring match over the free-text fields."""
        pass

    @abstractmethod
    async def suggest(self, prefix: str, field: str, limit: int) -> List[str]:
        """Distinct values of ``field`` starting with ``prefix``, most frequent first."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None
