"""Keyword retrieval paths: graded full-text search and substring fallback."""

import logging
from typing import List, Tuple, Optional

from ..models.transaction import Transaction
from ..models.query import SearchFilters
from ..storage.base import TransactionStore
from .exceptions import TransactionSearchError, IndexUnavailableError

logger = logging.getLogger(__name__)


class LexicalSearch:
    """
    Full-text search with a graded relevance score.

    Results are ordered by text score (descending), ties going to the more
    recent transaction. Backend failures surface as ``IndexUnavailableError``;
    deciding whether to degrade is left to the caller.
    """

    def __init__(self, store: TransactionStore):
        self.store = store

    async def search(
        self,
        query: str,
        filters: Optional[SearchFilters] = None,
        limit: int = 20
    ) -> List[Tuple[Transaction, float]]:
        """
        Search transactions by keywords.

        Args:
            query: Search query text
            filters: Structured predicates
            limit: Maximum number of results

        Returns:
            List of (transaction, text_score) tuples

        Raises:
            IndexUnavailableError: If the text backend fails
        """
        filters = filters or SearchFilters()
        try:
            candidates = await self.store.text_search(query, filters, limit)
        except TransactionSearchError:
            raise
        except Exception as e:
            logger.error(f"Text search failed: {e}")
            raise IndexUnavailableError(f"Text search failed: {e}") from e

        results = [(t, score) for t, score in candidates if filters.matches(t)]
        results.sort(key=lambda pair: (pair[1], pair[0].date), reverse=True)

        logger.debug(f"Text search returned {len(results)} results for query: '{query[:50]}'")
        return results[:limit]


class FuzzySearch:
    """
    Substring fallback used when full-text search is degraded.

    A transaction matches when any free-text field contains the query,
    case-insensitively. Matches are binary and ordered by date only.
    """

    def __init__(self, store: TransactionStore):
        self.store = store

    async def search(
        self,
        query: str,
        filters: Optional[SearchFilters] = None,
        limit: int = 20
    ) -> List[Transaction]:
        """
        Raises:
            IndexUnavailableError: If the backend fails
        """
        filters = filters or SearchFilters()
        if not query or not query.strip():
            return []

        try:
            candidates = await self.store.fuzzy_search(query, filters, limit)
        except TransactionSearchError:
            raise
        except Exception as e:
            logger.error(f"Fuzzy search failed: {e}")
            raise IndexUnavailableError(f"Fuzzy search failed: {e}") from e

        results = [t for t in candidates if filters.matches(t)]
        results.sort(key=lambda t: t.date, reverse=True)
        return results[:limit]
