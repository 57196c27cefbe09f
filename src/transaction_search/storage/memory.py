"""In-memory transaction store backed by FAISS and scikit-learn TF-IDF."""

import asyncio
import logging
import threading
from collections import Counter
from typing import List, Dict, Any, Optional, Tuple
from concurrent.futures import ThreadPoolExecutor

import faiss
import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from ..models.transaction import Transaction
from ..models.query import SearchFilters
from ..utils.text_processing import TextProcessor
from ..utils.validators import validate_transactions_batch
from ..core.exceptions import (
    DimensionMismatchError,
    IndexUnavailableError,
    InvalidQueryError,
    ValidationError
)
from .base import TransactionStore, SUGGESTION_FIELDS

logger = logging.getLogger(__name__)


class InMemoryTransactionStore(TransactionStore):
    """
    Transaction store held entirely in process memory.

    Vector search uses an exact FAISS inner-product index over L2-normalised
    embeddings (inner product equals cosine similarity). Text search scores
    the concatenated free-text fields with TF-IDF cosine similarity, so text
    scores fall in [0, 1] like the vector scores.
    """

    def __init__(
        self,
        transactions: Optional[List[Transaction]] = None,
        dimension: Optional[int] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Initialize the store.

        Args:
            transactions: Initial transactions to index
            dimension: Embedding dimension; inferred from the first embedding if None
            executor: Thread pool executor for async operations
        """
        self.dimension = dimension
        self.text_processor = TextProcessor()

        self._transactions: List[Transaction] = []
        self._positions: Dict[str, int] = {}

        self._vectorizer: Optional[TfidfVectorizer] = None
        self._text_matrix = None
        self._faiss_index = None
        self._vector_rows: List[int] = []

        self._lock = threading.Lock()
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._owns_executor = executor is None

        if transactions:
            self._add_sync(transactions)

    def __len__(self) -> int:
        return len(self._transactions)

    def get(self, transaction_id: str) -> Optional[Transaction]:
        position = self._positions.get(transaction_id)
        return self._transactions[position] if position is not None else None

    async def add_transactions(self, transactions: List[Transaction]) -> None:
        """
        Add transactions and rebuild both indexes.

        Raises:
            ValidationError: If a transaction is invalid or its ID already exists
            DimensionMismatchError: If an embedding has the wrong length
        """
        await asyncio.get_event_loop().run_in_executor(
            self._executor, self._add_sync, transactions
        )
        logger.info(f"Added {len(transactions)} transactions to in-memory store")

    def _add_sync(self, transactions: List[Transaction]) -> None:
        with self._lock:
            dimension = self.dimension
            if dimension is None:
                dimension = next(
                    (t.embedding.shape[0] for t in transactions if t.embedding is not None),
                    None
                )
            validate_transactions_batch(transactions, dimension)
            for transaction in transactions:
                if transaction.id in self._positions:
                    raise ValidationError(f"Duplicate transaction ID found: {transaction.id}")

            self.dimension = dimension
            start = len(self._transactions)
            self._transactions.extend(transactions)
            for offset, transaction in enumerate(transactions):
                self._positions[transaction.id] = start + offset

            self._rebuild_text_index()
            self._rebuild_vector_index()

    def _rebuild_text_index(self) -> None:
        """Refit TF-IDF over every transaction's composite text."""
        corpus = [
            self.text_processor.clean_text(self.text_processor.compose(t.text_fields()))
            for t in self._transactions
        ]
        if not corpus:
            return

        vectorizer = TfidfVectorizer(
            min_df=1,
            max_df=1.0,
            ngram_range=(1, 2),
            stop_words='english',
            lowercase=True,
            strip_accents='ascii',
            token_pattern=r'\b[a-zA-Z0-9][a-zA-Z0-9]*\b'
        )
        try:
            matrix = vectorizer.fit_transform(corpus)
        except ValueError:
            # Every token was a stop word; keep them all instead
            vectorizer = TfidfVectorizer(min_df=1, max_df=1.0, stop_words=None, lowercase=True)
            try:
                matrix = vectorizer.fit_transform(corpus)
            except ValueError as e:
                logger.warning(f"Text index left empty: {e}")
                self._vectorizer, self._text_matrix = None, None
                return

        self._vectorizer = vectorizer
        self._text_matrix = matrix

    def _rebuild_vector_index(self) -> None:
        """Rebuild the exact FAISS index over transactions that carry embeddings."""
        rows = [i for i, t in enumerate(self._transactions) if t.embedding is not None]
        if not rows or self.dimension is None:
            self._faiss_index, self._vector_rows = None, []
            return

        embeddings = np.ascontiguousarray(
            np.stack([self._transactions[i].embedding for i in rows]), dtype=np.float32
        )
        faiss.normalize_L2(embeddings)

        index = faiss.IndexFlatIP(self.dimension)
        index.add(embeddings)
        self._faiss_index = index
        self._vector_rows = rows

    async def vector_search(
        self,
        query_vector: np.ndarray,
        filters: SearchFilters,
        num_candidates: int,
        limit: int
    ) -> List[Tuple[Transaction, float]]:
        return await asyncio.get_event_loop().run_in_executor(
            self._executor, self._vector_search_sync, query_vector, filters, num_candidates, limit
        )

    def _vector_search_sync(
        self,
        query_vector: np.ndarray,
        filters: SearchFilters,
        num_candidates: int,
        limit: int
    ) -> List[Tuple[Transaction, float]]:
        with self._lock:
            if self._faiss_index is None or self._faiss_index.ntotal == 0:
                return []

            query = np.array(query_vector, dtype=np.float32).reshape(1, -1)
            if query.shape[1] != self._faiss_index.d:
                raise DimensionMismatchError(
                    f"Query vector has {query.shape[1]} components, index expects {self._faiss_index.d}"
                )
            faiss.normalize_L2(query)

            total = self._faiss_index.ntotal
            # Post-filtering needs every row once predicates are active
            k = total if not filters.is_empty else min(max(num_candidates, limit), total)
            try:
                scores, indices = self._faiss_index.search(query, k)
            except RuntimeError as e:
                raise IndexUnavailableError(f"Vector search failed: {e}") from e

            results = []
            for score, idx in zip(scores[0], indices[0]):
                if idx < 0:
                    continue
                transaction = self._transactions[self._vector_rows[idx]]
                if filters.matches(transaction):
                    results.append((transaction, float(score)))
                if len(results) >= limit:
                    break
            return results

    async def text_search(
        self,
        query: str,
        filters: SearchFilters,
        limit: int
    ) -> List[Tuple[Transaction, float]]:
        return await asyncio.get_event_loop().run_in_executor(
            self._executor, self._text_search_sync, query, filters, limit
        )

    def _text_search_sync(
        self,
        query: str,
        filters: SearchFilters,
        limit: int
    ) -> List[Tuple[Transaction, float]]:
        with self._lock:
            if self._vectorizer is None or self.text_processor.is_blank(query):
                return []

            query_vector = self._vectorizer.transform([self.text_processor.clean_text(query)])
            similarities = cosine_similarity(query_vector, self._text_matrix).flatten()

            matches = [
                (self._transactions[i], float(similarities[i]))
                for i in np.nonzero(similarities > 0)[0]
                if filters.matches(self._transactions[i])
            ]
        matches.sort(key=lambda pair: (pair[1], pair[0].date), reverse=True)
        return matches[:limit]

    async def fuzzy_search(
        self,
        query: str,
        filters: SearchFilters,
        limit: int
    ) -> List[Transaction]:
        return await asyncio.get_event_loop().run_in_executor(
            self._executor, self._fuzzy_search_sync, query, filters, limit
        )

    def _fuzzy_search_sync(self, query: str, filters: SearchFilters, limit: int) -> List[Transaction]:
        needle = query.strip()
        if not needle:
            return []

        with self._lock:
            matches = [
                t for t in self._transactions
                if filters.matches(t)
                and any(self.text_processor.contains(value, needle) for value in t.text_fields())
            ]
        matches.sort(key=lambda t: t.date, reverse=True)
        return matches[:limit]

    async def suggest(self, prefix: str, field: str = "description", limit: int = 5) -> List[str]:
        if field not in SUGGESTION_FIELDS:
            raise InvalidQueryError(
                f"Unsupported suggestion field: {field}. Expected one of {', '.join(SUGGESTION_FIELDS)}"
            )

        prefix_lower = prefix.strip().lower()
        with self._lock:
            counts = Counter(
                value for value in (getattr(t, field) for t in self._transactions)
                if value and value.lower().startswith(prefix_lower)
            )
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [value for value, _ in ranked[:limit]]

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {
            'total_transactions': len(self._transactions),
            'embedded_transactions': len(self._vector_rows),
            'dimension': self.dimension,
            'vocabulary_size': len(self._vectorizer.vocabulary_) if self._vectorizer else 0
        }

    async def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
