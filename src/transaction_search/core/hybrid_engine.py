"""Hybrid search engine fusing vector similarity and keyword relevance."""

import asyncio
import logging
from typing import List, Dict, Any, Optional, Tuple, NamedTuple, Iterable
from concurrent.futures import ThreadPoolExecutor

from ..config import SearchSettings
from ..models.transaction import Transaction
from ..models.query import SearchFilters, SearchOptions
from ..models.result import FusionWeights, SearchResult, SearchMetadata, HybridSearchResponse
from ..storage.base import TransactionStore
from ..utils.text_processing import TextProcessor
from ..utils.validators import validate_search_request
from .embeddings import EmbeddingGenerator
from .lexical import LexicalSearch, FuzzySearch
from .query_understanding import SmartQueryParser
from .exceptions import (
    TransactionSearchError,
    DimensionMismatchError,
    EmptyInputError,
    IndexUnavailableError,
    InvalidQueryError,
    SearchUnavailableError
)

logger = logging.getLogger(__name__)

FALLBACK_WEIGHTS = FusionWeights(vector_weight=0.0, text_weight=1.0)


class _VectorOutcome(NamedTuple):
    hits: List[Tuple[Transaction, float]]
    error: Optional[BaseException] = None
    timed_out: bool = False


class _TextOutcome(NamedTuple):
    hits: List[Tuple[Transaction, float]]
    fuzzy_hits: List[Transaction]
    text_failed: bool = False
    error: Optional[BaseException] = None


class HybridSearchEngine:
    """
    Hybrid search over transactions.

    Runs vector retrieval (query embedding + nearest neighbours) and lexical
    retrieval concurrently, merges the candidates by transaction id and ranks
    them by ``vector_score * vector_weight + text_score * text_weight``.

    Either path may fail on its own; the call then degrades and reports what
    happened in the response metadata. Only when both paths fail is an error
    raised.
    """

    def __init__(
        self,
        store: TransactionStore,
        embedder: Optional[EmbeddingGenerator] = None,
        settings: Optional[SearchSettings] = None,
        parser: Optional[SmartQueryParser] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Initialize hybrid search engine.

        Args:
            store: Backend exposing vector, text and fuzzy search
            embedder: Embedding generator for query vectors
            settings: Fusion and retrieval defaults
            parser: Query understanding used by ``smart_search``
            executor: Thread pool shared with the default embedder
        """
        self.settings = settings or SearchSettings()
        self.store = store

        self.executor = executor or ThreadPoolExecutor(max_workers=self.settings.max_workers)
        self._owns_executor = executor is None

        self.embedder = embedder or EmbeddingGenerator(
            model_name=self.settings.embedding_model,
            dimension=self.settings.embedding_dimension,
            device=self.settings.device,
            executor=self.executor
        )
        self.lexical = LexicalSearch(store)
        self.fuzzy = FuzzySearch(store)
        self.parser = parser or SmartQueryParser()
        self.text_processor = TextProcessor()

        self._stats = {
            'total_searches': 0,
            'smart_searches': 0,
            'fallback_searches': 0,
            'text_failures': 0,
            'failed_searches': 0,
            'avg_search_time': 0.0
        }

        logger.info("Hybrid search engine initialized")

    def default_options(self, limit: Optional[int] = None) -> SearchOptions:
        """
        Search options built from settings.

        Raises:
            InvalidQueryError: If ``limit`` is out of range
        """
        try:
            return SearchOptions(
                vector_weight=self.settings.vector_weight,
                text_weight=self.settings.text_weight,
                limit=self.settings.default_limit if limit is None else limit,
                timeout=self.settings.retrieval_timeout
            )
        except ValueError as e:
            raise InvalidQueryError(str(e)) from e

    async def hybrid_search(
        self,
        query: str,
        filters: Optional[SearchFilters] = None,
        options: Optional[SearchOptions] = None
    ) -> HybridSearchResponse:
        """
        Search transactions with fused vector and keyword scores.

        Args:
            query: Free-text query; blank text is served by keyword paths only
            filters: Structured predicates applied to every retrieval path
            options: Weights, limit and per-branch timeout

        Returns:
            Ranked results and metadata describing the call

        Raises:
            InvalidQueryError: If the request is malformed
            SearchUnavailableError: If both the vector and the lexical path failed
            DimensionMismatchError: If the query vector does not fit the stored embeddings
        """
        start_time = asyncio.get_event_loop().time()
        filters = filters if filters is not None else SearchFilters()
        options = options if options is not None else self.default_options()
        validate_search_request(query, filters, options, self.settings.max_limit)

        branches = [
            asyncio.ensure_future(self._vector_branch(query, filters, options)),
            asyncio.ensure_future(self._text_branch(query, filters, options))
        ]
        try:
            vector, text = await asyncio.gather(*branches)
        except BaseException:
            for branch in branches:
                branch.cancel()
            await asyncio.gather(*branches, return_exceptions=True)
            raise

        vector_failed = vector.error is not None and not vector.timed_out
        if vector_failed and text.error is not None:
            self._stats['failed_searches'] += 1
            logger.error(
                f"Hybrid search has no signal: vector path ({vector.error}), "
                f"text path ({text.error})"
            )
            raise SearchUnavailableError(
                "Both vector and text search are unavailable",
                vector_error=vector.error,
                text_error=text.error
            )

        fallback = vector.error is not None
        weights = FALLBACK_WEIGHTS if fallback else FusionWeights(
            vector_weight=options.vector_weight,
            text_weight=options.text_weight
        )

        merged = self._merge(vector.hits, text.hits, weights)
        results = self._rank(merged.values())[:options.limit]
        fuzzy_added = self._append_fuzzy(results, merged, text.fuzzy_hits, options.limit)
        for rank, result in enumerate(results, 1):
            result.rank = rank

        metadata = SearchMetadata(
            total_results=len(results),
            vector_result_count=len(vector.hits),
            text_result_count=len(text.hits),
            weights=weights,
            fallback=fallback,
            fuzzy_result_count=fuzzy_added,
            text_search_failed=text.text_failed
        )

        search_time = asyncio.get_event_loop().time() - start_time
        self._update_search_stats(search_time, fallback, text.text_failed)
        logger.info(
            f"Hybrid search completed: {len(results)} results in {search_time:.3f}s "
            f"(vector={len(vector.hits)}, text={len(text.hits)}, fallback={fallback})"
        )
        return HybridSearchResponse(results=results, metadata=metadata)

    async def smart_search(self, query: str, limit: Optional[int] = None) -> HybridSearchResponse:
        """
        Hybrid search after extracting date and type filters from the query.

        The residual query (or the raw query, if nothing is left) is searched
        with the extracted filters; the parsed context is attached to the metadata.
        """
        if not isinstance(query, str):
            raise InvalidQueryError(f"Query must be a string, got {type(query).__name__}")

        options = self.default_options(limit)
        context = self.parser.parse(query)

        response = await self.hybrid_search(context.effective_query, context.filters, options)
        response.metadata.query_context = context
        self._stats['smart_searches'] += 1
        return response

    async def suggest(self, prefix: str, field: str = "description", limit: int = 5) -> List[str]:
        """Autocomplete values for ``field`` starting with ``prefix``."""
        if limit <= 0:
            raise InvalidQueryError("Limit must be positive")
        try:
            return await self.store.suggest(prefix, field, limit)
        except TransactionSearchError:
            raise
        except Exception as e:
            logger.error(f"Suggestion lookup failed: {e}")
            raise IndexUnavailableError(f"Suggestion lookup failed: {e}") from e

    async def _vector_branch(
        self,
        query: str,
        filters: SearchFilters,
        options: SearchOptions
    ) -> _VectorOutcome:
        """Embed the query and fetch vector candidates, degrading on failure."""
        if self.text_processor.is_blank(query):
            logger.info("Blank query; skipping vector search")
            return _VectorOutcome([], EmptyInputError("Query is empty"))

        try:
            hits = await asyncio.wait_for(
                self._vector_candidates(query, filters, options.limit),
                timeout=options.timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Vector search timed out after {options.timeout}s")
            return _VectorOutcome([], e, timed_out=True)
        except DimensionMismatchError:
            raise
        except TransactionSearchError as e:
            logger.warning(f"Vector search unavailable, falling back to text only: {e}")
            return _VectorOutcome([], e)
        return _VectorOutcome(hits)

    async def _vector_candidates(
        self,
        query: str,
        filters: SearchFilters,
        limit: int
    ) -> List[Tuple[Transaction, float]]:
        query_vector = await self.embedder.embed(query)

        pool_size = limit * self.settings.candidate_pool_factor
        num_candidates = max(self.settings.num_candidates, pool_size)
        try:
            return await self.store.vector_search(query_vector, filters, num_candidates, pool_size)
        except TransactionSearchError:
            raise
        except Exception as e:
            raise IndexUnavailableError(f"Vector search failed: {e}") from e

    async def _text_branch(
        self,
        query: str,
        filters: SearchFilters,
        options: SearchOptions
    ) -> _TextOutcome:
        """Fetch lexical candidates, falling back to substring matches on failure."""
        try:
            hits = await asyncio.wait_for(
                self.lexical.search(query, filters, options.limit),
                timeout=options.timeout
            )
            return _TextOutcome(hits, [])
        except asyncio.TimeoutError:
            logger.warning(f"Text search timed out after {options.timeout}s")
            return _TextOutcome([], [])
        except IndexUnavailableError as e:
            logger.warning(f"Text search failed, continuing without keyword scores: {e}")
            text_error = e

        if not self.settings.fuzzy_fallback or self.text_processor.is_blank(query):
            return _TextOutcome([], [], text_failed=True, error=text_error)

        try:
            fuzzy_hits = await asyncio.wait_for(
                self.fuzzy.search(query, filters, options.limit),
                timeout=options.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Fuzzy search timed out after {options.timeout}s")
            return _TextOutcome([], [], text_failed=True, error=text_error)
        except IndexUnavailableError as e:
            logger.warning(f"Fuzzy fallback failed as well: {e}")
            return _TextOutcome([], [], text_failed=True, error=text_error)

        logger.info(f"Fuzzy fallback matched {len(fuzzy_hits)} transactions")
        return _TextOutcome([], fuzzy_hits, text_failed=True)

    def _merge(
        self,
        vector_hits: List[Tuple[Transaction, float]],
        text_hits: List[Tuple[Transaction, float]],
        weights: FusionWeights
    ) -> Dict[str, SearchResult]:
        """Merge candidate sets by transaction id."""
        merged: Dict[str, SearchResult] = {}

        for transaction, score in vector_hits:
            if transaction.id in merged:
                continue
            result = SearchResult(
                id=transaction.id,
                transaction=transaction,
                vector_score=score,
                matched_by=["vector"]
            )
            result.rescore(weights)
            merged[transaction.id] = result

        for transaction, score in text_hits:
            existing = merged.get(transaction.id)
            if existing is not None:
                if "text" in existing.matched_by:
                    continue
                existing.text_score = score
                existing.matched_by.append("text")
                existing.rescore(weights)
            else:
                result = SearchResult(
                    id=transaction.id,
                    transaction=transaction,
                    text_score=score,
                    matched_by=["text"]
                )
                result.rescore(weights)
                merged[transaction.id] = result

        return merged

    @staticmethod
    def _rank(results: Iterable[SearchResult]) -> List[SearchResult]:
        """Sort by hybrid score, then most recent date, then id."""
        ordered = sorted(results, key=lambda r: r.id)
        ordered.sort(key=lambda r: (r.hybrid_score, r.transaction.date), reverse=True)
        return ordered

    @staticmethod
    def _append_fuzzy(
        results: List[SearchResult],
        merged: Dict[str, SearchResult],
        fuzzy_hits: List[Transaction],
        limit: int
    ) -> int:
        """
        Add substring matches after the scored results.

        Fuzzy matches carry no graded score, so they never compete with
        scored candidates; they only fill remaining slots.
        """
        added = 0
        for transaction in fuzzy_hits:
            existing = merged.get(transaction.id)
            if existing is not None:
                if "fuzzy" not in existing.matched_by:
                    existing.matched_by.append("fuzzy")
                continue
            if len(results) >= limit:
                continue
            result = SearchResult(id=transaction.id, transaction=transaction, matched_by=["fuzzy"])
            merged[transaction.id] = result
            results.append(result)
            added += 1
        return added

    def _update_search_stats(self, search_time: float, fallback: bool, text_failed: bool) -> None:
        """Update search performance statistics."""
        self._stats['total_searches'] += 1
        if fallback:
            self._stats['fallback_searches'] += 1
        if text_failed:
            self._stats['text_failures'] += 1

        # Update rolling average
        total_searches = self._stats['total_searches']
        current_avg = self._stats['avg_search_time']
        self._stats['avg_search_time'] = (
            (current_avg * (total_searches - 1) + search_time) / total_searches
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        return {
            **self._stats,
            'vector_weight': self.settings.vector_weight,
            'text_weight': self.settings.text_weight,
            'default_limit': self.settings.default_limit,
            'fuzzy_fallback': self.settings.fuzzy_fallback,
            'embedding': self.embedder.get_stats()
        }

    async def health_check(self) -> Dict[str, Any]:
        """Report whether the embedding model can be loaded."""
        try:
            await self.embedder.initialize()
            model_ready = True
            error = None
        except TransactionSearchError as e:
            logger.error(f"Health check failed: {e}")
            model_ready = False
            error = str(e)

        health = {
            'status': 'healthy' if model_ready else 'degraded',
            'embedding_model_ready': model_ready,
            'stats': self.get_stats(),
            'timestamp': asyncio.get_event_loop().time()
        }
        if error:
            health['error'] = error
        return health

    async def close(self) -> None:
        """Clean up resources."""
        if self._owns_executor:
            self.executor.shutdown(wait=True)
        logger.info("Hybrid search engine closed")
