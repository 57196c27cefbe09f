"""High-level API service for transaction search."""

import logging
from datetime import datetime
from typing import List, Dict, Any, Optional, AsyncIterator, Union
from contextlib import asynccontextmanager

import pydantic

from ..config import SearchSettings
from ..core.hybrid_engine import HybridSearchEngine
from ..core.embeddings import EmbeddingGenerator
from ..core.query_understanding import SmartQueryParser
from ..models.transaction import Transaction, TransactionType
from ..models.query import DateRange, SearchFilters, SearchOptions, SearchRequestModel
from ..models.result import HybridSearchResponse
from ..storage.base import TransactionStore
from ..storage.memory import InMemoryTransactionStore
from ..utils.logging_config import setup_logging
from ..core.exceptions import TransactionSearchError, ConfigurationError

logger = logging.getLogger(__name__)


class TransactionSearchService:
    """
    High-level service interface for transaction search.

    Wires settings, store, embedding generator and hybrid engine together
    and manages their lifecycle. Callers own HTTP, authentication and
    presentation.
    """

    def __init__(
        self,
        store: Optional[TransactionStore] = None,
        embedder: Optional[EmbeddingGenerator] = None,
        settings: Optional[SearchSettings] = None,
        parser: Optional[SmartQueryParser] = None,
        log_level: Optional[str] = None,
        **overrides: Any
    ):
        """
        Initialize transaction search service.

        Args:
            store: Transaction store; an empty in-memory store if None
            embedder: Embedding generator; built from settings if None
            settings: Base settings; read from the environment if None
            parser: Query understanding for smart search
            log_level: Logging level (overrides settings)
            **overrides: Individual ``SearchSettings`` fields to override
        """
        unknown = set(overrides) - set(SearchSettings.model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        try:
            base = settings or SearchSettings()
            self.settings = SearchSettings(**{**base.model_dump(), **overrides}) if overrides else base
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid search settings: {e}") from e

        setup_logging(level=log_level or self.settings.log_level)

        self._owns_store = store is None
        self.store = store or InMemoryTransactionStore(dimension=self.settings.embedding_dimension)
        self.engine = HybridSearchEngine(
            store=self.store,
            embedder=embedder,
            settings=self.settings,
            parser=parser
        )

        self._initialized = False
        logger.info("Transaction search service initialized")

    async def initialize(self, warm_up: bool = False) -> None:
        """
        Mark the service ready, optionally loading the embedding model eagerly.

        Args:
            warm_up: Load the embedding model now instead of on first search
        """
        try:
            if warm_up:
                await self.engine.embedder.initialize()
            self._initialized = True
            logger.info("Service initialization complete")

        except Exception as e:
            logger.error(f"Failed to initialize service: {str(e)}")
            raise TransactionSearchError(f"Service initialization failed: {str(e)}") from e

    async def add_transactions(self, transactions: List[Transaction]) -> None:
        """Index transactions in the in-memory store."""
        self._check_initialized()
        if not isinstance(self.store, InMemoryTransactionStore):
            raise TransactionSearchError("Transactions can only be added to the in-memory store")
        await self.store.add_transactions(transactions)

    async def hybrid_search(
        self,
        query: str,
        filters: Optional[SearchFilters] = None,
        options: Optional[SearchOptions] = None
    ) -> HybridSearchResponse:
        """Hybrid search; see ``HybridSearchEngine.hybrid_search``."""
        self._check_initialized()
        return await self.engine.hybrid_search(query, filters, options)

    async def smart_search(self, query: str, limit: Optional[int] = None) -> HybridSearchResponse:
        """Hybrid search with date and type filters extracted from the query."""
        self._check_initialized()
        return await self.engine.smart_search(query, limit)

    async def search_request(
        self,
        request: Union[SearchRequestModel, Dict[str, Any]]
    ) -> HybridSearchResponse:
        """Run a hybrid search described by a validated request payload."""
        if not isinstance(request, SearchRequestModel):
            request = SearchRequestModel.model_validate(request)
        return await self.hybrid_search(request.query, request.to_filters(), request.to_options())

    async def search_text(
        self,
        text: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        type: Optional[str] = None,
        project_id: Optional[str] = None,
        category_id: Optional[str] = None,
        limit: Optional[int] = None
    ) -> HybridSearchResponse:
        """
        Convenience method for simple filtered search.

        Args:
            text: Search text
            start_date: Inclusive start date
            end_date: Inclusive end date
            type: 'income' or 'expense'
            project_id: Project filter
            category_id: Category filter
            limit: Maximum results to return
        """
        date_range = DateRange(start=start_date, end=end_date) if (start_date or end_date) else None
        filters = SearchFilters(
            date_range=date_range,
            type=TransactionType(type) if type else None,
            project_id=project_id,
            category_id=category_id
        )
        options = self.engine.default_options(limit)
        return await self.hybrid_search(text, filters, options)

    async def suggest(self, prefix: str, field: str = "description", limit: int = 5) -> List[str]:
        """Autocomplete values for a free-text field."""
        self._check_initialized()
        return await self.engine.suggest(prefix, field, limit)

    async def get_stats(self) -> Dict[str, Any]:
        """Get service and engine statistics."""
        self._check_initialized()

        stats = {
            'service': {
                'initialized': self._initialized,
                'store': type(self.store).__name__
            },
            'engine': self.engine.get_stats()
        }
        if isinstance(self.store, InMemoryTransactionStore):
            stats['store'] = self.store.get_stats()
        return stats

    async def health_check(self) -> Dict[str, Any]:
        """Perform comprehensive health check."""
        if not self._initialized:
            return {
                'status': 'not_initialized',
                'message': 'Service not initialized'
            }
        return await self.engine.health_check()

    def _check_initialized(self) -> None:
        """Check if service is properly initialized."""
        if not self._initialized:
            raise TransactionSearchError("Service not initialized. Call initialize() first.")

    async def close(self) -> None:
        """Clean up resources and close the service."""
        await self.engine.close()
        if self._owns_store:
            await self.store.close()
        self._initialized = False
        logger.info("Service closed successfully")

    @classmethod
    @asynccontextmanager
    async def create(
        cls,
        store: Optional[TransactionStore] = None,
        warm_up: bool = False,
        **kwargs: Any
    ) -> AsyncIterator['TransactionSearchService']:
        """
        Create and manage service lifecycle with context manager.

        Args:
            store: Transaction store
            warm_up: Load the embedding model before yielding
            **kwargs: Additional service configuration

        Yields:
            Initialized transaction search service
        """
        service = cls(store=store, **kwargs)

        try:
            await service.initialize(warm_up=warm_up)
            yield service
        finally:
            await service.close()
