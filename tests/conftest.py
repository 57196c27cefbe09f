"""Pytest configuration and shared fixtures."""

import asyncio
import hashlib
import re
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List, Optional, Tuple

import numpy as np

from transaction_search.config import SearchSettings
from transaction_search.core.embeddings import EmbeddingGenerator
from transaction_search.core.hybrid_engine import HybridSearchEngine
from transaction_search.core.query_understanding import SmartQueryParser
from transaction_search.models.transaction import Transaction, TransactionType
from transaction_search.models.query import SearchFilters
from transaction_search.storage.base import TransactionStore
from transaction_search.storage.memory import InMemoryTransactionStore

DIM = 256
FIXED_NOW = datetime(2024, 6, 18, 15, 30)


def fake_vector(text: str, dimension: int = DIM) -> np.ndarray:
    """Deterministic bag-of-words vector: one hashed bucket per token, L2-normalised."""
    vector = np.zeros(dimension, dtype=np.float32)
    for token in re.findall(r'[a-z0-9]+', text.lower()):
        vector[int(hashlib.md5(token.encode()).hexdigest(), 16) % dimension] += 1.0
    norm = np.linalg.norm(vector)
    return vector / norm if norm else vector


class FakeEmbeddingModel:
    """Stands in for a SentenceTransformer."""

    def __init__(self, dimension: int = DIM):
        self.dimension = dimension
        self.encode_calls = 0

    def get_sentence_embedding_dimension(self) -> int:
        return self.dimension

    def encode(self, texts, convert_to_numpy=True, normalize_embeddings=True):
        self.encode_calls += 1
        return np.stack([fake_vector(text, self.dimension) for text in texts])


class FailingEmbeddingModel(FakeEmbeddingModel):
    """Loads fine but cannot encode."""

    def encode(self, texts, convert_to_numpy=True, normalize_embeddings=True):
        raise RuntimeError("CUDA out of memory")


class StubStore(TransactionStore):
    """Store returning canned candidates and recording how it was called."""

    def __init__(
        self,
        vector_hits: Optional[List[Tuple[Transaction, float]]] = None,
        text_hits: Optional[List[Tuple[Transaction, float]]] = None,
        fuzzy_hits: Optional[List[Transaction]] = None,
        vector_error: Optional[Exception] = None,
        text_error: Optional[Exception] = None,
        fuzzy_error: Optional[Exception] = None,
        vector_delay: float = 0.0,
        text_delay: float = 0.0
    ):
        self.vector_hits = vector_hits or []
        self.text_hits = text_hits or []
        self.fuzzy_hits = fuzzy_hits or []
        self.vector_error = vector_error
        self.text_error = text_error
        self.fuzzy_error = fuzzy_error
        self.vector_delay = vector_delay
        self.text_delay = text_delay
        self.vector_calls = []
        self.text_calls = []
        self.fuzzy_calls = []
        self.suggest_calls = []

    async def vector_search(self, query_vector, filters, num_candidates, limit):
        self.vector_calls.append({
            'query_vector': query_vector,
            'filters': filters,
            'num_candidates': num_candidates,
            'limit': limit
        })
        if self.vector_delay:
            await asyncio.sleep(self.vector_delay)
        if self.vector_error:
            raise self.vector_error
        return list(self.vector_hits)

    async def text_search(self, query, filters, limit):
        self.text_calls.append({'query': query, 'filters': filters, 'limit': limit})
        if self.text_delay:
            await asyncio.sleep(self.text_delay)
        if self.text_error:
            raise self.text_error
        return list(self.text_hits)

    async def fuzzy_search(self, query, filters, limit):
        self.fuzzy_calls.append({'query': query, 'filters': filters, 'limit': limit})
        if self.fuzzy_error:
            raise self.fuzzy_error
        return list(self.fuzzy_hits)

    async def suggest(self, prefix, field, limit):
        self.suggest_calls.append((prefix, field, limit))
        return ["Cement purchase"][:limit]


def make_transaction(
    id: str,
    description: str = "Miscellaneous",
    date: Optional[datetime] = None,
    type: TransactionType = TransactionType.EXPENSE,
    **kwargs
) -> Transaction:
    """Build a transaction with sensible defaults."""
    return Transaction(
        id=id,
        description=description,
        date=date or datetime(2024, 5, 1),
        type=type,
        amount=kwargs.pop('amount', 100.0),
        **kwargs
    )


def embedded(transaction: Transaction) -> Transaction:
    """Attach the fake embedding of the transaction's composite text."""
    transaction.embedding = fake_vector(" ".join(transaction.text_fields()))
    return transaction


@pytest.fixture
def fake_model_factory():
    """Model factory that counts how often it is called."""
    calls = []

    def factory(model_name: str, device: str) -> FakeEmbeddingModel:
        calls.append((model_name, device))
        return FakeEmbeddingModel()

    factory.calls = calls
    return factory


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=8)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def embedder(fake_model_factory, executor) -> EmbeddingGenerator:
    return EmbeddingGenerator(
        model_name="fake-model",
        dimension=DIM,
        device="cpu",
        model_factory=fake_model_factory,
        executor=executor
    )


@pytest.fixture
def failing_embedder(executor) -> EmbeddingGenerator:
    return EmbeddingGenerator(
        model_name="fake-model",
        dimension=DIM,
        device="cpu",
        model_factory=lambda name, device: FailingEmbeddingModel(),
        executor=executor
    )


@pytest.fixture
def settings() -> SearchSettings:
    return SearchSettings(
        embedding_model="fake-model",
        embedding_dimension=DIM,
        retrieval_timeout=None,
        fuzzy_fallback=True,
        log_level="WARNING"
    )


@pytest.fixture
def parser() -> SmartQueryParser:
    return SmartQueryParser(clock=lambda: FIXED_NOW)


@pytest.fixture
def sample_transactions() -> List[Transaction]:
    """Construction-company ledger; every record but the rebar purchase is embedded."""
    return [
        embedded(make_transaction(
            "t1", "Cement purchase for foundation",
            date=datetime(2024, 5, 10), amount=1250.0,
            project_id="p1", project_name="Riverside Tower",
            category_id="c1", category_name="Construction Materials",
            source="BuildMart"
        )),
        embedded(make_transaction(
            "t2", "Concrete mix delivery",
            date=datetime(2024, 5, 20), amount=3400.0,
            project_id="p1", project_name="Riverside Tower",
            category_id="c1", category_name="Construction Materials",
            source="ReadyMix Co"
        )),
        embedded(make_transaction(
            "t3", "Client payment milestone 2",
            date=datetime(2024, 5, 25), type=TransactionType.INCOME, amount=25000.0,
            project_id="p1", project_name="Riverside Tower",
            category_id="c2", category_name="Project Revenue",
            source="Acme Developers"
        )),
        embedded(make_transaction(
            "t4", "Office rent May",
            date=datetime(2024, 5, 1), amount=2000.0,
            project_id="p2", project_name="Head Office",
            category_id="c3", category_name="Rent",
            source="City Properties"
        )),
        embedded(make_transaction(
            "t5", "Consulting revenue Q2",
            date=datetime(2024, 6, 15), type=TransactionType.INCOME, amount=8000.0,
            project_id="p2", category_id="c2", category_name="Consulting",
            source="Globex"
        )),
        make_transaction(
            "t6", "Steel rebar purchase",
            date=datetime(2024, 6, 2), amount=5600.0,
            project_id="p3", project_name="Harbor Bridge",
            category_id="c1", category_name="Construction Materials",
            source="SteelWorks"
        ),
    ]


@pytest.fixture
async def memory_store(sample_transactions, executor):
    store = InMemoryTransactionStore(dimension=DIM, executor=executor)
    await store.add_transactions(sample_transactions)
    yield store
    await store.close()


@pytest.fixture
def make_engine(embedder, settings, parser, executor):
    """Build an engine over any store with the fake embedder."""
    def build(
        store: TransactionStore,
        embedder_override: Optional[EmbeddingGenerator] = None,
        **overrides
    ) -> HybridSearchEngine:
        engine_settings = settings.model_copy(update=overrides) if overrides else settings
        return HybridSearchEngine(
            store=store,
            embedder=embedder_override or embedder,
            settings=engine_settings,
            parser=parser,
            executor=executor
        )
    return build


@pytest.fixture
def no_filters() -> SearchFilters:
    return SearchFilters()
