"""Sentence-transformer embedding generation for transactions and queries."""

import asyncio
import logging
import threading
from typing import List, Dict, Any, Optional, Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np

try:
    from sentence_transformers import SentenceTransformer
    import torch
    TRANSFORMERS_AVAILABLE = True
except ImportError:
    TRANSFORMERS_AVAILABLE = False

from ..utils.text_processing import TextProcessor
from .exceptions import (
    TransactionSearchError,
    EmptyInputError,
    DimensionMismatchError,
    ModelUnavailableError
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_DIMENSION = 384

ModelFactory = Callable[[str, str], Any]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    if a.shape[0] != b.shape[0]:
        raise DimensionMismatchError(
            f"Vectors must have the same length ({a.shape[0]} != {b.shape[0]})"
        )

    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


def _load_sentence_transformer(model_name: str, device: str) -> Any:
    return SentenceTransformer(model_name, device=device)


class EmbeddingGenerator:
    """
    Dense text embeddings backed by a lazily loaded sentence-transformer.

    The model is loaded at most once per generator. Concurrent first
    callers wait on the same lock and reuse the loaded model; encoding
    runs on the executor so it never blocks the event loop.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL_NAME,
        dimension: int = DEFAULT_DIMENSION,
        device: Optional[str] = None,
        model_factory: Optional[ModelFactory] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Initialize the embedding generator. No model is loaded here.

        Args:
            model_name: Sentence transformer model name
            dimension: Expected embedding dimension (overridden by the model if it reports one)
            device: Device to run the model on ('cpu', 'cuda', 'mps'); autodetected if None
            model_factory: Callable ``(model_name, device) -> model``; defaults to SentenceTransformer
            executor: Thread pool executor for async operations
        """
        self.model_name = model_name
        self.dimension = dimension
        self.device = device
        self._model_factory = model_factory
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._owns_executor = executor is None

        self._model = None
        self._model_lock = threading.Lock()
        self._load_count = 0

        self.text_processor = TextProcessor()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _get_best_device(self) -> str:
        """Determine the best available device."""
        if not TRANSFORMERS_AVAILABLE:
            return "cpu"
        if torch.cuda.is_available():
            return "cuda"
        elif hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
            return "mps"
        else:
            return "cpu"

    async def initialize(self) -> None:
        """
        Load the embedding model if it is not loaded yet.

        Raises:
            ModelUnavailableError: If the model cannot be loaded
        """
        if self._model is not None:
            return
        await asyncio.get_event_loop().run_in_executor(self._executor, self._load_model)

    def _load_model(self) -> Any:
        """Load the model under the init lock (synchronous)."""
        with self._model_lock:
            if self._model is not None:
                return self._model

            factory = self._model_factory
            if factory is None:
                if not TRANSFORMERS_AVAILABLE:
                    raise ModelUnavailableError(
                        "Transformer dependencies not available. Install with: "
                        "pip install sentence-transformers torch"
                    )
                factory = _load_sentence_transformer

            device = self.device or self._get_best_device()
            logger.info(f"Loading embedding model {self.model_name} on {device}")
            try:
                model = factory(self.model_name, device)
            except Exception as e:
                logger.error(f"Failed to load embedding model: {e}")
                raise ModelUnavailableError(f"Failed to load embedding model: {e}") from e

            reported = getattr(model, "get_sentence_embedding_dimension", None)
            if callable(reported) and reported():
                self.dimension = int(reported())

            self.device = device
            self._load_count += 1
            self._model = model
            logger.info(f"Embedding model loaded (dimension={self.dimension})")
            return model

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Vector of ``dimension`` float32 components

        Raises:
            EmptyInputError: If text is empty or whitespace
            ModelUnavailableError: If the model cannot be loaded or run
        """
        if self.text_processor.is_blank(text):
            raise EmptyInputError("Text cannot be empty")

        await self.initialize()
        vectors = await asyncio.get_event_loop().run_in_executor(
            self._executor, self._encode, [text]
        )
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        """
        Embed many texts, preserving order and length.

        Blank entries yield the zero vector at their position instead of raising.
        """
        if not texts:
            return []

        positions = [i for i, text in enumerate(texts) if not self.text_processor.is_blank(text)]
        if positions:
            await self.initialize()
            encoded = await asyncio.get_event_loop().run_in_executor(
                self._executor, self._encode, [texts[i] for i in positions]
            )
        else:
            encoded = []

        results = [np.zeros(self.dimension, dtype=np.float32) for _ in texts]
        for position, vector in zip(positions, encoded):
            results[position] = vector
        return results

    async def embed_transaction(
        self,
        description: str,
        project_name: Optional[str] = None,
        category_name: Optional[str] = None,
        source: Optional[str] = None
    ) -> np.ndarray:
        """Embed the concatenation of a transaction's free-text fields."""
        text = self.text_processor.compose([description, project_name, category_name, source])
        return await self.embed(text)

    def _encode(self, texts: List[str]) -> List[np.ndarray]:
        """Encode texts with the loaded model (synchronous)."""
        model = self._model or self._load_model()
        try:
            matrix = model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)
        except TransactionSearchError:
            raise
        except Exception as e:
            logger.error(f"Failed to encode texts: {e}")
            raise ModelUnavailableError(f"Failed to encode texts: {e}") from e

        matrix = np.asarray(matrix, dtype=np.float32).reshape(len(texts), -1)
        if matrix.shape[1] != self.dimension:
            raise DimensionMismatchError(
                f"Model returned {matrix.shape[1]}-dimensional vectors, expected {self.dimension}"
            )
        return [row for row in matrix]

    @staticmethod
    def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
        """Cosine similarity; see module-level ``cosine_similarity``."""
        return cosine_similarity(a, b)

    def get_stats(self) -> Dict[str, Any]:
        """Get embedding generator statistics."""
        return {
            'model_name': self.model_name,
            'device': self.device,
            'dimension': self.dimension,
            'is_loaded': self.is_loaded,
            'load_count': self._load_count
        }

    def close(self) -> None:
        """Shut down the executor if this generator created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)
