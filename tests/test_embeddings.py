"""Tests for embedding generation."""

import asyncio
import time
import pytest

import numpy as np

from transaction_search.core.embeddings import EmbeddingGenerator, cosine_similarity
from transaction_search.core.exceptions import (
    EmptyInputError,
    DimensionMismatchError,
    ModelUnavailableError
)

from conftest import DIM, FakeEmbeddingModel, fake_vector


class SlowLoadingModel(FakeEmbeddingModel):
    """Model whose construction takes a while."""

    def __init__(self):
        super().__init__()
        time.sleep(0.05)


class ShortVectorModel(FakeEmbeddingModel):
    """Reports no dimension and returns vectors that are too short."""

    def get_sentence_embedding_dimension(self):
        return None

    def encode(self, texts, convert_to_numpy=True, normalize_embeddings=True):
        return np.ones((len(texts), 8), dtype=np.float32)


class TestEmbed:
    """Test single-text embedding."""

    async def test_embedding_has_model_dimension(self, embedder):
        vector = await embedder.embed("cement purchase")

        assert isinstance(vector, np.ndarray)
        assert vector.shape == (DIM,)
        assert embedder.dimension == DIM

    async def test_embedding_is_deterministic(self, embedder):
        first = await embedder.embed("cement purchase")
        second = await embedder.embed("cement purchase")

        np.testing.assert_array_equal(first, second)
        np.testing.assert_allclose(first, fake_vector("cement purchase"))

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_rejected(self, embedder, fake_model_factory, text):
        with pytest.raises(EmptyInputError):
            await embedder.embed(text)

        assert fake_model_factory.calls == []

    async def test_embed_transaction_composes_fields(self, embedder):
        vector = await embedder.embed_transaction(
            "Cement purchase", project_name="Riverside Tower",
            category_name=None, source="BuildMart"
        )

        np.testing.assert_allclose(vector, fake_vector("Cement purchase Riverside Tower BuildMart"))

    async def test_embed_transaction_without_text_rejected(self, embedder):
        with pytest.raises(EmptyInputError):
            await embedder.embed_transaction("  ", project_name="", source=None)


class TestEmbedBatch:
    """Test batch embedding."""

    async def test_blank_entries_become_zero_vectors(self, embedder):
        vectors = await embedder.embed_batch(["", "steel rebar", ""])

        assert len(vectors) == 3
        assert not vectors[0].any()
        assert not vectors[2].any()
        np.testing.assert_allclose(vectors[1], fake_vector("steel rebar"))

    async def test_order_is_preserved(self, embedder):
        texts = ["office rent", "client payment", "concrete mix"]
        vectors = await embedder.embed_batch(texts)

        for text, vector in zip(texts, vectors):
            np.testing.assert_allclose(vector, fake_vector(text))

    async def test_all_blank_batch_skips_model(self, embedder, fake_model_factory):
        vectors = await embedder.embed_batch(["", " "])

        assert [v.shape for v in vectors] == [(DIM,), (DIM,)]
        assert fake_model_factory.calls == []
        assert not embedder.is_loaded

    async def test_empty_batch(self, embedder):
        assert await embedder.embed_batch([]) == []


class TestModelLifecycle:
    """Test lazy, once-only model loading."""

    async def test_model_not_loaded_on_construction(self, embedder, fake_model_factory):
        assert not embedder.is_loaded
        assert fake_model_factory.calls == []

        await embedder.embed("cement")

        assert embedder.is_loaded
        assert fake_model_factory.calls == [("fake-model", "cpu")]

    async def test_concurrent_first_calls_load_once(self, executor):
        calls = []

        def factory(name, device):
            calls.append(name)
            return SlowLoadingModel()

        generator = EmbeddingGenerator(
            model_name="slow-model", dimension=DIM, device="cpu",
            model_factory=factory, executor=executor
        )

        vectors = await asyncio.gather(*[generator.embed(f"query {i}") for i in range(8)])

        assert len(vectors) == 8
        assert len(calls) == 1
        assert generator.get_stats()['load_count'] == 1

    async def test_failed_load_is_retried(self, executor):
        attempts = []

        def flaky_factory(name, device):
            attempts.append(name)
            if len(attempts) == 1:
                raise OSError("model download failed")
            return FakeEmbeddingModel()

        generator = EmbeddingGenerator(
            model_name="flaky-model", dimension=DIM, device="cpu",
            model_factory=flaky_factory, executor=executor
        )

        with pytest.raises(ModelUnavailableError, match="model download failed"):
            await generator.embed("cement")
        assert not generator.is_loaded

        vector = await generator.embed("cement")
        assert vector.shape == (DIM,)
        assert len(attempts) == 2

    async def test_encode_failure_is_model_unavailable(self, failing_embedder):
        with pytest.raises(ModelUnavailableError, match="CUDA out of memory"):
            await failing_embedder.embed("cement")

    async def test_wrong_output_dimension(self, executor):
        generator = EmbeddingGenerator(
            model_name="short-model", dimension=DIM, device="cpu",
            model_factory=lambda name, device: ShortVectorModel(), executor=executor
        )

        with pytest.raises(DimensionMismatchError):
            await generator.embed("cement")

    async def test_stats(self, embedder):
        stats = embedder.get_stats()
        assert stats['model_name'] == "fake-model"
        assert stats['is_loaded'] is False

        await embedder.initialize()

        stats = embedder.get_stats()
        assert stats['is_loaded'] is True
        assert stats['device'] == "cpu"
        assert stats['dimension'] == DIM


class TestCosineSimilarity:
    """Test cosine similarity."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_length_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])

    def test_static_alias(self):
        assert EmbeddingGenerator.cosine_similarity([3.0, 4.0], [3.0, 4.0]) == pytest.approx(1.0)
