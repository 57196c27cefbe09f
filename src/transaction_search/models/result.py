"""Search result data models."""

import math
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from .transaction import Transaction
from .query import QueryContext


@dataclass
class FusionWeights:
    """Weights actually applied when scoring a call."""
    vector_weight: float
    text_weight: float

    def to_dict(self) -> Dict[str, float]:
        return {"vector_weight": self.vector_weight, "text_weight": self.text_weight}


@dataclass
class SearchResult:
    """
    Hybrid search result for one transaction.

    Attributes:
        id: Transaction identifier
        transaction: The matched transaction
        vector_score: Similarity from vector search (0.0 if not a vector candidate)
        text_score: Relevance from lexical search (0.0 if not a lexical candidate)
        hybrid_score: vector_score * vector_weight + text_score * text_weight
        matched_by: Retrieval paths that returned this transaction
        rank: Result ranking position (1-based), assigned after sorting
    """
    id: str
    transaction: Transaction
    vector_score: float = 0.0
    text_score: float = 0.0
    hybrid_score: float = 0.0
    matched_by: List[str] = field(default_factory=list)
    rank: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate search result."""
        for name in ("vector_score", "text_score", "hybrid_score"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be a finite number")
        if self.rank is not None and self.rank <= 0:
            raise ValueError("Rank must be positive")

    def rescore(self, weights: FusionWeights) -> None:
        """Recompute the hybrid score from the component scores."""
        self.hybrid_score = (
            self.vector_score * weights.vector_weight
            + self.text_score * weights.text_weight
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "transaction": self.transaction.to_dict(),
            "vector_score": round(self.vector_score, 4),
            "text_score": round(self.text_score, 4),
            "hybrid_score": round(self.hybrid_score, 4),
            "matched_by": self.matched_by,
            "rank": self.rank
        }


@dataclass
class SearchMetadata:
    """Describes how a hybrid search call was served."""
    total_results: int
    vector_result_count: int
    text_result_count: int
    weights: FusionWeights
    fallback: bool = False
    fuzzy_result_count: int = 0
    text_search_failed: bool = False
    query_context: Optional[QueryContext] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "total_results": self.total_results,
            "vector_result_count": self.vector_result_count,
            "text_result_count": self.text_result_count,
            "weights": self.weights.to_dict(),
            "fallback": self.fallback,
            "fuzzy_result_count": self.fuzzy_result_count,
            "text_search_failed": self.text_search_failed
        }
        if self.query_context is not None:
            data["query_context"] = self.query_context.to_dict()
        return data


@dataclass
class HybridSearchResponse:
    """Ranked results plus metadata returned by hybrid and smart search."""
    results: List[SearchResult]
    metadata: SearchMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "metadata": self.metadata.to_dict()
        }
