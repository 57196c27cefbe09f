"""Configuration for the transaction search system.

Settings are read from ``TXN_SEARCH_*`` environment variables (or a ``.env``
file) through ``pydantic-settings``. Anything passed explicitly to the
service constructor takes precedence over the environment.
"""

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SearchSettings(BaseSettings):
    """Tunable defaults for embedding, retrieval and fusion."""

    model_config = SettingsConfigDict(
        env_prefix="TXN_SEARCH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Embeddings
    embedding_model: str = Field(default="sentence-transformers/all-MiniLM-L6-v2")
    embedding_dimension: int = Field(default=384, ge=1)
    device: Optional[str] = Field(default=None)

    # Fusion
    vector_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    text_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    default_limit: int = Field(default=20, ge=1)
    max_limit: int = Field(default=1000, ge=1)

    # Retrieval
    candidate_pool_factor: int = Field(default=2, ge=1)
    num_candidates: int = Field(default=100, ge=1)
    retrieval_timeout: Optional[float] = Field(default=None, gt=0)
    fuzzy_fallback: bool = Field(default=True)

    # Runtime
    max_workers: int = Field(default=4, ge=1)
    log_level: str = Field(default="INFO")

    @model_validator(mode="after")
    def check_limits(self) -> "SearchSettings":
        if self.default_limit > self.max_limit:
            raise ValueError("default_limit cannot exceed max_limit")
        return self
