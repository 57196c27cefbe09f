"""Transaction data model with validation."""

from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

import numpy as np
from pydantic import BaseModel, Field, field_validator


class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


# Free-text fields in the order they are concatenated for embedding and
# scanned by substring search.
TEXT_FIELDS = ("description", "project_name", "category_name", "source")


@dataclass
class Transaction:
    """
    Financial transaction as seen by the search subsystem.

    Attributes:
        id: Stable identifier shared by every retrieval path
        description: Free-text description
        date: Transaction date
        type: Income or expense
        amount: Transaction amount
        project_id: Opaque project identifier
        project_name: Project display name
        category_id: Opaque category identifier
        category_name: Category display name
        source: Payer for income, vendor/supplier for expenses
        embedding: Precomputed dense vector, if the backfill job produced one
        metadata: Additional payload carried through to results
    """
    id: str
    description: str
    date: datetime
    type: TransactionType
    amount: float
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    source: Optional[str] = None
    embedding: Optional[np.ndarray] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate transaction after initialization."""
        if not self.id.strip():
            raise ValueError("Transaction ID cannot be empty")
        if not self.description.strip():
            raise ValueError("Transaction description cannot be empty")
        if not isinstance(self.type, TransactionType):
            try:
                self.type = TransactionType(self.type)
            except ValueError:
                raise ValueError(f"Invalid transaction type: {self.type}")
        if self.amount < 0:
            raise ValueError("Transaction amount cannot be negative")
        if self.embedding is not None:
            self.embedding = np.asarray(self.embedding, dtype=np.float32).reshape(-1)

    def text_fields(self) -> List[str]:
        """Present free-text fields in canonical order."""
        values = [getattr(self, name) for name in TEXT_FIELDS]
        return [value for value in values if value]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization (embedding excluded)."""
        return {
            "id": self.id,
            "description": self.description,
            "date": self.date.isoformat(),
            "type": self.type.value,
            "amount": self.amount,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "source": self.source,
            "metadata": self.metadata
        }


class TransactionModel(BaseModel):
    """Pydantic model for transaction validation in API contexts."""

    id: str = Field(..., min_length=1, description="Transaction identifier")
    description: str = Field(..., min_length=1, description="Free-text description")
    date: datetime = Field(..., description="Transaction date")
    type: TransactionType = Field(..., description="Income or expense")
    amount: float = Field(..., ge=0, description="Transaction amount")
    project_id: Optional[str] = Field(None, description="Project identifier")
    project_name: Optional[str] = Field(None, description="Project name")
    category_id: Optional[str] = Field(None, description="Category identifier")
    category_name: Optional[str] = Field(None, description="Category name")
    source: Optional[str] = Field(None, description="Payer or vendor")
    embedding: Optional[List[float]] = Field(None, description="Precomputed embedding")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

    @field_validator('description')
    @classmethod
    def validate_description(cls, v: str) -> str:
        """Ensure description is not just whitespace."""
        if not v.strip():
            raise ValueError('Description cannot be empty or whitespace only')
        return v.strip()

    def to_transaction(self) -> Transaction:
        """Convert to Transaction dataclass."""
        return Transaction(
            id=self.id,
            description=self.description,
            date=self.date,
            type=self.type,
            amount=self.amount,
            project_id=self.project_id,
            project_name=self.project_name,
            category_id=self.category_id,
            category_name=self.category_name,
            source=self.source,
            embedding=np.asarray(self.embedding, dtype=np.float32) if self.embedding else None,
            metadata=self.metadata
        )
