"""Storage backends for transaction search."""

from .base import TransactionStore, SUGGESTION_FIELDS
from .memory import InMemoryTransactionStore

__all__ = ["TransactionStore", "InMemoryTransactionStore", "SUGGESTION_FIELDS"]
