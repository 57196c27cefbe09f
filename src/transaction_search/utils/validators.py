"""Input validation utilities."""

from datetime import datetime
from typing import List, Optional

from ..models.transaction import Transaction, TransactionType
from ..models.query import SearchFilters, SearchOptions
from ..core.exceptions import ValidationError, InvalidQueryError, DimensionMismatchError


def validate_transaction(transaction: Transaction, dimension: Optional[int] = None) -> None:
    """
    Validate transaction object.

    Args:
        transaction: Transaction to validate
        dimension: Expected embedding dimension, if embeddings are checked

    Raises:
        ValidationError: If transaction is invalid
        DimensionMismatchError: If the embedding has the wrong length
    """
    if not isinstance(transaction, Transaction):
        raise ValidationError("Invalid transaction type")

    if not transaction.id or not transaction.id.strip():
        raise ValidationError("Transaction ID is required")

    if not transaction.description or not transaction.description.strip():
        raise ValidationError("Transaction description is required")

    if not isinstance(transaction.type, TransactionType):
        raise ValidationError(f"Invalid transaction type: {transaction.type}")

    if not isinstance(transaction.date, datetime):
        raise ValidationError("Transaction date must be a datetime object")

    if dimension is not None and transaction.embedding is not None:
        if transaction.embedding.shape[0] != dimension:
            raise DimensionMismatchError(
                f"Transaction {transaction.id} embedding has {transaction.embedding.shape[0]} "
                f"components, expected {dimension}"
            )


def validate_transactions_batch(
    transactions: List[Transaction],
    dimension: Optional[int] = None
) -> None:
    """
    Validate a batch of transactions.

    Raises:
        ValidationError: If any transaction is invalid or IDs repeat
    """
    if len(transactions) > 100000:
        raise ValidationError("Cannot process more than 100,000 transactions in a single batch")

    seen = set()
    for transaction in transactions:
        validate_transaction(transaction, dimension)

        if transaction.id in seen:
            raise ValidationError(f"Duplicate transaction ID found: {transaction.id}")
        seen.add(transaction.id)


def validate_search_request(
    query: str,
    filters: SearchFilters,
    options: SearchOptions,
    max_limit: int = 1000
) -> None:
    """
    Validate the inputs of a hybrid search call.

    Blank query text is allowed; the engine serves it in degraded mode.

    Raises:
        InvalidQueryError: If the request is malformed
    """
    if not isinstance(query, str):
        raise InvalidQueryError(f"Query must be a string, got {type(query).__name__}")

    if not isinstance(filters, SearchFilters):
        raise InvalidQueryError("Invalid filters type")

    if not isinstance(options, SearchOptions):
        raise InvalidQueryError("Invalid options type")

    if options.limit > max_limit:
        raise InvalidQueryError(f"Limit cannot exceed {max_limit}")

    if options.vector_weight == 0.0 and options.text_weight == 0.0:
        raise InvalidQueryError("At least one fusion weight must be positive")
