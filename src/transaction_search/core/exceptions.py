"""Custom exceptions for the transaction search system."""

from typing import Optional


class TransactionSearchError(Exception):
    """Base exception for transaction search operations."""
    pass


class EmptyInputError(TransactionSearchError):
    """Raised when blank text is passed to the embedding generator."""
    pass


class DimensionMismatchError(TransactionSearchError):
    """Raised when two vectors (or a vector and an index) disagree on length."""
    pass


class ModelUnavailableError(TransactionSearchError):
    """Raised when the embedding model cannot be loaded or run."""
    pass


class IndexUnavailableError(TransactionSearchError):
    """Raised when a search backend fails."""
    pass


class ValidationError(TransactionSearchError):
    """Exception raised during input validation."""
    pass


class InvalidQueryError(ValidationError):
    """Raised for malformed search requests."""
    pass


class ConfigurationError(TransactionSearchError):
    """Exception raised for configuration issues."""
    pass


class SearchUnavailableError(TransactionSearchError):
    """Raised when neither the vector path nor the lexical path produced a signal."""

    def __init__(
        self,
        message: str,
        vector_error: Optional[BaseException] = None,
        text_error: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.vector_error = vector_error
        self.text_error = text_error
