"""Utility modules for transaction search."""

from .text_processing import TextProcessor
from .validators import validate_transaction, validate_search_request
from .logging_config import setup_logging

__all__ = ["TextProcessor", "validate_transaction", "validate_search_request", "setup_logging"]
