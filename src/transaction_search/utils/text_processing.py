"""Text processing utilities for transaction fields and queries."""

import re
from typing import Iterable, Optional, Pattern, Tuple


class TextProcessor:
    """Text processing utilities for transaction search."""

    def __init__(self):
        """Initialize text processor with shared patterns."""
        self.whitespace_pattern = re.compile(r'\s+')
        self.special_char_pattern = re.compile(r'[^\w\s$.,/-]')

    @staticmethod
    def is_blank(text: Optional[str]) -> bool:
        """True for None, empty or whitespace-only text."""
        return text is None or not text.strip()

    def normalize(self, text: str) -> str:
        """Lowercase and collapse whitespace."""
        if not text:
            return ""
        return self.whitespace_pattern.sub(' ', text.lower()).strip()

    def clean_text(self, text: str) -> str:
        """
        Clean and preprocess text for lexical indexing.

        Args:
            text: Raw text content

        Returns:
            Cleaned and normalized text
        """
        if not text:
            return ""

        text = self.normalize(text)

        # Remove special characters but keep alphanumeric and spaces
        text = self.special_char_pattern.sub(' ', text)

        return self.whitespace_pattern.sub(' ', text).strip()

    def compose(self, parts: Iterable[Optional[str]]) -> str:
        """Join the present, non-blank parts with a single space."""
        return ' '.join(part.strip() for part in parts if not self.is_blank(part))

    def strip_pattern(self, text: str, pattern: Pattern[str]) -> Tuple[str, bool]:
        """
        Remove every match of ``pattern`` from ``text``.

        Returns:
            The residual text with whitespace collapsed, and whether anything matched
        """
        residual, count = pattern.subn(' ', text)
        return self.whitespace_pattern.sub(' ', residual).strip(), count > 0

    @staticmethod
    def contains(haystack: Optional[str], needle: str) -> bool:
        """Case-insensitive substring test."""
        if not haystack:
            return False
        return needle.lower() in haystack.lower()
