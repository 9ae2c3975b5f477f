"""Keyword-based response classification."""

from .classifier import (
    classify_category,
    classify_response,
    classify_sentiment,
    format_response,
    is_question,
)

__all__ = [
    "classify_category",
    "classify_response",
    "classify_sentiment",
    "format_response",
    "is_question",
]
