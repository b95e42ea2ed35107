"""Lexical keyword extraction and bag-of-words relevance scoring.

These helpers are a coarse lexical signal. They are reported alongside, and
never mixed into, the embedding similarity computed by the vector index.
"""

from __future__ import annotations

STOP_WORDS: frozenset[str] = frozenset(
    {
        "the",
        "a",
        "an",
        "and",
        "or",
        "but",
        "in",
        "on",
        "at",
        "to",
        "for",
        "of",
        "with",
        "by",
        "from",
        "is",
        "are",
        "was",
        "were",
        "be",
        "been",
        "being",
        "over",
        "under",
    }
)

_MIN_KEYWORD_LENGTH = 4


def _tokenize(text: str) -> list[str]:
    return text.lower().split()


def extract_keywords(text: str) -> list[str]:
    """Return content words of `text` in input order, duplicates kept."""

    return [
        token
        for token in _tokenize(text)
        if len(token) >= _MIN_KEYWORD_LENGTH and token not in STOP_WORDS
    ]


def calculate_query_relevance(query: str, document: str) -> float:
    """Fraction of query tokens (with repetition) found in the document.

    Returns 0.0 for a query without tokens.
    """

    query_tokens = _tokenize(query)
    if not query_tokens:
        return 0.0
    document_tokens = set(_tokenize(document))
    matches = sum(1 for token in query_tokens if token in document_tokens)
    return min(matches / len(query_tokens), 1.0)
