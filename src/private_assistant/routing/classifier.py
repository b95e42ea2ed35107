"""Keyword and pattern classifier for real-time queries."""

from __future__ import annotations

import re

REAL_TIME_KEYWORDS: tuple[str, ...] = (
    "today",
    "now",
    "current",
    "latest",
    "news",
    "weather",
    "recent",
    "breaking",
    "happening",
    "live",
    "update",
    "today's",
    "this week",
    "this month",
    "this year",
    "right now",
)

REAL_TIME_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, flags=re.IGNORECASE)
    for pattern in (
        r"what.*happening",
        r"what.*going on",
        r"latest.*news",
        r"current.*weather",
        r"today.*weather",
        r"stock.*price",
        r"crypto.*price",
        r"exchange.*rate",
        r"sports.*score",
        r"game.*result",
    )
)


def is_real_time_query(query: str) -> bool:
    """Return True when the query asks about live or time-sensitive information.

    Keywords are matched as plain substrings of the lower-cased query, so
    "now" also fires inside "know"; this mirrors the deployed behavior.
    """

    lower_query = query.lower()
    if any(keyword in lower_query for keyword in REAL_TIME_KEYWORDS):
        return True
    return any(pattern.search(query) for pattern in REAL_TIME_PATTERNS)


def is_general_query(query: str) -> bool:
    return not is_real_time_query(query)
