"""
Pure predicates used while scanning case listings.

    matches(case, "rate case")          -> company/description keyword match
    in_date_range(filed, start, end)    -> inclusive filed-date window

Matching is deliberately loose (substring, no stemming): a false positive
costs one detail-page load, a false negative loses the case entirely.
"""

from __future__ import annotations

import math
import re
from datetime import date

from models import Case, parse_filed_date

# Share of query terms that must appear for a match
MATCH_FRACTION = 0.75

_TOKEN_SPLIT = re.compile(r"[^\w&'-]+")


def query_terms(query: str) -> list[str]:
    """Lowercased query terms longer than two characters, in order, deduplicated."""
    seen: list[str] = []
    for token in _TOKEN_SPLIT.split(query.lower()):
        token = token.strip("-'")
        if len(token) > 2 and token not in seen:
            seen.append(token)
    return seen


def matches(case: Case, query: str) -> bool:
    query_norm = " ".join(query.lower().split())
    if not query_norm:
        return False

    haystack = f"{case.company}\n{case.description}".lower()
    if query_norm in haystack:
        return True

    terms = query_terms(query_norm)
    if not terms:
        return False

    hits = sum(1 for t in terms if t in haystack)
    return hits >= math.ceil(len(terms) * MATCH_FRACTION)


def in_date_range(date_filed: str | date | None, start: date, end: date) -> bool:
    """True when date_filed lies in [start, end]; unparseable dates never match."""
    filed = parse_filed_date(date_filed)
    if filed is None:
        return False
    return start <= filed <= end
