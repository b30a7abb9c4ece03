"""
Keyword relevance ranking over indexed chunks.

Scoring, per chunk:
    base   = sum over matched terms of occurrences * term weight (longer terms weigh more)
    bonus  = +DOMAIN_TERM_BONUS per rate-of-return phrase present
    score  = (base + bonus) * appendix penalty * direct-testimony boost * page prior

Chunks with no matched query term are not returned. Every knob lives in
config.SearchSettings.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from config import SearchSettings
from models import Chunk, SearchResult
from search_stack.citations import build_citation

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    """
    a about above after again against all also am an and any are as at be because been
    before being below between both but by can could did do does doing down during each
    few for from further had has have having he her here hers him his how i if in into is
    it its itself just me more most my no nor not now of off on once only or other our out
    over own same she should so some such than that the their them then there these they
    this those through to too under until up very was we were what when where which while
    who whom why will with would you your yours
    tell show find give list please regarding related information documents document
    case cases say said says testimony
    """.split()
)

# Regulatory vocabulary that marks cost-of-capital discussion
RATE_OF_RETURN_VOCABULARY = (
    "rate of return",
    "return on equity",
    "cost of capital",
    "cost of equity",
    "cost of debt",
    "capital structure",
    "authorized return",
    "allowed return",
    "equity ratio",
)

_TOKEN = re.compile(r"[0-9a-z$%][0-9a-z.$%'-]*")
_EDGE_PUNCT = " \t\n.,;:!?\"'()[]{}-"
RERANK_TERM_LIMIT = 24


def derive_terms(query: str) -> list[str]:
    """Lowercased, punctuation-free, stop-word-free terms longer than 2 chars."""
    terms: list[str] = []
    for tok in _TOKEN.findall(query.lower()):
        tok = tok.strip(".'-$%")
        if len(tok) <= 2 or tok in STOP_WORDS or tok in terms:
            continue
        terms.append(tok)
        if len(terms) >= RERANK_TERM_LIMIT:
            break
    return terms


def normalize_terms(terms: Iterable[str]) -> list[str]:
    """Lowercase, strip edge punctuation, dedupe and drop terms of 2 chars or less.

    Unlike derive_terms, a leading $ or trailing % is kept so "$1,200,000"
    and "10.5%" match as figures.
    """
    out: list[str] = []
    for term in terms:
        term = term.lower().strip(_EDGE_PUNCT)
        if len(term) <= 2 or term in out:
            continue
        out.append(term)
    return out


def term_weight(term: str) -> float:
    return min(len(term), 12) / 4.0


def count_occurrences(term: str, text_lower: str) -> int:
    """Occurrences of term at a word start (so 'rate' counts 'rates' but not 'corporate')."""
    return len(re.findall(r"(?<!\w)" + re.escape(term), text_lower))


def page_prior(page_number: int | None, settings: SearchSettings) -> float:
    if page_number is None:
        return 1.0
    if page_number <= settings.early_page_limit:
        return settings.early_page_boost
    if page_number >= settings.late_page_start:
        return settings.late_page_penalty
    return 1.0


def score_chunk(
    chunk: Chunk,
    terms: Sequence[str],
    settings: SearchSettings | None = None,
) -> tuple[float, list[str]]:
    """(score, matched terms); score is 0.0 when no term matches."""
    settings = settings or SearchSettings()
    text = chunk.content.lower()

    base = 0.0
    matched: list[str] = []
    for term in terms:
        n = count_occurrences(term, text)
        if n:
            matched.append(term)
            base += n * term_weight(term)
    if not matched:
        return 0.0, []

    bonus = sum(settings.domain_term_bonus for phrase in RATE_OF_RETURN_VOCABULARY if phrase in text)
    score = base + bonus
    if chunk.metadata.is_appendix:
        score *= settings.appendix_penalty
    if chunk.metadata.is_direct_testimony:
        score *= settings.direct_testimony_boost
    score *= page_prior(chunk.page_number, settings)
    return score, matched


class RelevanceSearchEngine:
    """
    Ranks a fixed chunk set against queries.

    Usage:
        engine = RelevanceSearchEngine(chunks)
        results = engine.search("return on equity", max_results=5)
    """

    def __init__(self, chunks: Iterable[Chunk], settings: SearchSettings | None = None):
        self.chunks = list(chunks)
        self.settings = settings or SearchSettings()

    def search(
        self,
        query_text: str = "",
        max_results: int | None = None,
        terms: Sequence[str] | None = None,
    ) -> list[SearchResult]:
        """Top-N chunks for a query (or an explicit term list), best first."""
        terms = normalize_terms(terms) if terms else derive_terms(query_text)
        if not terms:
            logger.info("[search] No usable query terms")
            return []

        limit = self.settings.default_max_results if max_results is None else max_results
        if limit <= 0:
            return []
        limit = min(limit, self.settings.max_results_cap)

        scored: list[tuple[float, int, Chunk, list[str]]] = []
        for i, chunk in enumerate(self.chunks):
            score, matched = score_chunk(chunk, terms, self.settings)
            if score > 0:
                scored.append((score, i, chunk, matched))
        scored.sort(key=lambda item: (-item[0], item[1]))

        results = [
            SearchResult(
                chunk=chunk,
                score=round(score, 4),
                matched_terms=matched,
                citation=build_citation(chunk),
            )
            for score, _, chunk, matched in scored[:limit]
        ]
        logger.info(
            f"[search] {len(scored)} matching chunks for terms {terms}, returning {len(results)}"
        )
        return results
