"""
Structured metadata for case document chunks.

Two passes:
1. build_document_facts(): once per document, from the full text and the
   DocumentRef (witness, document-level topic, direct-testimony flag,
   appendix hint from the file name/section). Immutable.
2. annotate_chunk(): once per chunk, from the chunk's own text plus the
   shared DocumentFacts (financial figures with context, appendix flag,
   section heading, topic, table/Q&A flags, key quotes, entities,
   search terms).

Per-chunk work never rescans the full document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from models import ChunkMetadata, DocumentRef, Entities, FinancialFigure

# ============================================================
# Patterns
# ============================================================

# "$1,200,000", "$45.6 million", "$3B"; never swallows trailing punctuation
RE_DOLLAR = re.compile(
    r"\$(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?"
    r"(?:\s*(?:[Mm]illion|[Tt]housand|[Bb]illion)\b|[MKB]\b)?"
)
RE_PERCENT = re.compile(r"\b\d+(?:\.\d+)?(?:\s*%|\s*percent\b)", re.IGNORECASE)
RE_FINANCIAL_HINT = re.compile(r"\$\d|\d\s*%|\d\s*percent\b", re.IGNORECASE)

RE_WITNESS_HEADER = re.compile(
    r"DIRECT\s+TESTIMONY\s+OF\s+([A-Z][A-Za-z.\s]{2,60}?)\s+(?:FOR|ON BEHALF|IN SUPPORT)\b",
    re.IGNORECASE,
)
# Page footer convention: "Jane Smith, Di 12"
RE_WITNESS_FOOTER = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z]\.)?\s+[A-Z][a-z]+),\s+Di\s+\d+")
# File names such as "SMITH DI.PDF", "20240315Smith Direct.pdf"
RE_WITNESS_FILENAME = re.compile(r"^(?:\d{8})?\s*([A-Za-z][A-Za-z'-]+)\s+(?:DI|DIRECT)\b", re.IGNORECASE)

RE_SECTION = re.compile(r"^\s*([IVX]+\.\s+[A-Z][A-Z \-,&]{3,80})\s*$", re.MULTILINE)
RE_SECTION_LABEL = re.compile(r"(Section\s+[A-Z0-9]+[:.]?\s+[A-Z][^\n]{0,80})", re.IGNORECASE)
RE_TABLE = re.compile(r"Table\s+No\.|\bLine\s+\d+|\bRow\s+\d+", re.IGNORECASE)
RE_QUESTION = re.compile(r"(?:^|\s)Q\.\s+")
RE_ANSWER = re.compile(r"(?:^|\s)A\.\s+")
RE_APPENDIX_HEADING = re.compile(
    r"^\s*(?:appendix|exhibit|schedule|attachment)\s+(?:no\.\s*)?[a-z0-9]+\b",
    re.IGNORECASE,
)
RE_REGULATORY = re.compile(r"\b(?:commission|approved?|authorized?|requests?|proposes?)\b", re.IGNORECASE)
RE_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

RE_COMPANY = re.compile(
    r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\s+(?:Corp\.?|Corporation|Inc\.?|LLC|Company|Co\.|Ltd\.?)"
)
RE_PERSON = re.compile(r"\b(?:Mr|Ms|Mrs|Dr)\.\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*")
RE_LOCATION = re.compile(r"\b(?:Idaho|Utah|Oregon|Washington|Wyoming|California|Nevada|Montana)\b")
RE_REGULATION = re.compile(
    r"\b(?:IPUC|FERC|Order\s+No\.|Docket|Case\s+No\.|Tariff|Schedule)\s*[A-Z0-9][A-Z0-9-]*"
)

RATE_OF_RETURN_HINTS = ("rate of return", "return on equity", "cost of capital", "cost of equity")
RE_ROE = re.compile(r"\broe\b")
# File-name words that are not witness names
_NOT_WITNESS = frozenset({"company", "staff", "direct", "testimony", "rebuttal", "application", "exhibit"})
REVENUE_HINTS = ("revenue requirement", "rate increase", "revenue deficiency")

_STOP_WORDS = frozenset(
    "the and for are but not you all can had her was one our out day get has him his how "
    "man new now old see two way who boy did its let put say she too use that this with "
    "from have been will would which their there were they what when your into also".split()
)
_WORD = re.compile(r"\b[a-z]{4,}\b")

CONTEXT_CHARS_AMOUNT = 80
CONTEXT_CHARS_PERCENT = 60
MAX_KEY_QUOTES = 3
MAX_SEARCH_TERMS = 20


def _context(text: str, position: int, width: int) -> str:
    start = max(0, position - width // 2)
    end = min(len(text), position + width // 2)
    return " ".join(text[start:end].split())


def _dedupe(values: Iterable[str]) -> list[str]:
    out: list[str] = []
    for v in values:
        v = " ".join(v.split())
        if v and v not in out:
            out.append(v)
    return out


def _normalize_name(name: str) -> str:
    name = " ".join(name.split()).strip(" .,")
    if name.isupper():
        name = name.title()
    return name


# ============================================================
# Pass 1: document facts
# ============================================================


@dataclass(frozen=True)
class DocumentFacts:
    witness: Optional[str] = None
    topic: str = "general_testimony"
    is_direct_testimony: bool = False
    name_is_appendix: bool = False


def categorize(text: str) -> str:
    lower = text.lower()
    if any(h in lower for h in RATE_OF_RETURN_HINTS) or RE_ROE.search(lower):
        return "rate_of_return"
    if any(h in lower for h in REVENUE_HINTS):
        return "revenue_requirement"
    return "general_testimony"


def find_witness(text: str, display_name: str = "") -> str | None:
    m = RE_WITNESS_HEADER.search(text)
    if m:
        return _normalize_name(m.group(1))
    m = RE_WITNESS_FOOTER.search(text)
    if m:
        return _normalize_name(m.group(1))
    m = RE_WITNESS_FILENAME.search(display_name.strip())
    if m and m.group(1).lower() not in _NOT_WITNESS:
        return _normalize_name(m.group(1))
    return None


def build_document_facts(document: DocumentRef, full_text: str) -> DocumentFacts:
    """Facts shared by every chunk of one document."""
    name = f"{document.display_name} {document.section}".lower()
    head = full_text[:20_000]
    is_direct = (
        "direct" in name
        or bool(re.search(r"\bDI\b", document.display_name))
        or bool(re.search(r"DIRECT\s+TESTIMONY\s+OF", head, re.IGNORECASE))
    )
    return DocumentFacts(
        witness=find_witness(head, document.display_name),
        topic=categorize(head),
        is_direct_testimony=is_direct,
        name_is_appendix=any(w in document.display_name.lower() for w in ("appendix", "exhibit", "attachment")),
    )


# ============================================================
# Pass 2: chunk annotation
# ============================================================


def extract_financial(content: str) -> tuple[list[FinancialFigure], list[FinancialFigure]]:
    amounts = [
        FinancialFigure(
            value=m.group(0).strip(),
            context=_context(content, m.start(), CONTEXT_CHARS_AMOUNT),
            position=m.start(),
        )
        for m in RE_DOLLAR.finditer(content)
    ]
    percentages = [
        FinancialFigure(
            value=m.group(0).strip(),
            context=_context(content, m.start(), CONTEXT_CHARS_PERCENT),
            position=m.start(),
        )
        for m in RE_PERCENT.finditer(content)
    ]
    return amounts, percentages


def is_appendix(content: str, facts: DocumentFacts) -> bool:
    if facts.name_is_appendix:
        return True
    if re.search(r"\bappendix\b", content, re.IGNORECASE):
        return True
    return bool(RE_APPENDIX_HEADING.match(content))


def find_section(content: str) -> str | None:
    m = RE_SECTION.search(content) or RE_SECTION_LABEL.search(content)
    return " ".join(m.group(1).split()) if m else None


def key_quotes(content: str, query_terms: Iterable[str] = ()) -> list[str]:
    """Up to three sentences carrying figures or regulatory language."""
    terms = [t.lower() for t in query_terms]
    scored: list[tuple[int, int, str]] = []
    for i, sentence in enumerate(RE_SENTENCE_SPLIT.split(content)):
        s = " ".join(sentence.split())
        if len(s) < 20:
            continue
        score = 0
        if RE_DOLLAR.search(s):
            score += 3
        if RE_PERCENT.search(s):
            score += 3
        if RE_REGULATORY.search(s):
            score += 2
        lower = s.lower()
        score += sum(2 for t in terms if t in lower)
        if score >= 3:
            scored.append((-score, i, s))
    scored.sort()
    return [s for _, _, s in scored[:MAX_KEY_QUOTES]]


def extract_entities(content: str) -> Entities:
    return Entities(
        companies=_dedupe(m.group(0) for m in RE_COMPANY.finditer(content)),
        people=_dedupe(m.group(0) for m in RE_PERSON.finditer(content)),
        locations=_dedupe(m.group(0) for m in RE_LOCATION.finditer(content)),
        regulations=_dedupe(m.group(0) for m in RE_REGULATION.finditer(content)),
    )


def search_terms(content: str, facts: DocumentFacts, qa_format: bool, financial: bool) -> list[str]:
    words: list[str] = []
    for w in _WORD.findall(content.lower()):
        if w not in _STOP_WORDS and w not in words:
            words.append(w)
            if len(words) >= MAX_SEARCH_TERMS:
                break
    markers: list[str] = []
    if financial:
        markers += ["financial_data", "monetary_amounts"]
    if categorize(content) == "rate_of_return":
        markers += ["rate_of_return", "equity_return", "roe"]
    if qa_format:
        markers.append("qa_testimony")
    if facts.is_direct_testimony:
        markers.append("direct_testimony")
    return _dedupe(words + markers)


def annotate_chunk(
    content: str,
    facts: DocumentFacts,
    query_terms: Iterable[str] = (),
) -> ChunkMetadata:
    amounts, percentages = extract_financial(content)
    qa_format = bool(RE_QUESTION.search(content) and RE_ANSWER.search(content))
    financial = bool(amounts or percentages or RE_FINANCIAL_HINT.search(content))

    witness = facts.witness
    if witness is None:
        m = RE_WITNESS_FOOTER.search(content)
        witness = _normalize_name(m.group(1)) if m else None

    topic = categorize(content)
    if topic == "general_testimony":
        topic = facts.topic

    return ChunkMetadata(
        witness=witness,
        section=find_section(content),
        topic=topic,
        is_appendix=is_appendix(content, facts),
        is_direct_testimony=facts.is_direct_testimony,
        is_financial_data=financial,
        is_table_data=bool(RE_TABLE.search(content)),
        financial_amounts=amounts,
        financial_percentages=percentages,
        testimony_format="qa_testimony" if qa_format else "narrative",
        key_quotes=key_quotes(content, query_terms),
        entities=extract_entities(content),
        search_terms=search_terms(content, facts, qa_format, financial),
        word_count=len(content.split()),
    )
