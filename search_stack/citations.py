"""Citation objects for retrieved chunks.

Citations are built from chunk fields alone, so the same chunk always
yields the same citation regardless of how it was scored.
"""

from __future__ import annotations

from models import Chunk, Citation


def build_citation(chunk: Chunk) -> Citation:
    doc = chunk.document
    return Citation(
        case_number=doc.case_number,
        company=doc.company,
        document_name=doc.display_name,
        page_number=chunk.page_number,
        document_url=doc.viewer_url,
        witness=chunk.metadata.witness,
        utility_type=doc.utility_type.label if doc.utility_type else None,
        case_status=f"{doc.case_status.label} Case" if doc.case_status else None,
    )


def citation_dict(citation: Citation) -> dict:
    """JSON-ready citation with the formatted strings included."""
    data = citation.model_dump()
    data["short"] = citation.short_format
    data["long"] = citation.long_format
    return data
