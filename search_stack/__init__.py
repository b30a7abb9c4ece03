"""
Search stack for extracted PUC case documents.

This package provides:
- Page-aware chunking of page-delimited document text
- Two-pass chunk metadata (document facts, then per-chunk annotation)
- Chunk indexing with size guards and corpus statistics
- Keyword relevance ranking with citation objects
"""

from .citations import build_citation, citation_dict
from .indexer import ChunkIndexer, IndexingStats, corpus_stats
from .relevance import RelevanceSearchEngine, derive_terms

__all__ = [
    "ChunkIndexer",
    "IndexingStats",
    "RelevanceSearchEngine",
    "build_citation",
    "citation_dict",
    "corpus_stats",
    "derive_terms",
]
