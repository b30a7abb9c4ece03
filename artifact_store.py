"""
Write-once store for extracted document text.

Layout:
    {root}/{case_number}/{sanitized_document_name}.txt   one artifact per document
    {root}/index.jsonl                                   one line per stored artifact

Each artifact is a metadata header (key: value lines) terminated by
'===== END METADATA =====', followed by the page-delimited text. An
artifact is never overwritten: saving an existing key logs and returns the
existing path. The index is append-only, like the scraper state files.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Iterator

from models import (
    CaseStatus,
    DocumentRef,
    ExtractionResult,
    UtilityType,
    ViewerType,
    sanitize_document_name,
)

logger = logging.getLogger(__name__)

METADATA_END = "===== END METADATA ====="

_HEADER_FIELDS = (
    "case_number",
    "company",
    "utility_type",
    "case_status",
    "section",
    "display_name",
    "viewer_url",
    "viewer_type",
    "file_date",
    "pages_extracted",
    "total_pages",
    "degraded",
    "extracted_at",
)


class ArtifactStore:
    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.index_file = self.root / "index.jsonl"
        self._lock = threading.Lock()
        self._known: set[str] = set()
        self._load()

    def _load(self) -> None:
        if self.index_file.exists():
            with open(self.index_file, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        self._known.add(json.loads(line)["path"])
                    except (json.JSONDecodeError, KeyError):
                        logger.warning(f"[store] Bad index line in {self.index_file}")
        logger.info(f"[store] {len(self._known)} artifacts indexed in {self.root}")

    @staticmethod
    def key(case_number: str, document_name: str) -> str:
        return f"{sanitize_document_name(case_number)}/{sanitize_document_name(document_name)}.txt"

    def path_for(self, doc: DocumentRef) -> Path:
        return self.root / self.key(doc.case_number, doc.display_name)

    def exists(self, doc: DocumentRef) -> bool:
        return self.path_for(doc).exists()

    def count(self) -> int:
        return len(self._known)

    def save(self, result: ExtractionResult) -> Path | None:
        """Persist a successful extraction; returns the artifact path."""
        if not result.success:
            return None
        doc = result.document
        path = self.path_for(doc)
        key = self.key(doc.case_number, doc.display_name)

        with self._lock:
            if path.exists():
                logger.info(f"[store] {key} already stored, keeping existing artifact")
                return path

            path.parent.mkdir(parents=True, exist_ok=True)
            header = {
                "case_number": doc.case_number,
                "company": doc.company,
                "utility_type": doc.utility_type.value if doc.utility_type else "",
                "case_status": doc.case_status.value if doc.case_status else "",
                "section": doc.section,
                "display_name": doc.display_name,
                "viewer_url": doc.viewer_url,
                "viewer_type": doc.viewer_type.value if doc.viewer_type else "",
                "file_date": doc.file_date or "",
                "pages_extracted": result.pages_extracted,
                "total_pages": result.total_pages if result.total_pages is not None else "",
                "degraded": str(result.degraded).lower(),
                "extracted_at": result.extracted_at.isoformat(),
            }
            lines = [f"{k}: {header[k]}" for k in _HEADER_FIELDS]
            body = "\n".join(lines) + f"\n{METADATA_END}\n\n" + result.raw_text + "\n"
            # Exclusive create keeps the store write-once across processes too
            with open(path, "x", encoding="utf-8") as f:
                f.write(body)

            with open(self.index_file, "a", encoding="utf-8") as f:
                f.write(json.dumps({"path": key, "case_number": doc.case_number}) + "\n")
                f.flush()
            self._known.add(key)

        logger.debug(f"[store] Wrote {key}")
        return path

    def load(self, path: Path) -> ExtractionResult | None:
        """Rebuild an ExtractionResult from an artifact file."""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"[store] Cannot read {path}: {e}")
            return None

        head, sep, text = content.partition(METADATA_END)
        if not sep:
            logger.warning(f"[store] {path} has no metadata header")
            return None

        meta: dict[str, str] = {}
        for line in head.splitlines():
            if ": " in line:
                k, v = line.split(": ", 1)
                meta[k.strip()] = v.strip()

        try:
            doc = DocumentRef(
                case_number=meta["case_number"],
                viewer_url=meta.get("viewer_url", ""),
                display_name=meta.get("display_name", Path(path).stem),
                section=meta.get("section", ""),
                viewer_type=ViewerType(meta["viewer_type"]) if meta.get("viewer_type") else None,
                company=meta.get("company", ""),
                utility_type=UtilityType(meta["utility_type"]) if meta.get("utility_type") else None,
                case_status=CaseStatus(meta["case_status"]) if meta.get("case_status") else None,
                file_date=meta.get("file_date") or None,
            )
            result = ExtractionResult(
                document=doc,
                success=True,
                pages_extracted=int(meta.get("pages_extracted") or 0),
                total_pages=int(meta["total_pages"]) if meta.get("total_pages") else None,
                raw_text=text.strip(),
                degraded=meta.get("degraded") == "true",
                **({"extracted_at": meta["extracted_at"]} if meta.get("extracted_at") else {}),
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"[store] Bad metadata in {path}: {e}")
            return None
        return result

    def iter_results(self) -> Iterator[ExtractionResult]:
        """All stored artifacts, in index order."""
        for key in self._index_order():
            result = self.load(self.root / key)
            if result is not None:
                yield result

    def _index_order(self) -> list[str]:
        keys: list[str] = []
        if not self.index_file.exists():
            return keys
        with open(self.index_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    key = json.loads(line)["path"]
                except (json.JSONDecodeError, KeyError):
                    continue
                if key not in keys:
                    keys.append(key)
        return keys
