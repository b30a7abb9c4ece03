"""
Idaho PUC Case Listing Scanner
==============================
Finds cases matching a research query on puc.idaho.gov and enumerates
their documents.

Architecture:
- GET /case?util={1|4}&closed={0|1} → HTML table of cases (one view per
  utility type × open/closed), optionally paginated via a "next" link
- GET case detail page → "Date Filed" cell + "Case Files" block listing
  MM/DD/YYYY  NAME.PDF entries grouped by section (Company, Staff, ...)
- Each PDF link points at a hosted document viewer (see scrapers.viewers)
- No authentication required

Listings are assumed newest-first: once MISS_THRESHOLD consecutive matched
cases fail the date check (out of range or no Date Filed), the rest of the
view is skipped. Rows and listing pages are read lazily, so stopping also
stops pagination.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Iterable, Iterator, Protocol

import requests
from bs4 import BeautifulSoup

from base_scraper import SiteClient
from case_matcher import in_date_range, matches
from config import ScanSettings
from models import (
    CASE_NUMBER_PATTERN,
    Case,
    CaseStatus,
    DocumentRef,
    UtilityType,
    parse_filed_date,
)

logger = logging.getLogger(__name__)

RE_FILED_DATE = re.compile(r"\d{1,2}/\d{1,2}/\d{4}")
RE_FILED_LABEL = re.compile(r"Date\s+Filed:?\s*(\d{1,2}/\d{1,2}/\d{4})", re.IGNORECASE)
RE_SECTION_HEADER = re.compile(
    r"^(Company|Staff|Commission|Public|Intervenor|Application|Notice|Direct|Testimony)",
    re.IGNORECASE,
)
RE_FILE_ENTRY = re.compile(r"(\d{2}/\d{2}/\d{4})\s+(.+\.pdf)\b", re.IGNORECASE)
RE_DATE_ONLY = re.compile(r"^\d{2}/\d{2}/\d{4}$")
RE_PDF_NAME = re.compile(r"\.pdf\b", re.IGNORECASE)

_NEXT_LABELS = {"next", "next >", "next ›", "next »", "›", "»", ">"}


class HtmlSource(Protocol):
    def get_html(self, url: str) -> str: ...


def _cell_text(cell) -> str:
    return " ".join(cell.get_text(" ", strip=True).split())


# ============================================================
# Listing pages
# ============================================================


def _find_case_table(soup: BeautifulSoup):
    tables = soup.find_all("table")
    for table in tables:
        text = table.get_text(" ", strip=True).lower()
        if "caseno" in text.replace(" ", "") and "company" in text and "description" in text:
            return table
    # Fallback: any table holding case-number links
    for table in tables:
        for a in table.find_all("a", href=True):
            if CASE_NUMBER_PATTERN.search(a.get_text(strip=True)):
                return table
    return None


def parse_listing(
    html: str,
    page_url: str,
    utility_type: UtilityType,
    status: CaseStatus,
) -> list[Case]:
    """
    Extract case rows from a listing page.

    A row counts only if its first cell links a case number and at least
    two further cells carry text (company, description).
    """
    soup = BeautifulSoup(html, "html.parser")
    table = _find_case_table(soup)
    if table is None:
        logger.warning(f"[listing] No case table found on {page_url}")
        return []

    cases: list[Case] = []
    for tr in table.find_all("tr"):
        cells = tr.find_all("td")
        if len(cells) < 3:
            continue
        anchor = cells[0].find("a", href=True)
        if anchor is None:
            continue
        m = CASE_NUMBER_PATTERN.search(anchor.get_text(" ", strip=True))
        if not m:
            continue
        texts = [_cell_text(c) for c in cells[1:]]
        if sum(1 for t in texts if t) < 2:
            continue
        cases.append(
            Case(
                case_number=m.group(0),
                company=texts[0],
                description=texts[1],
                listing_url=SiteClient.normalize_url(anchor["href"], page_url),
                utility_type=utility_type,
                status=status,
            )
        )
    return cases


def find_next_page(html: str, page_url: str) -> str | None:
    """URL of the listing's next page, if it has one."""
    soup = BeautifulSoup(html, "html.parser")
    link = soup.find("a", rel="next", href=True)
    if link is None:
        for a in soup.find_all("a", href=True):
            if a.get_text(" ", strip=True).lower() in _NEXT_LABELS:
                link = a
                break
    if link is None:
        return None
    href = link["href"].strip()
    if not href or href.startswith("#") or href.lower().startswith("javascript:"):
        return None
    return SiteClient.normalize_url(href, page_url)


# ============================================================
# Case detail pages
# ============================================================


def parse_date_filed(html: str) -> str | None:
    """
    Find the "Date Filed" value on a case detail page.

    Tries, in order: a cell labelled "Date Filed" followed by a date cell,
    a header row with a "Date Filed" column, then free text.
    """
    soup = BeautifulSoup(html, "html.parser")
    tables = soup.find_all("table")

    for table in tables:
        for tr in table.find_all("tr"):
            cells = tr.find_all(["td", "th"])
            for current, nxt in zip(cells, cells[1:]):
                if current.get_text(strip=True).rstrip(":") == "Date Filed":
                    m = RE_FILED_DATE.search(nxt.get_text(" ", strip=True))
                    if m:
                        return m.group(0)

    for table in tables:
        rows = table.find_all("tr")
        if len(rows) < 2:
            continue
        headers = [c.get_text(strip=True) for c in rows[0].find_all(["th", "td"])]
        if "Date Filed" not in headers:
            continue
        idx = headers.index("Date Filed")
        data_cells = rows[1].find_all("td")
        if idx < len(data_cells):
            m = RE_FILED_DATE.search(data_cells[idx].get_text(" ", strip=True))
            if m:
                return m.group(0)

    m = RE_FILED_LABEL.search(soup.get_text(" ", strip=True))
    if m:
        return m.group(1)
    return None


def _find_case_files_block(soup: BeautifulSoup):
    """Innermost element containing the "Case Files" heading and PDF entries."""
    best = None
    best_len = None
    for el in soup.find_all(["div", "section", "td"]):
        text = el.get_text(" ", strip=True)
        if "case files" not in text.lower() or not RE_PDF_NAME.search(text):
            continue
        if best_len is None or len(text) < best_len:
            best, best_len = el, len(text)
    return best


def parse_case_files(
    html: str,
    case: Case,
    target_sections: Iterable[str],
    generic_documents: Iterable[str] = (),
) -> list[DocumentRef]:
    """
    Enumerate viewer links from a case's "Case Files" block.

    Only entries under a target section are returned; generic attachments
    and duplicate URLs are dropped.
    """
    soup = BeautifulSoup(html, "html.parser")
    block = _find_case_files_block(soup)
    if block is None:
        logger.info(f"[{case.case_number}] No Case Files block")
        return []

    targets = [t.lower() for t in target_sections]
    generic = {g.upper() for g in generic_documents}

    links: list[tuple[str, str]] = []
    for a in block.find_all("a", href=True):
        text = a.get_text(" ", strip=True)
        if RE_PDF_NAME.search(text) or RE_PDF_NAME.search(a["href"]):
            links.append((text, SiteClient.normalize_url(a["href"], case.listing_url)))

    lines = [ln.strip() for ln in block.get_text("\n").split("\n")]
    lines = [ln for ln in lines if ln]

    entries: list[tuple[str, str, str]] = []  # (section, file_date, filename)
    section: str | None = None
    pending_date: str | None = None
    for line in lines:
        if RE_SECTION_HEADER.match(line) and not RE_PDF_NAME.search(line):
            section = line
            pending_date = None
            continue
        m = RE_FILE_ENTRY.search(line)
        if m:
            if section is not None:
                entries.append((section, m.group(1), m.group(2).strip()))
            pending_date = None
        elif RE_DATE_ONLY.match(line):
            pending_date = line
        elif pending_date and RE_PDF_NAME.search(line):
            if section is not None:
                entries.append((section, pending_date, line))
            pending_date = None

    documents: list[DocumentRef] = []
    seen_urls: set[str] = set()
    skipped_sections: set[str] = set()
    for section_name, file_date, filename in entries:
        if not any(t in section_name.lower() for t in targets):
            skipped_sections.add(section_name)
            continue
        basename = filename.rsplit("/", 1)[-1].upper()
        if basename in generic:
            continue
        url = None
        fname_upper = filename.upper()
        for text, href in links:
            text_upper = text.upper()
            if text_upper and (fname_upper in text_upper or text_upper in fname_upper):
                url = href
                break
        if url is None or url in seen_urls:
            continue
        if url.rsplit("/", 1)[-1].upper() in generic:
            continue
        seen_urls.add(url)
        documents.append(
            DocumentRef(
                case_number=case.case_number,
                viewer_url=url,
                display_name=filename,
                section=section_name,
                company=case.company,
                utility_type=case.utility_type,
                case_status=case.status,
                file_date=file_date,
            )
        )

    if skipped_sections:
        logger.debug(f"[{case.case_number}] Skipped sections: {sorted(skipped_sections)}")
    logger.info(f"[{case.case_number}] {len(documents)} target documents")
    return documents


# ============================================================
# Scanner
# ============================================================


class ListingScanner:
    """
    Walks the selected listing views and yields matched, in-range cases.

    Strategy: read listing rows lazily, keyword-match each row, load the
    detail page of every match for its filed date, and stop a view once
    `miss_threshold` consecutive matches fall outside the window.
    """

    def __init__(self, client: HtmlSource, settings: ScanSettings | None = None):
        self.client = client
        self.settings = settings or ScanSettings()
        self._detail_pages: dict[str, str] = {}
        self.stats = {
            "views_scanned": 0,
            "listing_pages": 0,
            "rows_seen": 0,
            "matched": 0,
            "in_range": 0,
            "detail_errors": 0,
            "early_stops": 0,
        }

    def scan(
        self,
        query: str,
        utility_types: Iterable[UtilityType],
        start: date,
        end: date,
    ) -> Iterator[Case]:
        wanted = set(utility_types)
        seen: set[str] = set()
        for (utility, status), url in self.settings.listing_views.items():
            if utility not in wanted:
                continue
            for case in self.scan_view(url, utility, status, query, start, end):
                if case.case_number in seen:
                    continue
                seen.add(case.case_number)
                yield case

    def scan_view(
        self,
        url: str,
        utility: UtilityType,
        status: CaseStatus,
        query: str,
        start: date,
        end: date,
    ) -> Iterator[Case]:
        label = f"{utility.value}/{status.value}"
        threshold = self.settings.miss_threshold
        misses = 0
        found = 0
        self.stats["views_scanned"] += 1
        logger.info(f"[listing] Scanning {label}: {url}")

        for row in self._iter_rows(url, utility, status):
            self.stats["rows_seen"] += 1
            if not matches(row, query):
                continue
            self.stats["matched"] += 1

            try:
                html = self.client.get_html(row.listing_url)
            except requests.RequestException as e:
                self.stats["detail_errors"] += 1
                logger.warning(f"[listing] {row.case_number}: detail page failed: {e}")
                continue

            filed_raw = parse_date_filed(html)
            filed = parse_filed_date(filed_raw)
            if in_date_range(filed, start, end):
                misses = 0
                found += 1
                self.stats["in_range"] += 1
                self._detail_pages[row.case_number] = html
                logger.info(f"[listing] Match: {row.case_number} {row.company} (filed {filed})")
                yield row.model_copy(update={"date_filed": filed})
                continue

            # A missing date is a miss like an out-of-range one
            misses += 1
            if filed is None:
                logger.warning(
                    f"[listing] {row.case_number}: no Date Filed on detail page "
                    f"({misses} consecutive)"
                )
            else:
                logger.debug(
                    f"[listing] {row.case_number} filed {filed} outside range "
                    f"({misses} consecutive)"
                )
            if threshold and misses >= threshold:
                self.stats["early_stops"] += 1
                logger.info(
                    f"[listing] {label}: {misses} consecutive misses, "
                    f"stopping view"
                )
                break

        logger.info(f"[listing] {label}: {found} cases in range")

    def _iter_rows(
        self, url: str, utility: UtilityType, status: CaseStatus
    ) -> Iterator[Case]:
        visited: set[str] = set()
        page_url: str | None = url
        while page_url and page_url not in visited:
            if len(visited) >= self.settings.max_listing_pages:
                logger.warning(f"[listing] Page limit reached for {url}")
                return
            visited.add(page_url)
            try:
                html = self.client.get_html(page_url)
            except requests.RequestException as e:
                logger.error(f"[listing] Listing page failed {page_url}: {e}")
                return
            self.stats["listing_pages"] += 1
            yield from parse_listing(html, page_url, utility, status)
            page_url = find_next_page(html, page_url)

    def documents_for(self, case: Case) -> list[DocumentRef]:
        """Documents of a scanned case, reusing the detail page already loaded."""
        html = self._detail_pages.get(case.case_number)
        if html is None:
            try:
                html = self.client.get_html(case.listing_url)
            except requests.RequestException as e:
                logger.warning(f"[{case.case_number}] Case Files page failed: {e}")
                return []
            self._detail_pages[case.case_number] = html
        return parse_case_files(
            html,
            case,
            self.settings.target_sections,
            self.settings.generic_documents,
        )
