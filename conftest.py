"""Scripted stand-ins for the PUC site and the document viewers.

No test touches the network or launches a browser: FakeSiteClient serves
canned HTML by URL and FakeViewer answers the in-page scripts from
scrapers.viewers.scripts with canned data.
"""
from __future__ import annotations

import dataclasses

import pytest
import requests

from config import ExtractionSettings
from scrapers.viewers import scripts


class FakeSiteClient:
    def __init__(self, pages: dict[str, str]):
        self.pages = dict(pages)
        self.requested: list[str] = []

    def get_html(self, url: str) -> str:
        self.requested.append(url)
        if url not in self.pages:
            raise requests.HTTPError(f"404 for {url}")
        return self.pages[url]


class FakeViewer:
    """
    Answers viewer scripts from canned page data.

    fragments: page number -> marked-content fragments
    loaded: pages rendered right now; scrolling renders `scroll_loads`,
        stepping with the next control renders the next page
    """

    def __init__(
        self,
        probe: dict | None = None,
        selectors=(),
        page_count=None,
        page_texts: dict[int, str] | None = None,
        fragments: dict[int, list[str]] | None = None,
        loaded=(),
        scroll_loads=None,
        frame: "FakeViewer | None" = None,
        errors: dict[str, Exception] | None = None,
    ):
        self.probe = probe or {}
        self.selectors = set(selectors)
        self.page_count = page_count
        self.page_texts = page_texts or {}
        self.fragments = fragments or {}
        self.loaded = set(loaded)
        self.scroll_loads = set(self.fragments) if scroll_loads is None else set(scroll_loads)
        self.child = frame
        self.errors = errors or {}
        self.current_page = 1
        self.calls: list[tuple[str, object]] = []
        self.clicks: list[str] = []
        self.fills: list[str] = []

    def evaluate(self, script, arg=None):
        self.calls.append((script, arg))
        if script in self.errors:
            raise self.errors[script]
        if script == scripts.STRUCTURE_PROBE:
            return self.probe
        if script in (scripts.PAGE_COUNT_TEXT, scripts.PDFJS_PAGE_COUNT):
            return self.page_count
        if script == scripts.PAGE_TEXT_LAYER:
            return self.page_texts.get(arg, "")
        if script == scripts.IMAGE_NEXT_PAGE:
            self.current_page += 1
            return True
        if script == scripts.MARKED_CONTENT_FRAGMENTS:
            return [
                {"number": n, "fragments": self.fragments[n]}
                for n in sorted(self.loaded)
                if n in self.fragments
            ]
        if script == scripts.SCROLL_TO_FRACTION:
            self.loaded |= self.scroll_loads
            return 0
        if script == scripts.PDFJS_NEXT_PAGE:
            if self.current_page >= max(self.fragments, default=0):
                return False
            self.current_page += 1
            self.loaded.add(self.current_page)
            return True
        raise AssertionError(f"unexpected script: {script[:40]!r}")

    def wait(self, ms):
        pass

    def exists(self, selector):
        return selector in self.selectors

    def click(self, selector):
        self.clicks.append(selector)

    def fill(self, selector, value):
        self.fills.append(value)

    def press(self, selector, key):
        if key == "Enter" and self.fills:
            self.current_page = int(self.fills[-1])

    def wait_for_function(self, script, timeout_ms, polling_ms=1000):
        self.calls.append((script, timeout_ms))
        if script in self.errors:
            raise self.errors[script]

    def frame(self, selector):
        return self.child

    def scripts_called(self) -> list[str]:
        return [script for script, _ in self.calls]


class FakeSession:
    """Context-managed session whose open() hands out scripted viewers."""

    def __init__(self, viewers: dict[str, object]):
        self.viewers = viewers
        self.opened: list[str] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def open(self, url):
        self.opened.append(url)
        viewer = self.viewers[url]
        if isinstance(viewer, Exception):
            raise viewer
        return viewer


def text_page(number: int, words: int = 40) -> str:
    return " ".join(f"page{number}word{i}" for i in range(words))


def image_viewer(page_texts: dict[int, str]) -> FakeViewer:
    """A viewer that classifies as image + text layer."""
    return FakeViewer(
        probe={"page_images": len(page_texts), "image_text_pages": len(page_texts), "text_layers": len(page_texts)},
        selectors={scripts.PAGE_JUMP_INPUT},
        page_count=f"Page 1 of {len(page_texts)}",
        page_texts=page_texts,
    )


@pytest.fixture
def fast_settings() -> ExtractionSettings:
    return dataclasses.replace(
        ExtractionSettings(),
        worker_stagger_seconds=0.0,
        progress_interval_seconds=0.01,
    )
