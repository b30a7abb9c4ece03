"""
Browser sessions for the document viewers.

Each extraction worker owns one BrowserSession (one Playwright instance,
one Chromium, one context); sessions are never shared across threads since
the Playwright sync API is bound to the thread that started it.

Detectors and extractors only talk to the ViewerPage protocol, which
PlaywrightViewer implements over a Page or Frame. Playwright errors are
translated into the viewer-layer exceptions in scrapers.viewers.errors.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from base_scraper import SiteClient
from config import ExtractionSettings
from scrapers.viewers.errors import NavigationError, ViewerError, ViewerTimeout

logger = logging.getLogger(__name__)


class ViewerPage(Protocol):
    """What detectors and extractors may do with a loaded viewer."""

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def wait(self, ms: int) -> None: ...

    def exists(self, selector: str) -> bool: ...

    def click(self, selector: str) -> None: ...

    def fill(self, selector: str, value: str) -> None: ...

    def press(self, selector: str, key: str) -> None: ...

    def wait_for_function(self, script: str, timeout_ms: int, polling_ms: int = 1000) -> None: ...

    def frame(self, selector: str) -> Optional["ViewerPage"]: ...


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PlaywrightTimeoutError as e:
        raise ViewerTimeout(f"{action}: {e}") from e
    except PlaywrightError as e:
        raise ViewerError(f"{action}: {e}") from e


class PlaywrightViewer:
    """ViewerPage over a Playwright Page or Frame."""

    def __init__(self, target, action_timeout_ms: int):
        self._target = target
        self._timeout = action_timeout_ms

    def evaluate(self, script: str, arg: Any = None) -> Any:
        with _translate_errors("evaluate"):
            return self._target.evaluate(script, arg)

    def wait(self, ms: int) -> None:
        if ms > 0:
            self._target.wait_for_timeout(ms)

    def exists(self, selector: str) -> bool:
        with _translate_errors(f"query {selector}"):
            return self._target.query_selector(selector) is not None

    def click(self, selector: str) -> None:
        with _translate_errors(f"click {selector}"):
            self._target.click(selector, timeout=self._timeout)

    def fill(self, selector: str, value: str) -> None:
        with _translate_errors(f"fill {selector}"):
            self._target.fill(selector, value, timeout=self._timeout)

    def press(self, selector: str, key: str) -> None:
        with _translate_errors(f"press {selector}"):
            self._target.press(selector, key, timeout=self._timeout)

    def wait_for_function(self, script: str, timeout_ms: int, polling_ms: int = 1000) -> None:
        with _translate_errors("wait_for_function"):
            self._target.wait_for_function(script, timeout=timeout_ms, polling=polling_ms)

    def frame(self, selector: str) -> Optional["PlaywrightViewer"]:
        with _translate_errors(f"frame {selector}"):
            handle = self._target.wait_for_selector(selector, timeout=self._timeout)
            content = handle.content_frame() if handle else None
        if content is None:
            return None
        return PlaywrightViewer(content, self._timeout)


class BrowserSession:
    """
    One headless Chromium owned by a single worker.

    Usage:
        with BrowserSession(settings, worker_id=1) as session:
            viewer = session.open(doc.viewer_url)
    """

    def __init__(self, settings: ExtractionSettings, worker_id: int = 0):
        self.settings = settings
        self.worker_id = worker_id
        self._pw = None
        self._browser = None
        self._context = None
        self._page = None

    def __enter__(self) -> "BrowserSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def start(self) -> None:
        self._pw = sync_playwright().start()
        try:
            self._browser = self._pw.chromium.launch(
                headless=self.settings.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
            self._context = self._browser.new_context(
                user_agent=SiteClient.USER_AGENT,
                viewport={"width": 1280, "height": 1600},
            )
        except PlaywrightError:
            self.close()
            raise
        logger.info(f"[worker-{self.worker_id}] Browser started")

    def open(self, url: str) -> PlaywrightViewer:
        """Load a viewer URL in a fresh page and let it settle."""
        if self._context is None:
            raise ViewerError("browser session not started")
        self._close_page()
        self._page = self._context.new_page()
        try:
            response = self._page.goto(
                url,
                wait_until="networkidle",
                timeout=self.settings.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise ViewerTimeout(f"navigation to {url} timed out") from e
        except PlaywrightError as e:
            raise NavigationError(f"navigation to {url} failed: {e}") from e
        if response is not None and response.status >= 400:
            raise NavigationError(f"navigation to {url} returned HTTP {response.status}")

        self._page.wait_for_timeout(self.settings.viewer_settle_ms)
        return PlaywrightViewer(self._page, self.settings.structure_timeout_ms)

    def _close_page(self) -> None:
        if self._page is None:
            return
        try:
            self._page.close()
        except PlaywrightError as e:
            logger.debug(f"[worker-{self.worker_id}] page close failed: {e}")
        self._page = None

    def close(self) -> None:
        """Close page, context, browser and Playwright, in that order."""
        self._close_page()
        for name in ("_context", "_browser"):
            obj = getattr(self, name)
            if obj is None:
                continue
            try:
                obj.close()
            except PlaywrightError as e:
                logger.debug(f"[worker-{self.worker_id}] {name} close failed: {e}")
            setattr(self, name, None)
        if self._pw is not None:
            try:
                self._pw.stop()
            except PlaywrightError as e:
                logger.debug(f"[worker-{self.worker_id}] playwright stop failed: {e}")
            self._pw = None
