"""
Base HTTP client shared by everything that reads the PUC site.

Provides:
- Rate limiting (configurable delay between requests)
- HTTP session with transparent user agent and optional proxy
- URL normalization helper

Discovery never retries blindly: a failed page load raises
requests.RequestException and the caller decides whether to skip.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from urllib.parse import urljoin, urlsplit, urlunsplit

import requests
from requests.adapters import HTTPAdapter

from config import REQUEST_DELAY, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


def _redact_proxy_url(proxy_url: str) -> str:
    """Mask proxy credentials before logging."""
    try:
        parsed = urlsplit(proxy_url)
        if "@" not in parsed.netloc:
            return proxy_url

        creds, host = parsed.netloc.rsplit("@", 1)
        user = creds.split(":", 1)[0]
        safe_creds = f"{user}:***" if ":" in creds else "***"
        return urlunsplit(
            (parsed.scheme, f"{safe_creds}@{host}", parsed.path, parsed.query, parsed.fragment)
        )
    except ValueError:
        return "<redacted>"


class SiteClient:
    """
    Rate-limited, read-only HTTP client for the PUC case pages.

    One instance is shared by the listing scanner; requests are serialized
    through a lock so the rate limit holds even if callers use threads.
    """

    # User agent, kept transparent
    USER_AGENT: str = (
        "PUCCaseResearch/1.0 (regulatory research; respects rate limits)"
    )

    # SOCKS5/HTTP proxy URL (e.g. "socks5h://127.0.0.1:1080")
    # Set per-instance or via environment variable PUC_PROXY
    PROXY: str = ""

    def __init__(
        self,
        request_delay: float = REQUEST_DELAY,
        timeout: int = REQUEST_TIMEOUT,
        proxy: str | None = None,
    ):
        self.request_delay = request_delay
        self.timeout = timeout
        self.proxy = proxy if proxy is not None else (self.PROXY or os.environ.get("PUC_PROXY", ""))
        self.session = self._build_session()
        self._last_request_time: float = 0
        self._lock = threading.Lock()

    def _build_session(self) -> requests.Session:
        """Build an HTTP session with proper headers and no automatic retries."""
        session = requests.Session()
        session.headers.update(
            {
                "User-Agent": self.USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            }
        )

        if self.proxy:
            session.proxies = {"http": self.proxy, "https": self.proxy}
            logger.info(f"[site] Using proxy: {_redact_proxy_url(self.proxy)}")

        adapter = HTTPAdapter(max_retries=0, pool_connections=4, pool_maxsize=4)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def _rate_limit(self) -> None:
        """Enforce minimum delay between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.request_delay:
            time.sleep(self.request_delay - elapsed)
        self._last_request_time = time.time()

    def get(self, url: str, **kwargs) -> requests.Response:
        """Rate-limited GET request."""
        with self._lock:
            self._rate_limit()
        kwargs.setdefault("timeout", self.timeout)
        logger.debug(f"GET {url}")
        response = self.session.get(url, **kwargs)
        response.raise_for_status()
        return response

    def get_html(self, url: str) -> str:
        response = self.get(url)
        if not response.encoding:
            response.encoding = "utf-8"
        return response.text

    def close(self) -> None:
        self.session.close()

    # =======================================================================
    # Common utilities
    # =======================================================================

    @staticmethod
    def normalize_url(href: str, base: str) -> str:
        """Ensure URL is absolute."""
        return urljoin(base, href)
