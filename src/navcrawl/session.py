"""
Session collaborator.

``BrowserSession`` supplies a pre-authenticated document (Playwright storage
state produced by a separate login step); the engine never sees credentials.
``SessionGuard`` detects that the session has expired, which aborts the run.
"""

import logging
from pathlib import Path
from typing import Optional

from navcrawl.config import ExplorerConfig
from navcrawl.document import Document, PlaywrightDocument, bounded
from navcrawl.exceptions import SessionExpired

logger = logging.getLogger(__name__)


# Location substrings that indicate a sign-in page
SESSION_EXPIRED_URL_PATTERNS = [
    "sign-in",
    "signin",
    "login",
    "log-in",
]


class SessionGuard:
    """Detects a lost session from the current location or page text."""

    def __init__(
        self,
        url_patterns: Optional[list[str]] = None,
        text_markers: Optional[list[str]] = None,
        timeout_ms: int = 30000,
    ):
        self.url_patterns = [p.lower() for p in (url_patterns if url_patterns is not None else SESSION_EXPIRED_URL_PATTERNS)]
        self.text_markers = [t.lower() for t in (text_markers or [])]
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(cls, config: ExplorerConfig) -> "SessionGuard":
        return cls(config.session_expired_patterns, config.session_expired_texts, config.per_action_timeout_ms)

    def detect(self, location: str, body_text: str = "") -> Optional[str]:
        """
        Check a location and page text for session-expired signals.

        Returns:
            Name of the signal that matched, or None
        """
        lowered = (location or "").lower()
        for pattern in self.url_patterns:
            if pattern in lowered:
                return f"url_pattern:{pattern}"

        if self.text_markers and body_text:
            text = body_text.lower()
            for marker in self.text_markers:
                if marker in text:
                    return f"text_marker:{marker}"
        return None

    async def inspect(self, document: Document) -> Optional[str]:
        """Session-expired signal shown by the document, or None."""
        location = await document.current_location()
        body_text = ""
        if self.text_markers:
            try:
                body_text = await bounded(document.body_text(), self.timeout_ms, "page text")
            except Exception as e:
                logger.debug(f"Could not read page text for session check: {e}")
        return self.detect(location, body_text)

    async def check(self, document: Document) -> None:
        """
        Raise if the document shows the session has expired.

        Raises:
            SessionExpired: If a location or text signal matched
        """
        signal = await self.inspect(document)
        if signal:
            location = await document.current_location()
            logger.error(f"Session expired ({signal}) at {location}")
            raise SessionExpired(f"Session expired ({signal})", location)


class BrowserSession:
    """
    Async context manager that launches a browser with a pre-authenticated
    context and exposes a single page as a ``Document``.

    Usage:
        async with BrowserSession(config) as session:
            explorer = BoundedExplorer(session.document, config)
            run = await explorer.run()
    """

    def __init__(self, config: ExplorerConfig):
        self._config = config
        self._playwright = None
        self._browser = None
        self._context = None
        self.page = None
        self.document: Optional[PlaywrightDocument] = None

    async def __aenter__(self) -> "BrowserSession":
        """Enter async context manager, launching browser."""
        from playwright.async_api import async_playwright

        logger.info(f"Launching {self._config.browser_type} browser (headless={self._config.headless})")

        self._playwright = await async_playwright().start()
        browser_launcher = getattr(self._playwright, self._config.browser_type)
        self._browser = await browser_launcher.launch(headless=self._config.headless)

        context_options = {"ignore_https_errors": True}
        state_path = self._config.storage_state_path
        if state_path and Path(state_path).exists():
            context_options["storage_state"] = state_path
            logger.info(f"Using saved session state from {state_path}")
        elif state_path:
            logger.warning(f"Session state {state_path} not found, continuing unauthenticated")

        self._context = await self._browser.new_context(**context_options)
        self.page = await self._context.new_page()
        self.document = PlaywrightDocument(
            self.page,
            timeout_ms=self._config.per_action_timeout_ms,
            wait_until=self._config.wait_until,
            settle_delay_ms=self._config.settle_delay_ms,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager, closing browser."""
        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            logger.info("Closing browser")
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def save_storage_state(self, path: str) -> None:
        """Persist cookies and localStorage so later runs can reuse the session."""
        if not self._context:
            raise RuntimeError("Browser is not running. Use BrowserSession as an async context manager.")
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        await self._context.storage_state(path=path)
        logger.info(f"Session state saved to {path}")
