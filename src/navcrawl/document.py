"""
Document/automation collaborator.

The engine only talks to the live page through the ``Document`` interface,
so it does not depend on a specific automation product. ``PlaywrightDocument``
is the production adapter over a Playwright async ``Page``.
"""
import asyncio
import logging
import re
from pathlib import Path
from abc import ABC, abstractmethod
from typing import Any, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from navcrawl.exceptions import NavigationTimeout
from navcrawl.models import InteractiveItem

logger = logging.getLogger(__name__)


# Elements that can move the user somewhere
INTERACTIVE_SELECTOR = (
    'a[href], button:not([disabled]):not([type="submit"]), '
    '[role="link"], [role="button"], [role="menuitem"]'
)

NAVIGATION_CONTAINER_SELECTOR = 'nav, [role="navigation"], [class*="nav"], [class*="menu"]'

WIDGET_SELECTOR = (
    '[class*="widget"], [class*="card"], [class*="panel"], '
    '[class*="stat"], [class*="metric"], [class*="dashboard-item"]'
)

ENUMERATE_INTERACTIVE_SCRIPT = """
([selector, navSelector]) => {
    const items = [];
    for (const el of document.querySelectorAll(selector)) {
        const style = window.getComputedStyle(el);
        if (el.offsetParent === null && style.position !== 'fixed') continue;
        if (style.visibility === 'hidden') continue;
        const img = el.querySelector('img');
        items.push({
            text: (el.textContent || '').trim().replace(/\\s+/g, ' ').slice(0, 200),
            href: typeof el.href === 'string' ? el.href : '',
            raw_href: el.getAttribute('href') || '',
            tag: el.tagName,
            element_id: el.id || '',
            classes: typeof el.className === 'string' ? el.className : '',
            aria_label: el.getAttribute('aria-label') || '',
            title: el.getAttribute('title') || (img ? (img.alt || '') : ''),
            role: el.getAttribute('role') || '',
            in_navigation: !!el.closest(navSelector),
        });
    }
    return items;
}
"""

ENUMERATE_WIDGETS_SCRIPT = """
(selector) => {
    const items = [];
    for (const el of document.querySelectorAll(selector)) {
        if (el.offsetParent === null) continue;
        items.push({
            text: (el.textContent || '').trim().replace(/\\s+/g, ' ').slice(0, 100),
            tag: el.tagName,
            element_id: el.id || '',
            classes: typeof el.className === 'string' ? el.className : '',
            aria_label: el.getAttribute('aria-label') || '',
            title: el.getAttribute('title') || '',
            role: el.getAttribute('role') || '',
        });
    }
    return items;
}
"""

ENUMERATE_FORM_FIELDS_SCRIPT = """
() => {
    const skip = new Set(['hidden', 'submit', 'button', 'image', 'reset', 'file']);
    const fields = [];
    for (const el of document.querySelectorAll('input, select, textarea')) {
        const type = (el.getAttribute('type') || el.tagName.toLowerCase()).toLowerCase();
        if (skip.has(type) || el.disabled || el.readOnly) continue;
        if (el.offsetParent === null) continue;
        let label = '';
        if (el.id) {
            const lab = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
            if (lab) label = lab.textContent || '';
        }
        if (!label && el.closest('label')) label = el.closest('label').textContent || '';
        let selector = '';
        if (el.id) selector = '#' + CSS.escape(el.id);
        else if (el.name) selector = `${el.tagName.toLowerCase()}[name="${el.name}"]`;
        else if (el.placeholder) selector = `${el.tagName.toLowerCase()}[placeholder="${el.placeholder}"]`;
        if (!selector) continue;
        fields.push({
            selector: selector,
            field_type: type,
            name: el.name || '',
            id: el.id || '',
            placeholder: el.placeholder || '',
            label: label.trim(),
            required: el.required || el.hasAttribute('required'),
        });
    }
    return fields;
}
"""

DOCUMENT_INDEX_SCRIPT = """
(el) => Array.prototype.indexOf.call(document.getElementsByTagName('*'), el)
"""

# Longest file name kept from a screenshot label
SCREENSHOT_SLUG_LENGTH = 100

# jQuery-style :contains('x') is common in hand-written selector lists
_CONTAINS_RE = re.compile(r":contains\(")


def to_engine_selector(selector: str) -> str:
    """Translate selector dialects into one the Playwright engine understands."""
    return _CONTAINS_RE.sub(":has-text(", selector)


async def bounded(awaitable, timeout_ms: int, target: Optional[str] = None):
    """Await a document step with a deadline.

    Raises:
        NavigationTimeout: If the step did not finish within ``timeout_ms``
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000.0)
    except asyncio.TimeoutError as e:
        raise NavigationTimeout(
            f"{target or 'Action'} did not settle within {timeout_ms}ms", target=target, timeout_ms=timeout_ms
        ) from e


def screenshot_name(label: str) -> str:
    """File name for a screenshot of ``label`` (a URL or journey step)."""
    slug = re.sub(r"[^a-z0-9]", "_", label, flags=re.IGNORECASE)
    return f"{slug[-SCREENSHOT_SLUG_LENGTH:]}.png"


async def capture_screenshot(
    document: "Document",
    directory: Optional[str],
    label: str,
    timeout_ms: int,
) -> Optional[str]:
    """Save a full-page screenshot into ``directory``.

    Screenshots are evidence only: a failed capture is logged and yields None.

    Returns:
        Path of the written file, or None when disabled or failed
    """
    if not directory:
        return None

    path = Path(directory) / screenshot_name(label)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        await bounded(document.screenshot(str(path)), timeout_ms, f"screenshot {label}")
    except Exception as e:
        logger.warning(f"Could not capture screenshot for {label}: {e}")
        return None
    return str(path)


class Document(ABC):
    """Capability surface the engine needs from the live document."""

    @abstractmethod
    async def query(self, selector: str) -> list[Any]:
        """Elements matching a selector, in document order."""

    @abstractmethod
    async def is_visible(self, element: Any) -> bool:
        ...

    @abstractmethod
    async def is_enabled(self, element: Any) -> bool:
        ...

    @abstractmethod
    async def click(self, element: Any) -> None:
        ...

    @abstractmethod
    async def fill(self, element: Any, value: str) -> None:
        ...

    @abstractmethod
    async def current_location(self) -> str:
        ...

    @abstractmethod
    async def navigate(self, location: str) -> None:
        """Load a location. Raises NavigationTimeout when it does not settle."""

    @abstractmethod
    async def wait_for_settled(self, timeout_ms: int) -> None:
        """Wait for in-flight navigation/rendering. Raises NavigationTimeout."""

    @abstractmethod
    async def document_index(self, element: Any) -> int:
        """Position of an element in document order."""

    async def title(self) -> str:
        return ""

    async def text_content(self, element: Any) -> str:
        return ""

    async def body_text(self) -> str:
        return ""

    async def enumerate_interactive(self) -> list[InteractiveItem]:
        """Visible links, buttons and menu items on the current page."""
        return []

    async def enumerate_widgets(self) -> list[InteractiveItem]:
        """Visible dashboard-style containers (cards, panels, stats)."""
        return []

    async def enumerate_form_fields(self) -> list[dict]:
        """Visible, editable form fields on the current page."""
        return []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Run a script in the page; used by read-only page audits."""
        return None

    async def screenshot(self, path: str) -> None:
        """Write a full-page screenshot to ``path``."""
        return None

    def automation_page(self) -> Any:
        """Underlying automation page for tools that drive it directly (None if unavailable)."""
        return None


class PlaywrightDocument(Document):
    """Document adapter over a Playwright async Page."""

    def __init__(
        self,
        page,
        timeout_ms: int = 30000,
        wait_until: str = "domcontentloaded",
        settle_delay_ms: int = 1000,
    ):
        """
        Args:
            page: Playwright async Page
            timeout_ms: Default timeout for clicks and navigations
            wait_until: Load state that counts as a completed navigation
            settle_delay_ms: Extra wait for client-side rendering after settling
        """
        self.page = page
        self.timeout_ms = timeout_ms
        self.wait_until = wait_until
        self.settle_delay_ms = settle_delay_ms

    async def query(self, selector: str) -> list[Any]:
        return await self.page.query_selector_all(to_engine_selector(selector))

    async def is_visible(self, element) -> bool:
        return await element.is_visible()

    async def is_enabled(self, element) -> bool:
        return await element.is_enabled()

    async def click(self, element) -> None:
        try:
            await element.click(timeout=self.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"Click did not complete: {e}", timeout_ms=self.timeout_ms) from e

    async def fill(self, element, value: str) -> None:
        await element.fill(value, timeout=self.timeout_ms)

    async def current_location(self) -> str:
        return self.page.url

    async def navigate(self, location: str) -> None:
        try:
            await self.page.goto(location, wait_until=self.wait_until, timeout=self.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(
                f"Navigation to {location} timed out", target=location, timeout_ms=self.timeout_ms
            ) from e

    async def wait_for_settled(self, timeout_ms: Optional[int] = None) -> None:
        timeout = timeout_ms or self.timeout_ms
        try:
            await self.page.wait_for_load_state("domcontentloaded", timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout("Page did not settle", timeout_ms=timeout) from e

        if self.settle_delay_ms:
            await self.page.wait_for_timeout(self.settle_delay_ms)

    async def document_index(self, element) -> int:
        return await element.evaluate(DOCUMENT_INDEX_SCRIPT)

    async def title(self) -> str:
        return await self.page.title()

    async def text_content(self, element) -> str:
        return (await element.text_content() or "").strip()

    async def body_text(self) -> str:
        return await self.page.text_content("body") or ""

    async def enumerate_interactive(self) -> list[InteractiveItem]:
        raw = await self.page.evaluate(
            ENUMERATE_INTERACTIVE_SCRIPT, [INTERACTIVE_SELECTOR, NAVIGATION_CONTAINER_SELECTOR]
        )
        return [InteractiveItem.from_dict(item) for item in raw or []]

    async def enumerate_widgets(self) -> list[InteractiveItem]:
        raw = await self.page.evaluate(ENUMERATE_WIDGETS_SCRIPT, WIDGET_SELECTOR)
        return [InteractiveItem.from_dict(item) for item in raw or []]

    async def enumerate_form_fields(self) -> list[dict]:
        return await self.page.evaluate(ENUMERATE_FORM_FIELDS_SCRIPT) or []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return await self.page.evaluate(script)
        return await self.page.evaluate(script, arg)

    async def screenshot(self, path: str) -> None:
        await self.page.screenshot(path=path, full_page=True, timeout=self.timeout_ms)

    def automation_page(self):
        return self.page
