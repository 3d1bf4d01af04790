"""Shared fixtures: a scripted in-memory document standing in for a browser page."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pytest

from navcrawl.config import ExplorerConfig
from navcrawl.document import Document
from navcrawl.intelligence.locator_library import item_locators
from navcrawl.models import InteractiveItem


@dataclass(eq=False)
class FakeElement:
    """Element handle returned by FakeDocument.query."""
    text: str = ""
    index: int = 0
    visible: bool = True
    enabled: bool = True
    target: Optional[str] = None  # Location a click leads to
    click_error: Optional[Exception] = None


@dataclass
class FakePage:
    """Static content of one location."""
    title: str = ""
    body: str = ""
    elements: dict[str, list[FakeElement]] = field(default_factory=dict)
    items: list[InteractiveItem] = field(default_factory=list)
    widgets: list[InteractiveItem] = field(default_factory=list)
    form_fields: list[dict] = field(default_factory=list)

    def add(self, selector: str, element: FakeElement) -> FakeElement:
        self.elements.setdefault(selector, []).append(element)
        return element

    def add_link(
        self,
        text: str,
        href: str,
        base: str = "https://app.test",
        in_navigation: bool = True,
        click_error: Optional[Exception] = None,
        **item_fields: Any,
    ) -> FakeElement:
        """Add a visible link, reachable through every locator derived for it."""
        absolute = href if "://" in href else f"{base}{href}"
        item = InteractiveItem(
            text=text, href=absolute, raw_href=href, tag="A", in_navigation=in_navigation, **item_fields
        )
        element = FakeElement(text=text, index=len(self.items) + 1, target=absolute, click_error=click_error)
        self.items.append(item)
        for locator in item_locators(item):
            self.add(locator.predicate, element)
        return element


class FakeDocument(Document):
    """Document whose pages, redirects and failures are scripted by the test."""

    def __init__(self, pages: Optional[dict[str, FakePage]] = None, location: str = "about:blank"):
        self.pages = pages or {}
        self.location = location
        self.redirects: dict[str, str] = {}
        self.raising_selectors: set[str] = set()
        self.slow_selectors: set[str] = set()
        self.navigate_script: dict[str, list[Optional[Exception]]] = {}
        self.evaluate_result: Any = None
        self.clicks: list[FakeElement] = []
        self.fills: list[tuple[FakeElement, str]] = []
        self.navigations: list[str] = []
        self.screenshots: list[str] = []
        self.screenshot_error: Optional[Exception] = None

    @property
    def page(self) -> FakePage:
        return self.pages.get(self.location, FakePage())

    def _arrive(self, location: str) -> None:
        self.location = self.redirects.get(location, location)

    async def query(self, selector: str) -> list[Any]:
        if selector in self.raising_selectors:
            raise ValueError(f"Malformed selector: {selector}")
        if selector in self.slow_selectors:
            await asyncio.sleep(5)
        return list(self.page.elements.get(selector, []))

    async def is_visible(self, element: FakeElement) -> bool:
        return element.visible

    async def is_enabled(self, element: FakeElement) -> bool:
        return element.enabled

    async def click(self, element: FakeElement) -> None:
        self.clicks.append(element)
        if element.click_error:
            raise element.click_error
        if element.target:
            self._arrive(element.target)

    async def fill(self, element: FakeElement, value: str) -> None:
        self.fills.append((element, value))

    async def current_location(self) -> str:
        return self.location

    async def navigate(self, location: str) -> None:
        self.navigations.append(location)
        script = self.navigate_script.get(location)
        if script:
            error = script.pop(0)
            if error is not None:
                raise error
        self._arrive(location)

    async def wait_for_settled(self, timeout_ms: int) -> None:
        return None

    async def document_index(self, element: FakeElement) -> int:
        return element.index

    async def title(self) -> str:
        return self.page.title

    async def text_content(self, element: FakeElement) -> str:
        return element.text

    async def body_text(self) -> str:
        return self.page.body

    async def enumerate_interactive(self) -> list[InteractiveItem]:
        return list(self.page.items)

    async def enumerate_widgets(self) -> list[InteractiveItem]:
        return list(self.page.widgets)

    async def enumerate_form_fields(self) -> list[dict]:
        return list(self.page.form_fields)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return self.evaluate_result

    async def screenshot(self, path: str) -> None:
        if self.screenshot_error:
            raise self.screenshot_error
        self.screenshots.append(path)
        Path(path).write_bytes(b"\x89PNG")


ANCHOR = "https://app.test/home"


def sections_app(*sections: str) -> FakeDocument:
    """Anchor linking to one list page per section, each with a working create form.

    For section "clients" the pages are /clients, /clients/new and /clients/1; the
    Add button sits on the list and the Save button submits to a page showing a
    success alert.
    """
    base = "https://app.test"
    pages = {ANCHOR: FakePage(title="Home")}
    for section in sections:
        listing_url = f"{base}/{section}"
        form_url = f"{listing_url}/new"
        done_url = f"{listing_url}/1"
        pages[ANCHOR].add_link(section.capitalize(), f"/{section}")

        listing = pages[listing_url] = FakePage(title=section.capitalize())
        listing.add('button:has-text("Add")', FakeElement(text="Add", index=50, target=form_url))

        form = pages[form_url] = FakePage(title=f"New {section}")
        form.form_fields = [{"selector": "#name", "field_type": "text", "name": "name", "id": "name", "label": "Name"}]
        form.add("#name", FakeElement(index=10))
        form.add('button[type="submit"]', FakeElement(text="Save", index=20, target=done_url))

        done = pages[done_url] = FakePage(title=section.capitalize())
        done.add('[class*="alert-success"]', FakeElement(text="Saved", index=1))
    return FakeDocument(pages)


@pytest.fixture
def fake_document():
    """Empty document with an anchor page."""
    return FakeDocument({ANCHOR: FakePage(title="Home")})


@pytest.fixture
def config(tmp_path):
    """Explorer configuration pointing at the fake application."""
    return ExplorerConfig(
        base_entry_points=[ANCHOR],
        enable_probes=False,
        settle_delay_ms=0,
        per_action_timeout_ms=5000,
        output_dir=str(tmp_path / "out"),
    )
