"""Unit tests for LocatorLibrary and the locator builders."""

import json

import pytest

from navcrawl.intelligence.locator_library import (
    LocatorLibrary,
    LocatorStats,
    create_form_intent,
    is_dynamic_value,
    item_locators,
    section_intent,
    section_locators,
)
from navcrawl.models import CandidateLocator, InteractiveItem


class TestDynamicValues:
    """Tests for generated id detection."""

    @pytest.mark.parametrize("value", ["Button_a1B2c3", "sc-bdVaJa", "css-1x2y3z", "123456", "mat-input-12"])
    def test_dynamic(self, value):
        """Test generated ids are detected."""
        assert is_dynamic_value(value)

    @pytest.mark.parametrize("value", ["", "main-nav", "clients-link", "submit"])
    def test_stable(self, value):
        """Test readable ids are kept."""
        assert not is_dynamic_value(value)


class TestItemLocators:
    """Tests for locators derived from observed elements."""

    def test_link(self):
        """Test link locators from most to least specific."""
        item = InteractiveItem(
            text="Clients", href="https://x/clients", raw_href="/clients",
            element_id="nav-clients", aria_label="Open clients",
        )

        locators = item_locators(item)

        assert [(loc.predicate, loc.priority) for loc in locators] == [
            ('[id="nav-clients"]', 0),
            ('a[href="/clients"]', 0),
            ('a[aria-label="Open clients"]', 1),
            ('a:has-text("Clients")', 2),
            ('text="Clients"', 3),
        ]

    def test_dynamic_id_skipped(self):
        """Test generated ids are not used as locators."""
        item = InteractiveItem(text="Save", tag="BUTTON", element_id="btn_x8Yz12")

        predicates = [loc.predicate for loc in item_locators(item)]

        assert predicates == ['button:has-text("Save")', 'text="Save"']

    def test_icon_link_uses_title(self):
        """Test elements without text fall back to their title."""
        item = InteractiveItem(tag="A", raw_href="#", title="Settings")

        assert [loc.predicate for loc in item_locators(item)] == ['a[title="Settings"]']

    def test_quotes_escaped(self):
        """Test quotes in text are escaped."""
        item = InteractiveItem(text='Say "hi"', tag="BUTTON")

        assert item_locators(item)[0].predicate == 'button:has-text("Say \\"hi\\"")'


class TestLocatorLibrary:
    """Tests for LocatorLibrary."""

    def test_builtin_intents(self):
        """Test built-in intents are registered."""
        library = LocatorLibrary()

        assert {"breadcrumb", "submit form", "success indicator", "error indicator"} <= set(library.intents())
        assert library.get("submit form")[0].predicate == 'button[type="submit"]'

    def test_generated_intents(self):
        """Test section and create-form intents are built on demand."""
        library = LocatorLibrary()

        assert library.get(section_intent("Clients")) == section_locators("Clients")
        assert library.get(create_form_intent("Clients"))[0].predicate == 'button:has-text("Add")'
        assert library.get("unknown intent") == []

    def test_get_sorted_by_priority(self):
        """Test locators come back in priority order, stable for ties."""
        library = LocatorLibrary()
        library.register("open inbox", [
            CandidateLocator("c", ".c", 2),
            CandidateLocator("a", ".a", 0),
            CandidateLocator("b", ".b", 0),
        ])

        assert [loc.predicate for loc in library.get("open inbox")] == [".a", ".b", ".c"]

    def test_add_and_remove(self):
        """Test strategies can be added and removed without duplicates."""
        library = LocatorLibrary()
        library.add_locator("breadcrumb", CandidateLocator("nav crumbs", "nav.crumbs", 0))
        library.add_locator("breadcrumb", CandidateLocator("nav crumbs", "nav.crumbs", 0))

        predicates = [loc.predicate for loc in library.get("breadcrumb")]
        assert predicates.count("nav.crumbs") == 1

        assert library.remove_locator("breadcrumb", "nav.crumbs")
        assert not library.remove_locator("breadcrumb", "nav.crumbs")

    def test_add_to_generated_intent(self):
        """Test extending an on-demand intent keeps its generated strategies."""
        library = LocatorLibrary()
        intent = section_intent("Clients")

        library.add_locator(intent, CandidateLocator("sidebar", "#sidebar-clients", 0))

        assert len(library.get(intent)) == len(section_locators("Clients")) + 1

    def test_stats(self):
        """Test usage tracking."""
        library = LocatorLibrary()
        library.record_success("submit form", 'button[type="submit"]')
        library.record_success("submit form", 'button[type="submit"]')
        library.record_failure("submit form", ".save")

        stats = library.get_stats("submit form", 'button[type="submit"]')
        assert stats.successes == 2
        assert library.get_stats("submit form", ".missing") is None
        assert library.stats()["total_successes"] == 2
        assert library.stats()["total_failures"] == 1

    def test_confidence(self):
        """Test confidence uses a weak prior."""
        assert LocatorStats().confidence == pytest.approx(2 / 3)
        assert LocatorStats(successes=8, failures=0).confidence == pytest.approx(10 / 11)
        assert LocatorStats(successes=0, failures=7).confidence == pytest.approx(0.2)

    def test_persistence(self, tmp_path):
        """Test registered intents and stats survive a save/load cycle."""
        path = tmp_path / "locators.json"
        library = LocatorLibrary(path)
        library.register("open inbox", [CandidateLocator("inbox", "#inbox", 1)])
        library.record_success("open inbox", "#inbox")
        library.save()

        reloaded = LocatorLibrary(path)

        assert reloaded.get("open inbox") == [CandidateLocator("inbox", "#inbox", 1)]
        assert reloaded.get_stats("open inbox", "#inbox").successes == 1
        assert "open inbox" in json.loads(path.read_text())["intents"]

    def test_save_without_path(self):
        """Test saving an in-memory library is a no-op."""
        LocatorLibrary().save()
