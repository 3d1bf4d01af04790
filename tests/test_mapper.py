"""Tests for the section mapper."""

from navcrawl.mapper import SectionMapper, classify_operation, merge_features
from navcrawl.models import DiscoveredFeature, FeatureKind, InteractiveItem


def link(text, href, **kwargs):
    return InteractiveItem(text=text, href=f"https://x{href}", raw_href=href, **kwargs)


class TestClassifyOperation:
    """Tests for CRUD classification of control labels."""

    def test_operations(self):
        """Test each CRUD keyword family."""
        assert classify_operation("Add Client") == "create"
        assert classify_operation("View details") == "read"
        assert classify_operation("Edit") == "update"
        assert classify_operation("Remove task") == "delete"

    def test_whole_words_only(self):
        """Test keywords inside other words do not match."""
        assert classify_operation("Address book") is None
        assert classify_operation("Newsletter") is None


class TestSectionMapper:
    """Tests for SectionMapper.map_sections."""

    def test_groups_by_vocabulary(self):
        """Test matching links become named sections."""
        mapper = SectionMapper(["client", "task"])
        items = [
            link("Clients", "/clients"),
            link("Client groups", "/clients/groups"),
            link("My Tasks", "/tasks"),
        ]

        features = mapper.map_sections(items)
        sections = {f.name: f for f in features if f.kind == FeatureKind.SECTION}

        assert list(sections) == ["Client", "Task"]
        assert sections["Client"].url == "https://x/clients"
        assert [p["name"] for p in sections["Client"].annotations["pages"]] == ["Clients", "Client groups"]

    def test_section_locators_observed_first(self):
        """Test observed locators precede generic fallbacks."""
        mapper = SectionMapper(["client"])

        feature = mapper.map_sections([link("Clients", "/clients")])[0]

        assert feature.locators[0].predicate == 'a[href="/clients"]'
        assert any(loc.predicate == 'a[href*="/client"]' for loc in feature.locators)

    def test_unmatched_items_kept_as_navigation(self):
        """Test nothing is discarded when no keyword matches."""
        mapper = SectionMapper(["client"])
        items = [link("Help", "/help"), link("Help", "/help"), link("About", "/about")]

        features = mapper.map_sections(items)

        assert [(f.kind, f.name) for f in features] == [
            (FeatureKind.NAVIGATION, "Help"),
            (FeatureKind.NAVIGATION, "About"),
        ]

    def test_operation_buttons(self):
        """Test CRUD buttons become operations owned by the current section."""
        mapper = SectionMapper(["client"])
        items = [InteractiveItem(text="Add Client", tag="BUTTON")]

        features = mapper.map_sections(items, section="Client")

        assert features[0].kind == FeatureKind.OPERATION
        assert features[0].name == "Create Client"
        assert features[0].operation == "create"
        assert features[0].section == "Client"

    def test_widgets(self):
        """Test dashboard containers are recorded as widgets."""
        mapper = SectionMapper(["client"])
        widget = InteractiveItem(text="Open tasks 12", tag="DIV", classes="stat-card", title="Open tasks")

        features = mapper.map_sections([], widgets=[widget])

        assert features[0].kind == FeatureKind.WIDGET
        assert features[0].name == "Open tasks"

    def test_match_keyword_uses_href(self):
        """Test keywords are also matched in the href."""
        mapper = SectionMapper(["report"])

        assert mapper.match_keyword(link("Monthly", "/reports/monthly")) == "report"
        assert mapper.match_keyword(link("Monthly", "/stats")) is None


class TestMergeFeatures:
    """Tests for merge_features."""

    def test_merge(self):
        """Test features with the same kind and name are merged."""
        first = DiscoveredFeature("Client", FeatureKind.SECTION, related_resources=["https://x/a"])
        second = DiscoveredFeature(
            "Client", FeatureKind.SECTION, url="https://x/clients", related_resources=["https://x/b"]
        )
        other = DiscoveredFeature("Client", FeatureKind.NAVIGATION)

        merged = merge_features([first], [second, other])

        assert len(merged) == 2
        assert merged[0] is first
        assert first.related_resources == ["https://x/a", "https://x/b"]
        assert first.url == "https://x/clients"
