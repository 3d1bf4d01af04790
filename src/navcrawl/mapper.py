"""
Module/section mapper.

Groups interactive elements found on a page into named functional areas
using keyword matching. Nothing is discarded: elements that match no
vocabulary keyword are kept as generic navigation features.
"""

import logging
from typing import Optional

from navcrawl.config import DEFAULT_SECTION_VOCABULARY
from navcrawl.intelligence.locator_library import item_locators, section_locators
from navcrawl.models import DiscoveredFeature, FeatureKind, InteractiveItem

logger = logging.getLogger(__name__)


OPERATION_KEYWORDS = {
    "create": ["add", "new", "create", "insert"],
    "read": ["view", "show", "details", "open", "see"],
    "update": ["edit", "update", "modify", "change"],
    "delete": ["delete", "remove", "trash", "destroy"],
}

WIDGET_CLASS_MARKERS = ["widget", "card", "panel", "stat", "metric", "dashboard-item"]


def classify_operation(text: str) -> Optional[str]:
    """Return the CRUD operation a control's label suggests, if any."""
    lowered = text.lower()
    words = set(lowered.replace("-", " ").replace("_", " ").split())
    for operation, keywords in OPERATION_KEYWORDS.items():
        if any(keyword in words for keyword in keywords):
            return operation
    return None


def is_widget(item: InteractiveItem) -> bool:
    classes = item.classes.lower()
    return any(marker in classes for marker in WIDGET_CLASS_MARKERS)


class SectionMapper:
    """Classifies discovered links and buttons into features."""

    def __init__(self, vocabulary: Optional[list[str]] = None):
        """
        Args:
            vocabulary: Section keywords, matched case-insensitively in vocabulary order
        """
        self.vocabulary = [v.lower() for v in (vocabulary or DEFAULT_SECTION_VOCABULARY) if v.strip()]

    def match_keyword(self, item: InteractiveItem) -> Optional[str]:
        """First vocabulary keyword contained in the item's label or href."""
        haystack = f"{item.label} {item.text} {item.raw_href}".lower()
        for keyword in self.vocabulary:
            if keyword in haystack:
                return keyword
        return None

    def map_sections(
        self,
        items: list[InteractiveItem],
        section: Optional[str] = None,
        widgets: Optional[list[InteractiveItem]] = None,
    ) -> list[DiscoveredFeature]:
        """Group interactive items into features.

        Args:
            items: Links and buttons visible on the page
            section: Owning section name, used to name operation features
            widgets: Non-interactive dashboard containers, recorded as widget features

        Returns:
            Features in first-seen order: sections, operations, navigation, widgets
        """
        sections: dict[str, DiscoveredFeature] = {}
        operations: dict[str, DiscoveredFeature] = {}
        navigation: dict[str, DiscoveredFeature] = {}
        widget_features: dict[str, DiscoveredFeature] = {}

        for item in items:
            label = item.label
            if not label and not item.is_navigable_link:
                continue

            if item.is_button and not item.is_navigable_link:
                operation = classify_operation(label)
                if operation:
                    owner = section or "Page"
                    name = f"{operation.capitalize()} {owner}"
                    feature = operations.setdefault(name, DiscoveredFeature(
                        name=name,
                        kind=FeatureKind.OPERATION,
                        section=owner,
                        operation=operation,
                    ))
                    feature.locators.extend(item_locators(item))
                    continue

            keyword = self.match_keyword(item)
            if keyword:
                name = keyword.capitalize()
                feature = sections.get(name)
                if feature is None:
                    feature = sections[name] = DiscoveredFeature(
                        name=name, kind=FeatureKind.SECTION, url=item.href or None
                    )
                    feature.annotations["pages"] = []
                feature.locators.extend(item_locators(item))
                feature.annotations["pages"].append({"name": label, "url": item.href or None})
                continue

            if is_widget(item) and not item.is_navigable_link:
                self._add_widget(widget_features, item)
                continue

            name = label or item.href
            if name in navigation:
                continue
            navigation[name] = DiscoveredFeature(
                name=name,
                kind=FeatureKind.NAVIGATION,
                locators=item_locators(item),
                url=item.href or None,
            )

        for item in widgets or []:
            self._add_widget(widget_features, item)

        # Generic fallbacks go last so observed locators are tried first
        for name, feature in sections.items():
            known = {loc.predicate for loc in feature.locators}
            feature.locators.extend(
                loc for loc in section_locators(name) if loc.predicate not in known
            )

        features = [
            *sections.values(), *operations.values(),
            *navigation.values(), *widget_features.values(),
        ]
        logger.debug(
            f"Mapped {len(items)} items into {len(sections)} sections, {len(operations)} operations, "
            f"{len(navigation)} navigation items, {len(widget_features)} widgets"
        )
        return features

    def _add_widget(self, widget_features: dict[str, DiscoveredFeature], item: InteractiveItem) -> None:
        name = (item.title or item.aria_label or item.text[:50] or "Widget").strip()
        if name in widget_features:
            return
        widget_features[name] = DiscoveredFeature(
            name=name,
            kind=FeatureKind.WIDGET,
            locators=item_locators(item),
            annotations={"text": item.text[:100]},
        )


def merge_features(existing: list[DiscoveredFeature], new: list[DiscoveredFeature]) -> list[DiscoveredFeature]:
    """Merge features discovered on different pages, keyed by (kind, name)."""
    index = {(f.kind, f.name): f for f in existing}
    merged = list(existing)
    for feature in new:
        current = index.get((feature.kind, feature.name))
        if current is None:
            index[(feature.kind, feature.name)] = feature
            merged.append(feature)
            continue
        known = {loc.predicate for loc in current.locators}
        current.locators.extend(loc for loc in feature.locators if loc.predicate not in known)
        for resource in feature.related_resources:
            current.add_resource(resource)
        if not current.url and feature.url:
            current.url = feature.url
    return merged
