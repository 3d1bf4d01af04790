"""Data models for navigation discovery and crawling."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ActionKind(str, Enum):
    """Kinds of actions recorded in the ledger."""

    NAVIGATE = "NAVIGATE"
    CLICK = "CLICK"
    FILL = "FILL"
    SUBMIT = "SUBMIT"
    ERROR = "ERROR"


class FeatureKind(str, Enum):
    """Functional area classification produced by the section mapper."""

    SECTION = "section"
    NAVIGATION = "navigation"
    WIDGET = "widget"
    OPERATION = "operation"


class ExplorerState(str, Enum):
    """States a single branch passes through."""

    AT_ANCHOR = "AtAnchor"
    NAVIGATING = "Navigating"
    AT_RESOURCE = "AtResource"
    EXPANDING = "Expanding"
    RETURNED_TO_ANCHOR = "ReturnedToAnchor"


@dataclass(frozen=True)
class NavigableResource:
    """A logical page, keyed by its canonical identity."""

    canonical_id: str
    raw_location: str
    route_fragment: Optional[str] = None

    @property
    def stripped_id(self) -> str:
        """Canonical id without the route fragment."""
        return self.canonical_id.split("#", 1)[0]


@dataclass(frozen=True)
class CandidateLocator:
    """One strategy for finding an element.

    Lower ``priority`` values are tried first.
    """

    description: str
    predicate: str
    priority: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "predicate": self.predicate,
            "priority": self.priority,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateLocator":
        return cls(
            description=data.get("description", data["predicate"]),
            predicate=data["predicate"],
            priority=int(data.get("priority", 0)),
        )


@dataclass
class InteractiveItem:
    """A raw interactive element observed on a page (link, button, menu item)."""

    text: str = ""
    href: str = ""  # Absolute href as resolved by the browser
    raw_href: str = ""  # Attribute value as written in the markup
    tag: str = "A"
    element_id: str = ""
    classes: str = ""
    aria_label: str = ""
    title: str = ""
    role: str = ""
    in_navigation: bool = False  # Inside nav / role=navigation / menu containers

    @property
    def label(self) -> str:
        """Best human-readable label, matching how a user would name the control."""
        return (self.aria_label or self.title or self.text or "").strip()

    @property
    def is_button(self) -> bool:
        classes = self.classes.lower()
        return (
            self.tag.upper() == "BUTTON"
            or self.role == "button"
            or "btn" in classes
            or "button" in classes
        )

    @property
    def is_navigable_link(self) -> bool:
        href = self.raw_href.strip() or self.href.strip()
        if not href or href == "#":
            return False
        return not href.lower().startswith(("javascript:", "mailto:", "tel:"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "href": self.href,
            "raw_href": self.raw_href,
            "tag": self.tag,
            "element_id": self.element_id,
            "classes": self.classes,
            "aria_label": self.aria_label,
            "title": self.title,
            "role": self.role,
            "in_navigation": self.in_navigation,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InteractiveItem":
        return cls(
            text=(data.get("text") or "").strip(),
            href=data.get("href") or "",
            raw_href=data.get("raw_href") or "",
            tag=(data.get("tag") or "A").upper(),
            element_id=data.get("element_id") or "",
            classes=data.get("classes") or "",
            aria_label=data.get("aria_label") or "",
            title=data.get("title") or "",
            role=data.get("role") or "",
            in_navigation=bool(data.get("in_navigation", False)),
        )


@dataclass
class FrontierItem:
    """A not-yet-explored navigation target."""

    intent: str
    locators: list[CandidateLocator]
    depth: int
    origin_resource: str
    origin_location: str = ""
    target_location: Optional[str] = None
    target_id: Optional[str] = None
    feature_name: Optional[str] = None

    @property
    def key(self) -> str:
        """De-duplication key: the target identity when known, else origin + intent."""
        if self.target_id:
            return self.target_id
        return f"{self.origin_resource}|{self.intent}"


@dataclass(frozen=True)
class ActionLedgerEntry:
    """One executed action and its outcome. Never mutated once appended."""

    sequence: int
    timestamp: datetime
    kind: ActionKind
    target: str
    result_location: str
    success: bool
    detail: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "target": self.target,
            "result_location": self.result_location,
            "success": self.success,
            "detail": self.detail,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionLedgerEntry":
        return cls(
            sequence=int(data["sequence"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            kind=ActionKind(data["kind"]),
            target=data.get("target", ""),
            result_location=data.get("result_location", ""),
            success=bool(data.get("success", False)),
            detail=data.get("detail"),
        )


@dataclass
class DiscoveredFeature:
    """A named functional area of the application."""

    name: str
    kind: FeatureKind
    locators: list[CandidateLocator] = field(default_factory=list)
    related_resources: list[str] = field(default_factory=list)
    url: Optional[str] = None
    section: Optional[str] = None  # Owning section for operations
    operation: Optional[str] = None  # create/read/update/delete
    annotations: dict[str, Any] = field(default_factory=dict)

    def add_resource(self, canonical_id: str) -> None:
        if canonical_id not in self.related_resources:
            self.related_resources.append(canonical_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "locators": [loc.to_dict() for loc in self.locators],
            "related_resources": list(self.related_resources),
            "url": self.url,
            "section": self.section,
            "operation": self.operation,
            "annotations": self.annotations,
        }


@dataclass
class Violation:
    """A single accessibility finding on a page."""

    rule: str
    impact: str  # minor, moderate, serious, critical
    description: str
    count: int = 1
    targets: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "impact": self.impact,
            "description": self.description,
            "count": self.count,
            "targets": self.targets,
        }


@dataclass
class PerfSample:
    """Navigation/paint timings sampled from a settled page (milliseconds)."""

    url: str = ""
    load_time: Optional[float] = None
    dom_content_loaded: Optional[float] = None
    first_paint: Optional[float] = None
    first_contentful_paint: Optional[float] = None
    resource_count: int = 0
    transfer_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "load_time": self.load_time,
            "dom_content_loaded": self.dom_content_loaded,
            "first_paint": self.first_paint,
            "first_contentful_paint": self.first_contentful_paint,
            "resource_count": self.resource_count,
            "transfer_bytes": self.transfer_bytes,
        }


@dataclass
class PageRecord:
    """Inventory row for a visited resource."""

    url: str
    canonical_id: str
    title: str = ""
    breadcrumb: str = ""
    section: str = ""
    depth: int = 0
    timestamp: datetime = field(default_factory=datetime.now)
    violations: list[Violation] = field(default_factory=list)
    perf: Optional[PerfSample] = None
    screenshot: Optional[str] = None  # Path of the full-page capture
    annotations: dict[str, Any] = field(default_factory=dict)  # Results of custom page audits

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "canonical_id": self.canonical_id,
            "title": self.title,
            "breadcrumb": self.breadcrumb,
            "section": self.section,
            "depth": self.depth,
            "timestamp": self.timestamp.isoformat(),
            "violations": [v.to_dict() for v in self.violations],
            "perf": self.perf.to_dict() if self.perf else None,
            "screenshot": self.screenshot,
            "annotations": self.annotations,
        }


@dataclass
class CrawlRun:
    """Everything a run produced. Always usable, even when aborted."""

    status: str = "running"  # running, completed, cancelled, session_expired
    anchor: Optional[str] = None
    ledger: list[ActionLedgerEntry] = field(default_factory=list)
    visited: list[str] = field(default_factory=list)
    features: list[DiscoveredFeature] = field(default_factory=list)
    pages: list[PageRecord] = field(default_factory=list)
    journeys: list[dict[str, Any]] = field(default_factory=list)
    expansions: int = 0
    cancel_reason: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def error_entries(self) -> list[ActionLedgerEntry]:
        return [e for e in self.ledger if e.kind == ActionKind.ERROR]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "anchor": self.anchor,
            "visited": list(self.visited),
            "expansions": self.expansions,
            "cancel_reason": self.cancel_reason,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "ledger": [e.to_dict() for e in self.ledger],
            "features": [f.to_dict() for f in self.features],
            "pages": [p.to_dict() for p in self.pages],
            "journeys": list(self.journeys),
        }
