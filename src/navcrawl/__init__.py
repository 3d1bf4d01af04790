"""Adaptive navigation discovery and crawl engine."""

__version__ = "0.1.0"

from navcrawl.config import ExplorerConfig, settings
from navcrawl.document import Document, PlaywrightDocument
from navcrawl.exceptions import (
    ExplorerError,
    ResolutionFailure,
    NavigationTimeout,
    AnchorRecoveryFailure,
    SessionExpired,
    ConfigurationError,
)
from navcrawl.explorer import BoundedExplorer, CancellationToken
from navcrawl.frontier import Frontier, VisitedSet
from navcrawl.identity import canonicalize, resolve_resource
from navcrawl.journeys import FormJourney
from navcrawl.ledger import ActionLedger
from navcrawl.mapper import SectionMapper
from navcrawl.models import (
    ActionKind,
    ActionLedgerEntry,
    CandidateLocator,
    CrawlRun,
    DiscoveredFeature,
    FeatureKind,
    FrontierItem,
    InteractiveItem,
    NavigableResource,
    PageRecord,
)
from navcrawl.resolver import ElementResolver, ResolvedElement
from navcrawl.session import BrowserSession, SessionGuard
from navcrawl.success import Outcome, SuccessSignal

# Intelligence
from navcrawl.intelligence import LocatorLibrary

__all__ = [
    "__version__",
    # Configuration
    "ExplorerConfig",
    "settings",
    # Engine
    "BoundedExplorer",
    "CancellationToken",
    "ElementResolver",
    "ResolvedElement",
    "Frontier",
    "VisitedSet",
    "ActionLedger",
    "SectionMapper",
    "canonicalize",
    "resolve_resource",
    # Collaborators
    "Document",
    "PlaywrightDocument",
    "BrowserSession",
    "SessionGuard",
    "SuccessSignal",
    "Outcome",
    "FormJourney",
    "LocatorLibrary",
    # Models
    "ActionKind",
    "ActionLedgerEntry",
    "CandidateLocator",
    "CrawlRun",
    "DiscoveredFeature",
    "FeatureKind",
    "FrontierItem",
    "InteractiveItem",
    "NavigableResource",
    "PageRecord",
    # Errors
    "ExplorerError",
    "ResolutionFailure",
    "NavigationTimeout",
    "AnchorRecoveryFailure",
    "SessionExpired",
    "ConfigurationError",
]
