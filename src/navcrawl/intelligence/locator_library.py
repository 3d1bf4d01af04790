"""
Candidate locator library.

Maps intents ("open section Clients", "submit form") to ordered lists of
candidate locators, so strategies can be added or removed without touching
the resolver or explorer control flow. Usage counts per locator are tracked
and can be persisted to JSON between runs.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
import json
import re

from navcrawl.models import CandidateLocator, InteractiveItem


# Patterns indicating generated ids that will not survive a re-render
DYNAMIC_PATTERNS = [
    re.compile(r'^[a-zA-Z_-]+_[a-zA-Z0-9]{5,8}$'),  # CSS Modules hash suffix
    re.compile(r'^(sc|css)-[a-zA-Z0-9]+(-[a-zA-Z0-9]+)?$'),  # styled-components / Emotion
    re.compile(r'^_[a-zA-Z0-9]{8,}$'),
    re.compile(r'^[a-f0-9]{8}-[a-f0-9]{4}-'),  # UUID prefix
    re.compile(r'^[a-zA-Z]+[0-9]{6,}$'),
    re.compile(r'^[0-9]+$'),
    re.compile(r'^(mat|cdk|ng|mui|react-select)-[a-z-]*\d+$'),  # Framework counters
]

BREADCRUMB_LOCATORS = [
    CandidateLocator("breadcrumb class", ".breadcrumb", 0),
    CandidateLocator("breadcrumb aria label", '[aria-label="breadcrumb"]', 0),
    CandidateLocator("breadcrumb-like class", '[class*="breadcrumb"]', 1),
]

SUBMIT_LOCATORS = [
    CandidateLocator("submit button", 'button[type="submit"]', 0),
    CandidateLocator("save button", 'button:has-text("Save")', 1),
    CandidateLocator("create button", 'button:has-text("Create")', 1),
    CandidateLocator("submit text button", 'button:has-text("Submit")', 1),
    CandidateLocator("add button", 'button:has-text("Add")', 2),
    CandidateLocator("submit container button", '[class*="submit"] button', 3),
    CandidateLocator("save container button", '[class*="save"] button', 3),
]

SUCCESS_INDICATOR_LOCATORS = [
    CandidateLocator("success alert", '[class*="alert-success"]', 0),
    CandidateLocator("success toast", '[class*="toast-success"]', 0),
    CandidateLocator("success class", '[class*="success"]', 1),
    CandidateLocator("alert role", '[role="alert"]', 2),
    CandidateLocator("status role", '[role="status"]', 2),
]

ERROR_INDICATOR_LOCATORS = [
    CandidateLocator("error alert", '[class*="alert-danger"]', 0),
    CandidateLocator("error toast", '[class*="toast-error"]', 0),
    CandidateLocator("invalid field", '[aria-invalid="true"]', 1),
    CandidateLocator("validation message", '[class*="invalid-feedback"]', 1),
    CandidateLocator("error class", '[class*="error"]', 2),
    CandidateLocator("alert role", '[role="alert"]', 3),
]

CREATE_BUTTON_TEXTS = ["Add", "New", "Create"]


def is_dynamic_value(value: str) -> bool:
    """Check if an attribute value appears to be generated per render."""
    if not value:
        return False
    if any(pattern.match(value) for pattern in DYNAMIC_PATTERNS):
        return True
    if len(value) > 20 and ' ' not in value:
        digits = sum(1 for c in value if c.isdigit())
        return digits > len(value) * 0.3
    return False


def quote(text: str) -> str:
    """Double-quote a value for use inside a selector."""
    return '"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"'


def section_intent(name: str) -> str:
    return f"open section {name}"


def create_form_intent(section: str) -> str:
    return f"open create-form for section {section}"


def section_locators(name: str) -> list[CandidateLocator]:
    """Fallback chain for reaching a named section when nothing better is known."""
    lowered = name.lower()
    return [
        CandidateLocator(f"link to /{lowered}", f'a[href*="/{lowered}"]', 0),
        CandidateLocator(f"link text {name}", f'a:has-text({quote(name)})', 1),
        CandidateLocator(f"nav link text {name}", f'nav a:has-text({quote(name)})', 1),
        CandidateLocator(f"button text {name}", f'button:has-text({quote(name)})', 2),
        CandidateLocator(f"any text {name}", f'text=/{re.escape(name)}/i', 3),
        CandidateLocator(f"href containing {lowered}", f'a[href*="{lowered}"]', 4),
        CandidateLocator(f"id containing {lowered}", f'[id*="{lowered}"]', 5),
        CandidateLocator(f"class containing {lowered}", f'[class*="{lowered}"]', 5),
    ]


def create_form_locators(section: str, texts: Optional[list[str]] = None) -> list[CandidateLocator]:
    """Fallback chain for the control that opens a section's create form."""
    texts = texts or CREATE_BUTTON_TEXTS
    locators = []
    for text in texts:
        locators.append(CandidateLocator(f"button {text}", f'button:has-text({quote(text)})', 0))
    for text in texts:
        locators.append(CandidateLocator(f"link {text}", f'a:has-text({quote(text)})', 1))
    for marker in ("add", "new", "create"):
        locators.append(CandidateLocator(f"button class {marker}", f'button[class*="{marker}"]', 2))
    for marker in ("add", "new"):
        locators.append(CandidateLocator(f"{marker} container button", f'[class*="{marker}"] button', 3))
    return locators


def item_locators(item: InteractiveItem) -> list[CandidateLocator]:
    """Candidate locators for re-finding an observed element, most specific first.

    1. Stable id
    2. Exact href attribute
    3. ARIA label
    4. Tag + visible text
    5. Text engine match
    """
    tag = (item.tag or "a").lower()
    locators = []

    if item.element_id and not is_dynamic_value(item.element_id):
        locators.append(CandidateLocator(f"id {item.element_id}", f'[id={quote(item.element_id)}]', 0))

    if item.raw_href and item.is_navigable_link:
        locators.append(CandidateLocator(f"href {item.raw_href}", f'a[href={quote(item.raw_href)}]', 0))

    if item.aria_label:
        locators.append(CandidateLocator(
            f"aria-label {item.aria_label}", f'{tag}[aria-label={quote(item.aria_label)}]', 1
        ))

    text = item.text.strip()
    if text and len(text) <= 80:
        locators.append(CandidateLocator(f"{tag} text {text}", f'{tag}:has-text({quote(text)})', 2))
        locators.append(CandidateLocator(f"text {text}", f'text={quote(text)}', 3))
    elif item.title:
        locators.append(CandidateLocator(f"title {item.title}", f'{tag}[title={quote(item.title)}]', 2))

    return locators


@dataclass
class LocatorStats:
    """Usage counts for one locator within one intent."""
    successes: int = 0
    failures: int = 0

    @property
    def confidence(self) -> float:
        """Bayesian average with a weak prior (2 successes, 1 failure)."""
        return (self.successes + 2) / (self.successes + self.failures + 3)

    def to_dict(self) -> dict[str, int]:
        return {"successes": self.successes, "failures": self.failures}


class LocatorLibrary:
    """
    Registry of intents and their candidate locators.

    Provides:
    - Built-in intents for breadcrumbs, submit buttons and outcome indicators
    - Per-intent registration, extension and removal of strategies
    - Usage tracking with JSON persistence
    """

    def __init__(self, storage_path: Optional[Path] = None):
        """
        Initialize the locator library.

        Args:
            storage_path: Path to persist registered intents and usage stats
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self._intents: dict[str, list[CandidateLocator]] = {
            "breadcrumb": list(BREADCRUMB_LOCATORS),
            "submit form": list(SUBMIT_LOCATORS),
            "success indicator": list(SUCCESS_INDICATOR_LOCATORS),
            "error indicator": list(ERROR_INDICATOR_LOCATORS),
        }
        self._stats: dict[str, dict[str, LocatorStats]] = {}  # intent -> predicate -> stats

        if self.storage_path and self.storage_path.exists():
            self._load()

    def _load(self) -> None:
        """Load library from disk."""
        with open(self.storage_path) as f:
            data = json.load(f)
        for intent, locators in data.get("intents", {}).items():
            self._intents[intent] = [CandidateLocator.from_dict(loc) for loc in locators]
        self._stats = {
            intent: {
                predicate: LocatorStats(**counts)
                for predicate, counts in predicates.items()
            }
            for intent, predicates in data.get("stats", {}).items()
        }

    def save(self) -> None:
        """Save library to disk."""
        if not self.storage_path:
            return
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.storage_path, "w") as f:
            json.dump({
                "intents": {
                    intent: [loc.to_dict() for loc in locators]
                    for intent, locators in self._intents.items()
                },
                "stats": {
                    intent: {p: s.to_dict() for p, s in predicates.items()}
                    for intent, predicates in self._stats.items()
                },
            }, f, indent=2)

    def get(self, intent: str) -> list[CandidateLocator]:
        """Locators for an intent in priority order (stable for equal priority)."""
        if intent in self._intents:
            return sorted(self._intents[intent], key=lambda loc: loc.priority)

        match = re.match(r"^open create-form for section (.+)$", intent)
        if match:
            return create_form_locators(match.group(1))
        match = re.match(r"^open section (.+)$", intent)
        if match:
            return section_locators(match.group(1))
        return []

    def register(self, intent: str, locators: list[CandidateLocator]) -> None:
        """Replace the locators for an intent."""
        self._intents[intent] = list(locators)

    def add_locator(self, intent: str, locator: CandidateLocator) -> None:
        """Add a strategy to an intent, skipping duplicates."""
        locators = self._intents.setdefault(intent, self.get(intent))
        if not any(loc.predicate == locator.predicate for loc in locators):
            locators.append(locator)

    def remove_locator(self, intent: str, predicate: str) -> bool:
        """Remove a strategy from an intent.

        Returns:
            True if a locator was removed
        """
        locators = self._intents.get(intent, [])
        kept = [loc for loc in locators if loc.predicate != predicate]
        if len(kept) == len(locators):
            return False
        self._intents[intent] = kept
        return True

    def intents(self) -> list[str]:
        return list(self._intents)

    def record_success(self, intent: str, predicate: str) -> None:
        self._stats.setdefault(intent, {}).setdefault(predicate, LocatorStats()).successes += 1

    def record_failure(self, intent: str, predicate: str) -> None:
        self._stats.setdefault(intent, {}).setdefault(predicate, LocatorStats()).failures += 1

    def get_stats(self, intent: str, predicate: str) -> Optional[LocatorStats]:
        return self._stats.get(intent, {}).get(predicate)

    def stats(self) -> dict[str, Any]:
        """Summary of registered intents and tracked usage."""
        return {
            "intents": len(self._intents),
            "tracked_locators": sum(len(p) for p in self._stats.values()),
            "total_successes": sum(s.successes for p in self._stats.values() for s in p.values()),
            "total_failures": sum(s.failures for p in self._stats.values() for s in p.values()),
        }
