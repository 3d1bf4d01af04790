"""
Success/error signal for submitted forms.

Outcomes come from explicit indicator locators, never from "the page looks
different now". Error indicators are checked first and win when both kinds
are present. The URL-change heuristic is weak (a failed submit may redirect
anyway) and is only consulted when a caller opts in; it yields INFERRED,
never SUCCESS.
"""

import logging
from enum import Enum
from typing import Optional

from navcrawl.document import Document, bounded
from navcrawl.intelligence.locator_library import (
    ERROR_INDICATOR_LOCATORS,
    SUCCESS_INDICATOR_LOCATORS,
    LocatorLibrary,
)
from navcrawl.models import CandidateLocator

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    UNKNOWN = "unknown"
    INFERRED = "inferred"  # Weak URL heuristic only


SUCCESS_KEYWORDS = ["success", "created", "saved", "added", "updated"]
ERROR_KEYWORDS = ["error", "invalid", "failed", "required", "could not", "unable"]

# Indicators shared by both outcomes; they only count when their text agrees
GENERIC_INDICATORS = {'[role="alert"]', '[role="status"]'}

FORM_URL_MARKERS = ["create", "new", "add"]


class SuccessSignal:
    """Classifies the page state after a submit."""

    def __init__(
        self,
        library: Optional[LocatorLibrary] = None,
        allow_url_heuristic: bool = False,
        timeout_ms: int = 30000,
    ):
        """
        Args:
            library: Source of indicator locators (built-in lists when omitted)
            allow_url_heuristic: Treat leaving a create/new/add URL as an INFERRED outcome
            timeout_ms: Deadline for each indicator query; a timed-out query is a miss
        """
        self.library = library
        self.allow_url_heuristic = allow_url_heuristic
        self.timeout_ms = timeout_ms

    def _locators(self, intent: str, default: list[CandidateLocator]) -> list[CandidateLocator]:
        if self.library:
            return self.library.get(intent) or default
        return sorted(default, key=lambda loc: loc.priority)

    async def _find(self, document: Document, locators: list[CandidateLocator], keywords: list[str]) -> Optional[str]:
        """Text (or description) of the first visible indicator, or None."""
        for locator in locators:
            try:
                elements = await bounded(document.query(locator.predicate), self.timeout_ms, locator.description)
            except Exception as e:
                logger.debug(f"Indicator '{locator.description}' failed: {e}")
                continue

            for element in elements or []:
                try:
                    if not await bounded(document.is_visible(element), self.timeout_ms):
                        continue
                    text = (await bounded(document.text_content(element), self.timeout_ms)).lower()
                except Exception:
                    continue

                if locator.predicate in GENERIC_INDICATORS:
                    if any(keyword in text for keyword in keywords):
                        return text[:200]
                    continue
                return text[:200] or locator.description
        return None

    async def evaluate(self, document: Document, form_location: Optional[str] = None) -> tuple[Outcome, str]:
        """
        Decide the outcome of the last submit.

        Args:
            document: Document after the submit settled
            form_location: Location the form was submitted from

        Returns:
            Tuple of (outcome, evidence)
        """
        error = await self._find(
            document, self._locators("error indicator", ERROR_INDICATOR_LOCATORS), ERROR_KEYWORDS
        )
        if error is not None:
            return Outcome.ERROR, error

        success = await self._find(
            document, self._locators("success indicator", SUCCESS_INDICATOR_LOCATORS), SUCCESS_KEYWORDS
        )
        if success is not None:
            return Outcome.SUCCESS, success

        if self.allow_url_heuristic and form_location:
            location = await document.current_location()
            lowered = location.lower()
            if location != form_location and not any(m in lowered for m in FORM_URL_MARKERS):
                logger.debug(f"Inferred outcome from location change to {location}")
                return Outcome.INFERRED, f"left form for {location}"

        return Outcome.UNKNOWN, ""
