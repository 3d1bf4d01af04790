"""
Element resolver.

Tries an ordered list of candidate locators against the live document and
returns the first visible, enabled match. Not finding anything is an expected
outcome on unknown markup, so ``resolve`` returns None instead of raising.
"""

import asyncio
import logging
import sys
from dataclasses import dataclass
from itertools import groupby
from typing import Any, Optional

from navcrawl.document import Document
from navcrawl.exceptions import ResolutionFailure
from navcrawl.intelligence.locator_library import LocatorLibrary
from navcrawl.models import CandidateLocator

logger = logging.getLogger(__name__)


@dataclass
class ResolvedElement:
    """Handle to a matched element, valid only for the current document snapshot."""

    element: Any
    locator: CandidateLocator
    intent: Optional[str] = None
    document_index: int = -1

    @property
    def description(self) -> str:
        return self.locator.description


class ElementResolver:
    """
    Resolves intents to elements through prioritized candidate locators.

    Locators are grouped by priority (lower first). Inside a group, every
    locator is queried and the match earliest in document order wins, so
    resolution against an unchanged document is reproducible.
    """

    def __init__(
        self,
        document: Document,
        timeout_ms: int = 30000,
        library: Optional[LocatorLibrary] = None,
    ):
        """
        Args:
            document: Live document to query
            timeout_ms: Budget for each individual locator query
            library: Optional library used for intent lookup and usage tracking
        """
        self.document = document
        self.timeout_ms = timeout_ms
        self.library = library

    async def resolve(
        self,
        locators: list[CandidateLocator],
        intent: Optional[str] = None,
    ) -> Optional[ResolvedElement]:
        """Find the element an intent refers to.

        Args:
            locators: Candidate locators; their list order breaks priority ties
            intent: Name of the intent, for logging and usage tracking

        Returns:
            ResolvedElement, or None when no locator matched a usable element
        """
        ordered = sorted(enumerate(locators), key=lambda pair: (pair[1].priority, pair[0]))

        for priority, group in groupby(ordered, key=lambda pair: pair[1].priority):
            matches: list[tuple[int, int, ResolvedElement]] = []

            for position, locator in group:
                element = await self._first_usable(locator)
                if element is None:
                    self._record(intent, locator, success=False)
                    continue

                index = await self._document_index(element)
                resolved = ResolvedElement(
                    element=element, locator=locator, intent=intent, document_index=index
                )
                # Unknown positions sort after known ones, then by list order
                matches.append((index if index >= 0 else sys.maxsize, position, resolved))

            if matches:
                matches.sort(key=lambda m: (m[0], m[1]))
                winner = matches[0][2]
                self._record(intent, winner.locator, success=True)
                logger.debug(
                    f"Resolved {intent or 'element'} via '{winner.locator.description}' "
                    f"(priority {priority}, index {winner.document_index})"
                )
                return winner

        logger.debug(f"No locator matched for {intent or 'element'} ({len(locators)} tried)")
        return None

    async def resolve_intent(self, intent: str) -> Optional[ResolvedElement]:
        """Resolve an intent using the locators registered in the library."""
        if not self.library:
            return None
        return await self.resolve(self.library.get(intent), intent)

    async def require(
        self,
        locators: list[CandidateLocator],
        intent: Optional[str] = None,
    ) -> ResolvedElement:
        """Like ``resolve`` but raises ResolutionFailure when nothing matches."""
        resolved = await self.resolve(locators, intent)
        if resolved is None:
            raise ResolutionFailure(f"No candidate locator matched for {intent or 'element'}", intent)
        return resolved

    async def _first_usable(self, locator: CandidateLocator) -> Optional[Any]:
        """First visible, enabled element for a locator. Query errors count as no match."""
        try:
            elements = await asyncio.wait_for(
                self.document.query(locator.predicate), timeout=self.timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            logger.debug(f"Locator '{locator.description}' timed out after {self.timeout_ms}ms")
            return None
        except Exception as e:
            logger.debug(f"Locator '{locator.description}' failed: {e}")
            return None

        for element in elements or []:
            try:
                if await self.document.is_visible(element) and await self.document.is_enabled(element):
                    return element
            except Exception as e:
                # Element detached between query and check
                logger.debug(f"Skipping element for '{locator.description}': {e}")
        return None

    async def _document_index(self, element: Any) -> int:
        try:
            return await self.document.document_index(element)
        except Exception as e:
            logger.debug(f"Could not determine document position: {e}")
            return -1

    def _record(self, intent: Optional[str], locator: CandidateLocator, success: bool) -> None:
        if not self.library or not intent:
            return
        if success:
            self.library.record_success(intent, locator.predicate)
        else:
            self.library.record_failure(intent, locator.predicate)
