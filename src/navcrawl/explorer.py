"""
Bounded recursive explorer.

Drives breadth-first exploration of an application's navigation graph from
a known-good anchor. Each frontier item is one branch:

    AtAnchor -> Navigating -> AtResource -> Expanding -> ReturnedToAnchor

A failure anywhere in a branch is written to the ledger and skips that
branch only. SessionExpired and ConfigurationError end the run.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional
from urllib.parse import urljoin

from navcrawl.config import ExplorerConfig
from navcrawl.document import Document, bounded, capture_screenshot
from navcrawl.exceptions import (
    AnchorRecoveryFailure,
    ExplorerError,
    ResolutionFailure,
    SessionExpired,
)
from navcrawl.frontier import Frontier, VisitedSet
from navcrawl.identity import resolve_resource, same_origin
from navcrawl.intelligence.locator_library import (
    BREADCRUMB_LOCATORS,
    LocatorLibrary,
    create_form_intent,
    item_locators,
    section_locators,
)
from navcrawl.journeys import FormJourney, make_run_prefix
from navcrawl.ledger import ActionLedger
from navcrawl.mapper import SectionMapper, classify_operation, merge_features
from navcrawl.models import (
    ActionKind,
    CandidateLocator,
    CrawlRun,
    DiscoveredFeature,
    ExplorerState,
    FeatureKind,
    FrontierItem,
    InteractiveItem,
    NavigableResource,
    PageRecord,
)
from navcrawl.probes import ProbeRunner
from navcrawl.resolver import ElementResolver
from navcrawl.session import SessionGuard
from navcrawl.success import SuccessSignal

logger = logging.getLogger(__name__)


# Controls that end the session or destroy data are never followed
UNSAFE_KEYWORDS = ["logout", "log out", "log-out", "signout", "sign out", "sign-out"]

# Observed locators come first; generic section fallbacks after them
FALLBACK_PRIORITY_OFFSET = 10


class CancellationToken:
    """Run-scoped cancellation: external signal, time budget or error cap."""

    def __init__(self, time_budget_seconds: Optional[float] = None):
        self._event = asyncio.Event()
        self._deadline = time.monotonic() + time_budget_seconds if time_budget_seconds else None
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if not self._event.is_set() and self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel("time budget exhausted")
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class BoundedExplorer:
    """
    Explores an application from its entry points within depth/breadth caps.

    Owns the run state (visited set, frontier, ledger, features); nothing is
    shared between explorers, so independent runs can coexist.
    """

    def __init__(
        self,
        document: Document,
        config: ExplorerConfig,
        ledger: Optional[ActionLedger] = None,
        library: Optional[LocatorLibrary] = None,
        mapper: Optional[SectionMapper] = None,
        probes: Optional[ProbeRunner] = None,
        guard: Optional[SessionGuard] = None,
        token: Optional[CancellationToken] = None,
    ):
        """
        Args:
            document: Pre-authenticated live document
            config: Run configuration
            ledger: Action ledger (a new one, writing to config.ledger_path, when omitted)
            library: Locator library for built-in intents and usage tracking
            mapper: Section mapper (built from config.section_vocabulary when omitted)
            probes: Probe runner (default probes when config.enable_probes)
            guard: Session-expired detector (built from config when omitted)
            token: Cancellation token (built from config.time_budget_seconds when omitted)
        """
        self.document = document
        self.config = config
        self._owns_ledger = ledger is None
        self.ledger = ledger if ledger is not None else ActionLedger(config.ledger_path)
        self.library = library
        self.resolver = ElementResolver(document, config.per_action_timeout_ms, library)
        self.mapper = mapper or SectionMapper(config.section_vocabulary)
        if probes is None and config.enable_probes:
            probes = ProbeRunner(timeout_ms=config.per_action_timeout_ms)
        self.probes = probes
        self.guard = guard or SessionGuard.from_config(config)
        self.token = token or CancellationToken(config.time_budget_seconds)

        self.visited = VisitedSet()
        self.frontier = Frontier(self.visited, config.max_depth, config.max_breadth_per_resource)
        self.state = ExplorerState.AT_ANCHOR
        self.anchor: Optional[NavigableResource] = None
        self.features: list[DiscoveredFeature] = []
        self.pages: list[PageRecord] = []
        self.expansions = 0
        self.result = CrawlRun()

    def close(self) -> None:
        """Close the ledger if this explorer created it."""
        if self._owns_ledger:
            self.ledger.close()

    @property
    def timeout_ms(self) -> int:
        return self.config.per_action_timeout_ms

    def _transition(self, state: ExplorerState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def _resource(self, location: str) -> NavigableResource:
        prior = self.anchor.raw_location if self.anchor else None
        return resolve_resource(location, prior, self.config.volatile_query_params)

    # ------------------------------------------------------------------
    # Run

    async def run(self) -> CrawlRun:
        """
        Explore from the configured entry points until the frontier is empty
        or the run is cancelled.

        Returns:
            CrawlRun with ledger, visited set, features and page inventory

        Raises:
            ConfigurationError: If the configuration cannot start a run
            SessionExpired: If the session is lost; ``partial_result`` holds the run so far
        """
        self.config.validate_for_run()
        self.result = CrawlRun(started_at=datetime.now())
        logger.info(
            f"Starting exploration (max_depth={self.config.max_depth}, "
            f"max_breadth={self.config.max_breadth_per_resource})"
        )

        try:
            if not await self._establish_anchor():
                logger.error("No entry point could be loaded")
                return self._finish("no_anchor")

            await self._visit_anchor()
            await self._explore_frontier()
        except SessionExpired as e:
            e.partial_result = self._finish("session_expired")
            raise

        status = "cancelled" if self.token.is_cancelled else "completed"
        run = self._finish(status)
        logger.info(
            f"Exploration {status}: {len(self.visited)} resources visited, "
            f"{len(self.ledger)} actions, {self.ledger.error_count()} errors"
        )
        return run

    def _finish(self, status: str) -> CrawlRun:
        run = self.result
        run.status = status
        run.anchor = self.anchor.canonical_id if self.anchor else None
        run.ledger = list(self.ledger.entries)
        run.visited = self.visited.to_list()
        run.features = list(self.features)
        run.pages = list(self.pages)
        run.expansions = self.expansions
        run.cancel_reason = self.token.reason
        run.finished_at = datetime.now()
        return run

    def _enforce_error_cap(self) -> None:
        cap = self.config.max_error_entries
        if cap and not self.token.is_cancelled and self.ledger.error_count() >= cap:
            logger.warning(f"Error cap reached ({cap} ERROR entries), cancelling run")
            self.token.cancel("error cap exceeded")

    async def _explore_frontier(self) -> None:
        while True:
            self._enforce_error_cap()
            if self.token.is_cancelled:
                logger.info(f"Run cancelled ({self.token.reason}), {len(self.frontier)} items left unexplored")
                return

            item = self.frontier.dequeue()
            if item is None:
                return

            await self._explore(item)

    # ------------------------------------------------------------------
    # Anchor

    async def _establish_anchor(self) -> bool:
        """Load the first usable entry point. Entry points behind a sign-in page are skipped."""
        signal = None
        for entry in self.config.base_entry_points:
            try:
                await bounded(self.document.navigate(entry), self.timeout_ms, entry)
                await self.document.wait_for_settled(self.timeout_ms)
                location = await self.document.current_location()
            except Exception as e:
                self.ledger.append(ActionKind.ERROR, entry, entry, False, f"{type(e).__name__}: {e}")
                signal = None
                continue

            signal = await self.guard.inspect(self.document)
            if signal:
                logger.warning(f"Entry point {entry} shows a sign-in page ({signal}), trying next")
                self.ledger.append(ActionKind.NAVIGATE, entry, location, False, f"session expired signal: {signal}")
                continue

            self.ledger.append(ActionKind.NAVIGATE, entry, location, True, "entry point")
            self.anchor = resolve_resource(location, None, self.config.volatile_query_params)
            logger.info(f"Anchor established at {self.anchor.canonical_id}")
            return True

        if signal:
            raise SessionExpired(f"No entry point loaded without sign-in ({signal})", await self.document.current_location())
        return False

    async def _visit_anchor(self) -> None:
        self._transition(ExplorerState.AT_RESOURCE)
        location = await self.document.current_location()
        self.visited.mark_visited(self.anchor.canonical_id)
        await self._record_page(location, self.anchor, depth=0, section="")

        self._transition(ExplorerState.EXPANDING)
        try:
            await self._expand(self.anchor, location, depth=0)
        except SessionExpired:
            raise
        except Exception as e:
            logger.warning(f"Could not expand anchor: {e}")
            self.ledger.append(ActionKind.ERROR, "expand anchor", location, False, f"{type(e).__name__}: {e}")
        self._transition(ExplorerState.RETURNED_TO_ANCHOR)

    async def _return_to_anchor(self, branch_resource: Optional[str]) -> None:
        """Best-effort return to the anchor; on failure drop the branch's queued children."""
        self._transition(ExplorerState.RETURNED_TO_ANCHOR)
        try:
            current = await self.document.current_location()
            if self._resource(current).canonical_id == self.anchor.canonical_id:
                return

            await bounded(self.document.navigate(self.anchor.raw_location), self.timeout_ms, "anchor")
            await self.document.wait_for_settled(self.timeout_ms)
            location = await self.document.current_location()
            arrived = self._resource(location).canonical_id == self.anchor.canonical_id
            self.ledger.append(ActionKind.NAVIGATE, self.anchor.raw_location, location, arrived, "return to anchor")
            await self.guard.check(self.document)

            if not arrived:
                raise AnchorRecoveryFailure(f"Returned to {location} instead of the anchor", location)
        except SessionExpired:
            raise
        except Exception as e:
            error = e if isinstance(e, AnchorRecoveryFailure) else AnchorRecoveryFailure(str(e), self.anchor.raw_location)
            location = await self._safe_location()
            self.ledger.append(
                ActionKind.ERROR, self.anchor.raw_location, location, False, f"AnchorRecoveryFailure: {error}"
            )
            if branch_resource:
                dropped = self.frontier.drop_children_of(branch_resource)
                logger.warning(f"Anchor recovery failed, dropped {dropped} item(s) from this branch")
        finally:
            self._transition(ExplorerState.AT_ANCHOR)

    async def _safe_location(self) -> str:
        try:
            return await self.document.current_location()
        except Exception:
            return ""

    # ------------------------------------------------------------------
    # Branch

    async def _explore(self, item: FrontierItem) -> None:
        """Run one branch. Never raises except SessionExpired."""
        branch_resource = None
        self._transition(ExplorerState.NAVIGATING)
        try:
            location = await self._navigate(item)

            self._transition(ExplorerState.AT_RESOURCE)
            await self.guard.check(self.document)
            resource = self._resource(location)

            if self.config.same_origin_only and not same_origin(location, self.anchor.raw_location):
                logger.info(f"Left the application at {location}, not expanding")
            elif not self.visited.mark_visited(resource.canonical_id):
                logger.info(f"Already visited {resource.canonical_id}, skipping expansion")
            else:
                branch_resource = resource.canonical_id
                logger.info(f"[D{item.depth}] Visited ({len(self.visited)}): {resource.canonical_id}")
                await self._record_page(location, resource, item.depth, item.feature_name or "")
                self._link_feature(item.feature_name, resource.canonical_id)

                self._transition(ExplorerState.EXPANDING)
                await self._expand(resource, location, item.depth)
        except SessionExpired:
            raise
        except Exception as e:
            name = type(e).__name__ if isinstance(e, ExplorerError) else f"ActivationError ({type(e).__name__})"
            logger.warning(f"Branch '{item.intent}' failed: {e}")
            self.ledger.append(ActionKind.ERROR, item.intent, await self._safe_location(), False, f"{name}: {e}")

        await self._return_to_anchor(branch_resource)

    async def _navigate(self, item: FrontierItem) -> str:
        """Activate a frontier item and return the location it led to.

        Raises:
            ResolutionFailure: If no locator matched and no direct target is known
            NavigationTimeout: If an activation or navigation did not settle
        """
        current = await self.document.current_location()
        if item.origin_location and self._resource(current).canonical_id != item.origin_resource:
            await bounded(self.document.navigate(item.origin_location), self.timeout_ms, item.origin_location)
            await self.document.wait_for_settled(self.timeout_ms)
            current = await self.document.current_location()
            self.ledger.append(ActionKind.NAVIGATE, item.origin_location, current, True, "return to origin")
            await self.guard.check(self.document)

        resolved = await self.resolver.resolve(item.locators, item.intent)
        if resolved is not None:
            await bounded(self.document.click(resolved.element), self.timeout_ms, item.intent)
            await self.document.wait_for_settled(self.timeout_ms)
            location = await self.document.current_location()
            self.ledger.append(ActionKind.CLICK, item.intent, location, True, resolved.description)

            unchanged = self._resource(location).canonical_id == self._resource(current).canonical_id
            if not (unchanged and item.target_location and item.target_id != self._resource(location).canonical_id):
                return location
            # Click opened a new tab or was swallowed; follow the link directly
            logger.debug(f"Click on '{item.intent}' did not navigate, following {item.target_location}")

        if not item.target_location:
            raise ResolutionFailure(f"No candidate locator matched for {item.intent}", item.intent)

        await bounded(self.document.navigate(item.target_location), self.timeout_ms, item.target_location)
        await self.document.wait_for_settled(self.timeout_ms)
        location = await self.document.current_location()
        self.ledger.append(
            ActionKind.NAVIGATE, item.target_location, location, True,
            "direct navigation" if resolved else "direct navigation (no locator matched)",
        )
        return location

    # ------------------------------------------------------------------
    # Resource

    async def _record_page(self, location: str, resource: NavigableResource, depth: int, section: str) -> PageRecord:
        record = PageRecord(
            url=location,
            canonical_id=resource.canonical_id,
            title=await self._title(),
            breadcrumb=await self._breadcrumb(),
            section=section,
            depth=depth,
        )
        if self.config.capture_screenshots:
            record.screenshot = await capture_screenshot(
                self.document, self.config.screenshot_dir, location, self.timeout_ms
            )
        if self.probes:
            await self.probes.run(self.document, record)
        self.pages.append(record)
        return record

    async def _title(self) -> str:
        try:
            return await bounded(self.document.title(), self.timeout_ms, "title")
        except Exception as e:
            logger.debug(f"Could not read title: {e}")
            return ""

    async def _breadcrumb(self) -> str:
        locators = self.library.get("breadcrumb") if self.library else BREADCRUMB_LOCATORS
        resolved = await self.resolver.resolve(locators, "breadcrumb")
        if resolved is None:
            return ""
        try:
            text = await bounded(self.document.text_content(resolved.element), self.timeout_ms, "breadcrumb")
            return " ".join(text.split())
        except Exception:
            return ""

    async def _expand(self, resource: NavigableResource, location: str, depth: int) -> None:
        """Classify what the resource offers and enqueue its children."""
        self.expansions += 1
        items = await bounded(self.document.enumerate_interactive(), self.timeout_ms, "interactive elements")
        widgets = await bounded(self.document.enumerate_widgets(), self.timeout_ms, "widgets")

        section = self._section_of(resource.canonical_id)
        features = self.mapper.map_sections(items, section=section, widgets=widgets)
        for feature in features:
            if feature.kind in (FeatureKind.OPERATION, FeatureKind.WIDGET):
                feature.add_resource(resource.canonical_id)
        self.features = merge_features(self.features, features)

        if depth + 1 > self.config.max_depth:
            return

        accepted = 0
        for child in self._children(items, resource, location, depth + 1):
            if self.frontier.enqueue(child):
                accepted += 1
        logger.debug(f"Enqueued {accepted} child item(s) from {resource.canonical_id}")

    def _section_of(self, canonical_id: str) -> Optional[str]:
        for page in self.pages:
            if page.canonical_id == canonical_id and page.section:
                return page.section
        return None

    def _link_feature(self, name: Optional[str], canonical_id: str) -> None:
        if not name:
            return
        for feature in self.features:
            if feature.name == name and feature.kind in (FeatureKind.SECTION, FeatureKind.NAVIGATION):
                feature.add_resource(canonical_id)

    def _children(
        self,
        items: list[InteractiveItem],
        resource: NavigableResource,
        location: str,
        depth: int,
    ) -> list[FrontierItem]:
        """Frontier items for the controls on a page: vocabulary matches first,
        then navigation menus, then everything else, each in document order."""
        candidates = []
        for position, item in enumerate(items):
            label = item.label or item.raw_href
            haystack = f"{label} {item.raw_href}".lower()
            if not label or any(keyword in haystack for keyword in UNSAFE_KEYWORDS):
                continue
            if classify_operation(label) == "delete":
                continue

            target_location = target_id = None
            if item.is_navigable_link:
                target_location = urljoin(location, item.href or item.raw_href)
                if self.config.same_origin_only and not same_origin(target_location, self.anchor.raw_location):
                    continue
                target_id = self._resource(target_location).canonical_id
                if target_id == resource.canonical_id:
                    continue
            elif not (item.in_navigation or item.role in ("link", "menuitem")):
                continue
            elif classify_operation(label):
                continue

            keyword = self.mapper.match_keyword(item)
            feature_name = keyword.capitalize() if keyword else label
            locators = item_locators(item)
            if keyword:
                locators += [
                    CandidateLocator(loc.description, loc.predicate, loc.priority + FALLBACK_PRIORITY_OFFSET)
                    for loc in section_locators(feature_name)
                ]
            if not locators and not target_location:
                continue

            rank = 0 if keyword else 1 if item.in_navigation else 2
            candidates.append((rank, position, FrontierItem(
                intent=f"open {label}",
                locators=locators,
                depth=depth,
                origin_resource=resource.canonical_id,
                origin_location=location,
                target_location=target_location,
                target_id=target_id,
                feature_name=feature_name,
            )))

        candidates.sort(key=lambda c: (c[0], c[1]))
        return [c[2] for c in candidates]

    # ------------------------------------------------------------------
    # Journeys

    async def run_journeys(self, sections: Optional[list[str]] = None, prefix: Optional[str] = None) -> list[dict]:
        """
        Try the create form of each discovered section.

        Journeys append to the same ledger as the crawl. Sections without a
        known location are skipped. A failing journey is written to the
        ledger and the next section is tried.

        Args:
            sections: Section names to try (all discovered sections when omitted)
            prefix: Test data prefix (a new AUTO_QA_ prefix when omitted)

        Returns:
            Journey results as dicts, also stored on the run result

        Raises:
            SessionExpired: If the session is lost; ``partial_result`` holds the run
                including the journeys finished so far
        """
        journey = FormJourney(
            self.document,
            self.ledger,
            resolver=self.resolver,
            signal=SuccessSignal(self.library, timeout_ms=self.timeout_ms),
            guard=self.guard,
            prefix=prefix or make_run_prefix(),
            timeout_ms=self.timeout_ms,
            screenshot_dir=self.config.screenshot_dir if self.config.capture_screenshots else None,
        )

        results = []
        try:
            for feature in self.features:
                if feature.kind != FeatureKind.SECTION or (sections and feature.name not in sections):
                    continue
                self._enforce_error_cap()
                if self.token.is_cancelled:
                    break
                if not feature.url:
                    logger.info(f"Skipping journey for {feature.name}: no known location")
                    continue

                try:
                    await bounded(self.document.navigate(feature.url), self.timeout_ms, feature.url)
                    await self.document.wait_for_settled(self.timeout_ms)
                    location = await self.document.current_location()
                    self.ledger.append(ActionKind.NAVIGATE, feature.url, location, True, f"section {feature.name}")
                    await self.guard.check(self.document)

                    result = await journey.run(feature.name)
                except SessionExpired:
                    raise
                except Exception as e:
                    name = type(e).__name__ if isinstance(e, ExplorerError) else f"ActivationError ({type(e).__name__})"
                    logger.warning(f"Journey for {feature.name} failed: {e}")
                    self.ledger.append(
                        ActionKind.ERROR, create_form_intent(feature.name), await self._safe_location(), False,
                        f"{name}: {e}",
                    )
                    continue
                results.append(result.to_dict())
        except SessionExpired as e:
            self.result.journeys.extend(results)
            e.partial_result = self._finish("session_expired")
            raise

        self.result.journeys.extend(results)
        self.result.ledger = list(self.ledger.entries)
        return results
