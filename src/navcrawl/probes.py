"""
Accessibility and performance probes.

Probes run once per visited resource, after the page has settled. They only
read from the document and never influence exploration: a failing probe is
logged and yields no annotation.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from axe_playwright_python.async_playwright import Axe

from navcrawl.document import Document
from navcrawl.models import PageRecord, PerfSample, Violation

logger = logging.getLogger(__name__)


PERFORMANCE_SCRIPT = """
() => {
    const nav = performance.getEntriesByType('navigation')[0];
    const paint = performance.getEntriesByType('paint');
    const resources = performance.getEntriesByType('resource');
    const fp = paint.find(p => p.name === 'first-paint');
    const fcp = paint.find(p => p.name === 'first-contentful-paint');
    return {
        loadTime: nav ? nav.loadEventEnd - nav.fetchStart : null,
        domContentLoaded: nav ? nav.domContentLoadedEventEnd - nav.fetchStart : null,
        firstPaint: fp ? fp.startTime : null,
        firstContentfulPaint: fcp ? fcp.startTime : null,
        resourceCount: resources.length,
        transferBytes: resources.reduce((sum, r) => sum + (r.transferSize || 0), 0),
    };
}
"""

TARGETS_PER_VIOLATION = 10


def _node_target(node: dict) -> str:
    # Shadow DOM targets are nested selector lists
    parts = node.get("target") or []
    return " ".join(p if isinstance(p, str) else " ".join(p) for p in parts)


class Probe(ABC):
    """Read-only analysis of a settled page."""

    name = "probe"

    @abstractmethod
    async def run(self, document: Document, record: PageRecord) -> Any:
        """Analyze the page and return the annotation for ``record``."""


class AccessibilityProbe(Probe):
    """Runs axe-core against the live page and reports violated rules."""

    name = "accessibility"

    def __init__(self, axe: Optional[Axe] = None):
        self.axe = axe or Axe()

    async def audit(self, document: Document) -> list[Violation]:
        page = document.automation_page()
        if page is None:
            logger.debug("No automation page to audit, skipping accessibility probe")
            return []

        results = await self.axe.run(page)
        violations = []
        for raw in (results.response or {}).get("violations", []):
            nodes = raw.get("nodes") or []
            violations.append(Violation(
                rule=raw.get("id", ""),
                impact=raw.get("impact") or "moderate",
                description=raw.get("help") or raw.get("description", ""),
                count=len(nodes),
                targets=[_node_target(node) for node in nodes[:TARGETS_PER_VIOLATION]],
            ))
        return violations

    async def run(self, document: Document, record: PageRecord) -> list[Violation]:
        return await self.audit(document)


class PerformanceProbe(Probe):
    name = "performance"

    async def metrics(self, document: Document, url: str = "") -> Optional[PerfSample]:
        raw = await document.evaluate(PERFORMANCE_SCRIPT)
        if not raw:
            return None
        return PerfSample(
            url=url,
            load_time=raw.get("loadTime"),
            dom_content_loaded=raw.get("domContentLoaded"),
            first_paint=raw.get("firstPaint"),
            first_contentful_paint=raw.get("firstContentfulPaint"),
            resource_count=int(raw.get("resourceCount") or 0),
            transfer_bytes=int(raw.get("transferBytes") or 0),
        )

    async def run(self, document: Document, record: PageRecord) -> Optional[PerfSample]:
        return await self.metrics(document, record.url)


class ProbeRunner:
    """
    Runs all probes for a settled page concurrently and attaches results.

    Must only be awaited between navigations: probes read the same document
    the explorer drives.
    """

    def __init__(self, probes: Optional[list[Probe]] = None, timeout_ms: int = 30000):
        self.probes = probes if probes is not None else [AccessibilityProbe(), PerformanceProbe()]
        self.timeout_ms = timeout_ms

    async def run(self, document: Document, record: PageRecord) -> PageRecord:
        """Annotate a page record with probe results. Never raises."""
        if not self.probes:
            return record

        results = await asyncio.gather(
            *(
                asyncio.wait_for(probe.run(document, record), timeout=self.timeout_ms / 1000.0)
                for probe in self.probes
            ),
            return_exceptions=True,
        )

        for probe, result in zip(self.probes, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(f"{probe.name} probe timed out for {record.url}")
                continue
            if isinstance(result, Exception):
                logger.warning(f"{probe.name} probe failed for {record.url}: {result}")
                continue
            if isinstance(probe, AccessibilityProbe):
                record.violations = result or []
            elif isinstance(probe, PerformanceProbe):
                record.perf = result
            else:
                record.annotations[probe.name] = result

        if record.violations:
            logger.info(f"{len(record.violations)} accessibility rule(s) violated on {record.url}")
        return record
