"""Output manager for organizing exploration results with timestamps."""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from navcrawl.models import CrawlRun

logger = logging.getLogger(__name__)


INVENTORY_COLUMNS = ["url", "canonical_id", "title", "breadcrumb", "section", "depth", "timestamp", "screenshot"]


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class OutputManager:
    """Writes the artifacts of a run into a timestamped directory."""

    def __init__(self, base_output_dir: str = "out"):
        """Initialize output manager.

        Args:
            base_output_dir: Base directory for all run outputs
        """
        self.base_output_dir = Path(base_output_dir)
        self.base_output_dir.mkdir(parents=True, exist_ok=True)

    def create_run_directory(self, start_url: str, timestamp: Optional[datetime] = None) -> Path:
        """Create a timestamped directory for this run.

        Args:
            start_url: First entry point of the run
            timestamp: Optional timestamp (defaults to now)

        Returns:
            Path to the created directory

        Example structure:
            out/
            └── app.example.com/
                ├── 2026-01-05_143022/
                │   ├── actions_log.jsonl
                │   ├── navigation_inventory.json
                │   ├── navigation_inventory.csv
                │   ├── a11y_violations.json
                │   ├── perf_data.json
                │   ├── features.json
                │   ├── visited.json
                │   ├── screenshots/
                │   └── summary.json
                └── latest -> 2026-01-05_143022
        """
        if timestamp is None:
            timestamp = datetime.now()

        domain = urlparse(start_url).netloc or "local"
        domain = domain.replace(":", "_").replace("/", "_")

        run_dir = self.base_output_dir / domain / timestamp.strftime("%Y-%m-%d_%H%M%S")
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

    def save_run(self, run_dir: Path, run: CrawlRun) -> dict[str, Path]:
        """Save all artifacts of a run.

        Args:
            run_dir: Directory to save to
            run: Result of the exploration

        Returns:
            Mapping of artifact name to written path
        """
        written = {}

        inventory = [
            {key: value for key, value in page.to_dict().items() if key in INVENTORY_COLUMNS}
            for page in run.pages
        ]
        written["inventory"] = self._save_json(run_dir / "navigation_inventory.json", inventory)
        written["inventory_csv"] = self._save_csv(run_dir / "navigation_inventory.csv", inventory)

        violations = [
            {**violation.to_dict(), "url": page.url, "title": page.title, "section": page.section}
            for page in run.pages
            for violation in page.violations
        ]
        written["a11y"] = self._save_json(run_dir / "a11y_violations.json", violations)

        perf = [
            {**page.perf.to_dict(), "url": page.url, "title": page.title, "section": page.section}
            for page in run.pages
            if page.perf
        ]
        written["perf"] = self._save_json(run_dir / "perf_data.json", perf)

        written["features"] = self._save_json(run_dir / "features.json", [f.to_dict() for f in run.features])
        written["visited"] = self._save_json(run_dir / "visited.json", list(run.visited))
        if run.journeys:
            written["journeys"] = self._save_json(run_dir / "journeys.json", run.journeys)
        written["summary"] = self._save_json(run_dir / "summary.json", self.summarize(run))

        self._create_latest_link(run_dir)
        logger.info(f"Saved {len(written)} artifacts to {run_dir}")
        return written

    def summarize(self, run: CrawlRun) -> dict:
        """Counts describing a run."""
        kinds: dict[str, int] = {}
        for entry in run.ledger:
            kinds[entry.kind.value] = kinds.get(entry.kind.value, 0) + 1

        feature_kinds: dict[str, int] = {}
        for feature in run.features:
            feature_kinds[feature.kind.value] = feature_kinds.get(feature.kind.value, 0) + 1

        return {
            "status": run.status,
            "anchor": run.anchor,
            "cancel_reason": run.cancel_reason,
            "started_at": run.started_at,
            "finished_at": run.finished_at,
            "visited": len(run.visited),
            "expansions": run.expansions,
            "actions": len(run.ledger),
            "actions_by_kind": kinds,
            "features_by_kind": feature_kinds,
            "a11y_violations": sum(len(p.violations) for p in run.pages),
            "journeys": len(run.journeys),
        }

    def _save_json(self, filepath: Path, data) -> Path:
        """Save data as formatted JSON."""
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, cls=DateTimeEncoder)
        return filepath

    def _save_csv(self, filepath: Path, rows: list[dict]) -> Path:
        with open(filepath, "w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=INVENTORY_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
        return filepath

    def _create_latest_link(self, run_dir: Path) -> None:
        """Create/update 'latest' symlink to this run."""
        latest_link = run_dir.parent / "latest"

        if latest_link.exists() or latest_link.is_symlink():
            latest_link.unlink()

        try:
            latest_link.symlink_to(run_dir.name)
        except (OSError, NotImplementedError):
            # Symlinks might not work on all systems (Windows)
            with open(run_dir.parent / "latest.txt", "w") as f:
                f.write(str(run_dir.name))
