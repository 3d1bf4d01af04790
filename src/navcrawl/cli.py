"""Command-line interface for the navigation crawler."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from navcrawl.config import ExplorerConfig, settings
from navcrawl.exceptions import ConfigurationError, SessionExpired
from navcrawl.explorer import BoundedExplorer
from navcrawl.intelligence.locator_library import LocatorLibrary
from navcrawl.ledger import ActionLedger
from navcrawl.logging_config import setup_logging
from navcrawl.models import ActionKind, CrawlRun
from navcrawl.output_manager import OutputManager
from navcrawl.session import BrowserSession


async def _explore(
    config: ExplorerConfig,
    run_journeys: bool = False,
    library_path: Optional[str] = None,
) -> tuple[CrawlRun, Path]:
    """Run an exploration in a browser session and save its outputs.

    Args:
        config: Validated run configuration
        run_journeys: Also try the create form of each discovered section
        library_path: Optional locator library JSON file (loaded and updated)

    Returns:
        Tuple of (run result, output directory)
    """
    output = OutputManager(config.output_dir)
    run_dir = output.create_run_directory(config.base_entry_points[0])
    if not config.ledger_path:
        config = config.with_overrides(ledger_path=str(run_dir / "actions_log.jsonl"))
    if config.capture_screenshots and not config.screenshot_dir:
        config = config.with_overrides(screenshot_dir=str(run_dir / "screenshots"))

    library = LocatorLibrary(Path(library_path)) if library_path else None

    async with BrowserSession(config) as session:
        explorer = BoundedExplorer(session.document, config, library=library)
        try:
            run = await explorer.run()
            if run_journeys and run.status in ("completed", "cancelled"):
                await explorer.run_journeys()
                run = explorer.result
        except SessionExpired as e:
            if e.partial_result is not None:
                output.save_run(run_dir, e.partial_result)
            raise
        finally:
            explorer.close()
            if library:
                library.save()

    output.save_run(run_dir, run)
    return run, run_dir


def print_run_summary(run: CrawlRun, run_dir: Optional[Path] = None):
    """Print a run summary in a formatted way."""
    print(f"\n{'=' * 60}")
    print(f"Exploration {run.status}: {run.anchor or 'no anchor'}")
    print(f"{'=' * 60}")
    print(f"  • Resources visited: {len(run.visited)}")
    print(f"  • Expansions: {run.expansions}")
    print(f"  • Actions recorded: {len(run.ledger)}")
    print(f"  • Errors: {len(run.error_entries())}")
    print(f"  • Features: {len(run.features)}")
    if run.cancel_reason:
        print(f"  • Cancelled: {run.cancel_reason}")
    if run.journeys:
        print(f"\nJourneys:")
        for journey in run.journeys:
            print(f"  • {journey['section']}: {journey['outcome']}")
    if run_dir:
        print(f"\nOutputs written to {run_dir}")
    print(f"{'=' * 60}\n")


def explore_command(args):
    """Explore an application from its entry points."""
    try:
        base = ExplorerConfig.from_file(args.config) if args.config else ExplorerConfig.from_env()
        config = base.with_overrides(
            base_entry_points=args.urls or None,
            max_depth=args.max_depth,
            max_breadth_per_resource=args.max_breadth,
            per_action_timeout_ms=args.timeout_ms,
            time_budget_seconds=args.time_budget,
            max_error_entries=args.max_errors,
            ledger_path=args.ledger,
            output_dir=args.output_dir,
            storage_state_path=args.storage_state or base.storage_state_path or settings.STORAGE_STATE,
            headless=False if args.headed else None,
            enable_probes=False if args.no_probes else None,
            capture_screenshots=False if args.no_screenshots else None,
        )
        config.validate_for_run()
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(2)

    try:
        run, run_dir = asyncio.run(_explore(config, args.journeys, args.locator_library))
    except SessionExpired as e:
        print(f"\n❌ Session expired at {e.location}: {e}")
        print("Refresh the saved session state and run again.")
        if e.partial_result:
            print_run_summary(e.partial_result)
        sys.exit(3)

    print_run_summary(run, run_dir)


def ledger_command(args):
    """Summarize a recorded action ledger."""
    ledger = ActionLedger.load(args.path)
    summary = ledger.summary()

    if args.output == "json":
        data = {"summary": summary}
        if args.errors:
            data["errors"] = [e.to_dict() for e in ledger.entries if e.kind == ActionKind.ERROR]
        print(json.dumps(data, indent=2))
        return

    print(f"\n{'=' * 60}")
    print(f"Action ledger: {args.path}")
    print(f"{'=' * 60}")
    for kind in ActionKind:
        print(f"  • {kind.value}: {summary[kind.value]}")
    print(f"  • Total: {summary['total']} ({summary['failed']} failed actions)")

    if args.errors:
        print(f"\nErrors:")
        for entry in ledger.entries:
            if entry.kind == ActionKind.ERROR:
                print(f"  #{entry.sequence} {entry.target}: {entry.detail}")
    print()


def main():
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Navigation crawler - discover and inventory the pages of a web application"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL.upper(),
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Explore command parser
    explore_parser = subparsers.add_parser(
        "explore", help="Explore an application and write its navigation inventory."
    )
    explore_parser.add_argument(
        "urls", nargs="*", help="Entry points, tried in order (default: from config)"
    )
    explore_parser.add_argument(
        "--config", "-c", help="YAML or JSON configuration file (default: NAVCRAWL_* environment)"
    )
    explore_parser.add_argument("--max-depth", type=int, help="Maximum exploration depth (default: 2)")
    explore_parser.add_argument("--max-breadth", type=int, help="Children enqueued per page (default: 5)")
    explore_parser.add_argument("--timeout-ms", type=int, help="Timeout per action in milliseconds")
    explore_parser.add_argument("--time-budget", type=float, help="Stop after this many seconds")
    explore_parser.add_argument("--max-errors", type=int, help="Stop after this many errors")
    explore_parser.add_argument("--ledger", help="Action ledger JSONL path (default: in the run directory)")
    explore_parser.add_argument("--output-dir", "-o", help=f"Base output directory (default: {settings.OUTPUT_DIR})")
    explore_parser.add_argument("--storage-state", help="Saved session state from a login step")
    explore_parser.add_argument("--locator-library", help="Locator library JSON file to load and update")
    explore_parser.add_argument("--no-screenshots", action="store_true", help="Skip page and journey screenshots")
    explore_parser.add_argument("--headed", action="store_true", help="Show the browser window")
    explore_parser.add_argument("--no-probes", action="store_true", help="Skip accessibility/performance probes")
    explore_parser.add_argument(
        "--journeys",
        action="store_true",
        help="After exploring, try the create form of each discovered section",
    )
    explore_parser.set_defaults(func=explore_command)

    # Ledger command parser
    ledger_parser = subparsers.add_parser("ledger", help="Summarize a recorded action ledger.")
    ledger_parser.add_argument("path", help="Path to an actions_log.jsonl file")
    ledger_parser.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    ledger_parser.add_argument("--errors", action="store_true", help="List ERROR entries")
    ledger_parser.set_defaults(func=ledger_command)

    args = parser.parse_args()

    setup_logging(
        level=args.log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
