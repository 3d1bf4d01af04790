from dotenv import load_dotenv
from pathlib import Path
from typing import Any, List, Literal, Optional
from urllib.parse import urlparse
import json
import os

import yaml
from pydantic import BaseModel, Field, ValidationError

from navcrawl.exceptions import ConfigurationError

load_dotenv()  # Loads variables from .env file


DEFAULT_SECTION_VOCABULARY = [
    "client", "task", "deadline", "staff", "workflow",
    "document", "report", "setting", "dashboard", "calendar",
    "notification", "search", "filter", "export", "import",
]

ENV_PREFIX = "NAVCRAWL_"


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    LOG_LEVEL = os.getenv("NAVCRAWL_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("NAVCRAWL_LOG_FILE")
    OUTPUT_DIR = os.getenv("NAVCRAWL_OUTPUT_DIR", "out")
    STORAGE_STATE = os.getenv("NAVCRAWL_STORAGE_STATE", "out/storageState.json")


settings = Settings()


class ExplorerConfig(BaseModel):
    """
    Configuration for an exploration run.

    All fields are validated by Pydantic. ``validate_for_run`` adds the checks
    that only matter when a run is about to start.
    """

    max_depth: int = Field(
        default=2,
        description="Deepest frontier depth that may be enqueued (entry anchor is depth 0)",
        ge=0,
    )

    max_breadth_per_resource: int = Field(
        default=5,
        description="Maximum child items enqueued per visited resource",
        ge=0,
    )

    per_action_timeout_ms: int = Field(
        default=30000,
        description="Timeout for each resolve/activation/navigation step in milliseconds",
        ge=1000,
        le=300000,
    )

    section_vocabulary: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SECTION_VOCABULARY),
        description="Keywords used to group discovered controls into named sections",
    )

    base_entry_points: List[str] = Field(
        default_factory=list,
        description="Absolute URLs tried in order to establish the anchor",
    )

    # Run policy
    max_error_entries: Optional[int] = Field(
        default=None,
        description="Cancel the run once this many ERROR ledger entries exist",
        ge=1,
    )

    time_budget_seconds: Optional[float] = Field(
        default=None,
        description="Cancel the run (gracefully) after this many seconds",
        gt=0,
    )

    settle_delay_ms: int = Field(
        default=1000,
        description="Extra wait after an activation for client-side rendering",
        ge=0,
    )

    same_origin_only: bool = Field(
        default=True,
        description="Only enqueue links on the anchor's host",
    )

    volatile_query_params: List[str] = Field(
        default_factory=list,
        description="Extra query parameters excluded from resource identity",
    )

    session_expired_patterns: List[str] = Field(
        default_factory=lambda: ["sign-in", "signin", "login", "log-in"],
        description="Location substrings that mean the session has expired",
    )

    session_expired_texts: List[str] = Field(
        default_factory=list,
        description="Body text markers that mean the session has expired",
    )

    enable_probes: bool = Field(
        default=True,
        description="Run accessibility/performance probes on each visited resource",
    )

    # Browser and outputs
    headless: bool = Field(default=True, description="Run browser without a visible UI")

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use",
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="domcontentloaded",
        description="When to consider a navigation complete",
    )

    storage_state_path: Optional[str] = Field(
        default=None,
        description="Pre-authenticated Playwright storage state (cookies/localStorage)",
    )

    ledger_path: Optional[str] = Field(
        default=None,
        description="JSONL file the action ledger is written to before each next action",
    )

    output_dir: str = Field(default=settings.OUTPUT_DIR, description="Directory for run outputs")

    capture_screenshots: bool = Field(
        default=True,
        description="Capture a full-page screenshot of each visited resource and journey step",
    )

    screenshot_dir: Optional[str] = Field(
        default=None,
        description="Directory screenshots are written to (none are taken when unset)",
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    def validate_for_run(self) -> None:
        """Check the options a run cannot start without.

        Raises:
            ConfigurationError: If no usable entry point is configured
        """
        if not self.base_entry_points:
            raise ConfigurationError("No entry points configured (base_entry_points is empty)")

        for entry in self.base_entry_points:
            parsed = urlparse(entry)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"Entry point is not an absolute http(s) URL: {entry!r}", entry)

    @classmethod
    def from_env(cls, **overrides: Any) -> "ExplorerConfig":
        """Load configuration from environment variables.

        Environment variables are prefixed with NAVCRAWL_,
        e.g. NAVCRAWL_MAX_DEPTH=3 or NAVCRAWL_BASE_ENTRY_POINTS=https://a,https://b

        Returns:
            ExplorerConfig with values from environment
        """
        values: dict[str, Any] = {}

        for field_name, model_field in cls.model_fields.items():
            env_value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
            if env_value is None:
                continue

            if model_field.annotation in (List[str], list[str]):
                values[field_name] = [v.strip() for v in env_value.split(",") if v.strip()]
            elif model_field.annotation is bool:
                values[field_name] = env_value.strip().lower() in ("1", "true", "yes", "on")
            else:
                values[field_name] = env_value

        values.update(overrides)
        return cls._build(values)

    @classmethod
    def from_file(cls, path: str) -> "ExplorerConfig":
        """Load configuration from a YAML or JSON file.

        The options may sit at the top level or under an ``explorer`` key.

        Args:
            path: Path to configuration file

        Returns:
            ExplorerConfig with values from file
        """
        file_path = Path(path)

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        with open(file_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {path}")

        return cls._build(data.get("explorer", data))

    def with_overrides(self, **overrides: Any) -> "ExplorerConfig":
        """Copy of this configuration with some options replaced (validated)."""
        values = self.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return self._build(values)

    @classmethod
    def _build(cls, values: dict[str, Any]) -> "ExplorerConfig":
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return self.model_dump()

    def save_to_file(self, path: str) -> None:
        """Save current configuration to a JSON file.

        Args:
            path: Path to save configuration
        """
        with open(path, 'w') as f:
            json.dump({'explorer': self.to_dict()}, f, indent=2)
