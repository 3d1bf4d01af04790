"""Error taxonomy for the exploration engine.

Per-branch failures (``ResolutionFailure``, ``NavigationTimeout``,
``AnchorRecoveryFailure``) are caught by the explorer, written to the ledger
and turned into a skipped branch. ``SessionExpired`` and
``ConfigurationError`` propagate to the caller.
"""

from typing import Any, Optional


class ExplorerError(Exception):
    """Base class for all exploration errors."""

    #: Whether the error ends the whole run rather than a single branch.
    fatal = False

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target


class ResolutionFailure(ExplorerError):
    """No candidate locator matched a visible, enabled element."""


class NavigationTimeout(ExplorerError):
    """An activation or navigation did not settle within its budget."""

    def __init__(self, message: str, target: Optional[str] = None, timeout_ms: Optional[int] = None):
        super().__init__(message, target)
        self.timeout_ms = timeout_ms


class AnchorRecoveryFailure(ExplorerError):
    """The explorer could not return to its known-good anchor location."""


class SessionExpired(ExplorerError):
    """The pre-authenticated session is no longer valid.

    ``partial_result`` carries the run state gathered before the abort so the
    caller can still use the ledger and visited set.
    """

    fatal = True

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message, location)
        self.location = location
        self.partial_result: Any = None


class ConfigurationError(ExplorerError):
    """The run configuration is unusable (e.g. no entry points)."""

    fatal = True
