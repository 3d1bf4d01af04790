"""Append-only action ledger.

The ledger is the only observational record of a run: the live document is
mutable and cannot be re-inspected afterwards. Each ``append`` is written and
fsynced to the JSONL file (when one is configured) before it returns, so a
crash mid-run leaves a consistent prefix of what actually happened.
"""

import json
import logging
import os
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from navcrawl.models import ActionKind, ActionLedgerEntry

logger = logging.getLogger(__name__)


class ActionLedger:
    """Ordered, append-only record of every action and its outcome."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize the ledger.

        Args:
            path: Optional JSONL file to write entries to as they happen
        """
        self.path = Path(path) if path else None
        self._entries: list[ActionLedgerEntry] = []
        self._file = None

        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "a", encoding="utf-8")
            logger.info(f"Action ledger writing to {self.path}")

    def append(
        self,
        kind: ActionKind,
        target: str,
        result_location: str,
        success: bool,
        detail: Optional[str] = None,
    ) -> ActionLedgerEntry:
        """Record an action. Durable before it returns.

        Returns:
            The appended entry
        """
        entry = ActionLedgerEntry(
            sequence=len(self._entries) + 1,
            timestamp=datetime.now(),
            kind=kind,
            target=target,
            result_location=result_location,
            success=success,
            detail=detail,
        )

        if self._file:
            self._file.write(json.dumps(entry.to_dict()) + "\n")
            self._file.flush()
            os.fsync(self._file.fileno())

        self._entries.append(entry)

        log = logger.warning if kind == ActionKind.ERROR else logger.debug
        log(f"#{entry.sequence} {kind.value} {target} -> {result_location} (success={success})")
        return entry

    @property
    def entries(self) -> tuple[ActionLedgerEntry, ...]:
        """Immutable view of all entries in execution order."""
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def count(self, *kinds: ActionKind) -> int:
        """Count entries of the given kinds (all entries when none given)."""
        if not kinds:
            return len(self._entries)
        return sum(1 for e in self._entries if e.kind in kinds)

    def error_count(self) -> int:
        return self.count(ActionKind.ERROR)

    def summary(self) -> dict[str, int]:
        """Number of entries per kind, plus failed non-error actions."""
        counts = Counter(e.kind.value for e in self._entries)
        result = {kind.value: counts.get(kind.value, 0) for kind in ActionKind}
        result["total"] = len(self._entries)
        result["failed"] = sum(1 for e in self._entries if not e.success and e.kind != ActionKind.ERROR)
        return result

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def __enter__(self) -> "ActionLedger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ActionLedger":
        """Read a JSONL ledger back for auditing.

        A truncated final line (crash while writing) is skipped; everything
        before it is a consistent prefix. The returned ledger is not attached
        to the file.
        """
        ledger = cls()
        with open(path, encoding="utf-8") as f:
            lines = f.readlines()

        for number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                ledger._entries.append(ActionLedgerEntry.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                if number == len(lines):
                    logger.warning(f"Ignoring truncated final ledger line in {path}: {e}")
                    break
                raise
        return ledger
