"""Timestamped snapshots of collection files, pruned to the newest N."""

from __future__ import annotations

import re
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from ..constants import MAX_BACKUPS

_STAMP_FORMAT = "%Y%m%dT%H%M%S.%fZ"
_STAMP_PATTERN = r"\d{8}T\d{6}\.\d{6}Z"


class BackupRotator:
    """Copy a collection file aside before it is overwritten.

    Backup names are ``<collection>-<stamp><suffix>`` with a fixed-width UTC
    stamp, so lexicographic order is chronological order.  Stamps issued by
    one rotator are strictly increasing even within the same microsecond.
    """

    def __init__(self, backup_dir: Path, keep: int = MAX_BACKUPS) -> None:
        if keep < 1:
            raise ValueError("keep must be at least 1")
        self.backup_dir = backup_dir
        self.keep = keep
        self._last: Optional[datetime] = None

    def _next_stamp(self) -> datetime:
        stamp = datetime.now(timezone.utc)
        if self._last is not None and stamp <= self._last:
            stamp = self._last + timedelta(microseconds=1)
        self._last = stamp
        return stamp

    def _target(self, name: str, suffix: str) -> Path:
        while True:
            target = self.backup_dir / f"{name}-{self._next_stamp().strftime(_STAMP_FORMAT)}{suffix}"
            if not target.exists():
                return target

    def list(self, name: str, suffix: str = ".yaml") -> list[Path]:
        """Return the backups of collection *name*, oldest first."""
        if not self.backup_dir.exists():
            return []
        pattern = re.compile(rf"^{re.escape(name)}-{_STAMP_PATTERN}{re.escape(suffix)}$")
        return sorted(
            (p for p in self.backup_dir.iterdir() if pattern.match(p.name)),
            key=lambda p: p.name,
        )

    def snapshot(self, name: str, source: Path) -> Optional[Path]:
        """Copy *source* into the backup directory and prune; no-op if absent."""
        if not source.exists():
            return None
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        target = self._target(name, source.suffix)
        shutil.copy2(source, target)
        self.prune(name, source.suffix)
        return target

    def prune(self, name: str, suffix: str = ".yaml") -> list[Path]:
        backups = self.list(name, suffix)
        excess = backups[: max(0, len(backups) - self.keep)]
        for old in excess:
            old.unlink(missing_ok=True)
        if excess:
            logger.debug("Pruned {} old {} backups", len(excess), name)
        return excess
