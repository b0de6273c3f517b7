"""Versioned snapshots of files zap is about to overwrite.

Snapshots live flat in ``<config-root>/backups`` and are named
``<basename>.<YYYYmmdd-HHMMSS>`` (UTC). Retention is age based: anything
strictly older than ``backup_retention_days`` days is purged.
"""

import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
SECONDS_PER_DAY = 86400


def snapshot_name(path: Path, now: Optional[datetime] = None) -> str:
    """Backup file name for ``path`` taken at ``now`` (UTC, second precision)."""
    now = now or datetime.now(timezone.utc)
    return f"{path.name}.{now.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)}"


class BackupManager:
    """Takes snapshots and enforces retention in one backup directory."""

    def __init__(self, backup_dir: Path) -> None:
        self.backup_dir = backup_dir

    def snapshot(self, path: Path, now: Optional[datetime] = None) -> Optional[Path]:
        """Copy ``path`` verbatim into the backup area.

        A snapshot of the same file within the same second replaces the
        previous one.

        Args:
            path: File about to be overwritten
            now: Timestamp to use (defaults to current UTC time)

        Returns:
            Path of the snapshot, or None if ``path`` does not exist yet
        """
        if not path.is_file():
            return None

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup_path = self.backup_dir / snapshot_name(path, now)
        # mtime must be the snapshot time, purge() ages files by it
        shutil.copy(path, backup_path)
        return backup_path

    def expired(self, retention_days: int, now: Optional[float] = None) -> list[Path]:
        """Snapshots older than ``retention_days`` days.

        A file exactly ``retention_days`` old is not expired.

        Args:
            retention_days: Maximum age in days
            now: Reference time as a UNIX timestamp (defaults to time.time())
        """
        if not self.backup_dir.is_dir():
            return []

        now = time.time() if now is None else now
        max_age = retention_days * SECONDS_PER_DAY
        return [
            path for path in sorted(self.backup_dir.iterdir())
            if path.is_file() and now - path.stat().st_mtime > max_age
        ]

    def purge(self, retention_days: int, now: Optional[float] = None) -> list[Path]:
        """Delete expired snapshots.

        Returns:
            Paths that were removed
        """
        removed = self.expired(retention_days, now)
        for path in removed:
            path.unlink()
        return removed

    def list_snapshots(self) -> list[Path]:
        """All snapshots, newest first."""
        if not self.backup_dir.is_dir():
            return []
        files = [p for p in self.backup_dir.iterdir() if p.is_file()]
        return sorted(files, key=lambda p: (p.stat().st_mtime, p.name), reverse=True)
