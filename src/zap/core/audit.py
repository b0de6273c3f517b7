"""Activity logging for mutating operations and connections.

Provides:
- JSON-formatted log lines (one event per line)
- Appends under an exclusive file lock
- Size based log rotation

Logging is off unless ``logging.enabled`` is set in the settings file.
"""

import fcntl
import json
import os
import pwd
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Generator, Optional

from zap.core.output import console


DEFAULT_MAX_SIZE_MB = 10
DEFAULT_BACKUP_COUNT = 5


class AuditEventType(Enum):
    """Types of logged events."""
    # Inventory operations
    CATEGORY_CREATE = "category.create"
    HOST_ADD = "host.add"

    # Hosts file
    HOSTS_APPLY = "hosts.apply"

    # Archive operations
    CONFIG_EXPORT = "config.export"
    CONFIG_IMPORT = "config.import"

    # Backups
    BACKUP_PURGE = "backup.purge"

    # Connections
    SSH_CONNECT = "ssh.connect"
    HOST_PING = "host.ping"


class AuditResult(Enum):
    """Result of a logged operation."""
    SUCCESS = "success"
    DRY_RUN = "dry_run"


def _current_username() -> str:
    try:
        return pwd.getpwuid(os.getuid()).pw_name
    except KeyError:
        return str(os.getuid())


@dataclass
class AuditEvent:
    """Represents a single logged event."""
    event_type: AuditEventType
    result: AuditResult
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Actor information
    actor_username: str = field(default_factory=_current_username)
    actor_sudo_user: Optional[str] = field(default_factory=lambda: os.environ.get("SUDO_USER"))

    # Target information
    target_type: Optional[str] = None
    target_name: Optional[str] = None

    # Operation details
    parameters: dict[str, Any] = field(default_factory=dict)
    message: Optional[str] = None

    session_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "result": self.result.value,
            "timestamp": self.timestamp.isoformat(),
            "actor": {
                "username": self.actor_username,
                "sudo_user": self.actor_sudo_user,
            },
            "target": {
                "type": self.target_type,
                "name": self.target_name,
            },
            "parameters": self.parameters,
            "message": self.message,
            "session_id": self.session_id,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str, ensure_ascii=False)


class AuditLogger:
    """Activity logger.

    Features:
    - Append-only JSON log file
    - Writes serialized with file locking
    - Automatic log rotation
    - Session tracking (one id per zap invocation)
    """

    def __init__(
        self,
        log_path: Path,
        max_size_mb: int = DEFAULT_MAX_SIZE_MB,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        enabled: bool = True,
    ) -> None:
        """Initialize the logger.

        Args:
            log_path: Path to log file
            max_size_mb: Maximum log file size before rotation
            backup_count: Number of rotated files to keep
            enabled: Whether logging is enabled
        """
        self.log_path = log_path
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self.backup_count = backup_count
        self.enabled = enabled
        self.session_id = str(uuid.uuid4())

    def _ensure_log_directory(self) -> bool:
        try:
            self.log_path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
            if not self.log_path.exists():
                self.log_path.touch(mode=0o640)
            return True
        except OSError as e:
            console.debug(f"Cannot create log file {self.log_path}: {e}")
            return False

    def log(self, event: AuditEvent) -> None:
        """Log an event.

        Failures to write are reported in debug mode only; logging never
        breaks the command being logged.
        """
        if not self.enabled:
            return

        event.session_id = self.session_id
        log_line = event.to_json() + "\n"

        if not self._ensure_log_directory():
            return

        try:
            with self._atomic_append() as f:
                f.write(log_line)
        except OSError as e:
            console.debug(f"Failed to write activity log: {e}")
            return

        self._rotate_if_needed()

    @contextmanager
    def _atomic_append(self) -> Generator:
        """Context manager for append with file locking."""
        fd = os.open(
            self.log_path,
            os.O_WRONLY | os.O_APPEND | os.O_CREAT,
            0o640,
        )
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            f = os.fdopen(fd, "a", encoding="utf-8")
        except Exception:
            os.close(fd)
            raise
        with f:
            yield f
            f.flush()
            os.fsync(fd)

    def _rotate_if_needed(self) -> None:
        try:
            if self.log_path.stat().st_size > self.max_size_bytes:
                self._rotate_logs()
        except OSError as e:
            console.debug(f"Log rotation failed: {e}")

    def _rotate_logs(self) -> None:
        """Rotate log files: zap.log -> zap.log.1 -> zap.log.2 ..."""
        oldest = self._rotated_path(self.backup_count)
        if oldest.exists():
            oldest.unlink()

        for i in range(self.backup_count - 1, 0, -1):
            src = self._rotated_path(i)
            if src.exists():
                src.rename(self._rotated_path(i + 1))

        self.log_path.rename(self._rotated_path(1))
        self.log_path.touch(mode=0o640)

    def _rotated_path(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    # Convenience methods
    def log_success(
        self,
        event_type: AuditEventType,
        target_type: str,
        target_name: str,
        message: Optional[str] = None,
        parameters: Optional[dict[str, Any]] = None,
    ) -> None:
        """Log a successful operation."""
        self.log(AuditEvent(
            event_type=event_type,
            result=AuditResult.SUCCESS,
            target_type=target_type,
            target_name=target_name,
            message=message,
            parameters=parameters or {},
        ))

    def log_dry_run(
        self,
        event_type: AuditEventType,
        target_type: str,
        target_name: str,
        message: Optional[str] = None,
    ) -> None:
        """Log a dry-run operation."""
        self.log(AuditEvent(
            event_type=event_type,
            result=AuditResult.DRY_RUN,
            target_type=target_type,
            target_name=target_name,
            message=message,
        ))


def disabled_logger() -> AuditLogger:
    """A logger that drops every event."""
    return AuditLogger(log_path=Path(os.devnull), enabled=False)
