"""Atomic file replacement.

Every file zap writes (settings, host tables, the hosts file) is replaced
as a whole: content goes to a temp file in the same directory, then is
renamed over the target.
"""

import contextlib
import os
import secrets
from pathlib import Path
from typing import Generator, Optional

DEFAULT_FILE_PERMS = 0o644


class AtomicFileWriter:
    """Atomic file writer using temp file and rename.

    Ensures file is either completely written or not modified at all.
    When the target already exists its mode and ownership are kept.
    """

    def __init__(
        self,
        target_path: Path,
        permissions: Optional[int] = None,
    ) -> None:
        """Initialize atomic writer.

        Args:
            target_path: Final destination path
            permissions: File permissions (default: keep existing, else 0644)
        """
        self.target_path = Path(target_path)
        self.permissions = permissions

    @contextlib.contextmanager
    def open(self, mode: str = "w") -> Generator:
        """Open for atomic writing.

        Usage:
            with AtomicFileWriter(path).open() as f:
                f.write("content")
            # File is atomically replaced here
        """
        self.target_path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)

        existing = None
        try:
            existing = self.target_path.stat()
        except FileNotFoundError:
            pass

        permissions = self.permissions
        if permissions is None:
            permissions = existing.st_mode & 0o7777 if existing else DEFAULT_FILE_PERMS

        # Temp file in the same directory so the rename stays on one filesystem
        random_suffix = secrets.token_hex(8)
        tmp_path = self.target_path.with_name(f".{self.target_path.name}.tmp_{random_suffix}")

        success = False
        fd = None

        try:
            fd = os.open(
                tmp_path,
                os.O_WRONLY | os.O_CREAT | os.O_EXCL,
                permissions,
            )
            os.fchmod(fd, permissions)

            text_args = {} if "b" in mode else {"encoding": "utf-8", "newline": ""}
            with os.fdopen(fd, mode, **text_args) as f:
                fd = None  # fdopen takes ownership
                yield f
                f.flush()
                os.fsync(f.fileno())

            if existing is not None and hasattr(os, "chown"):
                with contextlib.suppress(PermissionError):
                    os.chown(tmp_path, existing.st_uid, existing.st_gid)

            os.replace(tmp_path, self.target_path)
            success = True

        finally:
            if fd is not None:
                os.close(fd)
            if not success and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass


def write_text_atomic(path: Path, content: str, permissions: Optional[int] = None) -> None:
    """Replace ``path`` with ``content`` in one rename."""
    with AtomicFileWriter(path, permissions=permissions).open() as f:
        f.write(content)
