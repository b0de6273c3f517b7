"""Export and import of configuration archives.

An archive is a gzip'd tar of the config layout:

    config.yml
    categories/<key>.yml

Export modes: all (settings + every table), settings, category (chosen
tables). Import unpacks into a temporary directory and merges each file
into the local configuration (see zap.services.merger).
"""

import tarfile
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from zap.core.config import CATEGORIES_DIRNAME, SETTINGS_FILENAME, TABLE_SUFFIX
from zap.core.exceptions import ImportMalformed, ValidationError
from zap.services.merger import ImportPlan, apply_import, plan_import
from zap.services.resolver import resolve_category
from zap.services.store import Store


ARCHIVE_SUFFIX = ".tgz"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


class ExportMode(str, Enum):
    """What an export archive contains."""
    ALL = "all"
    SETTINGS = "settings"
    CATEGORY = "category"


@dataclass
class ExportResult:
    """Outcome of an export."""
    path: Path
    categories: list[str] = field(default_factory=list)
    # Requested category tokens that did not resolve or have no table
    missing: list[str] = field(default_factory=list)


def archive_name(mode: ExportMode, now: Optional[datetime] = None) -> str:
    """File name of an export archive, e.g. zap_export_all_20250322-101500.tgz."""
    now = now or datetime.now()
    return f"zap_export_{mode.value}_{now.strftime(TIMESTAMP_FORMAT)}{ARCHIVE_SUFFIX}"


def export_archive(
    store: Store,
    mode: ExportMode,
    categories: Iterable[str] = (),
    output_dir: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> ExportResult:
    """Pack settings and/or host tables into a .tgz archive.

    Args:
        store: Store to export from
        mode: What to include
        categories: Category keys or aliases (mode=category only)
        output_dir: Where to write the archive (default: current directory)
        now: Timestamp for the archive name

    Returns:
        Archive path, exported category keys and unresolved tokens

    Raises:
        ValidationError: If mode=category selects nothing exportable
    """
    env = store.env
    config = store.config
    output_dir = output_dir or Path.cwd()

    members: list[tuple[Path, str]] = []
    exported: list[str] = []
    missing: list[str] = []

    if mode in (ExportMode.ALL, ExportMode.SETTINGS):
        members.append((env.settings_path, SETTINGS_FILENAME))

    if mode == ExportMode.ALL and env.categories_dir.is_dir():
        for path in sorted(env.categories_dir.glob(f"*{TABLE_SUFFIX}")):
            exported.append(path.name[: -len(TABLE_SUFFIX)])
            members.append((path, f"{CATEGORIES_DIRNAME}/{path.name}"))

    if mode == ExportMode.CATEGORY:
        for token in categories:
            key = resolve_category(config, token)
            if key is None or not store.has_table(key):
                missing.append(token)
                continue
            if key in exported:
                continue
            exported.append(key)
            path = env.table_path(key)
            members.append((path, f"{CATEGORIES_DIRNAME}/{path.name}"))

        if not exported:
            raise ValidationError(
                "No exportable category selected",
                hint="Usage: zap export category <category> [<category> ...]",
                details=[f"Not found: {token}" for token in missing],
            )

    output_dir.mkdir(parents=True, exist_ok=True)
    archive_path = output_dir / archive_name(mode, now)

    try:
        with tarfile.open(archive_path, "w:gz") as tar:
            for path, arcname in members:
                tar.add(path, arcname=arcname, recursive=False)
    except Exception:
        archive_path.unlink(missing_ok=True)
        raise

    return ExportResult(path=archive_path, categories=exported, missing=missing)


def _unpack(archive_path: Path, destination: Path) -> None:
    """Extract a zap archive, refusing anything outside plain files/dirs."""
    try:
        with tarfile.open(archive_path, "r:*") as tar:
            members = tar.getmembers()
            for member in members:
                name = PurePosixPath(member.name)
                if name.is_absolute() or ".." in name.parts:
                    raise ImportMalformed(
                        f"Archive member escapes the archive root: {member.name}",
                    )
                if not (member.isfile() or member.isdir()):
                    raise ImportMalformed(
                        f"Archive member is not a regular file: {member.name}",
                    )
            tar.extractall(destination, members=members, filter="data")
    except tarfile.TarError as e:
        raise ImportMalformed(
            f"{archive_path} is not a readable tar archive",
            details=[str(e)],
        ) from e


def import_archive(store: Store, archive_path: Path, dry_run: bool = False) -> ImportPlan:
    """Merge an exported archive into the local configuration.

    Nothing is written if any file in the archive is malformed, or when
    ``dry_run`` is set.

    Raises:
        ImportMalformed: If the archive is missing, unreadable or invalid
    """
    if not archive_path.is_file():
        raise ImportMalformed(
            f"Import file '{archive_path}' not found",
            hint="Check the path of the archive",
        )

    with tempfile.TemporaryDirectory(prefix="zap-import-") as temp_dir:
        source = Path(temp_dir)
        _unpack(archive_path, source)

        if dry_run:
            return plan_import(store, source)

        with store.mutation():
            plan = plan_import(store, source)
            apply_import(store, plan)
        return plan
