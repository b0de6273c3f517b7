"""Merge imported configuration into the local one.

The merge is a deep, right-biased overlay:
- mapping keys only in the base are kept
- mapping keys only in the incoming tree are added
- keys in both recurse when both values are mappings
- anything else (scalars, lists such as aliases) is replaced by the
  incoming value

Imports are planned first (read, merge, validate every file) and written
only once the whole plan is valid, so a malformed archive changes nothing.
"""

import copy
import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from zap.core.config import (
    CATEGORIES_DIRNAME,
    SETTINGS_FILENAME,
    TABLE_SUFFIX,
    GlobalConfig,
    HostTable,
    dump_yaml,
    load_document,
    normalize_settings_document,
    normalize_table_document,
    validation_details,
)
from zap.core.exceptions import CorruptConfig, ImportMalformed, ValidationError
from zap.core.validation import validate_key
from zap.services.store import Store


def deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``incoming`` on ``base``, returning a new dict.

    Key order: base keys in base order, then keys new in ``incoming``.
    Neither input is modified.
    """
    merged: dict[str, Any] = {}

    for key, value in base.items():
        if key not in incoming:
            merged[key] = copy.deepcopy(value)
            continue
        new_value = incoming[key]
        if isinstance(value, dict) and isinstance(new_value, dict):
            merged[key] = deep_merge(value, new_value)
        else:
            merged[key] = copy.deepcopy(new_value)

    for key, value in incoming.items():
        if key not in base:
            merged[key] = copy.deepcopy(value)

    return merged


@dataclass
class PlannedFile:
    """One file an import will write."""
    kind: str  # "settings" or "category"
    key: str
    path: Path
    model: Union[GlobalConfig, HostTable]
    before: str = ""
    is_new: bool = False

    @property
    def content(self) -> str:
        """YAML text that will be written."""
        return dump_yaml(self.model.to_document())

    @property
    def changed(self) -> bool:
        return self.content != self.before

    def diff(self) -> str:
        """Unified diff between the current file and the planned one."""
        return "".join(difflib.unified_diff(
            self.before.splitlines(keepends=True),
            self.content.splitlines(keepends=True),
            fromfile=str(self.path),
            tofile=f"{self.path} (imported)",
        ))


@dataclass
class ImportPlan:
    """Validated result of merging an unpacked archive."""
    files: list[PlannedFile] = field(default_factory=list)
    # Tables imported for categories the settings registry does not declare
    unregistered: list[str] = field(default_factory=list)
    # Entries of categories/ that are not *.yml files
    ignored: list[str] = field(default_factory=list)

    @property
    def settings(self) -> Optional[PlannedFile]:
        for item in self.files:
            if item.kind == "settings":
                return item
        return None

    @property
    def tables(self) -> list[PlannedFile]:
        return [item for item in self.files if item.kind == "category"]


def _read_incoming(path: Path) -> dict[str, Any]:
    try:
        return load_document(path)
    except CorruptConfig as e:
        raise ImportMalformed(
            f"Archive file {path.name} is not a YAML mapping",
            details=[e.message, *e.details],
        ) from e


def _plan_settings(store: Store, source: Path) -> PlannedFile:
    incoming = normalize_settings_document(_read_incoming(source))
    path = store.env.settings_path
    current = store.load()
    merged = deep_merge(current.to_document(), incoming)

    try:
        model = GlobalConfig.model_validate(merged)
    except PydanticValidationError as e:
        raise ImportMalformed(
            f"Imported {SETTINGS_FILENAME} produces invalid settings",
            details=validation_details(e),
        ) from e

    before = path.read_text(encoding="utf-8") if path.exists() else ""
    return PlannedFile(kind="settings", key=SETTINGS_FILENAME, path=path, model=model, before=before)


def _plan_table(store: Store, source: Path) -> PlannedFile:
    key = source.name[: -len(TABLE_SUFFIX)]
    try:
        validate_key(key, "category")
    except ValidationError as e:
        raise ImportMalformed(
            f"Archive contains an invalid category file name: {source.name}",
            details=[e.message],
        ) from e

    incoming = normalize_table_document(_read_incoming(source))
    path = store.env.table_path(key)
    existing = store.load_table(key)
    tree = incoming if existing is None else deep_merge(existing.to_document(), incoming)

    try:
        model = HostTable.model_validate(tree)
    except PydanticValidationError as e:
        raise ImportMalformed(
            f"Imported category '{key}' is not a valid host table",
            details=validation_details(e),
        ) from e

    before = path.read_text(encoding="utf-8") if existing is not None else ""
    return PlannedFile(
        kind="category",
        key=key,
        path=path,
        model=model,
        before=before,
        is_new=existing is None,
    )


def plan_import(store: Store, source_dir: Path) -> ImportPlan:
    """Merge an unpacked archive against the local files, without writing.

    Args:
        store: Local store (read only here)
        source_dir: Directory holding config.yml and/or categories/*.yml

    Returns:
        Plan with one validated entry per file to write

    Raises:
        ImportMalformed: If the archive content is not usable
        CorruptConfig: If a local file the import merges into is corrupt
    """
    settings_source = source_dir / SETTINGS_FILENAME
    categories_source = source_dir / CATEGORIES_DIRNAME

    has_settings = settings_source.is_file()
    has_categories = categories_source.is_dir()
    if not has_settings and not has_categories:
        raise ImportMalformed(
            f"Archive contains neither {SETTINGS_FILENAME} nor {CATEGORIES_DIRNAME}/",
            hint="Create archives with: zap export all",
        )

    plan = ImportPlan()
    if has_settings:
        plan.files.append(_plan_settings(store, settings_source))

    if has_categories:
        for source in sorted(categories_source.iterdir()):
            if not source.is_file() or not source.name.endswith(TABLE_SUFFIX):
                plan.ignored.append(source.name)
                continue
            plan.files.append(_plan_table(store, source))

    if not plan.files:
        raise ImportMalformed(
            "Archive contains nothing to import",
            details=[f"Ignored: {name}" for name in plan.ignored],
        )

    registry = plan.settings.model.categories if plan.settings else store.config.categories
    plan.unregistered = [item.key for item in plan.tables if item.key not in registry]
    return plan


def apply_import(store: Store, plan: ImportPlan) -> None:
    """Write a validated plan, snapshotting each file it replaces."""
    with store.mutation():
        for item in plan.files:
            if isinstance(item.model, GlobalConfig):
                store.write_global_config(item.model)
            else:
                store.write_category_table(item.key, item.model)
