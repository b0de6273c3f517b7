"""Managed block of name -> address lines in a hosts file.

The block is generated from the inventory and delimited by marker lines:

    # ZAP-BEGIN
    ## firewalls
    1.1.1.1	paris-fw-1 paris pfw1

    # ZAP-END

Applying a block parses the target as (preamble, block?, postamble), drops
the old block, and appends the new one at the end. Everything outside the
markers is kept byte for byte, and applying the same block twice gives the
same file.
"""

import difflib
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from zap.core.config import GlobalConfig, HostEntry, HostTable
from zap.core.exceptions import PermissionDenied
from zap.core.fileio import write_text_atomic
from zap.services.backup import BackupManager
from zap.services.store import Store


BEGIN_MARKER = "# ZAP-BEGIN"
END_MARKER = "# ZAP-END"

# Jinja2 environment for templates
jinja_env = Environment(
    loader=PackageLoader("zap", "templates"),
    autoescape=select_autoescape(),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass
class HostsSection:
    """Rendered lines of one category."""
    category: str
    lines: list[str] = field(default_factory=list)


@dataclass
class RenderResult:
    """A rendered block plus what went into it."""
    text: str
    sections: list[HostsSection] = field(default_factory=list)
    # Declared categories without a table file
    skipped: list[str] = field(default_factory=list)

    @property
    def host_count(self) -> int:
        return sum(len(section.lines) for section in self.sections)


@dataclass
class HostsFile:
    """A hosts file split around the managed block."""
    preamble: str
    block: Optional[str]
    postamble: str


@dataclass
class ApplyResult:
    """Outcome of writing a block into a target file."""
    path: Path
    replaced: bool
    changed: bool
    diff: str
    snapshot: Optional[Path] = None


def host_line(host_key: str, entry: HostEntry) -> str:
    """``address<TAB>key alias...``; the key stands in for a missing address."""
    names = [host_key] + [alias for alias in entry.aliases if alias != host_key]
    return f"{entry.address or host_key}\t{' '.join(names)}"


def parse(text: str) -> HostsFile:
    """Split ``text`` around the first well-formed marker pair.

    Without a begin line followed by an end line, the whole text is
    preamble and ``block`` is None.
    """
    lines = text.splitlines(keepends=True)
    begin = None
    for index, line in enumerate(lines):
        stripped = line.strip()
        if begin is None:
            if stripped == BEGIN_MARKER:
                begin = index
        elif stripped == END_MARKER:
            return HostsFile(
                preamble="".join(lines[:begin]),
                block="".join(lines[begin:index + 1]),
                postamble="".join(lines[index + 1:]),
            )
    return HostsFile(preamble=text, block=None, postamble="")


def compose(text: str, block: str) -> str:
    """Replace (or add) the managed block in ``text``; it always ends up last."""
    parsed = parse(text)
    remaining = parsed.preamble + parsed.postamble
    if remaining and not remaining.endswith(("\n", "\r")):
        remaining += "\n"
    return remaining + block.rstrip("\n") + "\n"


def _read_target(path: Path) -> str:
    if not path.exists():
        return ""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


class HostsBlockGenerator:
    """Renders the managed block and writes it into a target file."""

    def __init__(self, backups: BackupManager) -> None:
        self.backups = backups

    def render(
        self,
        config: GlobalConfig,
        tables: Mapping[str, Optional[HostTable]],
    ) -> RenderResult:
        """Render the block for every declared category, in declared order.

        Args:
            config: Settings (category order)
            tables: Host table per category; None or absent means the
                category has no table file and is skipped

        Returns:
            Block text (markers included, no trailing newline) and details
        """
        sections = []
        skipped = []

        for key in config.categories:
            table = tables.get(key)
            if table is None:
                skipped.append(key)
                continue
            sections.append(HostsSection(
                category=key,
                lines=[host_line(host_key, entry) for host_key, entry in table.hosts.items()],
            ))

        template = jinja_env.get_template("hosts_block.j2")
        text = template.render(
            begin_marker=BEGIN_MARKER,
            end_marker=END_MARKER,
            sections=sections,
        )
        return RenderResult(text=text, sections=sections, skipped=skipped)

    def check_writable(self, target_path: Path) -> None:
        """Make sure the target can be replaced.

        Raises:
            PermissionDenied: If the file or its directory is not writable
        """
        zap_path = shutil.which("zap") or "zap"
        hint = f"Try: sudo {zap_path} gen hosts --write"

        if target_path.exists() and not os.access(target_path, os.W_OK):
            raise PermissionDenied(
                f"Insufficient permissions to write to {target_path}",
                path=str(target_path),
                hint=hint,
            )
        if not os.access(target_path.parent, os.W_OK | os.X_OK):
            raise PermissionDenied(
                f"Insufficient permissions to replace files in {target_path.parent}",
                path=str(target_path),
                hint=hint,
            )

    def apply(self, target_path: Path, block: str, dry_run: bool = False) -> ApplyResult:
        """Replace the managed block in ``target_path``.

        The previous content is snapshotted, then the file is rewritten
        atomically. A missing target is treated as empty.

        Raises:
            PermissionDenied: If the target cannot be written (nothing is
                snapshotted or written)
        """
        self.check_writable(target_path)

        original = _read_target(target_path)
        updated = compose(original, block)
        diff = "".join(difflib.unified_diff(
            original.splitlines(keepends=True),
            updated.splitlines(keepends=True),
            fromfile=str(target_path),
            tofile=f"{target_path} (zap)",
        ))
        result = ApplyResult(
            path=target_path,
            replaced=parse(original).block is not None,
            changed=updated != original,
            diff=diff,
        )

        if dry_run:
            return result

        result.snapshot = self.backups.snapshot(target_path)
        write_text_atomic(target_path, updated)
        return result


def apply_hosts_block(
    store: Store,
    target_path: Path,
    block: str,
    dry_run: bool = False,
) -> ApplyResult:
    """Apply a block as one mutating operation of ``store``.

    Runs under the config lock and lets the store purge expired backups.
    """
    generator = HostsBlockGenerator(store.backups)
    if dry_run:
        return generator.apply(target_path, block, dry_run=True)

    with store.mutation():
        result = generator.apply(target_path, block)
        store.record_snapshot(result.snapshot)
    return result
