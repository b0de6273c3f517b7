"""Inspect and prune the snapshots taken before every write."""

from datetime import datetime
from typing import Annotated, Optional

import typer
from rich.markup import escape

from zap.commands.common import (
    ConfigDirOption,
    DryRunOption,
    NoColorOption,
    QuietOption,
    VerboseOption,
    get_context,
    handle_error,
)
from zap.core.audit import AuditEventType
from zap.core.exceptions import ZapError


app = typer.Typer(
    name="backup",
    help="Manage configuration backups.",
    no_args_is_help=True,
)


@app.command("list")
def backup_list(
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """List backups, newest first."""
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        ctx.store.load()
        snapshots = ctx.store.backups.list_snapshots()

        if not snapshots:
            ctx.console.info(f"No backups in {escape(str(ctx.env.backup_dir))}")
            return

        rows = []
        for path in snapshots:
            stat = path.stat()
            modified = datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
            rows.append([path.name, f"{stat.st_size} B", modified])

        ctx.console.table(
            f"Backups in {escape(str(ctx.env.backup_dir))}",
            ["Name", "Size", "Modified"],
            rows,
        )
        ctx.console.verbose(f"Retention: {ctx.config.backup_retention_days} day(s)")

    except ZapError as e:
        handle_error(e)


@app.command("purge")
def backup_purge(
    days: Annotated[
        Optional[int],
        typer.Option(
            "--days",
            "-d",
            min=0,
            help="Keep backups this many days. Default: backup_retention_days",
        ),
    ] = None,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Delete backups older than the retention window.

    Runs automatically after every change; use this to prune by hand.

    [bold]Examples:[/bold]

        zap backup purge
        zap backup purge --days 0 --dry-run
    """
    ctx = get_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config_dir=config_dir,
    )

    try:
        store = ctx.store
        retention = days if days is not None else store.load().backup_retention_days

        if dry_run:
            expired = store.backups.expired(retention)
            for path in expired:
                ctx.console.dry_run_msg(f"delete {escape(path.name)}")
            if not expired:
                ctx.console.info("Nothing to purge")
            return

        with store.mutation():
            removed = store.backups.purge(retention)

        for path in removed:
            ctx.console.verbose(f"Deleted {escape(path.name)}")
        ctx.audit.log_success(
            AuditEventType.BACKUP_PURGE,
            "directory",
            str(ctx.env.backup_dir),
            parameters={"retention_days": retention, "removed": len(removed)},
        )
        ctx.console.success(f"Purged {len(removed)} backup(s) older than {retention} day(s)")

    except ZapError as e:
        handle_error(e)
