"""Export and import of the configuration as .tgz archives."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape

from zap.commands.common import (
    ConfigDirOption,
    DryRunOption,
    NoColorOption,
    QuietOption,
    VerboseOption,
    complete_category,
    get_context,
    handle_error,
)
from zap.core.audit import AuditEventType
from zap.core.exceptions import ZapError
from zap.services.archive import ExportMode, export_archive, import_archive


def export_config(
    mode: Annotated[
        ExportMode,
        typer.Argument(help="What to export: all, settings or category."),
    ] = ExportMode.ALL,
    categories: Annotated[
        Optional[list[str]],
        typer.Argument(
            help="Categories to export (mode 'category' only).",
            autocompletion=complete_category,
            show_default=False,
        ),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Directory to write the archive to. Default: current directory",
            file_okay=False,
        ),
    ] = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Export the configuration to a .tgz archive.

    [bold]Examples:[/bold]

        zap export                        # settings and every category
        zap export settings
        zap export category fw switches
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        if categories and mode != ExportMode.CATEGORY:
            ctx.console.warn(f"Category names are ignored in '{mode.value}' mode")

        result = export_archive(
            ctx.store,
            mode,
            categories=categories or (),
            output_dir=output,
        )

        for token in result.missing:
            ctx.console.warn(f"Category '{escape(token)}' not found, skipping")

        ctx.audit.log_success(
            AuditEventType.CONFIG_EXPORT,
            "archive",
            str(result.path),
            parameters={"mode": mode.value, "categories": result.categories},
        )
        ctx.console.success(f"Configuration exported to {escape(str(result.path))}")
        if result.categories:
            ctx.console.verbose(f"Categories: {escape(', '.join(result.categories))}")

    except ZapError as e:
        handle_error(e)


def import_config(
    file: Annotated[
        Path,
        typer.Argument(help="Archive created by 'zap export'.", dir_okay=False),
    ],
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Merge an exported archive into the configuration.

    Settings and host tables are merged key by key; values from the
    archive win. Every file is validated before anything is written, and
    each replaced file is backed up first.

    [bold]Examples:[/bold]

        zap import zap_export_all_20250322-101500.tgz --dry-run
        zap import zap_export_all_20250322-101500.tgz
    """
    ctx = get_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config_dir=config_dir,
    )

    try:
        plan = import_archive(ctx.store, file, dry_run=dry_run)

        for name in plan.ignored:
            ctx.console.warn(f"Ignoring archive entry categories/{escape(name)}")

        for item in plan.files:
            label = "settings" if item.kind == "settings" else f"category '{item.key}'"
            if not item.changed:
                ctx.console.verbose(f"{escape(label)}: unchanged")
                continue
            if dry_run:
                ctx.console.dry_run_msg(
                    f"{'create' if item.is_new else 'update'} {escape(str(item.path))}"
                )
                if ctx.is_verbose:
                    ctx.console.diff(item.diff(), title=str(item.path))
            else:
                ctx.console.step(
                    f"{'Created' if item.is_new else 'Merged'} {escape(label)}"
                )

        for key in plan.unregistered:
            ctx.console.warn(
                f"Imported category '{escape(key)}' is not declared in the settings; "
                f"its hosts will not be listed or resolved"
            )
            ctx.console.hint(f"Declare it with: zap add category {escape(key)}")

        if dry_run:
            ctx.audit.log_dry_run(AuditEventType.CONFIG_IMPORT, "archive", str(file))
            return

        ctx.audit.log_success(
            AuditEventType.CONFIG_IMPORT,
            "archive",
            str(file),
            parameters={
                "files": [item.key for item in plan.files],
                "unregistered": plan.unregistered,
            },
        )
        ctx.console.success(f"Configuration imported from {escape(str(file))}")

    except ZapError as e:
        handle_error(e)
