"""Options, context and error helpers shared by every zap command."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape

from zap.core.config import Environment
from zap.core.context import ExecutionContext, create_context
from zap.core.exceptions import ZapError
from zap.core.output import console
from zap.services.resolver import completion_candidates, resolve_category
from zap.services.store import Store


# Type aliases for common options
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Preview changes without writing anything.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Suppress non-essential output. Only show errors.",
        is_flag=True,
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Disable colored output.",
        is_flag=True,
    ),
]

ConfigDirOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config-dir",
        help="Configuration directory. Default: $ZAP_CONFIG_DIR or ~/.config/zap",
        file_okay=False,
        dir_okay=True,
    ),
]


def get_context(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config_dir: Optional[Path] = None,
    hosts_file: Optional[Path] = None,
) -> ExecutionContext:
    """Create execution context from CLI options.

    This is a helper for commands to create a context from global options.
    """
    return create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config_dir=config_dir,
        hosts_file=hosts_file,
    )


def handle_error(error: ZapError) -> None:
    """Handle a ZapError by printing formatted error and exiting."""
    console.error(escape(error.message))

    if error.details:
        for detail in error.details:
            console.print(f"  [dim]{escape(detail)}[/dim]")

    if error.hint:
        console.hint(escape(error.hint))

    raise typer.Exit(error.exit_code)


# =============================================================================
# Shell completion
# =============================================================================

def _completion_store(ctx: typer.Context) -> Store:
    config_dir = ctx.params.get("config_dir")
    env = Environment(config_dir=config_dir) if config_dir else Environment()
    return Store(env)


def complete_category(ctx: typer.Context, incomplete: str) -> list[str]:
    """Complete category keys and aliases."""
    try:
        config = _completion_store(ctx).load()
    except ZapError:
        return []
    return [name for name in completion_candidates(config, {}) if name.startswith(incomplete)]


def complete_host(ctx: typer.Context, incomplete: str) -> list[str]:
    """Complete host keys and aliases of the category typed before."""
    token = ctx.params.get("category")
    if not token:
        return []

    store = _completion_store(ctx)
    try:
        key = resolve_category(store.load(), token)
        table = store.load_table(key) if key else None
    except ZapError:
        return []
    if table is None:
        return []

    names: list[str] = []
    for host_key, entry in table.hosts.items():
        for name in (host_key, *entry.aliases):
            if name not in names:
                names.append(name)
    return [name for name in names if name.startswith(incomplete)]
