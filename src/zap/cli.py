"""Main CLI entry point using Typer.

This module defines the root CLI application and global options.
Command groups are registered from zap.commands.
"""

import sys
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape

from zap import __version__
from zap.commands import backup, connect, hosts, inventory, transfer
from zap.commands.common import (
    ConfigDirOption,
    NoColorOption,
    QuietOption,
    VerboseOption,
    get_context,
    handle_error,
)
from zap.core.exceptions import ZapError


# Create the main Typer app
app = typer.Typer(
    name="zap",
    help="zap - SSH inventory manager.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Configuration management.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(inventory.app, name="add")
app.add_typer(hosts.app, name="gen")
app.add_typer(backup.app, name="backup")
app.add_typer(config_app, name="config")

# Register top-level commands
app.command("list")(inventory.list_inventory)
app.command("resolve")(inventory.resolve_names)
app.command("export")(transfer.export_config)
app.command("import")(transfer.import_config)
app.command("search")(connect.search_hosts)
app.command("connect", context_settings=connect.PASSTHROUGH_SETTINGS)(connect.connect_host)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console = Console()
        console.print(f"zap version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """zap - SSH inventory manager.

    Keeps SSH targets grouped in categories, resolves short aliases to
    connection parameters, and can publish the inventory as a hosts file
    block.

    [bold]Examples:[/bold]
        zap add category firewalls -a fw
        zap add host fw paris-fw-1 --ip 1.1.1.1 -a pfw1
        zap fw pfw1
        zap list
        sudo zap gen hosts --write
    """
    pass


@app.command("version")
def version_cmd() -> None:
    """Show version and exit."""
    version_callback(True)


# ============================================================================
# Config commands
# ============================================================================

@config_app.command("show")
def config_show(
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Show current settings and where zap keeps its files."""
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        settings = ctx.store.load()
        env = ctx.env
        log_path = settings.logging.path or env.default_log_path

        ctx.console.print()
        ctx.console.print(f"[bold]Settings file:[/bold] {escape(str(env.settings_path))}")
        ctx.console.print()

        ctx.console.yaml(settings.to_yaml(), title="Settings")

        ctx.console.summary("Paths", {
            "Categories": env.categories_dir,
            "Backups": env.backup_dir,
            "Hosts file": env.hosts_file,
            "Activity log": log_path if settings.logging.enabled else "disabled",
        })

    except ZapError as e:
        handle_error(e)


@config_app.command("path")
def config_path(
    config_dir: ConfigDirOption = None,
) -> None:
    """Print the path of the settings file."""
    ctx = get_context(config_dir=config_dir)
    ctx.console.raw(str(ctx.env.settings_path))


def _command_names() -> set[str]:
    group = typer.main.get_group(app)
    return set(group.commands)


def main(argv: Optional[list[str]] = None) -> None:
    """Console script entry point.

    A first word that is not a zap command is shorthand for connect:
    "zap fw pfw1" runs "zap connect fw pfw1".
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if args and not args[0].startswith("-") and args[0] not in _command_names():
        args.insert(0, "connect")
    app(args=args, prog_name="zap")


if __name__ == "__main__":
    main()
