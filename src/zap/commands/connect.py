"""Connect to hosts: direct, by shorthand, or picked with fzf."""

from typing import Annotated, Optional

import typer
from rich.markup import escape

from zap.commands.common import (
    ConfigDirOption,
    NoColorOption,
    QuietOption,
    VerboseOption,
    complete_category,
    complete_host,
    get_context,
    handle_error,
)
from zap.core.audit import AuditEventType
from zap.core.context import ExecutionContext
from zap.core.exceptions import NotFound, ZapError
from zap.services.resolver import resolve_category, resolve_host
from zap.services.ssh import (
    ConnectionTarget,
    connect,
    connection_target,
    pick_host,
    ping,
    search_line,
)


# Unknown options (-L, -o ...) are handed to ssh untouched
PASSTHROUGH_SETTINGS = {"allow_extra_args": True, "ignore_unknown_options": True}


def _target_for(ctx: ExecutionContext, category: str, host: str) -> ConnectionTarget:
    """Resolve shorthand into an effective connection target.

    Raises:
        NotFound: If the category or the host does not resolve
    """
    store = ctx.store
    config = store.load()

    key = resolve_category(config, category)
    if key is None:
        raise NotFound("category", category, hint="List categories with: zap list")

    table = store.read_category_table(key)
    host_key = resolve_host(table, host)
    if host_key is None:
        raise NotFound("host", host, scope=key, hint=f"List hosts with: zap list {key}")

    return connection_target(config, key, table, host_key)


def _ping(ctx: ExecutionContext, target: ConnectionTarget) -> None:
    ctx.console.print(f"📡 Pinging {escape(target.address)}... Stand by for the signal! 🚀")
    return_code = ping(target.address)
    ctx.audit.log_success(
        AuditEventType.HOST_PING,
        "host",
        f"{target.category}/{target.host}",
        parameters={"address": target.address, "return_code": return_code},
    )
    raise typer.Exit(return_code)


def connect_host(
    category: Annotated[
        str,
        typer.Argument(help="Category key or alias.", autocompletion=complete_category),
    ],
    host: Annotated[
        str,
        typer.Argument(help="Host key or alias.", autocompletion=complete_host),
    ],
    ssh_args: Annotated[
        Optional[list[str]],
        typer.Argument(help="Extra arguments passed to ssh.", show_default=False),
    ] = None,
    ping_only: Annotated[
        bool,
        typer.Option("--ping", help="Ping the host instead of connecting."),
    ] = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """SSH to a host. Aliases work for both the category and the host.

    The connect word may be left out: "zap fw pfw1" is "zap connect fw pfw1".
    Use "--" before ssh options that zap also knows (e.g. -v).

    [bold]Examples:[/bold]

        zap fw pfw1
        zap fw pfw1 --ping
        zap fw pfw1 -L 8443:localhost:443
        zap fw pfw1 -- -v uptime
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        target = _target_for(ctx, category, host)
        if ping_only:
            _ping(ctx, target)
        connect(ctx, target, ssh_args or [])

    except ZapError as e:
        handle_error(e)


def search_hosts(
    category: Annotated[
        Optional[str],
        typer.Argument(
            help="Only search this category (key or alias).",
            autocompletion=complete_category,
        ),
    ] = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Pick a host interactively with fzf and connect to it.

    [bold]Examples:[/bold]

        zap search
        zap search fw
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        store = ctx.store
        config = store.load()

        keys = list(config.categories)
        if category is not None:
            key = resolve_category(config, category)
            if key is None:
                ctx.console.warn(
                    f"No category found matching '{escape(category)}'. "
                    f"Searching all categories."
                )
            else:
                keys = [key]

        lines = []
        for key in keys:
            table = store.load_table(key)
            if table is None:
                continue
            for host_key, entry in table.hosts.items():
                lines.append(search_line(key, host_key, entry.aliases, entry.address or host_key))

        if not lines:
            ctx.console.warn("No hosts to search")
            ctx.console.hint("Add one with: zap add host")
            return

        selection = pick_host(lines)
        if selection is None:
            ctx.console.info("No selection made. Exiting interactive search. 😅")
            return

        target = _target_for(ctx, *selection)
        connect(ctx, target)

    except ZapError as e:
        handle_error(e)
