"""Inventory commands: add categories and hosts, list and resolve them."""

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
from zap.core.config import CategoryMeta, GlobalConfig, HostEntry
from zap.core.context import ExecutionContext
from zap.core.exceptions import NotFound, UnknownCategory, ZapError
from zap.core.validation import parse_alias_list, parse_port, validate_key
from zap.services.resolver import alias_owners, resolve_category, resolve_host
from zap.services.ssh import connection_target


app = typer.Typer(
    name="add",
    help="Add categories and hosts to the inventory.",
    no_args_is_help=True,
)


AliasOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--alias",
        "-a",
        help="Alias. Repeat the option or pass a comma-separated list.",
    ),
]

UserOption = Annotated[
    Optional[str],
    typer.Option("--user", "-u", help="SSH username."),
]

PortOption = Annotated[
    Optional[int],
    typer.Option("--port", "-p", help="SSH port."),
]


def _prompt(ctx: ExecutionContext, question: str) -> str:
    """Ask one question; Ctrl+C / EOF aborts the command."""
    try:
        return ctx.console.input(f"{question}\n").strip()
    except (EOFError, KeyboardInterrupt):
        raise typer.Abort()


def _warn_alias_collisions(
    ctx: ExecutionContext,
    config: GlobalConfig,
    key: str,
    aliases: list[str],
) -> None:
    """Point out names that will not resolve to the new category."""
    for owner in alias_owners(config, key):
        ctx.console.warn(
            f"'{escape(key)}' is also an alias of category '{escape(owner)}'; "
            f"the exact key takes precedence"
        )
    for alias in aliases:
        if alias in config.categories:
            ctx.console.warn(
                f"Alias '{escape(alias)}' is the key of another category and will never "
                f"resolve to '{escape(key)}'"
            )
            continue
        owners = alias_owners(config, alias)
        if owners:
            ctx.console.warn(
                f"Alias '{escape(alias)}' is already used by category '{escape(owners[0])}', "
                f"which wins because it was declared first"
            )


@app.command("category")
def add_category(
    name: Annotated[
        Optional[str],
        typer.Argument(help="Category key, e.g. firewalls. Prompts when omitted."),
    ] = None,
    alias: AliasOption = None,
    emoji: Annotated[
        Optional[str],
        typer.Option("--emoji", help="Emoji shown next to the category in listings."),
    ] = None,
    user: UserOption = None,
    port: PortOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Add a new category.

    Category keys are case-sensitive and must be unique. The default user
    and port apply to hosts that do not set their own.

    [bold]Examples:[/bold]

        zap add category firewalls -a fw -a firewall --emoji 🔥
        zap add category lab --user admin --port 2222
        zap add category                 # interactive
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        port_value: Optional[int | str] = port
        if name is None:
            name = _prompt(ctx, "📝 Enter the new category name:")
            if alias is None:
                alias = [_prompt(ctx, "🔤 Enter aliases for the category (comma-separated, optional):")]
            if emoji is None:
                emoji = _prompt(ctx, "😀 Enter an emoji for the category (optional):")
            if user is None:
                user = _prompt(ctx, "👤 Enter the default SSH user (optional):")
            if port_value is None:
                port_value = _prompt(ctx, "💻 Enter the default SSH port (optional):")

        validate_key(name, "category")
        aliases = parse_alias_list(",".join(alias or []))
        meta = CategoryMeta(
            emoji=emoji or "",
            default_user=user or None,
            default_port=parse_port(port_value),
            aliases=aliases,
        )

        _warn_alias_collisions(ctx, ctx.store.load(), name, aliases)
        ctx.store.create_category(name, meta)

        ctx.audit.log_success(
            AuditEventType.CATEGORY_CREATE,
            "category",
            name,
            parameters=meta.model_dump(mode="json", exclude_none=True),
        )
        ctx.console.success(f"Category '{escape(name)}' added")
        ctx.console.hint(f"Add hosts with: zap add host {escape(name)} <host>")

    except ZapError as e:
        handle_error(e)


@app.command("host")
def add_host(
    category: Annotated[
        Optional[str],
        typer.Argument(
            help="Category key or alias. Prompts when omitted.",
            autocompletion=complete_category,
        ),
    ] = None,
    host: Annotated[
        Optional[str],
        typer.Argument(help="Host key (primary hostname). Prompts when omitted."),
    ] = None,
    ip: Annotated[
        Optional[str],
        typer.Option(
            "--ip",
            "--address",
            help="Address to connect to. Default: the host key (DNS).",
        ),
    ] = None,
    user: UserOption = None,
    port: PortOption = None,
    alias: AliasOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Add a host to a category, replacing any host with the same key.

    Unset user and port fall back to the category defaults when connecting.

    [bold]Examples:[/bold]

        zap add host firewalls paris-fw-1 --ip 1.1.1.1 -a paris -a pfw1
        zap add host fw lyon-fw-1 --user root
        zap add host                     # interactive
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        port_value: Optional[int | str] = port
        if category is None:
            category = _prompt(ctx, "🚀 Enter the category name where you'd like to add a host:")

        key = resolve_category(ctx.store.load(), category)
        if key is None:
            raise UnknownCategory(category)

        if host is None:
            host = _prompt(ctx, "🌐 Enter the primary hostname (identifier) for your device:")
            if ip is None:
                ip = _prompt(
                    ctx,
                    "📡 Enter the IP address (optional, leave blank to use the hostname for DNS resolution):",
                )
            if user is None:
                user = _prompt(ctx, "👤 Enter the username (optional, leave empty to use category default):")
            if port_value is None:
                port_value = _prompt(ctx, "💻 Enter the SSH port (optional, leave empty to use category default):")
            if alias is None:
                alias = [_prompt(ctx, "🔍 Enter host aliases (comma-separated, optional):")]

        entry = HostEntry(
            address=ip or None,
            username=user or None,
            port=parse_port(port_value),
            aliases=parse_alias_list(",".join(alias or [])),
        )

        existing = ctx.store.load_table(key)
        if existing is not None and host in existing.hosts:
            ctx.console.verbose(f"Replacing existing host '{escape(host)}'")

        ctx.store.add_host(key, host, entry)

        ctx.audit.log_success(
            AuditEventType.HOST_ADD,
            "host",
            f"{key}/{host}",
            parameters=entry.model_dump(mode="json", exclude_none=True),
        )
        ctx.console.success(f"Host '{escape(host)}' added to category '{escape(key)}'")

    except ZapError as e:
        handle_error(e)


def list_inventory(
    category: Annotated[
        Optional[str],
        typer.Argument(
            help="Only list this category (key or alias).",
            autocompletion=complete_category,
        ),
    ] = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """List categories and their hosts.

    User and port columns show the effective values (host, else category
    default).

    [bold]Examples:[/bold]

        zap list
        zap list fw
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        store = ctx.store
        config = store.load()

        if category is not None:
            key = resolve_category(config, category)
            if key is None:
                raise NotFound("category", category, hint="List categories with: zap list")
            keys = [key]
        else:
            keys = list(config.categories)

        if not keys:
            ctx.console.info("No categories yet")
            ctx.console.hint("Create one with: zap add category")
            return

        for key in keys:
            meta = config.categories[key]
            title = f"{meta.emoji} {key}".strip()
            if meta.default_user or meta.default_port:
                title += f" (default user: {meta.default_user or '-'}, port: {meta.default_port or '-'})"

            table = store.load_table(key)
            if table is None:
                ctx.console.print(f"[bold]{escape(title)}[/bold]")
                ctx.console.warn(f"No host file found for '{escape(key)}'")
                continue
            if not table.hosts:
                ctx.console.print(f"[bold]{escape(title)}[/bold]")
                ctx.console.print("   [dim](No hosts found)[/dim]")
                continue

            rows = []
            for host_key, entry in table.hosts.items():
                target = connection_target(config, key, table, host_key)
                rows.append([
                    host_key,
                    ", ".join(entry.aliases),
                    target.address,
                    target.user or "",
                    str(target.port) if target.port is not None else "",
                ])
            ctx.console.table(
                escape(title),
                ["Host", "Aliases", "Address", "User", "Port"],
                rows,
            )

    except ZapError as e:
        handle_error(e)


def resolve_names(
    category: Annotated[
        str,
        typer.Argument(help="Category key or alias.", autocompletion=complete_category),
    ],
    host: Annotated[
        Optional[str],
        typer.Argument(help="Host key or alias.", autocompletion=complete_host),
    ] = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Print the canonical keys a category (and host) shorthand resolves to.

    [bold]Examples:[/bold]

        zap resolve fw              # firewalls
        zap resolve fw pfw1         # firewalls paris-fw-1
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, config_dir=config_dir)

    try:
        store = ctx.store
        config = store.load()

        key = resolve_category(config, category)
        if key is None:
            raise NotFound("category", category, hint="List categories with: zap list")

        if host is None:
            ctx.console.raw(key)
            return

        table = store.read_category_table(key)
        host_key = resolve_host(table, host)
        if host_key is None:
            raise NotFound("host", host, scope=key, hint=f"List hosts with: zap list {key}")

        ctx.console.raw(f"{key} {host_key}")

        target = connection_target(config, key, table, host_key)
        port = f" -p {target.port}" if target.port is not None else ""
        ctx.console.verbose(escape(f"ssh{port} {target.destination}"))

    except ZapError as e:
        handle_error(e)
