"""Generate the managed hosts block from the inventory."""

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
    get_context,
    handle_error,
)
from zap.core.audit import AuditEventType
from zap.core.exceptions import ZapError
from zap.services.hosts_block import HostsBlockGenerator, apply_hosts_block


app = typer.Typer(
    name="gen",
    help="Generate files from the inventory.",
    no_args_is_help=True,
)


@app.command("hosts")
def gen_hosts(
    write: Annotated[
        bool,
        typer.Option(
            "--write",
            "-w",
            help="Write the block into the hosts file instead of printing it.",
        ),
    ] = False,
    target: Annotated[
        Optional[Path],
        typer.Option(
            "--target",
            "-t",
            help="Hosts file to update. Default: $ZAP_HOSTS_FILE or /etc/hosts",
            dir_okay=False,
        ),
    ] = None,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config_dir: ConfigDirOption = None,
) -> None:
    """Render the inventory as a hosts file block.

    Every category contributes one line per host:
    address, a tab, then the host key and its aliases. The block sits
    between "# ZAP-BEGIN" and "# ZAP-END"; with --write it replaces the
    previous block of the target (or is appended) and everything else
    in the file is kept as is.

    [bold]Examples:[/bold]

        zap gen hosts                       # print the block
        zap gen hosts --write --dry-run     # show the diff
        sudo zap gen hosts --write
        zap gen hosts --write --target ./hosts
    """
    ctx = get_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config_dir=config_dir,
        hosts_file=target,
    )

    try:
        store = ctx.store
        generator = HostsBlockGenerator(store.backups)
        rendered = generator.render(store.load(), store.read_all_tables())

        for key in rendered.skipped:
            ctx.console.warn(f"No host file found for category '{escape(key)}', skipping")
        if rendered.host_count == 0:
            ctx.console.warn("No hosts found in the inventory")

        if not write:
            ctx.console.raw(rendered.text)
            return

        target_path = ctx.env.hosts_file
        ctx.console.step(f"Updating {escape(str(target_path))}")
        result = apply_hosts_block(store, target_path, rendered.text, dry_run=dry_run)

        if dry_run:
            if result.changed:
                ctx.console.diff(result.diff, title=str(target_path))
            ctx.console.dry_run_msg(
                f"write {rendered.host_count} host(s) to {escape(str(target_path))}"
            )
            ctx.audit.log_dry_run(
                AuditEventType.HOSTS_APPLY,
                "file",
                str(target_path),
                message=f"{rendered.host_count} host(s)",
            )
            return

        if result.snapshot is not None:
            ctx.console.verbose(f"Previous content saved to {escape(str(result.snapshot))}")
        ctx.audit.log_success(
            AuditEventType.HOSTS_APPLY,
            "file",
            str(target_path),
            message=f"{rendered.host_count} host(s)",
            parameters={"replaced": result.replaced, "changed": result.changed},
        )

        if not result.changed:
            ctx.console.success(f"{escape(str(target_path))} is already up to date")
        elif result.replaced:
            ctx.console.success(
                f"Replaced the zap block in {escape(str(target_path))} "
                f"({rendered.host_count} host(s))"
            )
        else:
            ctx.console.success(
                f"Added a zap block to {escape(str(target_path))} "
                f"({rendered.host_count} host(s))"
            )

    except ZapError as e:
        handle_error(e)
