"""Hand-off to the external ssh client, plus ping and fzf helpers.

zap resolves what to connect to; the ssh binary does the connecting.
``connect`` replaces the current process with ssh, so nothing after it runs.
"""

import os
import shlex
import subprocess
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from rich.markup import escape

from zap.core.audit import AuditEventType
from zap.core.config import CategoryMeta, GlobalConfig, HostTable
from zap.core.deps import require_binary
from zap.core.exceptions import ExecutionError

if TYPE_CHECKING:
    from zap.core.context import ExecutionContext


PING_COUNT = 4
FZF_HEADER = "Interactive search for hosts (format: category|host|aliases|address)"
FIELD_SEPARATOR = "|"


@dataclass
class ConnectionTarget:
    """Effective connection parameters of one host.

    ``user`` and ``port`` are None when neither the host nor its category
    sets them; ssh then applies its own defaults (~/.ssh/config, 22).
    """
    category: str
    host: str
    address: str
    user: Optional[str] = None
    port: Optional[int] = None

    @property
    def destination(self) -> str:
        if self.user:
            return f"{self.user}@{self.address}"
        return self.address

    def ssh_argv(self, ssh_bin: str, extra_args: Sequence[str] = ()) -> list[str]:
        """Command line for the ssh client."""
        argv = [ssh_bin]
        if self.port is not None:
            argv += ["-p", str(self.port)]
        argv.append(self.destination)
        argv.extend(extra_args)
        return argv


def connection_target(
    config: GlobalConfig,
    category_key: str,
    table: HostTable,
    host_key: str,
) -> ConnectionTarget:
    """Combine a host entry with its category defaults.

    Both keys must be canonical (already resolved).
    """
    meta = config.categories.get(category_key) or CategoryMeta()
    entry = table.hosts[host_key]

    return ConnectionTarget(
        category=category_key,
        host=host_key,
        address=entry.address or host_key,
        user=entry.username or meta.default_user,
        port=entry.port if entry.port is not None else meta.default_port,
    )


def connect(
    ctx: "ExecutionContext",
    target: ConnectionTarget,
    extra_args: Sequence[str] = (),
) -> None:
    """Replace the current process with ssh.

    Returns only when ``os.execv`` is patched out (tests).

    Raises:
        PrerequisiteError: If the configured ssh binary is missing
        ExecutionError: If the exec itself fails
    """
    config = ctx.config
    ssh_bin = require_binary(config.ssh_bin)
    argv = target.ssh_argv(ssh_bin, extra_args)

    if config.enable_welcome:
        ctx.console.print("⚡️⚡️⚡️   Zap Portal Activated   ⚡️⚡️⚡️")
        ctx.console.print(
            f"🚀 Teleporting to '{escape(target.host)}' ({escape(target.address)}) "
            f"in category '{escape(target.category)}'... Hang on tight! 😎"
        )

    ctx.audit.log_success(
        AuditEventType.SSH_CONNECT,
        "host",
        f"{target.category}/{target.host}",
        message=f"ssh {target.destination}",
        parameters={
            "address": target.address,
            "user": target.user,
            "port": target.port,
            "extra_args": list(extra_args),
        },
    )
    ctx.console.debug(f"exec: {escape(shlex.join(argv))}")

    # exec does not flush Python's buffers
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        os.execv(ssh_bin, argv)
    except OSError as e:
        raise ExecutionError(
            f"Failed to start {ssh_bin}",
            command=shlex.join(argv),
            details=[str(e)],
        ) from e


def ping(address: str, count: int = PING_COUNT) -> int:
    """Run the system ping against ``address``, output going to the terminal.

    Returns:
        ping's exit code (0 when the host answered)
    """
    ping_bin = require_binary("ping")
    result = subprocess.run([ping_bin, "-c", str(count), address], check=False)
    return result.returncode


def search_line(category: str, host: str, aliases: Iterable[str], address: str) -> str:
    """One fzf line: ``category|host|alias1, alias2|address``."""
    return FIELD_SEPARATOR.join([category, host, ", ".join(aliases), address])


def pick_host(lines: Sequence[str]) -> Optional[tuple[str, str]]:
    """Let the user choose a host with fzf.

    Args:
        lines: Lines built with search_line()

    Returns:
        (category, host) of the selection, or None when cancelled

    Raises:
        PrerequisiteError: If fzf is not installed
        ExecutionError: If fzf fails for another reason
    """
    fzf_bin = require_binary("fzf")
    command = [fzf_bin, f"--header={FZF_HEADER}", f"--delimiter={FIELD_SEPARATOR}"]

    result = subprocess.run(
        command,
        input="\n".join(lines) + "\n",
        stdout=subprocess.PIPE,
        text=True,
        check=False,
    )

    # 1: no match, 130: interrupted (Esc / Ctrl-C)
    if result.returncode in (1, 130):
        return None
    if result.returncode != 0:
        raise ExecutionError(
            "fzf failed",
            command=shlex.join(command),
            return_code=result.returncode,
        )

    selection = result.stdout.strip()
    if not selection:
        return None
    parts = selection.split(FIELD_SEPARATOR)
    if len(parts) < 2:
        return None
    return parts[0], parts[1]
