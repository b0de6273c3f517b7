"""Execution context for commands.

The ExecutionContext holds the runtime flags of one zap invocation and
builds the services commands need (environment, store, activity log)
on first use.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from zap.core.audit import AuditLogger, disabled_logger
from zap.core.config import Environment, GlobalConfig
from zap.core.output import Console, console, Verbosity
from zap.services.store import Store


@dataclass
class ExecutionContext:
    """Execution context passed to all commands.

    Attributes:
        dry_run: If True, show what would happen without writing
        verbosity: Output verbosity level (0-3)
        no_color: If True, disable colored output
        config_dir: Config root override (else ZAP_CONFIG_DIR / default)
        hosts_file: Hosts file override (else ZAP_HOSTS_FILE / default)
    """

    # Runtime flags
    dry_run: bool = False
    verbosity: int = 1
    no_color: bool = False

    # Path overrides
    config_dir: Optional[Path] = None
    hosts_file: Optional[Path] = None

    # Internal state (initialized lazily)
    _env: Optional[Environment] = field(default=None, repr=False)
    _store: Optional[Store] = field(default=None, repr=False)
    _audit: Optional[AuditLogger] = field(default=None, repr=False)
    _console: Console = field(default_factory=lambda: console, repr=False)

    def __post_init__(self) -> None:
        """Configure console after initialization."""
        self._console.configure(
            verbosity=self.verbosity,
            dry_run=self.dry_run,
            no_color=self.no_color,
        )

    @property
    def env(self) -> Environment:
        """Get the file layout (lazy loaded)."""
        if self._env is None:
            overrides: dict[str, Any] = {}
            if self.config_dir is not None:
                overrides["config_dir"] = self.config_dir
            if self.hosts_file is not None:
                overrides["hosts_file"] = self.hosts_file
            self._env = Environment(**overrides)
        return self._env

    @property
    def store(self) -> Store:
        """Get the configuration store (lazy loaded)."""
        if self._store is None:
            self._store = Store(self.env)
        return self._store

    @property
    def config(self) -> GlobalConfig:
        """Get settings, creating the default file on first use."""
        return self.store.config

    @property
    def audit(self) -> AuditLogger:
        """Get the activity logger configured by ``logging`` settings."""
        if self._audit is None:
            settings = self.config.logging
            if settings.enabled:
                self._audit = AuditLogger(settings.path or self.env.default_log_path)
            else:
                self._audit = disabled_logger()
        return self._audit

    @property
    def console(self) -> Console:
        """Get console for output."""
        return self._console

    @property
    def is_verbose(self) -> bool:
        """Check if verbose output is enabled."""
        return self.verbosity >= Verbosity.VERBOSE

    @property
    def is_quiet(self) -> bool:
        """Check if quiet mode is enabled."""
        return self.verbosity <= Verbosity.QUIET


def create_context(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config_dir: Optional[Path] = None,
    hosts_file: Optional[Path] = None,
) -> ExecutionContext:
    """Create an execution context from CLI options.

    Args:
        dry_run: Preview changes without writing
        verbose: Increase verbosity (can be repeated)
        quiet: Suppress non-essential output
        no_color: Disable colored output
        config_dir: Config root override
        hosts_file: Hosts file override

    Returns:
        Configured execution context
    """
    if quiet:
        verbosity = Verbosity.QUIET
    else:
        verbosity = min(Verbosity.NORMAL + verbose, Verbosity.DEBUG)

    return ExecutionContext(
        dry_run=dry_run,
        verbosity=verbosity,
        no_color=no_color,
        config_dir=config_dir,
        hosts_file=hosts_file,
    )
