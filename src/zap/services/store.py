"""On-disk inventory: the settings file and one host table per category.

The Store is the only writer of zap's files. Every write:
- runs under the config lock (ConfigBusy if another zap holds it)
- snapshots the current file into the backups directory first
- replaces the whole file atomically

Backups older than the retention window are purged once at the end of a
mutating operation that took at least one snapshot.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from zap.core.config import (
    CategoryMeta,
    Environment,
    GlobalConfig,
    HostEntry,
    HostTable,
    dump_yaml,
    load_document,
    parse_global_config,
    parse_host_table,
)
from zap.core.exceptions import ConfigurationError, DuplicateCategory, UnknownCategory
from zap.core.fileio import write_text_atomic
from zap.core.locking import ConfigLock
from zap.core.output import console
from zap.core.validation import validate_key
from zap.services.backup import BackupManager


class Store:
    """Reads and writes zap's configuration files.

    Holds at most one loaded settings snapshot; mutating operations re-read
    it under the lock before changing it.
    """

    def __init__(
        self,
        env: Environment,
        backups: Optional[BackupManager] = None,
    ) -> None:
        """Initialize the store.

        Args:
            env: Paths to operate on
            backups: Snapshot manager (default: one on env.backup_dir)
        """
        self.env = env
        self.backups = backups or BackupManager(env.backup_dir)
        self._lock = ConfigLock(env.lock_path)
        self._config: Optional[GlobalConfig] = None
        self._snapshots: list[Path] = []

    @property
    def config(self) -> GlobalConfig:
        """Get current settings, loading if necessary."""
        if self._config is None:
            self._config = self.load()
        return self._config

    @property
    def snapshots(self) -> list[Path]:
        """Snapshots taken by the current (or last) mutating operation."""
        return list(self._snapshots)

    # =========================================================================
    # Loading
    # =========================================================================

    def _ensure_layout(self) -> None:
        try:
            for directory in (self.env.config_dir, self.env.categories_dir, self.env.backup_dir):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create config directory {self.env.config_dir}",
                hint="Check permissions or set ZAP_CONFIG_DIR",
                details=[str(e)],
            ) from e

    def load(self) -> GlobalConfig:
        """Load the settings file, creating it with defaults if absent.

        Returns:
            Loaded settings

        Raises:
            CorruptConfig: If the file exists but cannot be parsed
        """
        self._ensure_layout()
        path = self.env.settings_path

        if not path.exists():
            config = GlobalConfig()
            write_text_atomic(path, config.to_yaml())
            console.debug(f"Created default settings at {path}")
        else:
            config = parse_global_config(load_document(path), path)

        self._config = config
        return config

    def load_or_init(self) -> GlobalConfig:
        """Alias of load(), for callers that read as "make sure it exists"."""
        return self.load()

    def has_table(self, key: str) -> bool:
        """Check whether the host table file of a category exists."""
        return self.env.table_path(key).is_file()

    def load_table(self, key: str) -> Optional[HostTable]:
        """Read a host table file regardless of the settings registry.

        Returns:
            The table, or None if the file does not exist

        Raises:
            CorruptConfig: If the file cannot be parsed
        """
        path = self.env.table_path(key)
        if not path.is_file():
            return None
        return parse_host_table(load_document(path), path)

    def read_category_table(self, key: str) -> HostTable:
        """Read the host table of a declared category.

        A declared category without a table file reads as an empty table.

        Raises:
            UnknownCategory: If the category is not declared
            CorruptConfig: If the table file cannot be parsed
        """
        if key not in self.config.categories:
            raise UnknownCategory(key)
        return self.load_table(key) or HostTable()

    def read_all_tables(self) -> dict[str, Optional[HostTable]]:
        """Tables of every declared category, in declared order.

        A category whose table file is missing maps to None.
        """
        return {key: self.load_table(key) for key in self.config.categories}

    def list_categories(self) -> list[tuple[str, CategoryMeta]]:
        """Declared categories in declared order."""
        return list(self.config.categories.items())

    def list_hosts(self, key: str) -> list[tuple[str, HostEntry]]:
        """Hosts of a declared category in table order."""
        return list(self.read_category_table(key).hosts.items())

    # =========================================================================
    # Writing
    # =========================================================================

    @contextmanager
    def mutation(self) -> Generator[None, None, None]:
        """Scope of one mutating operation.

        Holds the config lock and purges expired backups at the end if any
        snapshot was taken. Nested scopes join the outermost one.

        Raises:
            ConfigBusy: If another process holds the lock
        """
        outermost = not self._lock.held
        with self._lock.hold():
            if outermost:
                self._snapshots = []
            yield
            if outermost and self._snapshots:
                self.purge_backups()

    def record_snapshot(self, snapshot: Optional[Path]) -> None:
        """Account for a snapshot taken inside the current mutation."""
        if snapshot is not None:
            self._snapshots.append(snapshot)
            console.debug(f"Backed up to {snapshot}")

    def purge_backups(self) -> list[Path]:
        """Apply the retention window to the backups directory."""
        removed = self.backups.purge(self.config.backup_retention_days)
        if removed:
            console.verbose(f"Purged {len(removed)} expired backup(s)")
        return removed

    def replace_file(self, path: Path, content: str) -> Optional[Path]:
        """Snapshot ``path`` then atomically replace it with ``content``."""
        with self.mutation():
            snapshot = self.backups.snapshot(path)
            self.record_snapshot(snapshot)
            write_text_atomic(path, content)
        return snapshot

    def write_global_config(self, config: GlobalConfig) -> Optional[Path]:
        """Replace the settings file.

        Returns:
            Snapshot of the previous file, if there was one
        """
        snapshot = self.replace_file(self.env.settings_path, config.to_yaml())
        self._config = config
        return snapshot

    def write_category_table(self, key: str, table: HostTable) -> Optional[Path]:
        """Replace the host table file of a category.

        Returns:
            Snapshot of the previous file, if there was one
        """
        validate_key(key, "category")
        return self.replace_file(self.env.table_path(key), dump_yaml(table.to_document()))

    def create_category(self, key: str, meta: CategoryMeta) -> GlobalConfig:
        """Declare a new category and create its empty host table.

        Only an exact key collision is rejected; the new key may equal an
        alias of another category.

        Raises:
            ValidationError: If the key is not usable
            DuplicateCategory: If the key is already declared
        """
        validate_key(key, "category")

        with self.mutation():
            config = self.load()
            if key in config.categories:
                raise DuplicateCategory(key)

            config.categories[key] = meta
            self.write_global_config(config)

            if not self.has_table(key):
                self.write_category_table(key, HostTable())

        return config

    def add_host(self, category_key: str, host_key: str, entry: HostEntry) -> HostTable:
        """Insert or overwrite a host in a declared category.

        Raises:
            ValidationError: If the host key is not usable
            UnknownCategory: If the category is not declared
        """
        validate_key(host_key, "host")

        with self.mutation():
            config = self.load()
            if category_key not in config.categories:
                raise UnknownCategory(category_key)

            table = self.load_table(category_key) or HostTable()
            table.hosts[host_key] = entry
            self.write_category_table(category_key, table)

        return table
