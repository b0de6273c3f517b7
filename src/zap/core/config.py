"""Configuration models using Pydantic.

Provides:
- Typed models for the settings file and the per-category host tables
- YAML loading and dumping helpers
- The immutable Environment (paths), with ZAP_* environment overrides
"""

import os
import pwd
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from zap.core.exceptions import CorruptConfig, ValidationError
from zap.core.validation import normalize_aliases, parse_port


# Defaults written to a fresh settings file
DEFAULT_SSH_BIN = "/usr/bin/ssh"
DEFAULT_RETENTION_DAYS = 7
DEFAULT_HOSTS_FILE = Path("/etc/hosts")

# Layout under the config root
SETTINGS_FILENAME = "config.yml"
CATEGORIES_DIRNAME = "categories"
BACKUPS_DIRNAME = "backups"
TABLE_SUFFIX = ".yml"
LOCK_FILENAME = ".lock"
LOG_FILENAME = "zap.log"

# Key names older zap files used, mapped to the current ones
LEGACY_HOST_KEYS = {"ip": "address"}
LEGACY_LOGGING_KEYS = {"logfile": "path"}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _coerce_port(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if value is None or isinstance(value, (str, int)):
        try:
            return parse_port(value)
        except ValidationError as e:
            raise ValueError(e.message) from e
    return value


def _coerce_aliases(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple)):
        return normalize_aliases(value)
    return value


def _coerce_mapping(value: Any) -> Any:
    """Turn a YAML mapping into str keys, treating null entries as empty."""
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): ({} if v is None else v) for k, v in value.items()}
    return value


def _rename_legacy(data: Any, renames: dict[str, str]) -> Any:
    """Copy of a mapping with old key names replaced. A current key wins."""
    if not isinstance(data, dict) or not any(old in data for old in renames):
        return data
    result = dict(data)
    for old, new in renames.items():
        if old in result:
            value = result.pop(old)
            result.setdefault(new, value)
    return result


class CategoryMeta(BaseModel):
    """Metadata for one category, stored in the settings file."""

    model_config = ConfigDict(extra="allow")

    emoji: str = ""
    default_user: Optional[str] = None
    default_port: Optional[int] = None
    aliases: list[str] = Field(default_factory=list)

    @field_validator("emoji", mode="before")
    @classmethod
    def validate_emoji(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("default_user", mode="before")
    @classmethod
    def validate_default_user(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("default_port", mode="before")
    @classmethod
    def validate_default_port(cls, v: Any) -> Any:
        return _coerce_port(v)

    @field_validator("aliases", mode="before")
    @classmethod
    def validate_aliases(cls, v: Any) -> Any:
        return _coerce_aliases(v)


class HostEntry(BaseModel):
    """One SSH target inside a category table.

    ``address`` falls back to the host key when unset; ``username`` and
    ``port`` fall back to the category defaults.
    """

    model_config = ConfigDict(extra="allow")

    address: Optional[str] = None
    username: Optional[str] = None
    port: Optional[int] = None
    aliases: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def rename_legacy_keys(cls, data: Any) -> Any:
        return _rename_legacy(data, LEGACY_HOST_KEYS)

    @field_validator("address", "username", mode="before")
    @classmethod
    def validate_optional_text(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("port", mode="before")
    @classmethod
    def validate_port(cls, v: Any) -> Any:
        return _coerce_port(v)

    @field_validator("aliases", mode="before")
    @classmethod
    def validate_aliases(cls, v: Any) -> Any:
        return _coerce_aliases(v)


class HostTable(BaseModel):
    """Hosts of one category, stored in categories/<key>.yml."""

    model_config = ConfigDict(extra="allow")

    hosts: dict[str, HostEntry] = Field(default_factory=dict)

    @field_validator("hosts", mode="before")
    @classmethod
    def validate_hosts(cls, v: Any) -> Any:
        return _coerce_mapping(v)

    @model_validator(mode="after")
    def check_keys(self) -> "HostTable":
        if "" in self.hosts:
            raise ValueError("Host keys cannot be empty")
        return self

    def to_document(self) -> dict[str, Any]:
        """Plain tree for YAML serialization (unset fields omitted)."""
        return self.model_dump(mode="json", exclude_none=True)


class LoggingConfig(BaseModel):
    """Activity log settings."""

    model_config = ConfigDict(extra="allow")

    enabled: bool = False
    path: Optional[Path] = None

    @model_validator(mode="before")
    @classmethod
    def rename_legacy_keys(cls, data: Any) -> Any:
        return _rename_legacy(data, LEGACY_LOGGING_KEYS)

    @field_validator("enabled", mode="before")
    @classmethod
    def validate_enabled(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("path", mode="before")
    @classmethod
    def validate_path(cls, v: Any) -> Any:
        return _blank_to_none(v)


class GlobalConfig(BaseModel):
    """Root settings model, loaded from <config-root>/config.yml.

    Missing or null fields fall back to the defaults below. Keys zap does
    not know, here or in nested sections, are kept and written back.
    """

    model_config = ConfigDict(extra="allow")

    ssh_bin: str = DEFAULT_SSH_BIN
    enable_welcome: bool = False
    backup_retention_days: int = Field(default=DEFAULT_RETENTION_DAYS, ge=0)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    categories: dict[str, CategoryMeta] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: v for k, v in data.items()
                if v is not None and not (k == "ssh_bin" and _blank_to_none(v) is None)
            }
        return data

    @field_validator("categories", mode="before")
    @classmethod
    def validate_categories(cls, v: Any) -> Any:
        return _coerce_mapping(v)

    @model_validator(mode="after")
    def check_keys(self) -> "GlobalConfig":
        if "" in self.categories:
            raise ValueError("Category keys cannot be empty")
        return self

    def to_document(self) -> dict[str, Any]:
        """Plain tree for YAML serialization (unset fields omitted)."""
        return self.model_dump(mode="json", exclude_none=True)

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        return dump_yaml(self.to_document())


def _invoking_user_home() -> Path:
    """Home of the real user, also when running under sudo."""
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and os.geteuid() == 0:
        try:
            return Path(pwd.getpwnam(sudo_user).pw_dir)
        except KeyError:
            pass
    return Path.home()


def default_config_dir() -> Path:
    """Default config root: ~/.config/zap."""
    return _invoking_user_home() / ".config" / "zap"


class Environment(BaseSettings):
    """Immutable description of where zap keeps its files.

    Passed explicitly to every service. Values can be overridden with
    ZAP_CONFIG_DIR and ZAP_HOSTS_FILE.
    """

    model_config = SettingsConfigDict(env_prefix="ZAP_", frozen=True, extra="ignore")

    config_dir: Path = Field(default_factory=default_config_dir)
    hosts_file: Path = DEFAULT_HOSTS_FILE

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    @property
    def categories_dir(self) -> Path:
        return self.config_dir / CATEGORIES_DIRNAME

    @property
    def backup_dir(self) -> Path:
        return self.config_dir / BACKUPS_DIRNAME

    @property
    def lock_path(self) -> Path:
        return self.config_dir / LOCK_FILENAME

    @property
    def default_log_path(self) -> Path:
        return self.config_dir / LOG_FILENAME

    def table_path(self, key: str) -> Path:
        """Path of the host table file for a category key."""
        return self.categories_dir / f"{key}{TABLE_SUFFIX}"


def dump_yaml(data: dict[str, Any]) -> str:
    """Serialize a plain tree the way zap writes its files."""
    return yaml.safe_dump(
        data,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def load_document(path: Path) -> dict[str, Any]:
    """Read a YAML file whose top level must be a mapping.

    An empty file is an empty mapping.

    Raises:
        CorruptConfig: If the file is not YAML or not a mapping
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise CorruptConfig(
            f"Invalid YAML in {path}",
            path=str(path),
            details=[str(e)],
        ) from e
    except UnicodeDecodeError as e:
        raise CorruptConfig(
            f"{path} is not a text file",
            path=str(path),
            details=[str(e)],
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise CorruptConfig(
            f"Expected a mapping at the top of {path}, got {type(data).__name__}",
            path=str(path),
        )
    return data


def normalize_settings_document(data: dict[str, Any]) -> dict[str, Any]:
    """Rename legacy keys in a raw settings tree (``logging.logfile``).

    Raw trees are merged before they are validated, so the model
    validators have not renamed anything yet. No defaults are added and
    ``data`` is not modified.
    """
    logging_section = data.get("logging")
    if not isinstance(logging_section, dict):
        return data
    return {**data, "logging": _rename_legacy(logging_section, LEGACY_LOGGING_KEYS)}


def normalize_table_document(data: dict[str, Any]) -> dict[str, Any]:
    """Rename legacy keys in a raw host table tree (``hosts.<key>.ip``)."""
    hosts = data.get("hosts")
    if not isinstance(hosts, dict):
        return data
    return {
        **data,
        "hosts": {key: _rename_legacy(entry, LEGACY_HOST_KEYS) for key, entry in hosts.items()},
    }


def validation_details(error: PydanticValidationError) -> list[str]:
    """Flatten a pydantic error into one line per failing field."""
    details = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "(root)"
        details.append(f"{location}: {err['msg']}")
    return details


def parse_global_config(data: dict[str, Any], source: Path) -> GlobalConfig:
    """Validate a settings tree.

    Raises:
        CorruptConfig: If values fail validation
    """
    try:
        return GlobalConfig.model_validate(data)
    except PydanticValidationError as e:
        raise CorruptConfig(
            f"Invalid settings in {source}",
            path=str(source),
            details=validation_details(e),
        ) from e


def parse_host_table(data: dict[str, Any], source: Path) -> HostTable:
    """Validate a host table tree.

    Raises:
        CorruptConfig: If values fail validation
    """
    try:
        return HostTable.model_validate(data)
    except PydanticValidationError as e:
        raise CorruptConfig(
            f"Invalid host table in {source}",
            path=str(source),
            details=validation_details(e),
        ) from e
