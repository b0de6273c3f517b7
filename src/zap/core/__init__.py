"""Core framework components for zap."""

from zap.core.exceptions import (
    ZapError,
    ConfigurationError,
    CorruptConfig,
    ValidationError,
    ExecutionError,
    PrerequisiteError,
    DuplicateCategory,
    UnknownCategory,
    NotFound,
    ImportMalformed,
    PermissionDenied,
    ConfigBusy,
)

from zap.core.output import console, Console, Verbosity
from zap.core.config import Environment, GlobalConfig, CategoryMeta, HostEntry, HostTable
from zap.core.audit import AuditLogger, AuditEvent, AuditEventType, AuditResult

__all__ = [
    # Exceptions
    "ZapError",
    "ConfigurationError",
    "CorruptConfig",
    "ValidationError",
    "ExecutionError",
    "PrerequisiteError",
    "DuplicateCategory",
    "UnknownCategory",
    "NotFound",
    "ImportMalformed",
    "PermissionDenied",
    "ConfigBusy",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "Environment",
    "GlobalConfig",
    "CategoryMeta",
    "HostEntry",
    "HostTable",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
]
