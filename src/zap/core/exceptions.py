"""Custom exceptions for zap.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- Exit codes for proper shell integration
"""

from typing import Optional


class ZapError(Exception):
    """Base exception for all zap errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-127)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(ZapError):
    """Configuration file or settings errors.

    Raised when:
    - Config directory cannot be created
    - Environment settings are invalid
    """
    exit_code = 2


class CorruptConfig(ConfigurationError):
    """A persisted file exists but cannot be parsed.

    Raised when:
    - The settings file or a category file is not valid YAML
    - The top level is not a mapping
    - Values fail model validation (bad port, empty category key, ...)

    No recovery is attempted.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not hint and path:
            hint = f"Fix or restore {path} from the backups directory"
        super().__init__(message, hint=hint, details=details)
        self.path = path


class ValidationError(ZapError):
    """Input validation errors.

    Raised when:
    - Category or host key is empty or not usable as a file name
    - Port out of range
    """
    exit_code = 3


class ExecutionError(ZapError):
    """External command failures.

    Raised when:
    - ssh cannot be executed
    - fzf or ping returns an unexpected error
    """
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if stderr:
            details.append(f"Error output: {stderr}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class PrerequisiteError(ZapError):
    """Missing prerequisites.

    Raised when:
    - ssh binary configured in settings does not exist
    - fzf or ping is not installed
    """
    exit_code = 6


# Inventory exceptions

class DuplicateCategory(ZapError):
    """A category with the exact same key is already declared."""
    exit_code = 20

    def __init__(self, key: str, *, hint: Optional[str] = None) -> None:
        super().__init__(
            f"Category '{key}' already exists",
            hint=hint or "Pick another name or add hosts to the existing category",
        )
        self.key = key


class UnknownCategory(ZapError):
    """The category key is not declared in the settings file."""
    exit_code = 21

    def __init__(self, key: str, *, hint: Optional[str] = None) -> None:
        super().__init__(
            f"Category '{key}' does not exist in the config",
            hint=hint or "Create it with: zap add category",
        )
        self.key = key


class NotFound(ZapError):
    """A user token did not resolve to a category or host.

    Resolution itself returns None; the CLI raises this to report the miss.
    """
    exit_code = 22

    def __init__(
        self,
        kind: str,
        token: str,
        *,
        scope: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        where = f" in category '{scope}'" if scope else ""
        super().__init__(f"{kind.title()} '{token}' not found{where}", hint=hint)
        self.kind = kind
        self.token = token
        self.scope = scope


class ImportMalformed(ZapError):
    """Archive content is invalid.

    Raised before any write, so on-disk state is untouched.
    """
    exit_code = 23


class PermissionDenied(ZapError):
    """A target file cannot be written.

    Raised before any write or snapshot is attempted.
    """
    exit_code = 24

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.path = path


class ConfigBusy(ZapError):
    """Another zap process holds the configuration lock."""
    exit_code = 25
