"""Input validation utilities.

Provides validation for:
- Category and host keys (also used as file names)
- Ports
- Alias lists (comma-separated input, ordered-set semantics)

All validators return the validated value or raise ValidationError.
"""

import re
from typing import Iterable, Optional, Union

from zap.core.exceptions import ValidationError


# Keys become file names under categories/, so no separators or whitespace
KEY_PATTERN = re.compile(r"^[^\s/\\]+$")

MAX_KEY_LENGTH = 128

# categories/config.yml would share its snapshot name with the settings file
RESERVED_CATEGORY_KEYS = frozenset({"config"})


def validate_key(value: str, key_type: str = "category") -> str:
    """Validate a category or host key.

    Rules:
    - Cannot be empty
    - No whitespace or path separators
    - Cannot start with a dot (hidden files, "..")
    - Max 128 characters
    - Categories cannot use a reserved key

    Args:
        value: The key to validate
        key_type: Type for error messages (e.g., "category", "host")

    Returns:
        The validated key

    Raises:
        ValidationError: If validation fails
    """
    if not value:
        raise ValidationError(
            f"{key_type.title()} name cannot be empty",
            hint="Provide a valid name",
        )

    if len(value) > MAX_KEY_LENGTH:
        raise ValidationError(
            f"{key_type.title()} name exceeds maximum length "
            f"({len(value)} > {MAX_KEY_LENGTH})",
            hint=f"Use a name with {MAX_KEY_LENGTH} or fewer characters",
        )

    if not KEY_PATTERN.match(value) or value.startswith("."):
        raise ValidationError(
            f"Invalid {key_type} name: '{value}'",
            hint="Names cannot contain spaces or slashes, or start with a dot",
        )

    if key_type == "category" and value in RESERVED_CATEGORY_KEYS:
        raise ValidationError(
            f"Category name '{value}' is reserved",
            hint=f"Pick another name, e.g. '{value}s' or '{value}-hosts'",
        )

    return value


def validate_port(value: int) -> int:
    """Validate a port number.

    Args:
        value: Port number to validate

    Returns:
        The validated port number

    Raises:
        ValidationError: If port is out of valid range
    """
    if not 1 <= value <= 65535:
        raise ValidationError(
            f"Invalid port number: {value}",
            hint="Port must be between 1 and 65535",
        )
    return value


def parse_port(value: Union[str, int, None]) -> Optional[int]:
    """Parse a port typed by the user or read from a legacy file.

    Empty input and 0 mean "not set" and return None.

    Raises:
        ValidationError: If the value is not a number or out of range
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if not value.isdigit():
            raise ValidationError(
                f"Invalid port number: '{value}'",
                hint="Port must be a number between 1 and 65535",
            )
        value = int(value)
    if value == 0:
        return None
    return validate_port(value)


def normalize_aliases(values: Optional[Iterable[str]]) -> list[str]:
    """Strip, drop blanks and de-duplicate aliases, keeping first occurrence."""
    result: list[str] = []
    for value in values or []:
        alias = str(value).strip()
        if alias and alias not in result:
            result.append(alias)
    return result


def parse_alias_list(text: Optional[str]) -> list[str]:
    """Parse comma-separated aliases as typed at a prompt.

    Example:
        >>> parse_alias_list(" fw, firewall ,,fw")
        ['fw', 'firewall']
    """
    if not text:
        return []
    return normalize_aliases(text.split(","))
