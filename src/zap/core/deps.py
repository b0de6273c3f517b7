"""Checks for the external programs zap delegates to.

zap never speaks SSH itself: it hands over to the ssh client, and uses
ping and fzf for reachability tests and interactive search.
"""

import os
import platform
import shutil
from pathlib import Path

from zap.core.exceptions import PrerequisiteError


# binary -> (apt package, brew package)
KNOWN_PACKAGES: dict[str, tuple[str, str]] = {
    "ssh": ("openssh-client", "openssh"),
    "fzf": ("fzf", "fzf"),
    "ping": ("iputils-ping", "inetutils"),
}


def _detect_package_manager() -> str | None:
    """Detect available system package manager.

    Returns:
        'brew', 'apt', 'apk', or None
    """
    if platform.system() == "Darwin" and shutil.which("brew"):
        return "brew"
    if shutil.which("apt-get"):
        return "apt"
    if shutil.which("apk"):
        return "apk"
    return None


def _get_install_hint(name: str) -> str:
    """Generate a helpful hint for manual installation."""
    apt_name, brew_name = KNOWN_PACKAGES.get(name, (name, name))
    pkg_manager = _detect_package_manager()

    if pkg_manager == "brew":
        return f"Install it with: brew install {brew_name}"
    if pkg_manager == "apt":
        return f"Install it with: sudo apt install {apt_name}"
    if pkg_manager == "apk":
        return f"Install it with: sudo apk add {name}"
    return f"Install {name} and make sure it is on your PATH"


def require_binary(name: str) -> str:
    """Locate an executable, by path or on PATH.

    Args:
        name: Program name ("fzf") or absolute path ("/usr/bin/ssh")

    Returns:
        Absolute path of the executable

    Raises:
        PrerequisiteError: If the program cannot be found
    """
    if os.sep in name:
        path = Path(name)
        if path.is_file() and os.access(path, os.X_OK):
            return str(path)
        raise PrerequisiteError(
            f"{name} does not exist or is not executable",
            hint="Fix ssh_bin in the settings file (zap config path)",
        )

    found = shutil.which(name)
    if found is None:
        raise PrerequisiteError(
            f"{name} is required but not installed",
            hint=_get_install_hint(name),
        )
    return found
