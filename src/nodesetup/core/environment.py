"""Execution context checks (privileges, OS distribution and version)."""

import os
import socket
from pathlib import Path

from nodesetup.core.errors import PreflightError

OS_RELEASE_PATH = Path("/etc/os-release")
SUPPORTED_OS_ID = "ubuntu"
SUPPORTED_VERSION = "24.04"


def read_os_release(path: Path = OS_RELEASE_PATH) -> dict[str, str]:
    """Parse an os-release file into a dict.

    Returns:
        Dict of KEY to unquoted value, empty if the file is missing.
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        result[key.strip()] = value.strip().strip('"').strip("'")
    return result


def is_root() -> bool:
    """Check if the process runs with an effective uid of 0."""
    return os.geteuid() == 0


def check_privileges() -> None:
    """Raise PreflightError unless running as root."""
    if not is_root():
        raise PreflightError("This tool must be run as root (use sudo)")


def check_supported_os(os_release: dict[str, str]) -> None:
    """Raise PreflightError unless the host runs the supported Ubuntu release."""
    if os_release.get("ID", "").lower() != SUPPORTED_OS_ID:
        raise PreflightError("This tool only supports Ubuntu Linux")

    version = os_release.get("VERSION_ID", "")
    if version != SUPPORTED_VERSION:
        raise PreflightError(
            f"This tool requires Ubuntu {SUPPORTED_VERSION}. You have {version or 'unknown'}"
        )


def preflight(os_release_path: Path = OS_RELEASE_PATH) -> dict[str, str]:
    """Validate the execution context before anything is mutated.

    Returns:
        The parsed os-release data.
    """
    check_privileges()
    os_release = read_os_release(os_release_path)
    check_supported_os(os_release)
    return os_release


def get_hostname() -> str:
    """Get the current hostname."""
    return socket.gethostname()
