"""Static network configuration through netplan."""

import os
import shutil
from datetime import datetime
from pathlib import Path

import yaml

from nodesetup.core.errors import StepError
from nodesetup.core.network import FALLBACK_DNS
from nodesetup.utils.process import run

NETPLAN_FILENAME = "01-thinkube.yaml"


def get_netplan_dir() -> Path:
    """Get the netplan directory (override with NODESETUP_NETPLAN_DIR)."""
    return Path(os.environ.get("NODESETUP_NETPLAN_DIR", "/etc/netplan"))


def render_netplan(
    interface: str,
    address: str,
    prefix_length: int,
    gateway: str,
    dns_server: str,
) -> str:
    """Render a netplan v2 document for a single static ethernet interface.

    The discovered resolver comes first, followed by the public fallback.
    """
    nameservers = [dns_server]
    if dns_server != FALLBACK_DNS:
        nameservers.append(FALLBACK_DNS)

    document = {
        "network": {
            "version": 2,
            "renderer": "networkd",
            "ethernets": {
                interface: {
                    "addresses": [f"{address}/{prefix_length}"],
                    "routes": [{"to": "default", "via": gateway}],
                    "nameservers": {"addresses": nameservers},
                }
            },
        }
    }
    return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)


def backup_netplan_dir(netplan_dir: Path, now: datetime | None = None) -> Path | None:
    """Copy the netplan directory to a timestamped sibling.

    Returns:
        The backup path, or None if there was nothing to back up.

    Raises:
        StepError: If the copy fails (including an existing backup of the same second).
    """
    if not netplan_dir.is_dir():
        return None
    now = now or datetime.now()
    backup = netplan_dir.with_name(f"{netplan_dir.name}.backup.{now:%Y%m%d-%H%M%S}")
    try:
        shutil.copytree(netplan_dir, backup, symlinks=True)
    except OSError as e:
        raise StepError(f"Could not back up {netplan_dir} to {backup}: {e}") from e
    return backup


def write_netplan(content: str, path: Path) -> None:
    """Write the netplan file, readable by root only (netplan warns otherwise)."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        path.chmod(0o600)
    except OSError as e:
        raise StepError(f"Could not write {path}: {e}") from e


def apply_netplan() -> None:
    """Apply the netplan configuration.

    Raises:
        StepError: If netplan rejects the configuration.
    """
    result = run(["netplan", "apply"], timeout=120)
    if not result.success:
        raise StepError(f"netplan apply failed: {result.output}")


def probe_connectivity(host: str = FALLBACK_DNS) -> bool:
    """Send a single ping; True if it was answered."""
    return run(["ping", "-c", "1", "-W", "5", host], timeout=15).success
