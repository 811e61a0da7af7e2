"""Node configuration record shared with the verification command."""

import os
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from pathlib import Path

from nodesetup import __version__
from nodesetup.core.errors import StepError

DEFAULT_CONFIG_FILE = Path("/etc/thinkube-bootstrap.conf")
UNSET = "none"


def get_config_file() -> Path:
    """Get the record path (override with NODESETUP_CONFIG_FILE)."""
    return Path(os.environ.get("NODESETUP_CONFIG_FILE", str(DEFAULT_CONFIG_FILE)))


@dataclass(frozen=True)
class NodeConfigRecord:
    """State of a provisioned node, written once per bootstrap run."""

    hostname: str
    interface: str
    static_ip: str
    subnet_prefix: int
    gateway: str
    dns_server: str
    system_user: str
    zerotier_enabled: bool
    zerotier_network_id: str | None = None
    zerotier_node_id: str | None = None
    zerotier_ip: str | None = None
    bootstrap_version: str = __version__


def _format_value(value: object) -> str:
    if value is None:
        return UNSET
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_record(record: NodeConfigRecord, now: datetime | None = None) -> str:
    """Render the record as KEY=value lines under a comment header."""
    now = now or datetime.now(timezone.utc)
    lines = [
        "# Thinkube Bootstrap Configuration",
        f"# Generated: {now:%Y-%m-%d %H:%M:%S} UTC",
    ]
    for field in fields(record):
        lines.append(f"{field.name.upper()}={_format_value(getattr(record, field.name))}")
    return "\n".join(lines) + "\n"


def write_record(record: NodeConfigRecord, path: Path | None = None) -> Path:
    """Write the record, replacing any previous one. Readable by root only."""
    path = path or get_config_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_record(record))
        path.chmod(0o600)
    except OSError as e:
        raise StepError(f"Could not write {path}: {e}") from e
    return path


def parse_env(text: str) -> dict[str, str]:
    """Parse KEY=value lines, skipping comments and malformed lines."""
    result = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        result[key.strip()] = value.strip().strip('"').strip("'")
    return result


def _optional(value: str | None) -> str | None:
    if value is None or value == UNSET or value == "":
        return None
    return value


def load_record(path: Path | None = None) -> NodeConfigRecord | None:
    """Load the record written by a bootstrap run.

    Returns:
        The record, or None if the file does not exist.

    Raises:
        ValueError: If a required key is missing or the prefix is not a number.
    """
    path = path or get_config_file()
    if not path.exists():
        return None

    data = parse_env(path.read_text())
    required = ("HOSTNAME", "INTERFACE", "STATIC_IP", "SUBNET_PREFIX", "GATEWAY", "SYSTEM_USER")
    missing = [key for key in required if not data.get(key)]
    if missing:
        raise ValueError(f"{path} is missing {', '.join(missing)}")

    return NodeConfigRecord(
        hostname=data["HOSTNAME"],
        interface=data["INTERFACE"],
        static_ip=data["STATIC_IP"],
        subnet_prefix=int(data["SUBNET_PREFIX"]),
        gateway=data["GATEWAY"],
        dns_server=data.get("DNS_SERVER", ""),
        system_user=data["SYSTEM_USER"],
        zerotier_enabled=data.get("ZEROTIER_ENABLED", "false").lower() == "true",
        zerotier_network_id=_optional(data.get("ZEROTIER_NETWORK_ID")),
        zerotier_node_id=_optional(data.get("ZEROTIER_NODE_ID")),
        zerotier_ip=_optional(data.get("ZEROTIER_IP")),
        bootstrap_version=data.get("BOOTSTRAP_VERSION", UNSET),
    )
