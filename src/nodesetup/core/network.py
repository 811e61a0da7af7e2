"""Live network state discovery (interface, address, gateway, DNS, system user)."""

import os
import pwd
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from nodesetup.core.environment import get_hostname
from nodesetup.core.errors import PreflightError
from nodesetup.utils.process import run

FALLBACK_DNS = "8.8.8.8"
DEFAULT_PREFIX = 24
# systemd-resolved stub listener, never a useful upstream resolver
STUB_RESOLVER = "127.0.0.53"

# Interactive accounts: 1000 <= uid < 65534 (65534 is nobody)
MIN_USER_UID = 1000
MAX_USER_UID = 65534

_DEFAULT_ROUTE = re.compile(r"^default\s+via\s+(\S+)\s+dev\s+(\S+)")
_INET = re.compile(r"^\s*inet\s+(\d+(?:\.\d+){3})(?:/(\d+))?")
_IPV4 = re.compile(r"\b(\d{1,3}(?:\.\d{1,3}){3})\b")


@dataclass(frozen=True)
class DetectedNetwork:
    """Snapshot of the host's live network state."""

    interface: str
    current_address: str
    gateway: str
    prefix_length: int
    dns_servers: tuple[str, ...]
    hostname: str
    system_user: str

    @property
    def dns_server(self) -> str:
        """Primary resolver."""
        return self.dns_servers[0] if self.dns_servers else FALLBACK_DNS


def parse_default_route(output: str) -> tuple[str, str] | None:
    """Extract (interface, gateway) from `ip route` output.

    Returns:
        The first default route's device and next hop, or None.
    """
    for line in output.splitlines():
        match = _DEFAULT_ROUTE.match(line.strip())
        if match:
            return match.group(2), match.group(1)
    return None


def parse_ipv4_address(output: str) -> tuple[str, int | None] | None:
    """Extract the first (address, prefix) from `ip -4 addr show` output."""
    for line in output.splitlines():
        match = _INET.match(line)
        if match:
            prefix = int(match.group(2)) if match.group(2) else None
            return match.group(1), prefix
    return None


def parse_dns_servers(output: str) -> list[str]:
    """Extract IPv4 resolvers from `resolvectl status` output.

    Handles both the "DNS Servers:" list (with continuation lines) and
    "Current DNS Server:" lines. Order is kept, duplicates dropped.
    """
    servers: list[str] = []
    in_list = False
    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith(("DNS Servers:", "Current DNS Server:")):
            in_list = stripped.startswith("DNS Servers:")
            candidates = _IPV4.findall(stripped.split(":", 1)[1])
        elif in_list and stripped and ":" not in stripped:
            candidates = _IPV4.findall(stripped)
        else:
            in_list = False
            continue
        for server in candidates:
            if server != STUB_RESOLVER and server not in servers:
                servers.append(server)
    return servers


def parse_resolv_conf(text: str) -> list[str]:
    """Extract IPv4 nameservers from resolv.conf content."""
    servers = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver" and _IPV4.fullmatch(parts[1]):
            if parts[1] != STUB_RESOLVER and parts[1] not in servers:
                servers.append(parts[1])
    return servers


def detect_system_user(
    env: Mapping[str, str],
    passwd_entries: Iterable[pwd.struct_passwd],
) -> str | None:
    """Pick the account that receives automation privileges.

    The user who invoked sudo wins; when run directly as root, the first
    interactive account with a home under /home/ is used.
    """
    sudo_user = env.get("SUDO_USER", "")
    if sudo_user and sudo_user != "root":
        return sudo_user

    for entry in passwd_entries:
        if MIN_USER_UID <= entry.pw_uid < MAX_USER_UID and entry.pw_dir.startswith("/home/"):
            return entry.pw_name
    return None


def detect_dns_servers(resolv_conf: Path = Path("/etc/resolv.conf")) -> list[str]:
    """Read configured resolvers from systemd-resolved, then resolv.conf."""
    result = run(["resolvectl", "status"], timeout=10)
    if not result.success:
        result = run(["systemd-resolve", "--status"], timeout=10)
    servers = parse_dns_servers(result.stdout) if result.success else []
    if not servers and resolv_conf.exists():
        servers = parse_resolv_conf(resolv_conf.read_text())
    return servers


def discover_network() -> DetectedNetwork:
    """Inspect the live host and build a DetectedNetwork.

    Raises:
        PreflightError: If interface, address, gateway or user cannot be found.
    """
    route = parse_default_route(run(["ip", "route"], timeout=10).stdout)
    if route is None:
        raise PreflightError("Could not detect default network interface")
    interface, gateway = route

    address = parse_ipv4_address(run(["ip", "-4", "addr", "show", interface], timeout=10).stdout)
    if address is None:
        raise PreflightError("Could not detect current IP address")
    current_address, prefix = address

    dns_servers = detect_dns_servers() or [FALLBACK_DNS]

    system_user = detect_system_user(os.environ, pwd.getpwall())
    if not system_user:
        raise PreflightError("Could not detect system user")

    return DetectedNetwork(
        interface=interface,
        current_address=current_address,
        gateway=gateway,
        prefix_length=prefix if prefix is not None else DEFAULT_PREFIX,
        dns_servers=tuple(dns_servers),
        hostname=get_hostname(),
        system_user=system_user,
    )
