"""ZeroTier client management.

Covers the client lifecycle on this host: detect and purge a broken install,
install through an ordered list of strategies, start the service, join a
network, and classify the membership reported by ``zerotier-cli listnetworks``.
"""

import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from nodesetup.core.errors import InstallError, NetworkJoinError, ServiceStartError
from nodesetup.utils.output import info, ok, warn
from nodesetup.utils.process import (
    NONINTERACTIVE_ENV,
    CommandResult,
    command_exists,
    run,
    service_is_active,
)

CLI = "zerotier-cli"
SERVICE = "zerotier-one"
PACKAGE = "zerotier-one"
DATA_DIR = Path("/var/lib/zerotier-one")
APT_SOURCE = Path("/etc/apt/sources.list.d/zerotier.list")
KEYRING = Path("/usr/share/keyrings/zerotier.gpg")

INSTALL_SCRIPT_URL = "https://install.zerotier.com"
SIGNING_KEY_URL = (
    "https://raw.githubusercontent.com/zerotier/ZeroTierOne/master/doc/contact%40zerotier.com.gpg"
)
APT_REPO_URL = "https://download.zerotier.com/debian"

# Codename of the vendor's Debian repository that carries builds for each
# dpkg architecture.
ARCH_CODENAMES = {
    "amd64": "buster",
    "arm64": "buster",
    "armhf": "buster",
    "i386": "buster",
}

INSTALL_TIMEOUT = 600
READY_ATTEMPTS = 10
READY_INTERVAL = 1.0


class ClientState(Enum):
    """Installation state of the ZeroTier client."""

    NOT_INSTALLED = "not installed"
    BROKEN = "broken"
    HEALTHY = "healthy"


class OverlayStatus(Enum):
    """Classification of a network's status token."""

    CONNECTED = "Connected"
    PENDING_AUTHORIZATION = "PendingAuthorization"
    ACCESS_DENIED = "AccessDenied"
    UNKNOWN = "Unknown"


_STATUS_TOKENS = {
    "OK": OverlayStatus.CONNECTED,
    "REQUESTING_CONFIGURATION": OverlayStatus.PENDING_AUTHORIZATION,
    "ACCESS_DENIED": OverlayStatus.ACCESS_DENIED,
}


def classify_status(token: str) -> OverlayStatus:
    """Map a listnetworks status token to an OverlayStatus."""
    return _STATUS_TOKENS.get(token, OverlayStatus.UNKNOWN)


@dataclass(frozen=True)
class NetworkMembership:
    """One row of `zerotier-cli listnetworks`."""

    network_id: str
    name: str
    mac: str
    status_token: str
    network_type: str
    device: str
    assigned_addresses: tuple[str, ...]

    @property
    def status(self) -> OverlayStatus:
        """Classified connection state."""
        return classify_status(self.status_token)

    @property
    def assigned_address(self) -> str | None:
        """First assigned address without its prefix length."""
        if not self.assigned_addresses:
            return None
        return self.assigned_addresses[0].split("/", 1)[0]


def parse_listnetworks(output: str) -> list[NetworkMembership]:
    """Parse `zerotier-cli listnetworks` output.

    Rows look like::

        200 listnetworks <nwid> <name> <mac> <status> <type> <dev> <ZT assigned ips>

    The name is empty until the controller has sent a configuration, so the
    fields after it are read from the end of the line.
    """
    memberships = []
    for line in output.splitlines():
        tokens = line.split()
        if len(tokens) < 7 or tokens[:2] != ["200", "listnetworks"]:
            continue
        if tokens[2] == "<nwid>":
            continue
        ips = tokens[-1]
        memberships.append(
            NetworkMembership(
                network_id=tokens[2],
                name=" ".join(tokens[3:-5]),
                mac=tokens[-5],
                status_token=tokens[-4],
                network_type=tokens[-3],
                device=tokens[-2],
                assigned_addresses=tuple(a for a in ips.split(",") if a and a != "-"),
            )
        )
    return memberships


def find_membership(output: str, network_id: str) -> NetworkMembership | None:
    """Find the row for network_id; None means status is unavailable."""
    for membership in parse_listnetworks(output):
        if membership.network_id.lower() == network_id.lower():
            return membership
    return None


def parse_node_id(output: str) -> str | None:
    """Extract the node ID from `zerotier-cli info` (200 info <id> <version> <state>)."""
    parts = output.strip().split()
    if len(parts) >= 3 and parts[:2] == ["200", "info"]:
        return parts[2]
    return None


# --- CLI queries ---


def run_cli(*args: str) -> CommandResult:
    """Run a zerotier-cli subcommand."""
    return run([CLI, *args], timeout=15)


def is_installed() -> bool:
    """Check if the ZeroTier CLI is on PATH."""
    return command_exists(CLI)


def client_state() -> ClientState:
    """Detect whether the client is missing, broken or usable."""
    if not is_installed():
        return ClientState.NOT_INSTALLED
    if run_cli("status").success:
        return ClientState.HEALTHY
    return ClientState.BROKEN


def get_node_id() -> str | None:
    """Get this node's ZeroTier address."""
    result = run_cli("info")
    if not result.success:
        return None
    return parse_node_id(result.stdout)


def list_networks() -> CommandResult:
    """Run `zerotier-cli listnetworks`."""
    return run_cli("listnetworks")


def network_status(network_id: str) -> NetworkMembership | None:
    """Get the current membership row for a network."""
    result = list_networks()
    if not result.success:
        return None
    return find_membership(result.stdout, network_id)


# --- Installation ---


def purge_broken_install() -> None:
    """Remove every trace of an existing install so a clean one can follow.

    Each step is best effort: a half-removed install is exactly what this
    cleans up.
    """
    run(["systemctl", "stop", SERVICE], timeout=60)
    run(["systemctl", "disable", SERVICE], timeout=60)
    run(["apt-get", "purge", "-y", PACKAGE], env=NONINTERACTIVE_ENV, timeout=INSTALL_TIMEOUT)
    run(["rm", "-rf", str(DATA_DIR)])
    for path in (APT_SOURCE, KEYRING):
        path.unlink(missing_ok=True)


def install_via_vendor_script() -> CommandResult:
    """Install with the vendor's bootstrap script."""
    with tempfile.TemporaryDirectory(prefix="zerotier-") as workdir:
        script = str(Path(workdir) / "install.sh")
        result = run(["curl", "-fsSL", INSTALL_SCRIPT_URL, "-o", script], timeout=120)
        if not result.success:
            return result
        return run(["bash", script], timeout=INSTALL_TIMEOUT)


def install_via_apt_repository() -> CommandResult:
    """Register the vendor apt repository by hand and install the package."""
    arch = run(["dpkg", "--print-architecture"]).stdout.strip()
    codename = ARCH_CODENAMES.get(arch)
    if codename is None:
        return CommandResult(returncode=1, stdout="", stderr=f"Unsupported architecture: {arch}")

    with tempfile.TemporaryDirectory(prefix="zerotier-") as workdir:
        key_file = str(Path(workdir) / "zerotier.gpg.asc")
        result = run(["curl", "-fsSL", SIGNING_KEY_URL, "-o", key_file], timeout=120)
        if not result.success:
            return result
        result = run(["gpg", "--dearmor", "--yes", "-o", str(KEYRING), key_file])
        if not result.success:
            return result

    try:
        APT_SOURCE.write_text(
            f"deb [signed-by={KEYRING}] {APT_REPO_URL}/{codename} {codename} main\n"
        )
    except OSError as e:
        return CommandResult(returncode=1, stdout="", stderr=f"Cannot write {APT_SOURCE}: {e}")

    result = run(["apt-get", "update"], env=NONINTERACTIVE_ENV, timeout=INSTALL_TIMEOUT)
    if not result.success:
        return result
    return run(
        ["apt-get", "install", "-y", PACKAGE], env=NONINTERACTIVE_ENV, timeout=INSTALL_TIMEOUT
    )


@dataclass(frozen=True)
class InstallStrategy:
    """A named way of installing the client."""

    name: str
    install: Callable[[], CommandResult]


DEFAULT_STRATEGIES = (
    InstallStrategy("vendor install script", install_via_vendor_script),
    InstallStrategy("apt repository", install_via_apt_repository),
)


def install(strategies: tuple[InstallStrategy, ...] = DEFAULT_STRATEGIES) -> str:
    """Try each strategy in order until the CLI is present.

    Returns:
        Name of the strategy that succeeded.

    Raises:
        InstallError: With every strategy's failure reason.
    """
    failures: list[tuple[str, str]] = []
    for strategy in strategies:
        info(f"Installing ZeroTier via {strategy.name}...")
        result = strategy.install()
        if result.success and is_installed():
            return strategy.name
        reason = result.output if not result.success else f"{CLI} not found after install"
        warn(f"Install via {strategy.name} failed")
        failures.append((strategy.name, reason or f"exit code {result.returncode}"))
    raise InstallError(PACKAGE, failures)


def ensure_installed(strategies: tuple[InstallStrategy, ...] = DEFAULT_STRATEGIES) -> ClientState:
    """Converge to a healthy install, reinstalling a broken one.

    Returns:
        The state found before any action was taken.
    """
    state = client_state()
    if state == ClientState.HEALTHY:
        ok("ZeroTier is already installed")
        return state

    if state == ClientState.BROKEN:
        warn("Existing ZeroTier installation is broken, reinstalling")
        purge_broken_install()

    name = install(strategies)
    ok(f"ZeroTier installed ({name})")
    return state


# --- Service ---


def service_diagnostics() -> str:
    """Collect service status and recent logs."""
    status = run(["systemctl", "status", SERVICE, "--no-pager"], timeout=15)
    logs = run(["journalctl", "-u", SERVICE, "-n", "50", "--no-pager"], timeout=15)
    return f"{status.output}\n\n{logs.output}".strip()


def start_service() -> None:
    """Enable and start the service.

    Raises:
        ServiceStartError: If systemd cannot start it.
    """
    run(["systemctl", "daemon-reload"], timeout=60)
    run(["systemctl", "enable", SERVICE], timeout=60)
    result = run(["systemctl", "start", SERVICE], timeout=60)
    if not result.success:
        raise ServiceStartError(SERVICE, service_diagnostics())


def wait_until_active(
    attempts: int = READY_ATTEMPTS,
    interval: float = READY_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll the service until systemd reports it active.

    Returns:
        False if it never became active within the bound.
    """
    for attempt in range(attempts):
        if service_is_active(SERVICE):
            return True
        if attempt < attempts - 1:
            sleep(interval)
    return False


def join_network(network_id: str) -> None:
    """Join a network.

    Raises:
        NetworkJoinError: If the client refuses the join.
    """
    result = run([CLI, "join", network_id], timeout=30)
    if not result.success:
        raise NetworkJoinError(f"Failed to join ZeroTier network {network_id}: {result.output}")
