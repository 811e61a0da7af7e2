"""Peer reachability test over the ZeroTier network."""

import socket

import typer

from nodesetup.core import zerotier
from nodesetup.core.environment import is_root
from nodesetup.utils.output import console, detail, error, ok, section, warn
from nodesetup.utils.process import run
from nodesetup.utils.terminal import read_input

SSH_PORT = 22
PING_COUNT = 3
PING_TIMEOUT = 2
CONNECT_TIMEOUT = 2.0

TROUBLESHOOTING = [
    "Check if nodes are authorized in ZeroTier Central",
    "Verify firewall allows ZeroTier (UDP 9993)",
    "Check 'zerotier-cli peers' for connection status",
    "Ensure all nodes are on same ZeroTier network",
]


def ping(host: str) -> bool:
    """Check if a host answers ICMP echo."""
    result = run(
        ["ping", "-c", str(PING_COUNT), "-W", str(PING_TIMEOUT), host],
        timeout=PING_COUNT * PING_TIMEOUT + 5,
    )
    return result.success


def port_open(host: str, port: int = SSH_PORT, timeout: float = CONNECT_TIMEOUT) -> bool:
    """Check if a TCP port accepts connections."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def check_peer(host: str) -> bool:
    """Ping a peer and probe its SSH port, printing the outcome."""
    if not ping(host):
        console.print(f"Testing {host}... [red]✗[/red] No response")
        return False
    console.print(f"Testing {host}... [green]✓[/green] Ping OK")

    if port_open(host):
        detail(f"SSH test... [green]✓[/green] Port {SSH_PORT} open")
        return True
    detail(f"SSH test... [red]✗[/red] Port {SSH_PORT} closed")
    return False


def zerotier_routes() -> list[str]:
    """Routes that go through a ZeroTier interface."""
    result = run(["ip", "route"], timeout=10)
    return [line for line in result.stdout.splitlines() if " zt" in line]


def check_peers(
    peers: list[str] = typer.Argument(None, help="ZeroTier IPs of other nodes"),
) -> None:
    """Test ZeroTier connectivity to other nodes."""
    section("ZeroTier Connectivity Test")

    if not is_root():
        error("This command must be run as root")
        raise typer.Exit(1)

    console.print("Local ZeroTier Status:")
    console.print(zerotier.run_cli("status").output, markup=False, highlight=False)
    console.print("\nNetworks:")
    console.print(zerotier.list_networks().output, markup=False, highlight=False)

    if not peers:
        answer = read_input("\nEnter ZeroTier IPs of other nodes (space-separated): ")
        peers = answer.split()

    if not peers:
        warn("No other nodes specified")
        return

    console.print(f"\nTesting connectivity to {len(peers)} nodes...\n")
    failed = sum(1 for peer in peers if not check_peer(peer))

    console.print()
    if failed == 0:
        ok("All nodes are reachable")
        console.print("\nZeroTier routing table:")
        for route in zerotier_routes():
            detail(route)
        return

    error(f"Failed to reach {failed} nodes")
    console.print("\nTroubleshooting tips:")
    for number, tip in enumerate(TROUBLESHOOTING, start=1):
        detail(f"{number}. {tip}")
    raise typer.Exit(1)
