"""Verify command: re-check the state written by a bootstrap run."""

import pwd
from collections.abc import Callable
from pathlib import Path

import typer

from nodesetup.core import zerotier
from nodesetup.core.accounts import KEY_NAME
from nodesetup.core.config import NodeConfigRecord, get_config_file, load_record
from nodesetup.core.environment import get_hostname
from nodesetup.core.netplan import probe_connectivity
from nodesetup.core.zerotier import OverlayStatus
from nodesetup.utils.output import (
    console,
    create_table,
    detail,
    error,
    ok,
    print_table,
    section,
)
from nodesetup.utils.process import run, run_as, service_is_active

Check = tuple[str, Callable[[], bool]]


def _user_home(user: str) -> Path | None:
    try:
        return Path(pwd.getpwnam(user).pw_dir)
    except KeyError:
        return None


def _user_exists(user: str) -> bool:
    return _user_home(user) is not None


def _has_key(user: str) -> bool:
    home = _user_home(user)
    return home is not None and (home / ".ssh" / KEY_NAME).exists()


def _zerotier_connected(network_id: str) -> bool:
    membership = zerotier.network_status(network_id)
    return membership is not None and membership.status == OverlayStatus.CONNECTED


def build_checks(record: NodeConfigRecord) -> list[Check]:
    """Checks for everything a bootstrap run is supposed to leave behind."""
    checks: list[Check] = [
        ("Hostname", lambda: get_hostname() == record.hostname),
        ("Network interface", lambda: run(["ip", "link", "show", record.interface]).success),
        (
            "Static IP",
            lambda: f"inet {record.static_ip}/"
            in run(["ip", "-4", "addr", "show", record.interface]).stdout,
        ),
        ("Internet connectivity", probe_connectivity),
        ("SSH service", lambda: service_is_active("ssh")),
    ]

    if record.zerotier_enabled and record.zerotier_network_id:
        network_id = record.zerotier_network_id
        checks += [
            ("ZeroTier service", lambda: service_is_active(zerotier.SERVICE)),
            ("ZeroTier network joined", lambda: zerotier.network_status(network_id) is not None),
            ("ZeroTier authorized", lambda: _zerotier_connected(network_id)),
        ]

    user = record.system_user
    checks += [
        ("System user exists", lambda: _user_exists(user)),
        ("User sudo access", lambda: run_as(user, ["sudo", "-n", "true"], timeout=15).success),
        ("SSH key exists", lambda: _has_key(user)),
    ]
    return checks


def run_checks(checks: list[Check]) -> int:
    """Run checks, print a result table and return the failure count."""
    table = create_table("Node Verification", ["Check", "Result"])
    failures = 0
    for name, check in checks:
        passed = check()
        if not passed:
            failures += 1
        table.add_row(name, "[green]✓ OK[/green]" if passed else "[red]✗ FAILED[/red]")
    print_table(table)
    return failures


def verify() -> None:
    """Check that this node is ready for Thinkube installation."""
    section("Node Verification")

    config_file = get_config_file()
    try:
        record = load_record(config_file)
    except ValueError as e:
        error(f"Invalid bootstrap configuration: {e}")
        raise typer.Exit(1) from None
    if record is None:
        error(f"Bootstrap configuration not found ({config_file})")
        detail("Please run node-bootstrap first")
        raise typer.Exit(1)

    failures = run_checks(build_checks(record))

    console.print("\nConfiguration:")
    detail(f"Hostname:     {record.hostname}")
    detail(f"Static IP:    {record.static_ip}")
    if record.zerotier_enabled:
        detail(f"ZeroTier IP:  {record.zerotier_ip or 'none'}")
        detail(f"Network ID:   {record.zerotier_network_id or 'none'}")
        detail(f"Node ID:      {record.zerotier_node_id or 'none'}")

    console.print()
    if failures == 0:
        ok("Node is ready for Thinkube installation")
    else:
        error(f"Node has {failures} issue(s) that need to be fixed")
        raise typer.Exit(1)
