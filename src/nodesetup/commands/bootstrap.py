"""Bootstrap command: prepare a fresh Ubuntu host for Ansible.

Stages run strictly in order. Each takes the ProvisioningContext and returns
an updated copy; fatal problems raise NodeSetupError and end the run.
"""

import time
from collections.abc import Callable
from dataclasses import replace

import typer
from rich.markup import escape

from nodesetup import __version__
from nodesetup.core import firewall, netplan, packages, zerotier
from nodesetup.core.accounts import provision_account
from nodesetup.core.central import CentralClient, console_url
from nodesetup.core.config import write_record
from nodesetup.core.context import ProvisioningContext
from nodesetup.core.environment import preflight
from nodesetup.core.errors import InstallError, NodeSetupError, ServiceStartError
from nodesetup.core.inputs import Reader, collect_inputs
from nodesetup.core.network import discover_network
from nodesetup.core.zerotier import OverlayStatus
from nodesetup.utils.output import console, detail, error, info, ok, panel, step, warn
from nodesetup.utils.terminal import read_input

Sleep = Callable[[float], None]

NETWORK_SETTLE_SECONDS = 3
AUTHORIZATION_SETTLE_SECONDS = 10


def stage_preflight(ctx: ProvisioningContext) -> ProvisioningContext:
    """Refuse to run as non-root or on an unsupported OS."""
    preflight()
    return ctx


def stage_discover(ctx: ProvisioningContext) -> ProvisioningContext:
    """Detect the live network configuration and show it."""
    step("Auto-discovering network configuration")
    detected = discover_network()

    panel(
        f"Node Bootstrap v{__version__}\n"
        + (
            "Mode: With ZeroTier (for remote access)"
            if ctx.with_zerotier
            else "Mode: Local only (no ZeroTier)"
        ),
        title="node-setup",
    )
    info("Detected configuration:")
    detail(f"Hostname:     {detected.hostname}")
    detail(f"Interface:    {detected.interface}")
    detail(f"IP Address:   {detected.current_address}/{detected.prefix_length}")
    detail(f"Gateway:      {detected.gateway}")
    detail(f"DNS Server:   {detected.dns_server}")
    detail(f"System User:  {detected.system_user}")
    return replace(ctx, detected=detected)


def stage_ssh(ctx: ProvisioningContext) -> ProvisioningContext:
    """Make sure the operator can still reach the node over SSH."""
    step("Checking SSH")
    packages.ensure_ssh_server()
    return ctx


def stage_inputs(ctx: ProvisioningContext, read: Reader) -> ProvisioningContext:
    """Ask the operator for the static IP and ZeroTier credentials."""
    step("Network Configuration")
    inputs = collect_inputs(ctx.detected, ctx.with_zerotier, read=read)
    return replace(ctx, inputs=inputs)


def stage_network(ctx: ProvisioningContext, read: Reader, sleep: Sleep) -> ProvisioningContext:
    """Back up netplan, write the static configuration and apply it."""
    detected, inputs = ctx.detected, ctx.inputs
    netplan_dir = netplan.get_netplan_dir()

    info("Backing up network configuration...")
    backup = netplan.backup_netplan_dir(netplan_dir)
    if backup:
        ok(f"Backup saved to {backup}")

    info(f"Configuring static IP: {inputs.static_address}")
    content = netplan.render_netplan(
        detected.interface,
        inputs.static_address,
        detected.prefix_length,
        detected.gateway,
        detected.dns_server,
    )
    netplan.write_netplan(content, netplan_dir / netplan.NETPLAN_FILENAME)

    info("Applying network configuration...")
    warn(
        f"Your connection may drop when the IP changes from "
        f"{detected.current_address} to {inputs.static_address}"
    )
    detail(f"If disconnected, reconnect using: ssh {detected.system_user}@{inputs.static_address}")
    read("Press Enter to continue...")

    netplan.apply_netplan()

    sleep(NETWORK_SETTLE_SECONDS)
    connectivity_ok = netplan.probe_connectivity()
    if connectivity_ok:
        ok("Internet connectivity verified")
    else:
        warn(
            "Network connectivity test failed. You may need to reconnect using the new IP: "
            f"{inputs.static_address}"
        )
    return replace(ctx, netplan_backup=backup, connectivity_ok=connectivity_ok)


def stage_packages(ctx: ProvisioningContext) -> ProvisioningContext:
    """Install the base toolset."""
    step("Installing required packages")
    packages.ensure_base_packages()
    return ctx


def stage_firewall(ctx: ProvisioningContext) -> ProvisioningContext:
    """Open SSH and ZeroTier ports and enable UFW."""
    step("Configuring firewall")
    firewall.configure_firewall()
    return ctx


def authorize_node(ctx: ProvisioningContext) -> ProvisioningContext:
    """Authorize this node through the Central API. Failures only warn."""
    inputs, node_id = ctx.inputs, ctx.node_id
    if not node_id:
        warn("Could not read ZeroTier node ID - cannot authorize automatically")
        return replace(ctx, authorized=False)

    client = CentralClient(inputs.api_token)
    result = client.authorize_member(
        inputs.network_id, node_id, inputs.overlay_address, ctx.detected.hostname
    )
    if result.success:
        ok("Node authorized successfully")
    else:
        status = result.status_code if result.status_code is not None else "no response"
        warn(f"Authorization request failed (HTTP {status}): {escape(result.body)}")
        warn("Failed to authorize automatically - please authorize manually in ZeroTier Central")
    return replace(ctx, authorized=result.success, auth_status_code=result.status_code)


def stage_zerotier(ctx: ProvisioningContext, sleep: Sleep) -> ProvisioningContext:
    """Install, start and join ZeroTier, then authorize the node."""
    if not ctx.with_zerotier:
        return ctx

    step("Installing ZeroTier")
    zerotier.ensure_installed()
    zerotier.start_service()

    ready = zerotier.wait_until_active(sleep=sleep)
    if ready:
        ok("ZeroTier service is active")
    else:
        warn("ZeroTier service not confirmed active - continuing")

    network_id = ctx.inputs.network_id
    info(f"Joining network {network_id}...")
    zerotier.join_network(network_id)
    node_id = zerotier.get_node_id()
    ok(f"Joined network {network_id} as node {node_id or 'unknown'}")

    step("Authorizing node in ZeroTier")
    return authorize_node(replace(ctx, zerotier_ready=ready, node_id=node_id))


def stage_account(ctx: ProvisioningContext) -> ProvisioningContext:
    """Prepare the system user for Ansible."""
    user = ctx.detected.system_user
    step(f"Configuring {user} for Ansible access")
    generated = provision_account(user, ctx.detected.hostname)
    return replace(ctx, key_generated=generated)


def stage_persist(ctx: ProvisioningContext) -> ProvisioningContext:
    """Write the node record for the verify command."""
    step("Saving configuration")
    path = write_record(ctx.to_record())
    ok(f"Configuration saved to {path}")
    return replace(ctx, config_path=path)


def stage_verify(ctx: ProvisioningContext, sleep: Sleep) -> ProvisioningContext:
    """Give ZeroTier time to settle, then classify the membership."""
    step("Verification")
    if not ctx.with_zerotier:
        return ctx
    sleep(AUTHORIZATION_SETTLE_SECONDS)
    return replace(ctx, membership=zerotier.network_status(ctx.inputs.network_id))


def describe_membership(ctx: ProvisioningContext) -> str:
    """Human readable ZeroTier status line."""
    membership = ctx.membership
    if membership is None:
        return "status unavailable (network not listed)"
    address = membership.assigned_address or "no address yet"
    return f"{membership.status.value} ({membership.status_token}, {address})"


def next_steps(ctx: ProvisioningContext) -> list[str]:
    """Remediation and follow-up instructions for the operator."""
    user = ctx.detected.system_user
    steps: list[str] = []

    if not ctx.connectivity_ok:
        steps.append(
            f"Check connectivity: the ping after the IP change failed "
            f"(reconnect with ssh {user}@{ctx.inputs.static_address})"
        )

    if not ctx.with_zerotier:
        steps.append(f"From a machine on the same network: ssh {user}@{ctx.inputs.static_address}")
        steps.append("Run Thinkube installer")
        return steps

    if not ctx.zerotier_ready:
        steps.append("Confirm the ZeroTier service is running: systemctl status zerotier-one")

    if ctx.manual_authorization_required:
        steps.append(
            f"Authorize node {ctx.node_id or 'unknown'} manually at "
            f"{console_url(ctx.inputs.network_id)} and assign it {ctx.inputs.overlay_address}"
        )
    elif ctx.membership is None or ctx.membership.status != OverlayStatus.CONNECTED:
        steps.append("Verify ZeroTier shows 'OK' status: zerotier-cli listnetworks")

    steps.append(f"From a ZeroTier-connected machine: ssh {user}@{ctx.inputs.overlay_address}")
    steps.append("Run Thinkube installer using this user")
    return steps


def report(ctx: ProvisioningContext) -> None:
    """Print the final summary."""
    lines = [
        f"Hostname:         {ctx.detected.hostname}",
        f"Static IP:        {ctx.inputs.static_address}",
        f"SSH User:         {ctx.detected.system_user}",
    ]
    if ctx.with_zerotier:
        lines += [
            f"ZeroTier IP:      {ctx.inputs.overlay_address}",
            f"ZeroTier Node:    {ctx.node_id or 'unknown'}",
            f"ZeroTier Status:  {describe_membership(ctx)}",
        ]
    panel("\n".join(lines), title="Bootstrap Complete")

    console.print("Next Steps:")
    for number, text in enumerate(next_steps(ctx), start=1):
        detail(f"{number}. {text}")


def run_pipeline(
    ctx: ProvisioningContext,
    *,
    read: Reader | None = None,
    sleep: Sleep | None = None,
) -> ProvisioningContext:
    """Run every stage in order and return the final context."""
    read = read or read_input
    sleep = sleep or time.sleep
    ctx = stage_preflight(ctx)
    ctx = stage_discover(ctx)
    ctx = stage_ssh(ctx)
    ctx = stage_inputs(ctx, read)
    ctx = stage_network(ctx, read, sleep)
    ctx = stage_packages(ctx)
    ctx = stage_firewall(ctx)
    ctx = stage_zerotier(ctx, sleep)
    ctx = stage_account(ctx)
    ctx = stage_persist(ctx)
    ctx = stage_verify(ctx, sleep)
    report(ctx)
    return ctx


def report_failure(exc: NodeSetupError) -> None:
    """Print a fatal error with whatever diagnostics it carries."""
    error(escape(str(exc)))
    if isinstance(exc, InstallError):
        for name, reason in exc.failures:
            detail(f"{name}: {escape(reason)}")
    elif isinstance(exc, ServiceStartError):
        console.print(exc.diagnostics, highlight=False, markup=False)


def bootstrap(no_zerotier: bool = False) -> None:
    """Run the pipeline; fatal errors exit with status 1."""
    try:
        run_pipeline(ProvisioningContext(with_zerotier=not no_zerotier))
    except NodeSetupError as e:
        report_failure(e)
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        error("Interrupted")
        raise typer.Exit(130) from None
