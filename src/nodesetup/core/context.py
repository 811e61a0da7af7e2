"""State threaded through the bootstrap pipeline."""

from dataclasses import dataclass
from pathlib import Path

from nodesetup.core.config import NodeConfigRecord
from nodesetup.core.inputs import ProvisioningInput
from nodesetup.core.network import DetectedNetwork
from nodesetup.core.zerotier import NetworkMembership


@dataclass(frozen=True)
class ProvisioningContext:
    """Immutable snapshot of a bootstrap run.

    Each stage takes a context and returns an updated copy
    (``dataclasses.replace``). Fatal problems are raised as NodeSetupError
    instead of being recorded here; degraded ones are recorded as flags so the
    final report can repeat them.
    """

    with_zerotier: bool = True
    detected: DetectedNetwork | None = None
    inputs: ProvisioningInput | None = None
    netplan_backup: Path | None = None
    connectivity_ok: bool = True
    zerotier_ready: bool = True
    node_id: str | None = None
    authorized: bool = False
    auth_status_code: int | None = None
    membership: NetworkMembership | None = None
    key_generated: bool = False
    config_path: Path | None = None

    @property
    def manual_authorization_required(self) -> bool:
        """ZeroTier was requested but the API did not authorize the node."""
        return self.with_zerotier and not self.authorized

    def to_record(self) -> NodeConfigRecord:
        """Build the persisted record from the collected state."""
        if self.detected is None or self.inputs is None:
            raise ValueError("Network discovery and input collection must run first")
        return NodeConfigRecord(
            hostname=self.detected.hostname,
            interface=self.detected.interface,
            static_ip=self.inputs.static_address,
            subnet_prefix=self.detected.prefix_length,
            gateway=self.detected.gateway,
            dns_server=self.detected.dns_server,
            system_user=self.detected.system_user,
            zerotier_enabled=self.with_zerotier,
            zerotier_network_id=self.inputs.network_id,
            zerotier_node_id=self.node_id,
            zerotier_ip=self.inputs.overlay_address,
        )
