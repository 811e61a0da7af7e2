"""Interactive collection of the operator-supplied provisioning values."""

from collections.abc import Callable
from dataclasses import dataclass

from nodesetup.core.network import DetectedNetwork
from nodesetup.core.validation import is_dotted_quad, is_network_id, is_token
from nodesetup.utils.output import console, error, info
from nodesetup.utils.terminal import read_input

Reader = Callable[..., str]


@dataclass(frozen=True)
class ProvisioningInput:
    """Values entered by the operator."""

    static_address: str
    network_id: str | None = None
    api_token: str | None = None
    overlay_address: str | None = None

    @property
    def with_zerotier(self) -> bool:
        """Whether overlay credentials were collected."""
        return self.network_id is not None


def prompt_until(
    read: Reader,
    prompt: str,
    validator: Callable[[str], bool],
    message: str,
    *,
    secret: bool = False,
) -> str:
    """Prompt repeatedly until validator accepts the answer.

    Invalid answers are reported and never raised.
    """
    while True:
        value = read(prompt, secret=secret).strip()
        if validator(value):
            return value
        error(message)


def collect_inputs(
    detected: DetectedNetwork,
    with_zerotier: bool,
    read: Reader = read_input,
) -> ProvisioningInput:
    """Ask for the static address and, optionally, ZeroTier credentials."""
    console.print(f"Current IP from DHCP: {detected.current_address} (for reference only)\n")
    console.print("You need to assign a static IP outside your DHCP range.")
    console.print("Common static IP ranges: 192.168.1.10-30, 192.168.1.200-254\n")

    static_address = prompt_until(
        read, "Enter static IP address for this node: ", is_dotted_quad, "Invalid IP format"
    )

    if not with_zerotier:
        return ProvisioningInput(static_address=static_address)

    info("ZeroTier configuration requires:")
    console.print("  - ZeroTier Network ID (16 characters)")
    console.print("  - ZeroTier API Token (from my.zerotier.com)\n")

    network_id = prompt_until(
        read, "ZeroTier Network ID: ", is_network_id, "Network ID must be 16 characters"
    )
    api_token = prompt_until(
        read, "ZeroTier API Token: ", is_token, "API Token cannot be empty", secret=True
    )
    overlay_address = prompt_until(
        read, "ZeroTier IP for this node: ", is_dotted_quad, "Invalid IP format"
    )

    return ProvisioningInput(
        static_address=static_address,
        network_id=network_id,
        api_token=api_token,
        overlay_address=overlay_address,
    )
