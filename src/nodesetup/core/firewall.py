"""UFW firewall rules."""

from nodesetup.core.errors import StepError
from nodesetup.utils.output import ok, warn
from nodesetup.utils.process import run

ZEROTIER_PORT_RULE = "9993/udp"
ALLOW_RULES = ["ssh", ZEROTIER_PORT_RULE]


def allow(rule: str) -> None:
    """Add an allow rule (ufw ignores duplicates)."""
    result = run(["ufw", "allow", rule], timeout=30)
    if not result.success:
        raise StepError(f"ufw allow {rule} failed: {result.output}")


def enable() -> bool:
    """Enable the firewall without the interactive confirmation."""
    return run(["ufw", "--force", "enable"], timeout=30).success


def configure_firewall() -> None:
    """Open SSH and the ZeroTier port, then enable UFW."""
    for rule in ALLOW_RULES:
        allow(rule)
        ok(f"Firewall allows {rule}")

    if enable():
        ok("Firewall enabled")
    else:
        warn("Could not enable firewall - check with: ufw status")
