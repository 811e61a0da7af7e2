"""Package installation with apt (ensure-installed semantics)."""

from nodesetup.core.errors import StepError
from nodesetup.utils.output import info, ok
from nodesetup.utils.process import NONINTERACTIVE_ENV, command_exists, run

SSH_PACKAGES = ["openssh-server", "openssh-client"]
SSH_SERVICE = "ssh"

BASE_PACKAGES = [
    "curl",
    "wget",
    "gnupg",
    "apt-transport-https",
    "ca-certificates",
    "python3",
    "python3-pip",
    "python3-venv",
    "ufw",
]

APT_TIMEOUT = 900


def apt_update() -> None:
    """Refresh the package index."""
    result = run(["apt-get", "update"], env=NONINTERACTIVE_ENV, timeout=APT_TIMEOUT)
    if not result.success:
        raise StepError(f"apt-get update failed: {result.output}")


def apt_install(packages: list[str]) -> None:
    """Install packages, a no-op for those already present."""
    result = run(
        ["apt-get", "install", "-y"] + packages,
        env=NONINTERACTIVE_ENV,
        timeout=APT_TIMEOUT,
    )
    if not result.success:
        raise StepError(f"Failed to install {', '.join(packages)}: {result.output}")


def ensure_ssh_server() -> bool:
    """Install openssh-server if sshd is missing, and make sure it runs.

    Returns:
        True if packages were installed by this call.
    """
    installed = False
    if command_exists("sshd"):
        ok("OpenSSH Server is already installed")
    else:
        info("Installing OpenSSH Server...")
        apt_update()
        apt_install(SSH_PACKAGES)
        installed = True

    run(["systemctl", "enable", SSH_SERVICE])
    result = run(["systemctl", "start", SSH_SERVICE])
    if not result.success:
        raise StepError(f"Failed to start {SSH_SERVICE}: {result.output}")
    return installed


def ensure_base_packages() -> None:
    """Install the base toolset."""
    apt_update()
    apt_install(BASE_PACKAGES)
    ok(f"Installed {len(BASE_PACKAGES)} base packages")
