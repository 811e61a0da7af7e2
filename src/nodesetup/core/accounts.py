"""Automation account provisioning (sudo policy and SSH key pair)."""

import os
import pwd
from pathlib import Path

from nodesetup.core.errors import PreflightError, StepError
from nodesetup.utils.output import ok, warn
from nodesetup.utils.process import run, run_as

ADMIN_GROUP = "sudo"
KEY_NAME = "id_ed25519"


def get_sudoers_dir() -> Path:
    """Get the sudoers drop-in directory (override with NODESETUP_SUDOERS_DIR)."""
    return Path(os.environ.get("NODESETUP_SUDOERS_DIR", "/etc/sudoers.d"))


def sudoers_policy(user: str) -> str:
    """Passwordless sudo rule for a single user."""
    return f"{user} ALL=(ALL) NOPASSWD:ALL\n"


def ensure_admin_group(user: str, group: str = ADMIN_GROUP) -> bool:
    """Add user to the admin group (usermod -aG is idempotent)."""
    result = run(["usermod", "-aG", group, user], timeout=30)
    if not result.success:
        warn(f"Could not add {user} to {group}: {result.output}")
    return result.success


def sudoers_filename(user: str) -> str:
    """Drop-in file name for user; sudo skips names that contain a dot."""
    return user.replace(".", "_")


def write_sudoers(user: str, sudoers_dir: Path | None = None) -> Path:
    """Write the user's passwordless sudo policy, replacing any previous one.

    Returns:
        Path of the policy file.

    Raises:
        StepError: If the policy file cannot be written.
    """
    name = sudoers_filename(user)
    path = (sudoers_dir or get_sudoers_dir()) / name
    # the dotted temp name is ignored by sudo until it is renamed
    tmp = path.with_name(f".{name}.tmp")
    try:
        tmp.unlink(missing_ok=True)
        tmp.write_text(sudoers_policy(user))
        tmp.chmod(0o440)
        os.replace(tmp, path)
    except OSError as e:
        raise StepError(f"Could not write sudo policy {path}: {e}") from e
    return path


def ensure_ssh_dir(home: Path, uid: int, gid: int) -> Path:
    """Create ~/.ssh owned by the user with mode 0700."""
    ssh_dir = home / ".ssh"
    ssh_dir.mkdir(parents=True, exist_ok=True)
    ssh_dir.chmod(0o700)
    os.chown(ssh_dir, uid, gid)
    return ssh_dir


def ensure_ssh_key(user: str, home: Path, hostname: str) -> bool:
    """Generate an Ed25519 key pair unless one already exists.

    Returns:
        True if a new key was generated.

    Raises:
        StepError: If ssh-keygen fails.
    """
    key_path = home / ".ssh" / KEY_NAME
    if key_path.exists():
        return False

    result = run_as(
        user,
        ["ssh-keygen", "-t", "ed25519", "-f", str(key_path), "-N", "", "-C", f"{user}@{hostname}"],
        timeout=60,
    )
    if not result.success:
        raise StepError(f"ssh-keygen failed for {user}: {result.output}")
    return True


def provision_account(user: str, hostname: str, sudoers_dir: Path | None = None) -> bool:
    """Give user passwordless sudo and an SSH key pair.

    Returns:
        True if a key pair was generated by this call.
    """
    try:
        entry = pwd.getpwnam(user)
    except KeyError:
        raise PreflightError(f"System user {user} does not exist") from None

    if ensure_admin_group(user):
        ok(f"{user} is in the {ADMIN_GROUP} group")

    policy = write_sudoers(user, sudoers_dir)
    ok(f"Passwordless sudo configured ({policy})")

    home = Path(entry.pw_dir)
    ensure_ssh_dir(home, entry.pw_uid, entry.pw_gid)

    generated = ensure_ssh_key(user, home, hostname)
    if generated:
        ok(f"Generated SSH key {home / '.ssh' / KEY_NAME}")
    else:
        ok("SSH key already exists")
    return generated
