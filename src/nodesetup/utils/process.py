"""Subprocess execution helpers."""

import os
import shutil
import subprocess
from dataclasses import dataclass

NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


@dataclass
class CommandResult:
    """Result of a command execution."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        return (self.stdout + self.stderr).strip()


def run(
    cmd: list[str],
    *,
    capture: bool = True,
    timeout: int | None = None,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run a command and return the result.

    Never raises for a failing command: timeouts and missing binaries are
    reported as returncode -1 with the reason in stderr.
    """
    # Merge provided env with current environment
    run_env = None
    if env:
        run_env = os.environ.copy()
        run_env.update(env)

    try:
        result = subprocess.run(
            cmd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=run_env,
        )
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout if capture else "",
            stderr=result.stderr if capture else "",
        )
    except subprocess.TimeoutExpired:
        return CommandResult(returncode=-1, stdout="", stderr="Command timed out")
    except FileNotFoundError:
        return CommandResult(returncode=-1, stdout="", stderr=f"Command not found: {cmd[0]}")


def run_as(user: str, cmd: list[str], **kwargs) -> CommandResult:
    """Run a command as another user (caller must be root)."""
    return run(["sudo", "-u", user] + cmd, **kwargs)


def command_exists(cmd: str) -> bool:
    """Check if a command exists in PATH."""
    return shutil.which(cmd) is not None


def service_is_active(service: str) -> bool:
    """Check if a systemd unit is active."""
    result = run(["systemctl", "is-active", service], timeout=10)
    return result.stdout.strip() == "active"
