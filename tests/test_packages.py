"""Tests for package and firewall provisioning."""

from unittest.mock import patch

import pytest

from nodesetup.core.errors import StepError
from nodesetup.core.firewall import configure_firewall
from nodesetup.core.packages import BASE_PACKAGES, ensure_base_packages, ensure_ssh_server
from nodesetup.utils.process import CommandResult

OK = CommandResult(returncode=0, stdout="", stderr="")
FAILED = CommandResult(returncode=1, stdout="", stderr="E: Unable to locate package")


def commands(mock_run) -> list[list[str]]:
    return [c.args[0] for c in mock_run.call_args_list]


class TestSshServer:
    """OpenSSH ensure-installed."""

    @patch("nodesetup.core.packages.run", return_value=OK)
    @patch("nodesetup.core.packages.command_exists", return_value=True)
    def test_present_is_not_reinstalled(self, mock_exists, mock_run):
        assert ensure_ssh_server() is False
        assert commands(mock_run) == [
            ["systemctl", "enable", "ssh"],
            ["systemctl", "start", "ssh"],
        ]

    @patch("nodesetup.core.packages.run", return_value=OK)
    @patch("nodesetup.core.packages.command_exists", return_value=False)
    def test_missing_is_installed(self, mock_exists, mock_run):
        assert ensure_ssh_server() is True
        cmds = commands(mock_run)
        assert cmds[0] == ["apt-get", "update"]
        assert cmds[1] == ["apt-get", "install", "-y", "openssh-server", "openssh-client"]
        assert mock_run.call_args_list[1].kwargs["env"] == {"DEBIAN_FRONTEND": "noninteractive"}

    @patch("nodesetup.core.packages.run")
    @patch("nodesetup.core.packages.command_exists", return_value=True)
    def test_start_failure_raises(self, mock_exists, mock_run):
        mock_run.side_effect = [OK, CommandResult(returncode=1, stdout="", stderr="masked")]
        with pytest.raises(StepError, match="masked"):
            ensure_ssh_server()


class TestBasePackages:
    """Base toolset."""

    @patch("nodesetup.core.packages.run", return_value=OK)
    def test_installs_toolset(self, mock_run):
        ensure_base_packages()
        assert commands(mock_run)[1] == ["apt-get", "install", "-y"] + BASE_PACKAGES
        assert "ufw" in BASE_PACKAGES

    @patch("nodesetup.core.packages.run")
    def test_install_failure_raises(self, mock_run):
        mock_run.side_effect = [OK, FAILED]
        with pytest.raises(StepError, match="Unable to locate package"):
            ensure_base_packages()


class TestFirewall:
    """UFW rules."""

    @patch("nodesetup.core.firewall.run", return_value=OK)
    def test_rules_then_enable(self, mock_run):
        configure_firewall()
        assert commands(mock_run) == [
            ["ufw", "allow", "ssh"],
            ["ufw", "allow", "9993/udp"],
            ["ufw", "--force", "enable"],
        ]

    @patch("nodesetup.core.firewall.run")
    def test_enable_failure_only_warns(self, mock_run, capsys):
        mock_run.side_effect = [OK, OK, FAILED]
        configure_firewall()
        assert "Could not enable firewall" in capsys.readouterr().out

    @patch("nodesetup.core.firewall.run", return_value=FAILED)
    def test_rule_failure_raises(self, mock_run):
        with pytest.raises(StepError, match="ufw allow ssh"):
            configure_firewall()
