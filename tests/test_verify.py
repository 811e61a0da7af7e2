"""Tests for the verify command."""

from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from nodesetup import cli
from nodesetup.commands import verify
from nodesetup.core import zerotier
from nodesetup.core.config import NodeConfigRecord, write_record
from nodesetup.core.zerotier import parse_listnetworks
from nodesetup.utils.process import CommandResult

NETWORK_ID = "8056c2e21c000001"

runner = CliRunner()


def make_record(**overrides) -> NodeConfigRecord:
    values = dict(
        hostname="node1",
        interface="eth0",
        static_ip="192.168.1.20",
        subnet_prefix=24,
        gateway="192.168.1.1",
        dns_server="192.168.1.1",
        system_user="alice",
        zerotier_enabled=True,
        zerotier_network_id=NETWORK_ID,
        zerotier_node_id="a1b2c3d4e5",
        zerotier_ip="192.168.191.10",
    )
    values.update(overrides)
    return NodeConfigRecord(**values)


def membership(status: str):
    return parse_listnetworks(
        f"200 listnetworks {NETWORK_ID} thinkube 12:34:56:78:9a:bc {status} PRIVATE ztabcdef12 "
        "192.168.191.10/24\n"
    )[0]


@pytest.fixture
def healthy(monkeypatch, tmp_path):
    """A node that matches its record."""
    config_file = tmp_path / "thinkube-bootstrap.conf"
    monkeypatch.setenv("NODESETUP_CONFIG_FILE", str(config_file))

    home = tmp_path / "home" / "alice"
    (home / ".ssh").mkdir(parents=True)
    (home / ".ssh" / "id_ed25519").write_text("PRIVATE")

    def fake_run(cmd, **kwargs):
        if cmd[:3] == ["ip", "-4", "addr"]:
            return CommandResult(0, "    inet 192.168.1.20/24 brd 192.168.1.255 scope global eth0\n", "")
        return CommandResult(0, "", "")

    state = MagicMock()
    state.config_file = config_file
    state.membership = membership("OK")

    monkeypatch.setattr(verify, "get_hostname", lambda: "node1")
    monkeypatch.setattr(verify, "run", fake_run)
    monkeypatch.setattr(verify, "run_as", lambda user, cmd, **kwargs: CommandResult(0, "", ""))
    monkeypatch.setattr(verify, "service_is_active", lambda service: True)
    monkeypatch.setattr(verify, "probe_connectivity", lambda: True)
    monkeypatch.setattr(verify.pwd, "getpwnam", lambda user: MagicMock(pw_dir=str(home)))
    monkeypatch.setattr(zerotier, "network_status", lambda network_id: state.membership)
    return state


class TestBuildChecks:
    """Which checks apply."""

    def test_with_zerotier(self):
        names = [name for name, _ in verify.build_checks(make_record())]
        assert "ZeroTier authorized" in names
        assert names[0] == "Hostname"
        assert names[-1] == "SSH key exists"

    def test_local_only(self):
        record = make_record(zerotier_enabled=False, zerotier_network_id=None, zerotier_ip=None)
        names = [name for name, _ in verify.build_checks(record)]
        assert not any(name.startswith("ZeroTier") for name in names)


class TestVerifyCommand:
    """Exit codes."""

    def test_missing_config(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NODESETUP_CONFIG_FILE", str(tmp_path / "absent.conf"))

        result = runner.invoke(cli.verify_app, [])

        assert result.exit_code == 1
        assert "node-bootstrap" in result.output

    def test_invalid_config(self, monkeypatch, tmp_path):
        config_file = tmp_path / "bad.conf"
        config_file.write_text("HOSTNAME=node1\n")
        monkeypatch.setenv("NODESETUP_CONFIG_FILE", str(config_file))

        result = runner.invoke(cli.verify_app, [])

        assert result.exit_code == 1

    def test_all_checks_pass(self, healthy):
        write_record(make_record(), healthy.config_file)

        result = runner.invoke(cli.verify_app, [])

        assert result.exit_code == 0
        assert "FAILED" not in result.output
        assert "ready for Thinkube" in result.output

    def test_pending_authorization_fails(self, healthy):
        write_record(make_record(), healthy.config_file)
        healthy.membership = membership("REQUESTING_CONFIGURATION")

        result = runner.invoke(cli.verify_app, [])

        assert result.exit_code == 1
        assert "1 issue" in result.output

    def test_wrong_static_ip_fails(self, healthy):
        write_record(make_record(static_ip="192.168.1.21"), healthy.config_file)

        result = runner.invoke(cli.verify_app, [])

        assert result.exit_code == 1
