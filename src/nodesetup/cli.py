"""Console entry points."""

import typer

from nodesetup import __version__
from nodesetup.commands import bootstrap, peers, verify

app = typer.Typer(
    name="node-bootstrap",
    help="Prepare an Ubuntu node for Thinkube (static IP, ZeroTier, Ansible user)",
    add_completion=False,
    rich_markup_mode="rich",
)

verify_app = typer.Typer(
    name="node-verify",
    help="Verify a bootstrapped node",
    add_completion=False,
    rich_markup_mode="rich",
)

peers_app = typer.Typer(
    name="node-test-zerotier",
    help="Test ZeroTier connectivity to other nodes",
    add_completion=False,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"node-setup {__version__}")
        raise typer.Exit()


@app.command()
def main(
    no_zerotier: bool = typer.Option(
        False, "--no-zerotier", help="Skip ZeroTier installation (local network only)"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Prepare this Ubuntu node for Thinkube/Ansible.

    Configures a static IP, installs SSH and base packages, opens the
    firewall, joins and authorizes a ZeroTier network, and gives the invoking
    user passwordless sudo and an SSH key. Must be run as root.
    """
    bootstrap.bootstrap(no_zerotier=no_zerotier)


verify_app.command(name="verify")(verify.verify)
peers_app.command(name="test-zerotier")(peers.check_peers)


if __name__ == "__main__":
    app()
