"""Node preparation tools (static network, ZeroTier, Ansible account)."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("node-setup")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"
