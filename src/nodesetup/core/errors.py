"""Exceptions raised by provisioning steps."""


class NodeSetupError(Exception):
    """Base class for fatal provisioning errors."""

    pass


class PreflightError(NodeSetupError):
    """The host is not a supported target (privileges, OS, network facts, user)."""

    pass


class TerminalUnavailableError(NodeSetupError):
    """No controlling terminal is available to prompt the operator on."""

    pass


class StepError(NodeSetupError):
    """A host mutation failed and the run cannot safely continue."""

    pass


class InstallError(StepError):
    """Every installation strategy failed."""

    def __init__(self, package: str, failures: list[tuple[str, str]]) -> None:
        self.package = package
        self.failures = failures
        super().__init__(f"Failed to install {package} ({len(failures)} strategies tried)")


class ServiceStartError(StepError):
    """A systemd service could not be started."""

    def __init__(self, service: str, diagnostics: str) -> None:
        self.service = service
        self.diagnostics = diagnostics
        super().__init__(f"Failed to start {service}")


class NetworkJoinError(StepError):
    """Joining the overlay network failed."""

    pass
