"""ZeroTier Central REST API client."""

import os
from dataclasses import dataclass

import httpx

DEFAULT_API_URL = "https://api.zerotier.com/api/v1"
CONSOLE_URL = "https://my.zerotier.com/network"
MEMBER_DESCRIPTION = "Thinkube node"


def get_api_url() -> str:
    """Get the Central API base URL (override with ZEROTIER_API_URL)."""
    return os.environ.get("ZEROTIER_API_URL", DEFAULT_API_URL).rstrip("/")


def console_url(network_id: str) -> str:
    """URL of the network's page in ZeroTier Central."""
    return f"{CONSOLE_URL}/{network_id}"


@dataclass(frozen=True)
class AuthorizationResult:
    """Outcome of a member authorization request."""

    success: bool
    status_code: int | None
    body: str


class CentralClient:
    """Client for the ZeroTier Central member API."""

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30,
    ) -> None:
        """Initialize with an API token and optional transport override."""
        self.base_url = (base_url or get_api_url()).rstrip("/")
        self._token = token
        self._transport = transport
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        """Get headers with bearer token."""
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def member_url(self, network_id: str, node_id: str) -> str:
        """URL of a network member."""
        return f"{self.base_url}/network/{network_id}/member/{node_id}"

    def authorize_member(
        self,
        network_id: str,
        node_id: str,
        ip: str,
        name: str,
        description: str = MEMBER_DESCRIPTION,
    ) -> AuthorizationResult:
        """Authorize a member and pin its managed IP.

        Never raises: an unreachable API is reported as a failed result with
        no status code.
        """
        payload = {
            "name": name,
            "description": description,
            "config": {
                "authorized": True,
                "ipAssignments": [ip],
                "noAutoAssignIps": True,
            },
        }
        try:
            with httpx.Client(transport=self._transport, timeout=self.timeout) as client:
                resp = client.post(
                    self.member_url(network_id, node_id),
                    headers=self._headers(),
                    json=payload,
                )
        except httpx.HTTPError as e:
            return AuthorizationResult(success=False, status_code=None, body=str(e))

        return AuthorizationResult(
            success=resp.status_code in (200, 201),
            status_code=resp.status_code,
            body=resp.text,
        )
