"""Tests for the ZeroTier Central API client."""

import json

import httpx

from nodesetup.core.central import CentralClient, console_url, get_api_url

NETWORK_ID = "8056c2e21c000001"
NODE_ID = "a1b2c3d4e5"


def make_client(handler, token="secret-token"):
    return CentralClient(
        token,
        base_url="https://api.zerotier.com/api/v1",
        transport=httpx.MockTransport(handler),
    )


class TestAuthorizeMember:
    """Member authorization requests."""

    def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": NODE_ID})

        make_client(handler).authorize_member(NETWORK_ID, NODE_ID, "192.168.191.10", "node1")

        assert seen["method"] == "POST"
        assert seen["url"] == (
            f"https://api.zerotier.com/api/v1/network/{NETWORK_ID}/member/{NODE_ID}"
        )
        assert seen["auth"] == "Bearer secret-token"
        assert seen["body"] == {
            "name": "node1",
            "description": "Thinkube node",
            "config": {
                "authorized": True,
                "ipAssignments": ["192.168.191.10"],
                "noAutoAssignIps": True,
            },
        }

    def test_200_is_success(self):
        result = make_client(lambda r: httpx.Response(200, json={})).authorize_member(
            NETWORK_ID, NODE_ID, "10.0.0.1", "node1"
        )
        assert result.success is True
        assert result.status_code == 200

    def test_201_is_success(self):
        result = make_client(lambda r: httpx.Response(201, json={})).authorize_member(
            NETWORK_ID, NODE_ID, "10.0.0.1", "node1"
        )
        assert result.success is True
        assert result.status_code == 201

    def test_403_is_failure_with_body(self):
        result = make_client(
            lambda r: httpx.Response(403, text='{"message": "forbidden"}')
        ).authorize_member(NETWORK_ID, NODE_ID, "10.0.0.1", "node1")

        assert result.success is False
        assert result.status_code == 403
        assert "forbidden" in result.body

    def test_transport_error_does_not_raise(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        result = make_client(handler).authorize_member(NETWORK_ID, NODE_ID, "10.0.0.1", "node1")

        assert result.success is False
        assert result.status_code is None
        assert "Name or service not known" in result.body


class TestUrls:
    """URL helpers."""

    def test_api_url_override(self, monkeypatch):
        monkeypatch.setenv("ZEROTIER_API_URL", "http://localhost:9000/api/v1/")
        assert get_api_url() == "http://localhost:9000/api/v1"

    def test_api_url_default(self, monkeypatch):
        monkeypatch.delenv("ZEROTIER_API_URL", raising=False)
        assert get_api_url() == "https://api.zerotier.com/api/v1"

    def test_console_url(self):
        assert console_url(NETWORK_ID) == f"https://my.zerotier.com/network/{NETWORK_ID}"
