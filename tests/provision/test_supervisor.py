"""Tests para el cliente del supervisor."""

import json

import httpx
import pytest

from modules.cloudrelay_provision.supervisor import SupervisorClient


SUPERVISOR_ADDRESS = "http://127.0.0.1:48484"


def recording_transport(requests, status_code=200):
    def handler(request):
        requests.append(request)
        return httpx.Response(status_code, text="OK")
    return httpx.MockTransport(handler)


class TestSupervisorRefresh:
    """Tests para SupervisorClient.refresh."""

    @pytest.mark.asyncio
    async def test_refresh_request(self):
        """Test petición de actualización forzada."""
        requests = []
        client = SupervisorClient(SUPERVISOR_ADDRESS + "/", "secret", transport=recording_transport(requests))

        assert await client.refresh() is True

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/update"
        assert request.url.params["apikey"] == "secret"
        assert json.loads(request.content) == {"force": True}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address,api_key", [
        (None, "secret"),
        (SUPERVISOR_ADDRESS, None),
    ])
    async def test_not_configured(self, address, api_key):
        """Test sin supervisor configurado no hay petición."""
        requests = []
        client = SupervisorClient(address, api_key, transport=recording_transport(requests))

        assert await client.refresh() is False
        assert requests == []

    @pytest.mark.asyncio
    async def test_error_status(self):
        requests = []
        client = SupervisorClient(SUPERVISOR_ADDRESS, "secret", transport=recording_transport(requests, 401))

        assert await client.refresh() is False

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Test que un error de conexión no se propaga."""
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = SupervisorClient(SUPERVISOR_ADDRESS, "secret", transport=httpx.MockTransport(handler))

        assert await client.refresh() is False
