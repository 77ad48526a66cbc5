"""
Unit tests for the backend API client
"""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest

from safetrack.core.api_client import ApiClient, unwrap_collection, unwrap_object
from safetrack.core.errors import ApiError
from tests.base import AsyncTestCase


class TestUnwrap:
    """Test response normalization"""

    def test_collection_shapes(self):
        items = [{"_id": "1"}]
        assert unwrap_collection(items) == items
        assert unwrap_collection({"devices": items}, "devices") == items
        assert unwrap_collection({"data": items}) == items
        assert unwrap_collection({"success": True}) == []
        assert unwrap_collection(None) == []

    def test_object_shapes(self):
        assert unwrap_object({"device": {"_id": "1"}}, "device") == {"_id": "1"}
        assert unwrap_object({"data": {"_id": "2"}}) == {"_id": "2"}
        assert unwrap_object({"_id": "3"}) == {"_id": "3"}
        assert unwrap_object(None) == {}


class TestApiClient(AsyncTestCase):
    """Test request handling with the transport patched out"""

    def setup_method(self):
        super().setup_method()
        self.client = ApiClient("https://api.example.com/api/", token="t0k", max_retries=2, backoff_base=0)
        self.client._send = AsyncMock()

    @pytest.mark.asyncio
    async def test_success(self):
        self.client._send.return_value = (200, {"data": [{"_id": "d1"}]})

        devices = await self.client.get_devices()

        assert devices == [{"_id": "d1"}]
        self.client._send.assert_awaited_once_with(
            'GET', "https://api.example.com/api/devices", None, None
        )

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        self.client._send.return_value = (404, {"message": "Device not found"})

        with pytest.raises(ApiError) as exc_info:
            await self.client.get_device("missing")

        assert exc_info.value.status == 404
        assert exc_info.value.server_message == "Device not found"
        assert self.client._send.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        self.client._send.side_effect = [(502, None), (500, None), (200, {"sosId": "s1"})]

        result = await self.client.create_sos(28.6, 77.2)

        assert result == {"sosId": "s1"}
        assert self.client._send.await_count == 3
        self.client._send.assert_awaited_with(
            'POST', "https://api.example.com/api/sos/trigger", None, {"lat": 28.6, "lng": 77.2}
        )

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        self.client._send.return_value = (503, None)

        with pytest.raises(ApiError) as exc_info:
            await self.client.get_sos_history()

        assert exc_info.value.status == 503
        assert self.client._send.await_count == 3

    @pytest.mark.asyncio
    async def test_connection_errors(self):
        self.client._send.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(ApiError):
            await self.client.get_devices()

        assert self.client._send.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout_then_success(self):
        self.client._send.side_effect = [asyncio.TimeoutError(), (200, [])]

        assert await self.client.get_role_alerts("police") == []

    @pytest.mark.asyncio
    async def test_history_params(self):
        self.client._send.return_value = (200, {"locations": []})

        await self.client.get_location_history("dev-1", limit=100)

        method, url, params, body = self.client._send.await_args.args
        assert url.endswith("/device-locations/device/dev-1")
        assert params == {"limit": 100}

    @pytest.mark.asyncio
    async def test_sos_location_point_body(self):
        self.client._send.return_value = (201, {"_id": "p1"})

        await self.client.create_location_point("dev-1", 1.0, 2.0, accuracy=0, source="app", is_sos=True)

        method, url, params, body = self.client._send.await_args.args
        assert url.endswith("/device-locations/browser")
        assert body["deviceId"] == "dev-1"
        assert body["isSOS"] is True
        assert body["source"] == "app"

    @pytest.mark.asyncio
    async def test_alert_status_uses_role_endpoint(self):
        self.client._send.return_value = (200, {"alert": {"status": "assigned"}})

        result = await self.client.update_alert_status("a1", "assigned", "hospital")

        assert result == {"status": "assigned"}
        method, url, params, body = self.client._send.await_args.args
        assert method == 'PATCH'
        assert url.endswith("/hospital/alerts/a1")
        assert body == {"status": "assigned"}

    @pytest.mark.asyncio
    async def test_device_status_endpoint(self):
        self.client._send.return_value = (200, {"device": {"_id": "d1", "status": "online"}})

        await self.client.update_device_status("d1", "online")

        method, url, _, _ = self.client._send.await_args.args
        assert method == 'PATCH'
        assert url.endswith("/devices/d1/status/online")

    @pytest.mark.asyncio
    async def test_on_duty_endpoints(self):
        self.client._send.return_value = (200, {"success": True, "data": {"onDuty": True}})

        await self.client.toggle_on_duty(True, 28.6, 77.2)
        method, url, _, body = self.client._send.await_args.args
        assert (method, body) == ('POST', {"onDuty": True, "lat": 28.6, "lng": 77.2})
        assert url.endswith("/on-duty/toggle")

        await self.client.toggle_on_duty(False)
        assert self.client._send.await_args.args[3] == {"onDuty": False}

        await self.client.update_on_duty_location(28.6, 77.2, accuracy=8.0, speed=36.0)
        method, url, _, body = self.client._send.await_args.args
        assert url.endswith("/on-duty/location")
        assert body == {"lat": 28.6, "lng": 77.2, "accuracy": 8.0, "speed": 36.0}

        status = await self.client.get_on_duty_status()
        assert status == {"onDuty": True}
        assert self.client._send.await_args.args[:2] == ('GET', "https://api.example.com/api/on-duty/status")

    def test_auth_header(self):
        assert self.client._auth_headers() == {'Authorization': 'Bearer t0k'}
        self.client.set_token(None)
        assert self.client._auth_headers() == {}
