"""
SafeTrack Backend API Client

Async HTTP client for the SafeTrack backend: device registry, location
history store, SOS creation and alert status updates. Responses are
normalized here, once, so callers never branch on payload shape.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from .errors import ApiError


def unwrap_collection(payload: Any, *keys: str) -> List[Any]:
    """
    Normalize a collection response to a list

    The backend returns collections either as a bare list or wrapped in an
    object under one of several keys (``{"devices": [...]}``,
    ``{"data": [...]}``). Anything else normalizes to an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys + ('data', 'items', 'results'):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def unwrap_object(payload: Any, *keys: str) -> Dict[str, Any]:
    """Normalize a single-object response, unwrapping ``{"data": {...}}``"""
    if not isinstance(payload, dict):
        return {}
    for key in keys + ('data',):
        value = payload.get(key)
        if isinstance(value, dict):
            return value
    return payload


class ApiClient:
    """
    Backend API client with retry and error handling

    Server errors (5xx), connection errors and timeouts are retried with
    exponential backoff; client errors (4xx) fail immediately.
    """

    def __init__(self, base_url: str, token: Optional[str] = None,
                 timeout: float = 30, max_retries: int = 2,
                 backoff_base: float = 1.0,
                 user_agent: str = "SafeTrack/1.0"):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.user_agent = user_agent
        self.logger = logging.getLogger(__name__)

        self.session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config) -> 'ApiClient':
        """Create a client from a ConfigurationManager"""
        return cls(
            base_url=config.get('api.base_url'),
            token=config.get('api.token'),
            timeout=config.get('api.timeout', 30),
            max_retries=config.get('api.max_retries', 2)
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the HTTP session"""
        if self.session is None or self.session.closed:
            headers = {
                'User-Agent': self.user_agent,
                'Accept': 'application/json',
                'Content-Type': 'application/json'
            }
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=headers
            )

    async def close(self):
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def _auth_headers(self) -> Dict[str, str]:
        if self.token:
            return {'Authorization': f'Bearer {self.token}'}
        return {}

    async def _send(self, method: str, url: str,
                    params: Optional[Dict[str, Any]] = None,
                    body: Optional[Any] = None) -> Tuple[int, Any]:
        """Perform one HTTP round trip, returning (status, decoded body)"""
        await self.start()

        async with self.session.request(
            method,
            url,
            params=params,
            json=body,
            headers=self._auth_headers()
        ) as response:
            text = await response.text()
            if not text:
                return response.status, None
            try:
                return response.status, json.loads(text)
            except json.JSONDecodeError:
                return response.status, {'message': text}

    async def request(self, method: str, path: str,
                      params: Optional[Dict[str, Any]] = None,
                      body: Optional[Any] = None) -> Any:
        """
        Make an API request with retry logic

        Args:
            method: HTTP method
            path: Path relative to the base URL
            params: Query parameters (None values are dropped)
            body: JSON request body

        Returns:
            Decoded JSON response body (None for empty responses)

        Raises:
            ApiError: If the request fails after all retries
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        retry_count = 0
        while True:
            try:
                self.logger.debug(f"{method} {url}")
                status, payload = await self._send(method, url, params, body)

                if status < 400:
                    return payload

                message = payload.get('message') if isinstance(payload, dict) else None
                error = ApiError(
                    f"HTTP {status} for {method} {path}: {message or 'request failed'}",
                    status=status,
                    payload=payload if isinstance(payload, dict) else None
                )
                # Don't retry on client errors (4xx)
                if status < 500 or retry_count >= self.max_retries:
                    raise error

            except aiohttp.ClientError as e:
                if retry_count >= self.max_retries:
                    raise ApiError(f"Connection error for {method} {path} after {retry_count} retries: {e}")

            except asyncio.TimeoutError:
                if retry_count >= self.max_retries:
                    raise ApiError(f"Request timeout for {method} {path} after {retry_count} retries")

            wait_time = self.backoff_base * (2 ** retry_count)
            retry_count += 1
            self.logger.warning(f"Retrying {method} {path} in {wait_time}s (attempt {retry_count})")
            await asyncio.sleep(wait_time)

    # Location history store

    async def get_location_history(self, device_id: str, start_date: Optional[str] = None,
                                   end_date: Optional[str] = None,
                                   limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Raw location reports for a device, unordered"""
        payload = await self.request(
            'GET',
            f'/device-locations/device/{device_id}',
            params={'startDate': start_date, 'endDate': end_date, 'limit': limit}
        )
        return unwrap_collection(payload, 'locations')

    async def create_location_point(self, device_id: str, latitude: float, longitude: float,
                                    accuracy: Optional[float] = None, source: str = 'gps',
                                    is_sos: bool = False, speed: Optional[float] = None,
                                    heading: Optional[float] = None,
                                    altitude: Optional[float] = None) -> Dict[str, Any]:
        """Record a location report for a device"""
        body = {
            'deviceId': device_id,
            'latitude': latitude,
            'longitude': longitude,
            'source': source,
            'isSOS': is_sos
        }
        for key, value in (('accuracy', accuracy), ('speed', speed),
                           ('heading', heading), ('altitude', altitude)):
            if value is not None:
                body[key] = value

        payload = await self.request('POST', '/device-locations/browser', body=body)
        return unwrap_object(payload)

    # Responder action gateway

    async def create_sos(self, latitude: float, longitude: float) -> Dict[str, Any]:
        """Trigger an SOS at the given coordinates"""
        payload = await self.request('POST', '/sos/trigger', body={'lat': latitude, 'lng': longitude})
        return unwrap_object(payload)

    async def respond_sos(self, sos_id: str) -> Dict[str, Any]:
        payload = await self.request('POST', f'/sos/respond/{sos_id}')
        return unwrap_object(payload, 'sos')

    async def resolve_sos(self, sos_id: str, notes: Optional[str] = None) -> Dict[str, Any]:
        payload = await self.request('POST', f'/sos/resolve/{sos_id}', body={'notes': notes})
        return unwrap_object(payload, 'sos')

    async def update_alert_status(self, alert_id: str, status: str, role: str,
                                  notes: Optional[str] = None) -> Dict[str, Any]:
        """Persist an alert status transition through the responder's endpoint"""
        body = {'status': status}
        if notes:
            body['notes'] = notes
        payload = await self.request('PATCH', f'/{role}/alerts/{alert_id}', body=body)
        return unwrap_object(payload, 'alert')

    # On-duty responders

    async def toggle_on_duty(self, on_duty: bool, latitude: Optional[float] = None,
                             longitude: Optional[float] = None) -> Dict[str, Any]:
        """Switch the signed-in responder on or off duty"""
        body = {'onDuty': on_duty}
        if latitude is not None and longitude is not None:
            body['lat'] = latitude
            body['lng'] = longitude
        payload = await self.request('POST', '/on-duty/toggle', body=body)
        return unwrap_object(payload)

    async def update_on_duty_location(self, latitude: float, longitude: float,
                                      accuracy: Optional[float] = None,
                                      altitude: Optional[float] = None,
                                      speed: Optional[float] = None,
                                      heading: Optional[float] = None) -> Dict[str, Any]:
        """Report an on-duty responder's position (speed in km/h)"""
        body = {'lat': latitude, 'lng': longitude}
        for key, value in (('accuracy', accuracy), ('altitude', altitude),
                           ('speed', speed), ('heading', heading)):
            if value is not None:
                body[key] = value
        payload = await self.request('POST', '/on-duty/location', body=body)
        return unwrap_object(payload)

    async def get_on_duty_status(self) -> Dict[str, Any]:
        payload = await self.request('GET', '/on-duty/status')
        return unwrap_object(payload)

    # Alert feeds

    async def get_sos_history(self) -> List[Dict[str, Any]]:
        payload = await self.request('GET', '/sos/history')
        return unwrap_collection(payload, 'history', 'sos')

    async def get_combined_alerts(self, source: str = 'all') -> List[Dict[str, Any]]:
        payload = await self.request('GET', '/alerts/combined', params={'source': source})
        return unwrap_collection(payload, 'alerts')

    async def get_role_alerts(self, role: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        payload = await self.request('GET', f'/{role}/alerts', params={'status': status})
        return unwrap_collection(payload, 'alerts')

    # Devices

    async def get_devices(self) -> List[Dict[str, Any]]:
        payload = await self.request('GET', '/devices')
        return unwrap_collection(payload, 'devices')

    async def get_device(self, device_id: str) -> Dict[str, Any]:
        payload = await self.request('GET', f'/devices/{device_id}')
        return unwrap_object(payload, 'device')

    async def create_device(self, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self.request('POST', '/devices', body=data)
        return unwrap_object(payload, 'device')

    async def update_device(self, device_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self.request('PATCH', f'/devices/{device_id}', body=changes)
        return unwrap_object(payload, 'device')

    async def delete_device(self, device_id: str) -> None:
        await self.request('DELETE', f'/devices/{device_id}')

    async def update_device_status(self, device_id: str, status: str) -> Dict[str, Any]:
        payload = await self.request('PATCH', f'/devices/{device_id}/status/{status}')
        return unwrap_object(payload, 'device')
