"""
Device Location Reporting

Pushes this phone's GPS fixes to every device the user owns, skipping
devices that have not moved far enough since the last report.
"""

import asyncio
import logging
import math
from typing import Dict, Optional

from ...core.errors import ApiError
from ...models.tracking import Coordinate, PositionFix


EARTH_RADIUS_METERS = 6371e3


def haversine_meters(origin: Coordinate, target: Coordinate) -> float:
    """Great-circle distance between two (lat, lon) pairs in meters"""
    lat1, lon1 = origin
    lat2, lon2 = target

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def convert_speed_to_kmh(speed_ms: Optional[float]) -> Optional[float]:
    """GPS speed (m/s) to km/h rounded to one decimal; None if unknown"""
    if speed_ms is None or speed_ms < 0:
        return None
    return round(speed_ms * 3.6, 1)


class LocationReporter:
    """Reports the phone's position for every registered device"""

    def __init__(self, api, registry, provider=None, min_distance_meters: float = 50):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.registry = registry
        self.provider = provider
        self.min_distance_meters = min_distance_meters
        self.last_sent: Dict[str, Coordinate] = {}

    @classmethod
    def from_config(cls, api, registry, provider, config) -> 'LocationReporter':
        return cls(api, registry, provider, min_distance_meters=config.get_min_distance_meters())

    def should_send(self, device_id: str, coordinate: Coordinate) -> bool:
        last = self.last_sent.get(device_id)
        if last is None:
            return True
        return haversine_meters(last, coordinate) >= self.min_distance_meters

    async def _send_one(self, device_id: str, fix: PositionFix) -> bool:
        if not self.should_send(device_id, fix.coordinate):
            distance = haversine_meters(self.last_sent[device_id], fix.coordinate)
            self.logger.debug(
                f"Skipping {device_id}: moved only {round(distance)}m "
                f"(min: {self.min_distance_meters}m)"
            )
            return False

        await self.api.create_location_point(
            device_id,
            fix.latitude,
            fix.longitude,
            accuracy=fix.accuracy,
            source='gps',
            speed=convert_speed_to_kmh(fix.speed),
            heading=fix.heading or None,
            altitude=fix.altitude or None
        )
        self.last_sent[device_id] = fix.coordinate
        self.logger.debug(f"Updated location for device {device_id}")
        return True

    async def report(self, fix: PositionFix) -> Dict[str, bool]:
        """
        Send one fix to all registered devices

        A failure for one device never blocks the others.

        Returns:
            Mapping of device id to whether a report was sent
        """
        device_ids = [device.id for device in self.registry.devices if device.id]
        if not device_ids:
            return {}

        results = await asyncio.gather(
            *(self._send_one(device_id, fix) for device_id in device_ids),
            return_exceptions=True
        )

        outcome = {}
        for device_id, result in zip(device_ids, results):
            if isinstance(result, ApiError):
                self.logger.error(f"Failed to update location for device {device_id}: {result}")
                outcome[device_id] = False
            elif isinstance(result, BaseException):
                raise result
            else:
                outcome[device_id] = result

        return outcome

    async def capture_and_report(self) -> Optional[PositionFix]:
        """Capture the current position and report it; None if unavailable"""
        if self.provider is None:
            return None

        if not await self.provider.request_permission():
            self.logger.warning("Location permission not granted, skipping location update")
            return None

        try:
            fix = await self.provider.get_current_position(high_accuracy=True)
        except Exception as e:
            self.logger.info(f"Location services unavailable, skipping location update: {e}")
            return None

        await self.report(fix)
        return fix
