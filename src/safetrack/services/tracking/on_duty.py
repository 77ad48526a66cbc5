"""
Responder On-Duty Tracking

Police and hospital responders go on duty from their current position.
While on duty their position is reported on a fixed interval so that the
SOS responder search can find them, using the same minimum-distance filter
as device location reporting.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from ...core.errors import ApiError, LocationUnavailableError, PermissionDeniedError
from ...models.alert import ActorRole
from ...models.tracking import Coordinate, PositionFix
from .location_reporter import convert_speed_to_kmh, haversine_meters


DEFAULT_ON_DUTY_INTERVAL = 30  # seconds


class OnDutyTracker:
    """On-duty status and periodic position reports for one responder"""

    def __init__(self, api, provider, actor_role: ActorRole,
                 update_interval: float = DEFAULT_ON_DUTY_INTERVAL,
                 min_distance_meters: float = 50):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.provider = provider
        self.actor_role = actor_role
        self.update_interval = update_interval
        self.min_distance_meters = min_distance_meters

        self.is_on_duty = False
        self.is_loading = False
        self.error: Optional[str] = None
        self.last_location: Optional[Coordinate] = None
        self.last_update: Optional[datetime] = None
        self.last_sent: Optional[Coordinate] = None

        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, api, provider, actor_role: ActorRole, config) -> 'OnDutyTracker':
        return cls(
            api,
            provider,
            actor_role,
            update_interval=config.get_on_duty_interval(),
            min_distance_meters=config.get_min_distance_meters()
        )

    @property
    def is_tracking(self) -> bool:
        return self._task is not None and not self._task.done()

    async def toggle(self) -> bool:
        """
        Go on duty, or off duty if already on

        Going on duty needs location permission and a position fix, which is
        sent with the toggle request. Failures leave the status unchanged and
        are recorded in ``error``.

        Returns:
            The on-duty status after the call
        """
        self.is_loading = True
        self.error = None
        going_on_duty = not self.is_on_duty

        try:
            fix = await self._capture_start_position() if going_on_duty else None
            if fix is not None:
                await self.api.toggle_on_duty(True, fix.latitude, fix.longitude)
            else:
                await self.api.toggle_on_duty(going_on_duty)
        except ApiError as e:
            self.error = e.server_message or str(e)
            self.logger.error(f"Failed to toggle on-duty status: {self.error}")
            return self.is_on_duty
        except (PermissionDeniedError, LocationUnavailableError) as e:
            self.error = str(e)
            self.logger.error(f"Failed to toggle on-duty status: {self.error}")
            return self.is_on_duty
        finally:
            self.is_loading = False

        if going_on_duty:
            self._record_sent(fix)
            await self.start()
        else:
            await self.stop()

        self.logger.info(f"{self.actor_role.value} responder is now {'ON' if going_on_duty else 'OFF'} DUTY")
        return self.is_on_duty

    async def sync_status(self) -> bool:
        """Adopt the on-duty flag stored by the backend"""
        try:
            status = await self.api.get_on_duty_status()
        except ApiError as e:
            self.logger.warning(f"Could not fetch on-duty status: {e}")
            return self.is_on_duty

        if status.get('onDuty'):
            await self.start()
        else:
            await self.stop()
        return self.is_on_duty

    async def start(self) -> None:
        """Mark the responder on duty and begin periodic position reports"""
        self.is_on_duty = True
        if self.is_tracking:
            return
        self._task = asyncio.create_task(self._update_loop())
        self.logger.info(f"Started on-duty location tracking (every {self.update_interval}s)")

    async def stop(self) -> None:
        """Mark the responder off duty and cancel position reports"""
        self.is_on_duty = False
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Stopped on-duty location tracking")

    async def update_location(self) -> bool:
        """
        Report the current position if the responder has moved far enough

        Position and backend failures are logged and skipped.

        Returns:
            True if a report was sent
        """
        if not self.is_on_duty:
            return False

        try:
            fix = await self.provider.get_current_position(high_accuracy=True)
        except Exception as e:
            self.logger.error(f"Error capturing on-duty location: {e}")
            return False

        if self.last_sent is not None:
            distance = haversine_meters(self.last_sent, fix.coordinate)
            if distance < self.min_distance_meters:
                self.logger.debug(
                    f"Skipping on-duty update: moved only {round(distance)}m "
                    f"(min: {self.min_distance_meters}m)"
                )
                return False

        try:
            await self.api.update_on_duty_location(
                fix.latitude,
                fix.longitude,
                accuracy=fix.accuracy or None,
                altitude=fix.altitude or None,
                speed=convert_speed_to_kmh(fix.speed),
                heading=fix.heading or None
            )
        except ApiError as e:
            self.logger.error(f"Error updating on-duty location: {e}")
            return False

        self._record_sent(fix)
        self.logger.debug(f"On-duty location updated: {fix.latitude:.6f}, {fix.longitude:.6f}")
        return True

    async def _capture_start_position(self) -> PositionFix:
        if not self.actor_role.is_responder:
            raise PermissionDeniedError("Only police and hospital responders can go on duty")

        if not await self.provider.request_permission():
            raise PermissionDeniedError("Location permission required to go on duty")

        try:
            return await self.provider.get_current_position(high_accuracy=True)
        except Exception as e:
            raise LocationUnavailableError(f"Could not get current location: {e}") from e

    def _record_sent(self, fix: PositionFix) -> None:
        self.last_sent = fix.coordinate
        self.last_location = fix.coordinate
        self.last_update = datetime.now(timezone.utc)

    async def _update_loop(self) -> None:
        """Report immediately, then every interval, until stopped"""
        while self.is_on_duty:
            await self.update_location()
            await asyncio.sleep(self.update_interval)
