"""
SOS Trigger Workflow

Raises an SOS for a device:
- Location permission and bounded high-accuracy position capture
- SOS creation through the backend
- Best-effort SOS location record for the device route
- Advisory classification of the responder search
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ...core.errors import (
    ApiError, AlertCreationFailedError, LocationUnavailableError,
    PermissionDeniedError, SupplementaryWriteFailedError, TriggerError
)
from ...core.logging import LogContext, get_structured_logger
from ...models.tracking import PositionFix


DEFAULT_LOCATION_TIMEOUT = 15  # seconds


class TriggerOutcome(Enum):
    """Result classification of an SOS trigger"""
    RESPONDERS_FOUND = "responders_found"
    SEARCHING_FOR_RESPONDERS = "searching_for_responders"
    PERMISSION_DENIED = "permission_denied"
    LOCATION_UNAVAILABLE = "location_unavailable"
    ALERT_CREATION_FAILED = "alert_creation_failed"


_FAILURE_OUTCOMES = {
    PermissionDeniedError: TriggerOutcome.PERMISSION_DENIED,
    LocationUnavailableError: TriggerOutcome.LOCATION_UNAVAILABLE,
    AlertCreationFailedError: TriggerOutcome.ALERT_CREATION_FAILED,
}


@dataclass
class TriggerResult:
    """Outcome of one trigger invocation"""
    outcome: TriggerOutcome
    device_id: str
    message: str
    alert_id: Optional[str] = None
    responders_found: int = 0
    position: Optional[PositionFix] = None
    supplementary_write_failed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.outcome in (TriggerOutcome.RESPONDERS_FOUND, TriggerOutcome.SEARCHING_FOR_RESPONDERS)


def count_responders(response: Dict[str, Any]) -> int:
    """Read responders.totalFound from an SOS creation response"""
    responders = response.get('responders')
    if not isinstance(responders, dict):
        return 0
    try:
        return max(0, int(responders.get('totalFound') or 0))
    except (TypeError, ValueError):
        return 0


class AlertTriggerWorkflow:
    """
    Orchestrates an SOS trigger

    Every invocation is independent; concurrent triggers for the same device
    each create their own alert.
    """

    def __init__(self, api, provider, location_timeout: float = DEFAULT_LOCATION_TIMEOUT):
        self.logger = logging.getLogger(__name__)
        self.audit_logger = get_structured_logger('emergency.trigger')
        self.api = api
        self.provider = provider
        self.location_timeout = location_timeout

    @classmethod
    def from_config(cls, api, provider, config) -> 'AlertTriggerWorkflow':
        return cls(api, provider, location_timeout=config.get_location_timeout())

    async def trigger(self, device_id: str) -> TriggerResult:
        """
        Trigger an SOS for a device

        Args:
            device_id: Device the SOS location is recorded against

        Returns:
            TriggerResult; fatal failures are reported through its outcome
        """
        with LogContext(self.audit_logger, device_id=device_id) as log:
            try:
                fix = await self._capture_position()
                response = await self._create_alert(fix)
            except TriggerError as e:
                outcome = _FAILURE_OUTCOMES[type(e)]
                self.logger.error(f"SOS trigger for device {device_id} failed: {e}")
                log.warning("sos_trigger_failed", outcome=outcome.value)
                return TriggerResult(outcome=outcome, device_id=device_id, message=str(e))

            alert_id = response.get('sosId') or response.get('_id') or response.get('id')
            supplementary_failed = not await self._record_sos_point(device_id, fix)

            responders_found = count_responders(response)
            if responders_found > 0:
                outcome = TriggerOutcome.RESPONDERS_FOUND
                message = f"Emergency alert sent! {responders_found} responders notified."
            else:
                outcome = TriggerOutcome.SEARCHING_FOR_RESPONDERS
                message = "Emergency location recorded. Searching for responders..."

            self.logger.info(
                f"SOS {alert_id} triggered at ({fix.latitude}, {fix.longitude}), "
                f"{responders_found} responders found"
            )
            log.info("sos_triggered", alert_id=alert_id, outcome=outcome.value,
                     responders_found=responders_found)

            return TriggerResult(
                outcome=outcome,
                device_id=device_id,
                message=message,
                alert_id=str(alert_id) if alert_id is not None else None,
                responders_found=responders_found,
                position=fix,
                supplementary_write_failed=supplementary_failed
            )

    async def _capture_position(self) -> PositionFix:
        try:
            granted = await self.provider.request_permission()
        except Exception as e:
            raise PermissionDeniedError(f"Location permission request failed: {e}") from e

        if not granted:
            raise PermissionDeniedError("Location permission denied. Please enable location to use SOS.")

        try:
            return await asyncio.wait_for(
                self.provider.get_current_position(high_accuracy=True),
                timeout=self.location_timeout
            )
        except asyncio.TimeoutError as e:
            raise LocationUnavailableError(
                f"Timed out after {self.location_timeout}s waiting for current location"
            ) from e
        except Exception as e:
            raise LocationUnavailableError(f"Unable to determine current location: {e}") from e

    async def _create_alert(self, fix: PositionFix) -> Dict[str, Any]:
        try:
            response = await self.api.create_sos(fix.latitude, fix.longitude)
        except ApiError as e:
            raise AlertCreationFailedError(e.server_message or "Failed to trigger SOS") from e
        return response or {}

    async def _record_sos_point(self, device_id: str, fix: PositionFix) -> bool:
        """Write the SOS marker for the device route; failure is not fatal"""
        try:
            await self.api.create_location_point(
                device_id,
                fix.latitude,
                fix.longitude,
                accuracy=fix.accuracy or 0,
                source='app',
                is_sos=True
            )
            return True
        except ApiError as e:
            error = SupplementaryWriteFailedError(f"SOS location record for device {device_id} not saved: {e}")
            self.logger.warning(str(error))
            return False
