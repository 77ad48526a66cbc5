"""
Alert Lifecycle

Tracks alerts known to this client and drives their status forward:
- Respond (pending -> assigned) and resolve (pending/assigned -> resolved)
- Responder-role and state gating before anything is sent
- Backend status is authoritative; local state never runs ahead of it
- Per-actor view model with responder slots and search radius
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ...core.errors import ApiError, InvalidTransitionError
from ...models.alert import (
    ActorRole, AlertEvent, AlertSource, AlertStatus, AlertView, ResponderAck,
    ResponderRole, ResponderSlot, SlotState
)
from ...models.common import parse_timestamp


ALLOWED_TRANSITIONS: Dict[AlertStatus, List[AlertStatus]] = {
    AlertStatus.PENDING: [AlertStatus.ASSIGNED, AlertStatus.RESOLVED],
    AlertStatus.ASSIGNED: [AlertStatus.RESOLVED],
    AlertStatus.RESOLVED: [],
}


@dataclass
class TransitionResult:
    """Outcome of a respond or resolve request"""
    success: bool
    alert_id: str
    status: Optional[AlertStatus]
    message: str


def format_search_radius(radius_meters: float) -> str:
    return f"{radius_meters / 1000:.0f}km"


class AlertLifecycle:
    """Alert state machine for one signed-in actor"""

    def __init__(self, api, actor_role: ActorRole):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.actor_role = actor_role
        self.alerts: Dict[str, AlertEvent] = {}

    def track(self, alert: AlertEvent) -> AlertEvent:
        """Register an alert, merging into the known copy if there is one"""
        known = self.alerts.get(alert.id)
        if known is None:
            self.alerts[alert.id] = alert
            return alert

        known.merge(alert)
        return known

    def get(self, alert_id: str) -> Optional[AlertEvent]:
        return self.alerts.get(alert_id)

    def validate_transition(self, alert: AlertEvent, target: AlertStatus, role: ActorRole) -> None:
        """
        Check that an actor may move an alert to a status

        Raises:
            InvalidTransitionError: If the role or current status forbids it
        """
        if not role.is_responder:
            raise InvalidTransitionError(f"Role {role.value} cannot change alert status")

        if target not in ALLOWED_TRANSITIONS[alert.status]:
            raise InvalidTransitionError(
                f"Cannot move alert {alert.id} from {alert.status.value} to {target.value}"
            )

    async def respond(self, alert_id: str, role: Optional[ActorRole] = None) -> TransitionResult:
        """Acknowledge a pending alert as a responder"""
        return await self._transition(alert_id, AlertStatus.ASSIGNED, role)

    async def resolve(self, alert_id: str, role: Optional[ActorRole] = None,
                      notes: Optional[str] = None) -> TransitionResult:
        """Mark an alert as handled"""
        return await self._transition(alert_id, AlertStatus.RESOLVED, role, notes)

    async def _transition(self, alert_id: str, target: AlertStatus,
                          role: Optional[ActorRole], notes: Optional[str] = None) -> TransitionResult:
        role = role or self.actor_role
        alert = self.alerts.get(alert_id)
        if alert is None:
            return TransitionResult(False, alert_id, None, f"Unknown alert {alert_id}")

        try:
            self.validate_transition(alert, target, role)
        except InvalidTransitionError as e:
            self.logger.warning(str(e))
            return TransitionResult(False, alert_id, alert.status, str(e))

        try:
            response = await self._send(alert, target, role, notes)
        except ApiError as e:
            self.logger.error(f"Failed to update alert {alert_id} to {target.value}: {e}")
            return TransitionResult(False, alert_id, alert.status, e.server_message or "Failed to update status")

        self._apply_response(alert, target, response if isinstance(response, dict) else {})
        self.logger.info(f"Alert {alert_id} is now {alert.status.value} (requested by {role.value})")
        return TransitionResult(True, alert_id, alert.status, f"Alert marked as {alert.status.value}")

    async def _send(self, alert: AlertEvent, target: AlertStatus,
                    role: ActorRole, notes: Optional[str]):
        if alert.source == AlertSource.SOS:
            if target == AlertStatus.ASSIGNED:
                return await self.api.respond_sos(alert.id)
            return await self.api.resolve_sos(alert.id, notes)
        return await self.api.update_alert_status(alert.id, target.value, role.value, notes)

    def _apply_response(self, alert: AlertEvent, requested: AlertStatus, response: Dict) -> None:
        """Apply the backend's view of the alert after an accepted request"""
        reported = response.get('status')
        status = AlertStatus.parse(reported) if reported else requested

        resolved_at = parse_timestamp(response.get('resolvedAt'))
        if status == AlertStatus.RESOLVED and resolved_at is None:
            resolved_at = datetime.now(timezone.utc)
        alert.apply_status(status, resolved_at)

        for entry in response.get('respondedBy') or []:
            if isinstance(entry, dict):
                ack = ResponderAck.from_dict(entry)
                if ack is not None and ack not in alert.responders:
                    alert.responders.append(ack)

    def _slot(self, alert: AlertEvent, role: ResponderRole) -> ResponderSlot:
        ack = alert.responder_for(role)
        state = SlotState.RESPONDED if ack else SlotState.WAITING
        return ResponderSlot(role=role, state=state, responder=ack)

    def view(self, alert_id: str, role: Optional[ActorRole] = None) -> Optional[AlertView]:
        """
        Build the detail view of an alert for an actor

        Returns:
            AlertView, or None if the alert is not tracked
        """
        alert = self.alerts.get(alert_id)
        if alert is None:
            return None

        role = role or self.actor_role

        radius_label = None
        if alert.current_search_radius and not alert.is_resolved:
            radius_label = format_search_radius(alert.current_search_radius)

        return AlertView(
            alert_id=alert.id,
            status=alert.status,
            source=alert.source,
            police=self._slot(alert, ResponderRole.POLICE),
            hospital=self._slot(alert, ResponderRole.HOSPITAL),
            search_radius_label=radius_label,
            can_respond=role.is_responder and alert.status == AlertStatus.PENDING,
            can_resolve=role.is_responder and not alert.is_resolved
        )
