"""
Alert Feed

Loads the alert list appropriate to the signed-in actor and keeps the
lifecycle's view of each alert current.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ...core.errors import ApiError
from ...models.alert import ActorRole, AlertEvent, AlertSource, AlertStatus


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class AlertFeed:
    """Role-aware alert list"""

    def __init__(self, api, lifecycle):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.lifecycle = lifecycle
        self.alerts: List[AlertEvent] = []
        self.error: Optional[str] = None

    async def _fetch(self, role: ActorRole) -> List[Dict]:
        if role == ActorRole.USER:
            return await self.api.get_sos_history()
        if role.is_responder:
            return await self.api.get_role_alerts(role.value)
        return await self.api.get_combined_alerts('all')

    async def load(self, role: Optional[ActorRole] = None) -> List[AlertEvent]:
        """
        Reload alerts for an actor, newest first

        Users see their own SOS history, responders their role's alerts,
        and admins the combined feed. On failure the list is emptied.
        """
        role = role or self.lifecycle.actor_role
        self.error = None

        try:
            payload = await self._fetch(role)
        except ApiError as e:
            self.logger.error(f"Failed to load alerts for {role.value}: {e}")
            self.error = str(e)
            self.alerts = []
            return self.alerts

        alerts = []
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            alert = AlertEvent.from_dict(entry)
            if not alert.id:
                self.logger.debug("Skipping alert without id")
                continue
            if role == ActorRole.USER:
                alert.source = AlertSource.SOS
                alert.severity = alert.severity or 'critical'
            alerts.append(self.lifecycle.track(alert))

        alerts.sort(key=lambda a: a.created_at or _EPOCH, reverse=True)
        self.alerts = alerts
        self.logger.debug(f"Loaded {len(alerts)} alerts for {role.value}")
        return self.alerts

    def counts(self) -> Dict[str, int]:
        counts = {
            'total': len(self.alerts),
            'pending': 0,
            'assigned': 0,
            'resolved': 0,
            'sos': 0,
            'alert': 0,
        }
        for alert in self.alerts:
            counts[alert.status.value] += 1
            counts[alert.source.value] += 1
        return counts

    def filter(self, status: Optional[AlertStatus] = None) -> List[AlertEvent]:
        if status is None:
            return list(self.alerts)
        return [alert for alert in self.alerts if alert.status == status]
