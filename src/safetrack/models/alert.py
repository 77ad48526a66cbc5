"""
Alert Data Models

Defines emergency alerts (SOS and general), responder acknowledgements,
and the view models derived from them.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .common import parse_float, parse_latitude, parse_longitude, parse_timestamp


logger = logging.getLogger(__name__)


class AlertStatus(Enum):
    """Alert lifecycle status, strictly forward-moving"""
    PENDING = "pending"
    ASSIGNED = "assigned"
    RESOLVED = "resolved"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> 'AlertStatus':
        """Normalize a backend status string"""
        key = str(value or '').strip().lower()
        if key in _STATUS_ALIASES:
            return _STATUS_ALIASES[key]
        logger.warning(f"Unknown alert status {value!r}, treating as pending")
        return cls.PENDING


_STATUS_RANK = {
    AlertStatus.PENDING: 0,
    AlertStatus.ASSIGNED: 1,
    AlertStatus.RESOLVED: 2,
}

_STATUS_ALIASES = {
    'pending': AlertStatus.PENDING,
    'no-responders': AlertStatus.PENDING,
    'active': AlertStatus.PENDING,
    'assigned': AlertStatus.ASSIGNED,
    'responding': AlertStatus.ASSIGNED,
    'resolved': AlertStatus.RESOLVED,
}


class AlertSource(Enum):
    """Where an alert originated"""
    SOS = "sos"
    ALERT = "alert"


class ActorRole(Enum):
    """Role of the signed-in user"""
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"
    POLICE = "police"
    HOSPITAL = "hospital"

    @property
    def is_responder(self) -> bool:
        return self in (ActorRole.POLICE, ActorRole.HOSPITAL)


class ResponderRole(Enum):
    """Responder slot shown on an SOS alert"""
    POLICE = "police"
    HOSPITAL = "hospital"


class SlotState(Enum):
    RESPONDED = "Responded"
    WAITING = "Waiting"


@dataclass(frozen=True)
class ResponderAck:
    """A responder's acknowledgement of an alert"""
    role: ResponderRole
    responder_id: str
    name: str = ""
    phone: str = ""
    responded_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['ResponderAck']:
        """Decode a respondedBy entry, or None if the role is unknown"""
        try:
            role = ResponderRole(str(data.get('role', '')).lower())
        except ValueError:
            logger.debug(f"Ignoring acknowledgement with unknown role {data.get('role')!r}")
            return None

        return cls(
            role=role,
            responder_id=str(data.get('responderId') or data.get('id') or ''),
            name=data.get('name') or '',
            phone=data.get('phone') or '',
            responded_at=parse_timestamp(data.get('respondedAt'))
        )


@dataclass
class AlertEvent:
    """An SOS or general emergency alert"""
    id: str
    source: AlertSource = AlertSource.ALERT
    alert_type: str = "Emergency"
    status: AlertStatus = AlertStatus.PENDING
    severity: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    current_search_radius: Optional[float] = None  # meters
    location: Optional[Tuple[float, float]] = None
    address: Optional[str] = None
    victim_name: Optional[str] = None
    victim_phone: Optional[str] = None
    responders: List[ResponderAck] = field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return self.status == AlertStatus.RESOLVED

    def responder_for(self, role: ResponderRole) -> Optional[ResponderAck]:
        """First acknowledgement for a role, in iteration order"""
        for ack in self.responders:
            if ack.role == role:
                return ack
        return None

    def apply_status(self, status: AlertStatus, at: Optional[datetime] = None) -> bool:
        """
        Move the alert forward to a status

        Backward or same-state moves are ignored.

        Returns:
            True if the status changed
        """
        if status.rank <= self.status.rank:
            if status.rank < self.status.rank:
                logger.warning(
                    f"Ignoring backward status change for alert {self.id}: "
                    f"{self.status.value} -> {status.value}"
                )
            return False

        self.status = status
        if status == AlertStatus.RESOLVED and self.resolved_at is None:
            self.resolved_at = at
        return True

    def merge(self, other: 'AlertEvent') -> None:
        """
        Merge a fresher copy of the same alert into this one

        An alert already resolved here takes no new acknowledgements.
        """
        was_resolved = self.is_resolved
        self.apply_status(other.status, other.resolved_at)
        if other.resolved_at is not None:
            self.resolved_at = other.resolved_at
        self.current_search_radius = other.current_search_radius
        if was_resolved:
            return
        # Acknowledgements are append-only; keep the known order and add new ones
        for ack in other.responders:
            if ack not in self.responders:
                self.responders.append(ack)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AlertEvent':
        """
        Decode an alert or SOS payload

        Handles both the general alert shape (``location.latitude``) and the
        SOS shape (``victimLocation.coordinates`` as ``[lng, lat]``).
        """
        source_value = data.get('source')
        if source_value in ('sos', 'alert'):
            source = AlertSource(source_value)
        elif 'victimLocation' in data or 'sosId' in data:
            source = AlertSource.SOS
        else:
            source = AlertSource.ALERT

        location = None
        address = None
        raw_location = data.get('location')
        victim_location = data.get('victimLocation')
        if isinstance(raw_location, dict):
            lat = parse_latitude(raw_location.get('latitude'))
            lng = parse_longitude(raw_location.get('longitude'))
            if lat is not None and lng is not None:
                location = (lat, lng)
            address = raw_location.get('address')
        elif isinstance(victim_location, dict):
            coordinates = victim_location.get('coordinates')
            if isinstance(coordinates, (list, tuple)) and len(coordinates) >= 2:
                lat = parse_latitude(coordinates[1])
                lng = parse_longitude(coordinates[0])
            else:
                lat = parse_latitude(victim_location.get('lat'))
                lng = parse_longitude(victim_location.get('lng'))
            if lat is not None and lng is not None:
                location = (lat, lng)

        victim = data.get('userId') if isinstance(data.get('userId'), dict) else {}

        responders = []
        for entry in data.get('respondedBy') or []:
            if isinstance(entry, dict):
                ack = ResponderAck.from_dict(entry)
                if ack is not None:
                    responders.append(ack)

        default_type = 'SOS' if source == AlertSource.SOS else 'Emergency'

        return cls(
            id=str(data.get('_id') or data.get('id') or data.get('sosId') or ''),
            source=source,
            alert_type=data.get('type') or default_type,
            status=AlertStatus.parse(data.get('status', 'pending')),
            severity=data.get('severity'),
            created_at=parse_timestamp(data.get('createdAt')),
            resolved_at=parse_timestamp(data.get('resolvedAt')),
            current_search_radius=parse_float(data.get('currentSearchRadius')),
            location=location,
            address=address,
            victim_name=victim.get('fullName'),
            victim_phone=victim.get('phone'),
            responders=responders
        )


@dataclass(frozen=True)
class ResponderSlot:
    """Display state of the police or hospital slot on an alert"""
    role: ResponderRole
    state: SlotState
    responder: Optional[ResponderAck] = None


@dataclass(frozen=True)
class AlertView:
    """View model for an alert as seen by one actor"""
    alert_id: str
    status: AlertStatus
    source: AlertSource
    police: ResponderSlot
    hospital: ResponderSlot
    search_radius_label: Optional[str] = None
    can_respond: bool = False
    can_resolve: bool = False
