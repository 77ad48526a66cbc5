"""
Tracking Data Models

Defines devices, location reports, GPS fixes and the derived route
structure consumed by map views.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core.errors import MalformedPointError
from .common import parse_float, parse_latitude, parse_longitude, parse_timestamp, format_timestamp


Coordinate = Tuple[float, float]


class DeviceStatus(Enum):
    """Device connectivity status"""
    ONLINE = "online"
    OFFLINE = "offline"
    MAINTENANCE = "maintenance"

    @classmethod
    def parse(cls, value: Any) -> 'DeviceStatus':
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OFFLINE


class PointRole(Enum):
    """Role of a location point within a reconstructed route"""
    START = "start"
    WAYPOINT = "waypoint"
    SOS = "sos"
    CURRENT = "current"
    SINGLE = "single"


@dataclass
class EmergencyContact:
    """Emergency contact attached to a device"""
    name: str
    relation: str
    phone: str
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'relation': self.relation,
            'phone': self.phone,
            'isActive': self.is_active
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EmergencyContact':
        return cls(
            name=data.get('name', ''),
            relation=data.get('relation', ''),
            phone=data.get('phone', ''),
            is_active=data.get('isActive', True)
        )


@dataclass
class Insurance:
    """Insurance references stored with a device"""
    health: str = ""
    vehicle: str = ""
    term: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {'health': self.health, 'vehicle': self.vehicle, 'term': self.term}


@dataclass
class Device:
    """A tracking device owned by a user"""
    id: str
    name: str = ""
    code: str = ""
    device_type: Optional[str] = None
    status: DeviceStatus = DeviceStatus.OFFLINE
    last_location: Optional[Coordinate] = None
    emergency_contacts: List[EmergencyContact] = field(default_factory=list)
    insurance: Insurance = field(default_factory=Insurance)

    @property
    def is_online(self) -> bool:
        return self.status == DeviceStatus.ONLINE

    @property
    def display_name(self) -> str:
        return self.name or self.code or self.id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Device':
        """Create from a backend device payload"""
        last_location = None
        location = data.get('location') or data.get('lastLocation')
        if isinstance(location, dict):
            lat = parse_latitude(location.get('latitude'))
            lng = parse_longitude(location.get('longitude'))
            if lat is not None and lng is not None:
                last_location = (lat, lng)

        insurance = data.get('insurance') or {}

        return cls(
            id=str(data.get('_id') or data.get('id') or ''),
            name=data.get('name') or '',
            code=data.get('code') or '',
            device_type=data.get('type'),
            status=DeviceStatus.parse(data.get('status', 'offline')),
            last_location=last_location,
            emergency_contacts=[
                EmergencyContact.from_dict(contact)
                for contact in data.get('emergencyContacts') or []
                if isinstance(contact, dict)
            ],
            insurance=Insurance(
                health=insurance.get('health', ''),
                vehicle=insurance.get('vehicle', ''),
                term=insurance.get('term', '')
            )
        )


@dataclass(frozen=True)
class LocationPoint:
    """A single immutable location report for a device"""
    latitude: float
    longitude: float
    recorded_at: datetime
    device_id: str = ""
    id: Optional[str] = None
    is_sos: bool = False
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    accuracy: Optional[float] = None
    source: Optional[str] = None

    @property
    def coordinate(self) -> Coordinate:
        return (self.latitude, self.longitude)

    @property
    def place_label(self) -> Optional[str]:
        parts = [part for part in (self.address, self.city, self.state) if part]
        return ", ".join(parts) if parts else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LocationPoint':
        """
        Decode a location report payload

        Raises:
            MalformedPointError: If the payload lacks a valid timestamp or
                a finite coordinate
        """
        if not isinstance(data, dict):
            raise MalformedPointError(f"Location report is not an object: {data!r}")

        latitude = parse_latitude(data.get('latitude'))
        longitude = parse_longitude(data.get('longitude'))
        if latitude is None or longitude is None:
            raise MalformedPointError(
                f"Invalid coordinate ({data.get('latitude')!r}, {data.get('longitude')!r})"
            )

        recorded_at = parse_timestamp(data.get('recordedAt'))
        if recorded_at is None:
            raise MalformedPointError(f"Invalid timestamp {data.get('recordedAt')!r}")

        point_id = data.get('_id') or data.get('id')

        return cls(
            latitude=latitude,
            longitude=longitude,
            recorded_at=recorded_at,
            device_id=str(data.get('deviceId') or ''),
            id=str(point_id) if point_id is not None else None,
            is_sos=bool(data.get('isSOS', False)),
            address=data.get('address'),
            city=data.get('city'),
            state=data.get('state'),
            speed=parse_float(data.get('speed')),
            heading=parse_float(data.get('heading')),
            accuracy=parse_float(data.get('accuracy')),
            source=data.get('source')
        )

    def validated(self) -> 'LocationPoint':
        """
        Check a point built in code against the rules applied to payloads

        Returns:
            This point, or a copy with a naive timestamp taken as UTC

        Raises:
            MalformedPointError: If the timestamp is not a datetime or the
                coordinate is non-finite or out of range
        """
        if parse_latitude(self.latitude) is None or parse_longitude(self.longitude) is None:
            raise MalformedPointError(f"Invalid coordinate ({self.latitude!r}, {self.longitude!r})")

        if not isinstance(self.recorded_at, datetime):
            raise MalformedPointError(f"Invalid timestamp {self.recorded_at!r}")

        if self.recorded_at.tzinfo is None:
            return replace(self, recorded_at=parse_timestamp(self.recorded_at))
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            '_id': self.id,
            'deviceId': self.device_id,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'speed': self.speed,
            'heading': self.heading,
            'accuracy': self.accuracy,
            'recordedAt': format_timestamp(self.recorded_at),
            'isSOS': self.is_sos,
            'source': self.source
        }


@dataclass(frozen=True)
class PositionFix:
    """A GPS fix captured on this device"""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None  # m/s, as reported by the GPS
    heading: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def coordinate(self) -> Coordinate:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class RoutePoint:
    """A location point annotated with its role in a route"""
    point: LocationPoint
    role: PointRole

    @property
    def coordinate(self) -> Coordinate:
        return self.point.coordinate


@dataclass(frozen=True)
class Route:
    """Time-ordered, role-annotated route for one device"""
    points: Tuple[RoutePoint, ...] = ()

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def __bool__(self) -> bool:
        return bool(self.points)

    @property
    def roles(self) -> List[PointRole]:
        return [route_point.role for route_point in self.points]

    @property
    def start(self) -> Optional[RoutePoint]:
        if not self.points:
            return None
        return self.points[0]

    @property
    def current(self) -> Optional[RoutePoint]:
        """Where the device is right now (also the single point of a 1-point route)"""
        if not self.points:
            return None
        return self.points[-1]

    @property
    def sos_points(self) -> List[RoutePoint]:
        return [route_point for route_point in self.points if route_point.role == PointRole.SOS]

    def coordinates(self) -> List[Coordinate]:
        return [route_point.coordinate for route_point in self.points]
