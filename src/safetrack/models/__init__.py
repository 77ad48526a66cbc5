"""
Data models for SafeTrack

Contains the data classes shared by the tracking and emergency services.
"""

from .tracking import (
    Device, DeviceStatus, EmergencyContact, Insurance,
    LocationPoint, PositionFix, PointRole, RoutePoint, Route
)
from .alert import (
    AlertEvent, AlertStatus, AlertSource, AlertView, ActorRole,
    ResponderAck, ResponderRole, ResponderSlot, SlotState
)

__all__ = [
    'Device', 'DeviceStatus', 'EmergencyContact', 'Insurance',
    'LocationPoint', 'PositionFix', 'PointRole', 'RoutePoint', 'Route',
    'AlertEvent', 'AlertStatus', 'AlertSource', 'AlertView', 'ActorRole',
    'ResponderAck', 'ResponderRole', 'ResponderSlot', 'SlotState'
]
