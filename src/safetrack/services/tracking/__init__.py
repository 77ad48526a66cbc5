"""
Location Tracking Service Module

Provides device route tracking capabilities including:
- Route reconstruction from unordered location reports
- Live tracking sessions with timed and manual refresh
- Device location reporting with minimum-distance filtering
- Responder on-duty status with periodic position reports
"""

from .route_reconstructor import reconstruct, assign_roles, decode_points
from .live_session import LiveTrackingService, TrackingSession, FitToRoute
from .location_provider import LocationProvider, StaticLocationProvider
from .location_reporter import LocationReporter, haversine_meters, convert_speed_to_kmh
from .on_duty import OnDutyTracker

__all__ = [
    'reconstruct',
    'assign_roles',
    'decode_points',
    'LiveTrackingService',
    'TrackingSession',
    'FitToRoute',
    'LocationProvider',
    'StaticLocationProvider',
    'LocationReporter',
    'haversine_meters',
    'convert_speed_to_kmh',
    'OnDutyTracker'
]
