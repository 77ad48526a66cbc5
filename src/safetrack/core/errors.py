"""
Error taxonomy for SafeTrack

Fatal trigger errors are converted into TriggerResult outcomes by the
workflow; the remaining errors are either swallowed where they occur or
propagated to the caller.
"""

from typing import Optional


class SafeTrackError(Exception):
    """Base class for all SafeTrack errors"""
    pass


class ConfigurationError(SafeTrackError):
    """Configuration-related errors"""
    pass


class ApiError(SafeTrackError):
    """Backend request failed (transport error or non-2xx response)"""

    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message)
        self.status = status
        self.payload = payload or {}

    @property
    def server_message(self) -> Optional[str]:
        """Message supplied by the backend, if any"""
        message = self.payload.get('message') if isinstance(self.payload, dict) else None
        return message if isinstance(message, str) and message else None


class TriggerError(SafeTrackError):
    """Fatal failure of the SOS trigger workflow"""
    pass


class PermissionDeniedError(TriggerError):
    """Location permission was not granted"""
    pass


class LocationUnavailableError(TriggerError):
    """Current position could not be captured in time"""
    pass


class AlertCreationFailedError(TriggerError):
    """Backend rejected or failed the SOS creation request"""
    pass


class SupplementaryWriteFailedError(SafeTrackError):
    """Best-effort write failed after the primary goal succeeded"""
    pass


class HistoryFetchFailedError(SafeTrackError):
    """Location history could not be fetched for a device"""
    pass


class MalformedPointError(SafeTrackError):
    """Location report is missing a valid timestamp or finite coordinate"""
    pass


class InvalidTransitionError(SafeTrackError):
    """Alert status transition not allowed from the current state"""
    pass
