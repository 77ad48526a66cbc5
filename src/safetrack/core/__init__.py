"""
Core module for SafeTrack

Contains configuration management, logging, the error taxonomy and the
backend API client.
"""

from .api_client import ApiClient, unwrap_collection, unwrap_object
from .config import ConfigurationManager
from .errors import (
    SafeTrackError,
    ConfigurationError,
    ApiError,
    TriggerError,
    PermissionDeniedError,
    LocationUnavailableError,
    AlertCreationFailedError,
    SupplementaryWriteFailedError,
    HistoryFetchFailedError,
    MalformedPointError,
    InvalidTransitionError
)

__all__ = [
    'ApiClient',
    'unwrap_collection',
    'unwrap_object',
    'ConfigurationManager',
    'SafeTrackError',
    'ConfigurationError',
    'ApiError',
    'TriggerError',
    'PermissionDeniedError',
    'LocationUnavailableError',
    'AlertCreationFailedError',
    'SupplementaryWriteFailedError',
    'HistoryFetchFailedError',
    'MalformedPointError',
    'InvalidTransitionError'
]
