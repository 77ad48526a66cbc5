"""
SafeTrack - Personal Safety Tracking Client

Client-side core for a personal-safety platform: live device route tracking,
SOS triggering, and coordination of police/hospital responders through the
lifecycle of an emergency alert.
"""

__version__ = "1.0.0"
__author__ = "SafeTrack Development Team"
