"""
Device registry: the user's devices, the current device and the new-device draft
"""

from .device_registry import DeviceRegistry, DeviceDraft

__all__ = ['DeviceRegistry', 'DeviceDraft']
