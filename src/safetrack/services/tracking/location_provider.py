"""
Location Provider Interface

Abstracts the platform location service: permission prompts and
high-accuracy position capture.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ...models.tracking import PositionFix


class LocationProvider(ABC):
    """Platform location service"""

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask for foreground location permission; True if granted"""
        pass

    @abstractmethod
    async def get_current_position(self, high_accuracy: bool = True) -> PositionFix:
        """
        Capture the current position

        Raises:
            Exception: Any platform error (timeout, hardware failure)
        """
        pass


class StaticLocationProvider(LocationProvider):
    """Provider that always reports one fixed position"""

    def __init__(self, latitude: float, longitude: float,
                 accuracy: Optional[float] = None, granted: bool = True):
        self.fix = PositionFix(latitude=latitude, longitude=longitude, accuracy=accuracy)
        self.granted = granted

    async def request_permission(self) -> bool:
        return self.granted

    async def get_current_position(self, high_accuracy: bool = True) -> PositionFix:
        return self.fix
