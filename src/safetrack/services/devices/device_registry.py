"""
Device Registry

Owned aggregate for the user's devices, the device currently being viewed,
and the draft of a device being registered. All mutation goes through the
methods below.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...core.errors import ApiError
from ...models.tracking import Device, DeviceStatus, EmergencyContact, Insurance


@dataclass
class DeviceDraft:
    """A device being registered"""
    code: str = ""
    name: str = ""
    emergency_contacts: List[EmergencyContact] = field(default_factory=list)
    insurance: Insurance = field(default_factory=Insurance)

    def to_payload(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'name': self.name,
            'emergencyContacts': [contact.to_dict() for contact in self.emergency_contacts],
            'insurance': self.insurance.to_dict()
        }


class DeviceRegistry:
    """Holds device state for one signed-in user"""

    def __init__(self, api):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.devices: List[Device] = []
        self.current_device: Optional[Device] = None
        self.draft = DeviceDraft()
        self.is_loading = False
        self.error: Optional[str] = None

    def get(self, device_id: str) -> Optional[Device]:
        for device in self.devices:
            if device.id == device_id:
                return device
        return None

    async def fetch_devices(self) -> List[Device]:
        """Reload the device list; on failure the list is emptied"""
        if not self.api.token:
            self.logger.info("No auth token, skipping device fetch")
            self.devices = []
            return self.devices

        self.is_loading = True
        self.error = None
        try:
            payload = await self.api.get_devices()
            self.devices = [Device.from_dict(entry) for entry in payload if isinstance(entry, dict)]
            self.logger.debug(f"Loaded {len(self.devices)} devices")
        except ApiError as e:
            self.logger.error(f"Failed to fetch devices: {e}")
            self.error = str(e)
            self.devices = []
        finally:
            self.is_loading = False

        return self.devices

    async def fetch_device(self, device_id: str) -> Optional[Device]:
        self.is_loading = True
        self.error = None
        try:
            self.current_device = Device.from_dict(await self.api.get_device(device_id))
        except ApiError as e:
            self.logger.error(f"Failed to fetch device {device_id}: {e}")
            self.error = str(e)
        finally:
            self.is_loading = False

        return self.current_device

    async def _mutate(self, description: str, operation):
        self.is_loading = True
        self.error = None
        try:
            return await operation()
        except ApiError as e:
            self.logger.error(f"Failed to {description}: {e}")
            self.error = str(e)
            raise
        finally:
            self.is_loading = False

    def _replace(self, updated: Device) -> None:
        self.devices = [updated if device.id == updated.id else device for device in self.devices]
        if self.current_device and self.current_device.id == updated.id:
            self.current_device = updated

    async def create_device(self) -> Device:
        """Register the draft device, then reset the draft"""
        async def operation():
            payload = await self.api.create_device(self.draft.to_payload())
            return Device.from_dict(payload)

        device = await self._mutate("create device", operation)
        self.devices.append(device)
        self.reset_draft()
        self.logger.info(f"Registered device {device.id}")
        return device

    async def update_device(self, device_id: str, changes: Dict[str, Any]) -> Device:
        async def operation():
            return Device.from_dict(await self.api.update_device(device_id, changes))

        device = await self._mutate(f"update device {device_id}", operation)
        self._replace(device)
        return device

    async def set_status(self, device_id: str, status: DeviceStatus) -> Device:
        async def operation():
            return Device.from_dict(await self.api.update_device_status(device_id, status.value))

        device = await self._mutate(f"set status of device {device_id}", operation)
        self._replace(device)
        self.logger.info(f"Device {device_id} is now {device.status.value}")
        return device

    async def delete_device(self, device_id: str) -> None:
        await self._mutate(f"delete device {device_id}", lambda: self.api.delete_device(device_id))
        self.devices = [device for device in self.devices if device.id != device_id]
        if self.current_device and self.current_device.id == device_id:
            self.current_device = None
        self.logger.info(f"Deleted device {device_id}")

    # Draft editing

    def set_draft_code(self, code: str) -> None:
        self.draft.code = code

    def set_draft_name(self, name: str) -> None:
        self.draft.name = name

    def add_emergency_contact(self, contact: EmergencyContact) -> None:
        self.draft.emergency_contacts.append(contact)

    def remove_emergency_contact(self, index: int) -> None:
        if 0 <= index < len(self.draft.emergency_contacts):
            del self.draft.emergency_contacts[index]

    def set_insurance(self, kind: str, value: str) -> None:
        if kind not in ('health', 'vehicle', 'term'):
            raise ValueError(f"Unknown insurance field: {kind}")
        setattr(self.draft.insurance, kind, value)

    def reset_draft(self) -> None:
        self.draft = DeviceDraft()
