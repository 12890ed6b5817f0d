"""
Playback device selection.

Pure decision logic: given the current device list and the remembered
last-used device, pick where a track should play and whether the choice
must be remembered.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from ..models import Device


class SelectionOutcome(str, Enum):
    ACTIVE = "active"
    LAST_USED = "last_used"
    FIRST_AVAILABLE = "first_available"
    NO_DEVICES = "no_devices"
    AWAIT_LOCAL = "await_local"


@dataclass(frozen=True)
class DeviceSelection:
    outcome: SelectionOutcome
    device: Optional[Device] = None
    persist: bool = False

    @property
    def available(self) -> bool:
        return self.device is not None


def select_device(
    devices: Sequence[Device],
    last_device_id: Optional[str],
    local_client_launched: bool = False,
) -> DeviceSelection:
    """
    Choose the playback target.

    Order of preference: the active device, then the last-used device, then
    the first device the API listed. With no devices at all the caller must
    launch a local client (``NO_DEVICES``) or, if it already did, wait for it
    to register (``AWAIT_LOCAL``).
    """
    if not devices:
        outcome = SelectionOutcome.AWAIT_LOCAL if local_client_launched else SelectionOutcome.NO_DEVICES
        return DeviceSelection(outcome)

    for device in devices:
        if device.is_active:
            return DeviceSelection(SelectionOutcome.ACTIVE, device, persist=True)

    if last_device_id:
        for device in devices:
            if device.id == last_device_id:
                # Already remembered; nothing to persist
                return DeviceSelection(SelectionOutcome.LAST_USED, device, persist=False)

    return DeviceSelection(SelectionOutcome.FIRST_AVAILABLE, devices[0], persist=True)


def transfer_targets(devices: Sequence[Device]) -> List[Device]:
    """Devices offered as explicit "play on this device" actions."""
    return [device for device in devices if not device.is_active]


__all__ = ["DeviceSelection", "SelectionOutcome", "select_device", "transfer_targets"]
