"""Device scanner for the Roth Touchline SL controller.

The controller exposes no register describing how many zones, actuators or
window sensors are configured. Instead, reading the register of a peripheral
that is not configured fails. The scanner therefore reads the first register
of each peripheral in turn and counts how many succeed before the first
failure.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from .const import (
    MAX_PERIPHERALS,
    PROBE_BASE_ACTUATORS,
    PROBE_BASE_WINDOW_SENSORS,
    PROBE_BASE_ZONES,
)
from .exceptions import TransportError
from .register_map import (
    DEVICE_INFORMATION_ADDRESS,
    DEVICE_INFORMATION_COUNT,
    DEVICE_INFORMATION_FIELDS,
)

if TYPE_CHECKING:  # pragma: no cover
    from .modbus_transport import BaseModbusTransport

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CapabilitySnapshot:
    """Number of configured peripherals detected on the controller.

    Instances are immutable. A new probe produces a new snapshot that replaces
    the previous one as a whole.
    """

    num_zones: int = 0
    num_actuators: int = 0
    num_window_sensors: int = 0

    def __post_init__(self) -> None:
        for name in ("num_zones", "num_actuators", "num_window_sensors"):
            value = getattr(self, name)
            if not 0 <= value <= MAX_PERIPHERALS:
                raise ValueError(f"{name}={value} outside 0..{MAX_PERIPHERALS}")

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class DeviceInformation:
    """Static identity of the controller, read once at startup."""

    firmware_date: str
    firmware_time: str
    firmware_version: str
    pcb_version: int
    serial_number: str
    bootloader_firmware_version: str
    num_zones: int
    num_actuators: int
    num_window_sensors: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class DeviceScanner:
    """Probe peripheral counts and identity of a controller."""

    def __init__(self, transport: BaseModbusTransport, max_peripherals: int = MAX_PERIPHERALS) -> None:
        self.transport = transport
        self.max_peripherals = max_peripherals

    async def _is_configured(self, address: int, label: str) -> bool:
        """Return whether the peripheral register at ``address`` answers.

        A failed read is the controller's way of saying the peripheral is not
        configured, so the error is logged and turned into ``False``.
        """

        try:
            await self.transport.read_holding_registers(address, 1)
        except TransportError as err:
            _LOGGER.debug("%s seems to be unconfigured, stopping probe: %s", label, err)
            return False
        return True

    async def _probe(self, base: int, kind: str) -> int:
        """Count consecutive configured peripherals starting at ``base``."""

        for index in range(self.max_peripherals):
            if not await self._is_configured(base + index, f"{kind} {index + 1}"):
                return index
        return self.max_peripherals

    async def probe_zones(self) -> int:
        return await self._probe(PROBE_BASE_ZONES, "Zone")

    async def probe_actuators(self) -> int:
        return await self._probe(PROBE_BASE_ACTUATORS, "Actuator")

    async def probe_window_sensors(self) -> int:
        return await self._probe(PROBE_BASE_WINDOW_SENSORS, "Window sensor")

    async def probe_capabilities(self) -> CapabilitySnapshot:
        """Probe all peripheral classes and return a fresh snapshot."""

        _LOGGER.info("Probing for features...")
        snapshot = CapabilitySnapshot(
            num_zones=await self.probe_zones(),
            num_actuators=await self.probe_actuators(),
            num_window_sensors=await self.probe_window_sensors(),
        )
        _LOGGER.debug(
            "Probed %d active zones, %d actuators, %d window sensors",
            snapshot.num_zones,
            snapshot.num_actuators,
            snapshot.num_window_sensors,
        )
        return snapshot

    async def read_device_information(self, snapshot: CapabilitySnapshot) -> DeviceInformation:
        """Read the identity block and combine it with ``snapshot``.

        Unlike probing, a failure here is a real error and propagates.
        """

        _LOGGER.debug("Retrieving device information...")
        words = await self.transport.read_holding_registers(
            DEVICE_INFORMATION_ADDRESS, DEVICE_INFORMATION_COUNT
        )
        values: dict[str, Any] = {}
        for field in DEVICE_INFORMATION_FIELDS:
            offset = field.address - DEVICE_INFORMATION_ADDRESS
            values[field.name] = field.decode_words(words[offset : offset + field.width])

        return DeviceInformation(**values, **snapshot.as_dict())
