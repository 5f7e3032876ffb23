"""Data coordinator for the Roth Touchline SL controller.

The coordinator owns the current :class:`CapabilitySnapshot` and performs
complete read passes and single register writes. A read pass captures the
snapshot once at entry and sizes every zone read from it, so a concurrent
re-probe can never change the zone count halfway through a pass.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .device_scanner import CapabilitySnapshot, DeviceInformation, DeviceScanner
from .exceptions import TransportError, ValidationError
from .register_map import (
    GLOBAL_REGISTER_FIELDS,
    STATUS_COIL_FIELDS,
    ZONE_ARRAY_FIELDS,
    ZONE_HEATING_FIELD,
    RegisterField,
    decode_bitmask,
    validate_zone,
)

if TYPE_CHECKING:  # pragma: no cover
    from .modbus_transport import BaseModbusTransport

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ZoneValues:
    """Live values of one zone."""

    is_heating: bool
    current_temperature: float | None
    humidity: float | None
    set_temperature: float
    battery_level: int


@dataclass(frozen=True, slots=True)
class GlobalValues:
    """Live values that are not tied to a zone."""

    mode: int
    heat_cool_mode: int
    heating_cooling_status: bool
    eco_input_status: bool
    pump_status: bool
    potential_free_contact_status: bool


@dataclass(frozen=True, slots=True)
class DeviceState:
    """Result of one complete read pass."""

    values: GlobalValues
    zones: tuple[ZoneValues, ...]
    capabilities: CapabilitySnapshot

    def zone(self, zone: int) -> ZoneValues:
        """Return values of ``zone`` (1-based)."""

        return self.zones[validate_zone(zone, len(self.zones)) - 1]


@dataclass
class CoordinatorStatistics:
    successful_reads: int = 0
    failed_reads: int = 0
    successful_writes: int = 0
    failed_writes: int = 0
    last_error: str | None = None
    last_successful_update: float | None = None


class RothModbusCoordinator:
    """Read and write the controller through a Modbus transport."""

    def __init__(self, transport: BaseModbusTransport, scanner: DeviceScanner | None = None) -> None:
        self.transport = transport
        self.scanner = scanner or DeviceScanner(transport)
        self._capabilities = CapabilitySnapshot()
        self.device_information: DeviceInformation | None = None
        self.statistics = CoordinatorStatistics()

    @property
    def capabilities(self) -> CapabilitySnapshot:
        """Return the current capability snapshot."""

        return self._capabilities

    def replace_capabilities(self, snapshot: CapabilitySnapshot) -> bool:
        """Swap in ``snapshot``; return whether it differs from the previous one."""

        previous = self._capabilities
        self._capabilities = snapshot
        if snapshot != previous:
            _LOGGER.info("Capabilities changed from %s to %s", previous, snapshot)
            return True
        return False

    async def async_probe(self) -> bool:
        """Re-run the capability probe and replace the snapshot.

        Returns whether the detected counts changed.
        """

        snapshot = await self.scanner.probe_capabilities()
        return self.replace_capabilities(snapshot)

    async def async_setup(self) -> DeviceInformation:
        """Probe capabilities and read the device information block."""

        await self.async_probe()
        self.device_information = await self.scanner.read_device_information(self._capabilities)
        return self.device_information

    async def async_read_state(self) -> DeviceState:
        """Perform a full read pass.

        Any failed read aborts the whole pass with :class:`TransportError`.
        """

        capabilities = self._capabilities
        num_zones = capabilities.num_zones

        try:
            mode, heat_cool_mode = await self.transport.read_holding_registers(
                GLOBAL_REGISTER_FIELDS[0].address, len(GLOBAL_REGISTER_FIELDS)
            )

            statuses: dict[str, bool] = {}
            for coil in STATUS_COIL_FIELDS:
                (bit,) = await self.transport.read_coils(coil.address, 1)
                statuses[coil.name] = coil.decode(bit)

            (bitmask,) = await self.transport.read_holding_registers(ZONE_HEATING_FIELD.address, 1)

            arrays: dict[str, list[Any]] = {}
            for zone_field in ZONE_ARRAY_FIELDS:
                if num_zones == 0:
                    arrays[zone_field.name] = []
                    continue
                raw = await self.transport.read_holding_registers(zone_field.address, num_zones)
                arrays[zone_field.name] = [zone_field.decode(value) for value in raw]
        except TransportError as err:
            self.statistics.failed_reads += 1
            self.statistics.last_error = str(err)
            raise

        heating = decode_bitmask(bitmask, num_zones)
        zones = tuple(
            ZoneValues(
                is_heating=heating[index],
                current_temperature=arrays["current_temperature"][index],
                humidity=arrays["humidity"][index],
                set_temperature=arrays["set_temperature"][index],
                battery_level=arrays["battery_level"][index],
            )
            for index in range(num_zones)
        )
        values = GlobalValues(
            mode=GLOBAL_REGISTER_FIELDS[0].decode(mode),
            heat_cool_mode=GLOBAL_REGISTER_FIELDS[1].decode(heat_cool_mode),
            **statuses,
        )

        self.statistics.successful_reads += 1
        self.statistics.last_successful_update = time.time()
        _LOGGER.debug("Read pass complete: %d zones", num_zones)
        return DeviceState(values=values, zones=zones, capabilities=capabilities)

    async def async_write_register(
        self, register: RegisterField, value: Any, *, zone: int | None = None
    ) -> int:
        """Encode ``value`` and write it to ``register``.

        Zone fields are validated against the current snapshot before any
        request is sent. Returns the raw value written.
        """

        if not register.writable:
            raise ValidationError(f"Register {register.name} is not writable")

        if register.per_zone:
            if zone is None:
                raise ValidationError(f"Register {register.name} requires a zone")
            address = register.zone_address(validate_zone(zone, self._capabilities.num_zones))
        else:
            address = register.address

        try:
            raw = register.encode(value)
        except (TypeError, ValueError) as err:
            raise ValidationError(f"Cannot encode {value!r} for {register.name}: {err}") from err

        try:
            await self.transport.write_register(address, raw)
        except TransportError as err:
            self.statistics.failed_writes += 1
            self.statistics.last_error = str(err)
            _LOGGER.error("Failed to write holding register %d, value %d", address, raw)
            raise

        self.statistics.successful_writes += 1
        _LOGGER.info("Successfully wrote %s to register %s", value, register.name)
        return raw

    async def async_shutdown(self) -> None:
        await self.transport.close()
