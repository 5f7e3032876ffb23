"""Shared fixtures for the Roth Modbus MQTT bridge tests."""

from __future__ import annotations

import pytest

from roth_modbus_mqtt.const import (
    PROBE_BASE_ACTUATORS,
    PROBE_BASE_WINDOW_SENSORS,
    PROBE_BASE_ZONES,
)
from roth_modbus_mqtt.device_scanner import CapabilitySnapshot, DeviceInformation
from roth_modbus_mqtt.exceptions import ModbusTransportError

# Identity block at holding registers 1..11
DEVICE_INFORMATION_REGISTERS = {
    1: 20231,  # firmware date
    2: 1530,  # firmware time
    3: 1,
    4: 2,
    5: 3,  # firmware version
    6: 4,  # PCB version
    7: 1234,
    8: 5678,  # serial number
    9: 0,
    10: 9,
    11: 1,  # bootloader version
}


class FakeTransport:
    """In-memory controller answering Modbus requests from dictionaries.

    Reads that touch an address in ``failing`` raise
    :class:`ModbusTransportError` like a controller answering with an
    exception response.
    """

    def __init__(self, holding=None, coils=None, failing=None) -> None:
        self.holding: dict[int, int] = dict(holding or {})
        self.coils: dict[int, bool] = dict(coils or {})
        self.failing: set[int] = set(failing or ())
        self.requests: list[tuple[str, int, int]] = []
        self.writes: list[tuple[int, int]] = []
        self.closed = False

    def _check(self, address: int, count: int) -> None:
        for item in range(address, address + count):
            if item in self.failing:
                raise ModbusTransportError(f"Illegal data address {item}", exception_code=2)

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        self.requests.append(("holding", address, count))
        self._check(address, count)
        return [self.holding.get(item, 0) for item in range(address, address + count)]

    async def read_coils(self, address: int, count: int) -> list[bool]:
        self.requests.append(("coil", address, count))
        self._check(address, count)
        return [self.coils.get(item, False) for item in range(address, address + count)]

    async def write_register(self, address: int, value: int) -> None:
        self.requests.append(("write", address, 1))
        self._check(address, 1)
        self.writes.append((address, value))
        self.holding[address] = value

    async def close(self) -> None:
        self.closed = True

    def describe(self) -> str:
        return "fake"


def make_controller(num_zones=3, num_actuators=2, num_window_sensors=1, **kwargs) -> FakeTransport:
    """Return a fake controller with the given peripheral counts configured."""

    holding = {
        **DEVICE_INFORMATION_REGISTERS,
        18: 2,  # mode: Eco
        19: 0,  # heat/cool mode: Heating
        71: 0b101,  # zones 1 and 3 heating
    }
    for index in range(num_zones):
        holding[23 + index] = 215 + index  # current temperature
        holding[122 + index] = 455  # humidity
        holding[221 + index] = 200 + index * 5  # set temperature
        holding[270 + index] = 90 - index  # battery level
    holding.update(kwargs.pop("holding", {}))

    failing = {
        PROBE_BASE_ZONES + num_zones,
        PROBE_BASE_ACTUATORS + num_actuators,
        PROBE_BASE_WINDOW_SENSORS + num_window_sensors,
    }
    failing.update(kwargs.pop("failing", ()))
    coils = {366: True, 370: False, 374: True, 378: False}
    return FakeTransport(holding=holding, coils=coils, failing=failing)


@pytest.fixture
def controller() -> FakeTransport:
    return make_controller()


@pytest.fixture
def device_information() -> DeviceInformation:
    return DeviceInformation(
        firmware_date="20231",
        firmware_time="1530",
        firmware_version="1.2.3",
        pcb_version=4,
        serial_number="12345678",
        bootloader_firmware_version="0.9.1",
        num_zones=3,
        num_actuators=2,
        num_window_sensors=1,
    )


@pytest.fixture
def snapshot() -> CapabilitySnapshot:
    return CapabilitySnapshot(num_zones=3, num_actuators=2, num_window_sensors=1)


@pytest.fixture
def controller_factory():
    return make_controller
