"""Tests for the Roth Modbus coordinator."""

import logging

import pytest

from roth_modbus_mqtt.coordinator import RothModbusCoordinator
from roth_modbus_mqtt.device_scanner import CapabilitySnapshot
from roth_modbus_mqtt.exceptions import ModbusTransportError, ValidationError
from roth_modbus_mqtt.register_map import get_register_field

pytestmark = pytest.mark.asyncio


@pytest.fixture
def coordinator(controller, snapshot):
    coordinator = RothModbusCoordinator(controller)
    coordinator.replace_capabilities(snapshot)
    return coordinator


async def test_async_setup_probes_and_reads_information(controller):
    coordinator = RothModbusCoordinator(controller)

    information = await coordinator.async_setup()

    assert coordinator.capabilities == CapabilitySnapshot(3, 2, 1)
    assert information.serial_number == "12345678"
    assert coordinator.device_information is information


async def test_async_probe_reports_changes(controller):
    coordinator = RothModbusCoordinator(controller)

    assert await coordinator.async_probe() is True
    assert await coordinator.async_probe() is False


async def test_read_state(coordinator):
    state = await coordinator.async_read_state()

    assert state.values.mode == 2
    assert state.values.heat_cool_mode == 0
    assert state.values.heating_cooling_status is True
    assert state.values.eco_input_status is False
    assert state.values.pump_status is True
    assert state.values.potential_free_contact_status is False

    assert len(state.zones) == 3
    zone = state.zone(2)
    assert zone.is_heating is False
    assert zone.current_temperature == 21.6
    assert zone.humidity == 45.5
    assert zone.set_temperature == 20.5
    assert zone.battery_level == 89
    assert [item.is_heating for item in state.zones] == [True, False, True]


async def test_read_state_request_order(coordinator, controller):
    await coordinator.async_read_state()

    assert controller.requests == [
        ("holding", 18, 2),
        ("coil", 366, 1),
        ("coil", 370, 1),
        ("coil", 374, 1),
        ("coil", 378, 1),
        ("holding", 71, 1),
        ("holding", 23, 3),
        ("holding", 122, 3),
        ("holding", 221, 3),
        ("holding", 270, 3),
    ]


async def test_read_state_without_zones_skips_arrays(coordinator, controller):
    coordinator.replace_capabilities(CapabilitySnapshot())

    state = await coordinator.async_read_state()

    assert state.zones == ()
    assert controller.requests[-1] == ("holding", 71, 1)


async def test_absent_sensor_decodes_to_none(controller_factory, snapshot):
    transport = controller_factory(holding={23: 32767, 122: 32767, 221: 32767})
    coordinator = RothModbusCoordinator(transport)
    coordinator.replace_capabilities(snapshot)

    state = await coordinator.async_read_state()

    assert state.zone(1).current_temperature is None
    assert state.zone(1).humidity is None
    assert state.zone(1).set_temperature == 3276.7
    assert state.zone(2).current_temperature == 21.6


async def test_read_failure_aborts_pass(controller_factory, snapshot):
    transport = controller_factory(failing={374})
    coordinator = RothModbusCoordinator(transport)
    coordinator.replace_capabilities(snapshot)

    with pytest.raises(ModbusTransportError):
        await coordinator.async_read_state()

    assert coordinator.statistics.failed_reads == 1
    assert coordinator.statistics.successful_reads == 0
    assert ("holding", 71, 1) not in transport.requests


@pytest.mark.parametrize("new_zones", [1, 5])
async def test_snapshot_swap_mid_pass_keeps_captured_zone_count(
    coordinator, controller, new_zones
):
    read_coils = controller.read_coils

    async def read_coils_and_reprobe(address, count):
        if address == 370:
            coordinator.replace_capabilities(CapabilitySnapshot(num_zones=new_zones))
        return await read_coils(address, count)

    controller.read_coils = read_coils_and_reprobe

    state = await coordinator.async_read_state()

    assert len(state.zones) == 3
    assert state.capabilities.num_zones == 3
    assert coordinator.capabilities.num_zones == new_zones
    assert ("holding", 270, 3) in controller.requests


async def test_write_zone_set_temperature(coordinator, controller):
    raw = await coordinator.async_write_register(
        get_register_field("set_temperature"), 21.5, zone=2
    )

    assert raw == 215
    assert controller.writes == [(222, 215)]
    assert coordinator.statistics.successful_writes == 1


async def test_write_global_mode(coordinator, controller):
    await coordinator.async_write_register(get_register_field("mode"), 3)

    assert controller.writes == [(18, 3)]


@pytest.mark.parametrize("zone", [None, 0, 4])
async def test_write_rejects_invalid_zone(coordinator, controller, zone):
    with pytest.raises(ValidationError):
        await coordinator.async_write_register(
            get_register_field("set_temperature"), 21.5, zone=zone
        )

    assert controller.requests == []


async def test_write_rejects_read_only_field(coordinator, controller):
    with pytest.raises(ValidationError):
        await coordinator.async_write_register(get_register_field("humidity"), 50, zone=1)

    assert controller.writes == []


async def test_write_rejects_unencodable_value(coordinator, controller):
    with pytest.raises(ValidationError):
        await coordinator.async_write_register(
            get_register_field("set_temperature"), float("nan"), zone=1
        )

    assert controller.writes == []


async def test_write_failure_is_logged_and_raised(controller_factory, snapshot, caplog):
    transport = controller_factory(failing={18})
    coordinator = RothModbusCoordinator(transport)
    coordinator.replace_capabilities(snapshot)

    with caplog.at_level(logging.ERROR):
        with pytest.raises(ModbusTransportError):
            await coordinator.async_write_register(get_register_field("mode"), 1)

    assert coordinator.statistics.failed_writes == 1
    assert "Failed to write holding register 18" in caplog.text


async def test_shutdown_closes_transport(coordinator, controller):
    await coordinator.async_shutdown()

    assert controller.closed
