"""Home Assistant MQTT discovery documents.

One retained JSON document is produced per entity. Documents are derived only
from the :class:`DeviceInformation` and the :class:`CapabilitySnapshot`, and
are serialised with sorted keys, so generating them twice for the same inputs
yields byte-identical output.

Per-zone documents are generated for zones ``1..num_zones`` of the given
snapshot. Documents published earlier for zones that a later probe no longer
reports are left in place; Home Assistant keeps those entities until they are
removed by hand.

The diagnostic sensors for the zone, actuator and window sensor counts read
the retained ``deviceInformation`` topics, which are published once at
startup. After a re-probe the documents are republished, but those sensors
keep showing the counts detected at startup.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from .const import (
    DEVICE_ID_PREFIX,
    DEVICE_NAME,
    DISCOVERY_PREFIX,
    HEATING_COOLING_MODES,
    MANUFACTURER,
    MODEL,
    QUICK_ACTION_MODES,
    TOPIC_NAME_STATUS,
    TOPIC_SUFFIX_SET,
)
from .device_scanner import CapabilitySnapshot, DeviceInformation
from .topics import CAPABILITY_TOPICS, device_information_topic, status_topic, zone_topic

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DiscoveryDocument:
    """A discovery payload and the topic it is published to."""

    entity_type: str
    entity_name: str
    topic: str
    payload: str


def device_identifier(information: DeviceInformation) -> str:
    """Return the identifier grouping all entities under one device."""

    return f"{DEVICE_ID_PREFIX}-{information.serial_number}"


def _device_block(information: DeviceInformation) -> dict[str, Any]:
    return {
        "identifiers": device_identifier(information),
        "name": DEVICE_NAME,
        "hw_version": information.pcb_version,
        "sw_version": information.firmware_version,
        "serial_number": information.serial_number,
        "model": MODEL,
        "manufacturer": MANUFACTURER,
    }


def _base(information: DeviceInformation) -> dict[str, Any]:
    return {
        "platform": "mqtt",
        "availability_topic": TOPIC_NAME_STATUS,
        "device": _device_block(information),
    }


def _identity(key: str, name: str) -> dict[str, str]:
    return {
        "unique_id": f"{DEVICE_ID_PREFIX}-{key}",
        "name": name,
        "object_id": f"{DEVICE_ID_PREFIX}_{key.replace('-', '_')}",
    }


def binary_sensor_config(
    base: dict[str, Any], status_name: str, name: str, icon: str
) -> dict[str, Any]:
    return {
        **base,
        **_identity(status_name, name),
        "state_topic": status_topic(status_name),
        "payload_on": "true",
        "payload_off": "false",
        "icon": icon,
    }


def select_config(
    base: dict[str, Any], select_name: str, name: str, options: list[str]
) -> dict[str, Any]:
    return {
        **base,
        **_identity(select_name, name),
        "options": list(options),
        "state_topic": status_topic(select_name),
        "command_topic": f"{status_topic(select_name)}/{TOPIC_SUFFIX_SET}",
        "command_template": "{{ this.attributes.options.index(value) }}",
        "value_template": "{{ this.attributes.options[(value | int)] }}",
    }


def diagnostic_sensor_config(base: dict[str, Any], diagnostic_name: str, name: str) -> dict[str, Any]:
    return {
        **base,
        **_identity(diagnostic_name, name),
        "state_topic": device_information_topic(diagnostic_name),
        "entity_category": "diagnostic",
    }


def zone_heating_config(base: dict[str, Any], zone: int) -> dict[str, Any]:
    return {
        **base,
        **_identity(f"zone{zone}-isHeating", f"Zone {zone} heating"),
        "state_topic": zone_topic(zone, "isHeating"),
        "payload_on": "true",
        "payload_off": "false",
        "icon": "mdi:heat-wave",
    }


def zone_battery_config(base: dict[str, Any], zone: int) -> dict[str, Any]:
    return {
        **base,
        **_identity(f"zone{zone}-batteryLevel", f"Zone {zone} battery level"),
        "state_topic": zone_topic(zone, "batteryLevel"),
        "state_class": "measurement",
        "device_class": "battery",
        "unit_of_measurement": "%",
    }


def zone_climate_config(base: dict[str, Any], zone: int) -> dict[str, Any]:
    return {
        **base,
        **_identity(f"zone{zone}-hvac", f"Zone {zone} thermostat"),
        "current_humidity_topic": zone_topic(zone, "humidity"),
        "current_temperature_topic": zone_topic(zone, "currentTemperature"),
        "temperature_state_topic": zone_topic(zone, "setTemperature"),
        "temperature_command_topic": f"{zone_topic(zone, 'setTemperature')}/{TOPIC_SUFFIX_SET}",
        "mode_state_topic": zone_topic(zone, "isHeating"),
        "mode_state_template": '{{ "auto" if value == "true" else "off" }}',
        "modes": ["off", "auto"],
        "temperature_unit": "C",
    }


def build_configuration_map(
    information: DeviceInformation, capabilities: CapabilitySnapshot
) -> dict[str, dict[str, dict[str, Any]]]:
    """Return ``{entity_type: {entity_name: config}}`` for every entity."""

    base = _base(information)

    binary_sensors: dict[str, dict[str, Any]] = {
        "heatingCoolingStatus": binary_sensor_config(
            base, "heatingCoolingStatus", "Heating/cooling", "mdi:hvac"
        ),
        "ecoInput": binary_sensor_config(base, "ecoInputStatus", "Eco input", "mdi:sprout"),
        "pump": binary_sensor_config(base, "pumpStatus", "Pump", "mdi:pump"),
        "potentialFreeContact": binary_sensor_config(
            base, "potentialFreeContactStatus", "Potential-free contact", "mdi:electric-switch"
        ),
    }
    selects = {
        "mode": select_config(base, "mode", "Quick action mode", QUICK_ACTION_MODES),
        "heatCoolMode": select_config(
            base, "heatCoolMode", "Heating/cooling mode", HEATING_COOLING_MODES
        ),
    }
    sensors = {
        CAPABILITY_TOPICS["num_zones"]: diagnostic_sensor_config(
            base, CAPABILITY_TOPICS["num_zones"], "Number of zones"
        ),
        CAPABILITY_TOPICS["num_actuators"]: diagnostic_sensor_config(
            base, CAPABILITY_TOPICS["num_actuators"], "Number of actuators"
        ),
        CAPABILITY_TOPICS["num_window_sensors"]: diagnostic_sensor_config(
            base, CAPABILITY_TOPICS["num_window_sensors"], "Number of window sensors"
        ),
    }
    climates: dict[str, dict[str, Any]] = {}

    for zone in range(1, capabilities.num_zones + 1):
        binary_sensors[f"zone{zone}Heating"] = zone_heating_config(base, zone)
        sensors[f"zone{zone}BatteryLevel"] = zone_battery_config(base, zone)
        climates[f"zone{zone}Hvac"] = zone_climate_config(base, zone)

    return {
        "sensor": sensors,
        "binary_sensor": binary_sensors,
        "select": selects,
        "climate": climates,
    }


def build_discovery_documents(
    information: DeviceInformation, capabilities: CapabilitySnapshot
) -> list[DiscoveryDocument]:
    """Return every discovery document for the given device and snapshot."""

    identifier = device_identifier(information)
    documents: list[DiscoveryDocument] = []
    for entity_type, configurations in build_configuration_map(information, capabilities).items():
        for entity_name, configuration in configurations.items():
            documents.append(
                DiscoveryDocument(
                    entity_type=entity_type,
                    entity_name=entity_name,
                    topic=f"{DISCOVERY_PREFIX}/{entity_type}/{identifier}/{entity_name}/config",
                    payload=json.dumps(configuration, sort_keys=True),
                )
            )
    _LOGGER.debug(
        "Built %d discovery documents for %d zones", len(documents), capabilities.num_zones
    )
    return documents
