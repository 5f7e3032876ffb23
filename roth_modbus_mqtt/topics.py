"""Mapping between controller state and MQTT topics.

Outbound, a :class:`DeviceState` becomes a flat ``topic -> payload`` map.
Inbound, a ``(topic, payload)`` pair becomes a :class:`WriteCommand`, a
:class:`ProbeCommand` or nothing at all when the topic names a setting that
cannot be written.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from typing import Any

import voluptuous as vol

from .const import (
    HEATING_COOLING_MODES,
    PAYLOAD_ABSENT,
    PAYLOAD_ONLINE,
    QUICK_ACTION_MODES,
    TOPIC_CONTROL_PROBE,
    TOPIC_NAME_STATUS,
    TOPIC_PREFIX_DEVICE_INFORMATION,
    TOPIC_PREFIX_STATUS,
    TOPIC_PREFIX_ZONE,
    TOPIC_SUFFIX_SET,
)
from .coordinator import DeviceState
from .device_scanner import DeviceInformation
from .exceptions import ValidationError
from .register_map import (
    DEVICE_INFORMATION_FIELDS,
    GLOBAL_REGISTER_FIELDS,
    STATUS_COIL_FIELDS,
    WRITABLE_GLOBAL_FIELDS,
    WRITABLE_ZONE_FIELDS,
    ZONE_FIELDS,
    RegisterField,
)

_LOGGER = logging.getLogger(__name__)

TopicValueMap = dict[str, str]

# Topic names of the probed peripheral counts
CAPABILITY_TOPICS: dict[str, str] = {
    "num_zones": "numZones",
    "num_actuators": "numActuators",
    "num_window_sensors": "numWindowSensors",
}

_DEVICE_INFORMATION_TOPICS: dict[str, str] = {
    **{item.name: item.topic for item in DEVICE_INFORMATION_FIELDS},
    **CAPABILITY_TOPICS,
}

# Payload schemas
MODE_SCHEMA = vol.Schema(
    vol.All(vol.Coerce(int), vol.In(range(len(QUICK_ACTION_MODES))))
)
HEAT_COOL_MODE_SCHEMA = vol.Schema(
    vol.All(vol.Coerce(int), vol.In(range(len(HEATING_COOLING_MODES))))
)
SET_TEMPERATURE_SCHEMA = vol.Schema(vol.Coerce(float))
ZONE_INDEX_SCHEMA = vol.Schema(vol.All(vol.Coerce(int), vol.Range(min=1)))

COMMAND_SCHEMAS: dict[str, vol.Schema] = {
    "mode": MODE_SCHEMA,
    "heatCoolMode": HEAT_COOL_MODE_SCHEMA,
    "setTemperature": SET_TEMPERATURE_SCHEMA,
}


@dataclass(frozen=True, slots=True)
class WriteCommand:
    """A validated request to write one register."""

    register: RegisterField
    value: Any
    zone: int | None = None


@dataclass(frozen=True, slots=True)
class ProbeCommand:
    """A request to re-probe the controller's capabilities."""


Command = WriteCommand | ProbeCommand


def encode_payload(value: Any) -> str:
    """Serialise a domain value for publishing.

    ``None`` means "the controller reports no sensor" and is published as
    ``PAYLOAD_ABSENT``. Everything else is a JSON scalar, so the two cannot be
    confused.
    """

    if value is None:
        return PAYLOAD_ABSENT
    return json.dumps(value)


def zone_topic(zone: int, name: str) -> str:
    return f"{TOPIC_PREFIX_ZONE}/{zone}/{name}"


def status_topic(name: str) -> str:
    return f"{TOPIC_PREFIX_STATUS}/{name}"


def device_information_topic(name: str) -> str:
    return f"{TOPIC_PREFIX_DEVICE_INFORMATION}/{name}"


def state_to_topics(state: DeviceState) -> TopicValueMap:
    """Return every topic published on a polling tick."""

    topic_map: TopicValueMap = {TOPIC_NAME_STATUS: PAYLOAD_ONLINE}

    for register in (*GLOBAL_REGISTER_FIELDS, *STATUS_COIL_FIELDS):
        topic_map[status_topic(register.topic)] = encode_payload(
            getattr(state.values, register.name)
        )

    for index, zone in enumerate(state.zones, start=1):
        for register in ZONE_FIELDS:
            topic_map[zone_topic(index, register.topic)] = encode_payload(
                getattr(zone, register.name)
            )

    return topic_map


def device_information_topics(information: DeviceInformation) -> TopicValueMap:
    """Return the retained device information topics."""

    return {
        device_information_topic(_DEVICE_INFORMATION_TOPICS[item.name]): encode_payload(
            getattr(information, item.name)
        )
        for item in fields(information)
    }


def subscription_topics() -> list[str]:
    """Return the topic filters carrying commands."""

    return [
        f"{TOPIC_PREFIX_STATUS}/+/{TOPIC_SUFFIX_SET}",
        f"{TOPIC_PREFIX_ZONE}/+/+/{TOPIC_SUFFIX_SET}",
        TOPIC_CONTROL_PROBE,
    ]


def _decode_text(payload: bytes | str) -> str:
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as err:
            raise ValidationError("Payload is not valid UTF-8") from err
    return payload.strip()


def _validate(schema: vol.Schema, value: Any, what: str) -> Any:
    try:
        return schema(value)
    except vol.Invalid as err:
        raise ValidationError(f"Invalid {what} {value!r}: {err}") from err


def parse_command(topic: str, payload: bytes | str) -> Command | None:
    """Translate an inbound message into a command.

    Returns ``None`` (after logging) for settings that cannot be written.
    Raises :class:`ValidationError` for malformed topics, zone indices or
    payloads.
    """

    if topic == TOPIC_CONTROL_PROBE:
        return ProbeCommand()

    prefix = f"{TOPIC_PREFIX_STATUS}/"
    if not topic.startswith(prefix):
        raise ValidationError(f"Unexpected topic {topic}")
    parts = topic[len(prefix) :].split("/")
    if parts[-1] != TOPIC_SUFFIX_SET:
        raise ValidationError(f"Unexpected topic {topic}")

    if len(parts) == 2:
        setting = parts[0]
        register = WRITABLE_GLOBAL_FIELDS.get(setting)
        zone = None
    elif len(parts) == 4 and parts[0] == "zone":
        zone = _validate(ZONE_INDEX_SCHEMA, parts[1], "zone index")
        setting = parts[2]
        register = WRITABLE_ZONE_FIELDS.get(setting)
    else:
        raise ValidationError(f"Unexpected topic {topic}")

    if register is None:
        _LOGGER.warning("Unknown setting %s (topic %s), ignoring", setting, topic)
        return None

    value = _validate(COMMAND_SCHEMAS[setting], _decode_text(payload), setting)
    return WriteCommand(register=register, value=value, zone=zone)


__all__ = [
    "CAPABILITY_TOPICS",
    "COMMAND_SCHEMAS",
    "Command",
    "ProbeCommand",
    "TopicValueMap",
    "WriteCommand",
    "device_information_topics",
    "encode_payload",
    "parse_command",
    "state_to_topics",
    "subscription_topics",
]
