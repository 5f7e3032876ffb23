"""Structured register map of the Roth Touchline SL controller.

Every address the bridge reads or writes is defined here exactly once. The
coordinator, the capability scanner and the topic router all resolve
addresses through :data:`REGISTER_MAP` so address arithmetic for zone-indexed
fields lives in a single place:

* per-unit fields store zone ``z`` (1-based) at ``address + (z - 1) * width``;
* bitmask fields pack zone ``z`` into bit ``z - 1`` of one shared register.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from .exceptions import ValidationError
from .utils import (
    decode_firmware_date,
    decode_firmware_time,
    decode_firmware_version,
    decode_humidity,
    decode_serial_number,
    decode_setpoint,
    decode_temperature,
    encode_temperature,
)

RegisterKind = Literal["coil", "holding_register"]

COIL = "coil"
HOLDING_REGISTER = "holding_register"


def _identity(raw: Any) -> Any:
    return raw


def _encode_int(value: Any) -> int:
    return int(value)


@dataclass(frozen=True, slots=True)
class RegisterField:
    """Static description of one logical field.

    ``name`` is the Python attribute name and ``topic`` the (camelCase) name
    used in MQTT topics and discovery documents.
    """

    name: str
    topic: str
    address: int
    kind: RegisterKind = HOLDING_REGISTER
    width: int = 1
    per_zone: bool = False
    bitmask: bool = False
    writable: bool = False
    decode: Callable[[Any], Any] = _identity
    encode: Callable[[Any], int] = _encode_int

    def zone_address(self, zone: int) -> int:
        """Return the register address holding ``zone`` (1-based)."""

        if self.bitmask:
            return self.address
        if not self.per_zone:
            raise ValueError(f"{self.name} is not a zone field")
        return self.address + (zone - 1) * self.width

    def zone_bit(self, zone: int) -> int:
        """Return the bit index of ``zone`` within a bitmask register."""

        if not self.bitmask:
            raise ValueError(f"{self.name} is not a bitmask field")
        return zone - 1

    def decode_words(self, words: Sequence[int]) -> Any:
        """Decode a multi-word field from its raw register words."""

        if len(words) != self.width:
            raise ValueError(
                f"{self.name} expects {self.width} registers, got {len(words)}"
            )
        if self.width == 1:
            return self.decode(words[0])
        return self.decode(tuple(words))


# ---------------------------------------------------------------------------
# Device information block (holding registers 1..11, read once)
# ---------------------------------------------------------------------------

DEVICE_INFORMATION_ADDRESS = 1
DEVICE_INFORMATION_FIELDS: tuple[RegisterField, ...] = (
    RegisterField("firmware_date", "firmwareDate", 1, decode=decode_firmware_date),
    RegisterField("firmware_time", "firmwareTime", 2, decode=decode_firmware_time),
    RegisterField(
        "firmware_version",
        "firmwareVersion",
        3,
        width=3,
        decode=lambda words: decode_firmware_version(*words),
    ),
    RegisterField("pcb_version", "pcbVersion", 6),
    RegisterField(
        "serial_number",
        "serialNumber",
        7,
        width=2,
        decode=lambda words: decode_serial_number(*words),
    ),
    RegisterField(
        "bootloader_firmware_version",
        "bootloaderFirmwareVersion",
        9,
        width=3,
        decode=lambda words: decode_firmware_version(*words),
    ),
)
DEVICE_INFORMATION_COUNT = sum(field.width for field in DEVICE_INFORMATION_FIELDS)

# ---------------------------------------------------------------------------
# Live values
# ---------------------------------------------------------------------------

# Mode and heat/cool mode are adjacent and read in one request
GLOBAL_REGISTER_FIELDS: tuple[RegisterField, ...] = (
    RegisterField("mode", "mode", 18, writable=True),
    RegisterField("heat_cool_mode", "heatCoolMode", 19, writable=True),
)

# Status coils are not contiguous; each one is read on its own
STATUS_COIL_FIELDS: tuple[RegisterField, ...] = (
    RegisterField("heating_cooling_status", "heatingCoolingStatus", 366, kind=COIL, decode=bool),
    RegisterField("eco_input_status", "ecoInputStatus", 370, kind=COIL, decode=bool),
    RegisterField("pump_status", "pumpStatus", 374, kind=COIL, decode=bool),
    RegisterField(
        "potential_free_contact_status", "potentialFreeContactStatus", 378, kind=COIL, decode=bool
    ),
)

ZONE_HEATING_FIELD = RegisterField("is_heating", "isHeating", 71, bitmask=True, decode=bool)

ZONE_ARRAY_FIELDS: tuple[RegisterField, ...] = (
    RegisterField(
        "current_temperature", "currentTemperature", 23, per_zone=True, decode=decode_temperature
    ),
    RegisterField("humidity", "humidity", 122, per_zone=True, decode=decode_humidity),
    RegisterField(
        "set_temperature",
        "setTemperature",
        221,
        per_zone=True,
        writable=True,
        decode=decode_setpoint,
        encode=encode_temperature,
    ),
    RegisterField("battery_level", "batteryLevel", 270, per_zone=True),
)

ZONE_FIELDS: tuple[RegisterField, ...] = (ZONE_HEATING_FIELD, *ZONE_ARRAY_FIELDS)

REGISTER_MAP: dict[str, RegisterField] = {
    field.name: field
    for field in (
        *DEVICE_INFORMATION_FIELDS,
        *GLOBAL_REGISTER_FIELDS,
        *STATUS_COIL_FIELDS,
        *ZONE_FIELDS,
    )
}

# Topic name -> field for values that may be written from MQTT
WRITABLE_GLOBAL_FIELDS: dict[str, RegisterField] = {
    field.topic: field for field in GLOBAL_REGISTER_FIELDS if field.writable
}
WRITABLE_ZONE_FIELDS: dict[str, RegisterField] = {
    field.topic: field for field in ZONE_ARRAY_FIELDS if field.writable
}


def get_register_field(name: str) -> RegisterField:
    """Return the field called ``name``."""

    return REGISTER_MAP[name]


def validate_zone(zone: int, num_zones: int) -> int:
    """Ensure ``zone`` (1-based) exists on a controller with ``num_zones`` zones."""

    if not 1 <= zone <= num_zones:
        raise ValidationError(f"Zone {zone} out of range 1..{num_zones}")
    return zone


def decode_bitmask(raw: int, num_zones: int) -> list[bool]:
    """Expand the shared zone bitmask into one flag per zone."""

    return [bool(raw & (1 << ZONE_HEATING_FIELD.zone_bit(zone))) for zone in range(1, num_zones + 1)]


__all__ = [
    "COIL",
    "DEVICE_INFORMATION_ADDRESS",
    "DEVICE_INFORMATION_COUNT",
    "DEVICE_INFORMATION_FIELDS",
    "GLOBAL_REGISTER_FIELDS",
    "HOLDING_REGISTER",
    "REGISTER_MAP",
    "RegisterField",
    "STATUS_COIL_FIELDS",
    "WRITABLE_GLOBAL_FIELDS",
    "WRITABLE_ZONE_FIELDS",
    "ZONE_ARRAY_FIELDS",
    "ZONE_FIELDS",
    "ZONE_HEATING_FIELD",
    "decode_bitmask",
    "get_register_field",
    "validate_zone",
]
