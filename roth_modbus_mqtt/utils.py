"""Value conversion helpers for Roth Touchline SL registers.

All functions are pure and operate on raw unsigned 16-bit register values as
returned by the controller.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .const import SENSOR_ABSENT_THRESHOLD

__all__ = [
    "decode_firmware_date",
    "decode_firmware_time",
    "decode_firmware_version",
    "decode_humidity",
    "decode_serial_number",
    "decode_setpoint",
    "decode_temperature",
    "encode_temperature",
]

_UINT16_MAX = 0xFFFF


def decode_temperature(raw: int) -> float | None:
    """Decode a temperature register with 0.1°C resolution.

    The controller reports a large sentinel when no sensor is installed (or
    the sensor is faulted). Anything scaling above ``SENSOR_ABSENT_THRESHOLD``
    is therefore returned as ``None`` instead of a number.
    """

    value = raw / 10
    if value > SENSOR_ABSENT_THRESHOLD:
        return None
    return value


def decode_humidity(raw: int) -> float | None:
    """Decode a humidity register, using the same sentinel as temperatures."""

    return decode_temperature(raw)


def decode_setpoint(raw: int) -> float:
    """Decode a set temperature register. Setpoints are always present."""

    return raw / 10


def encode_temperature(value: float | int | str | Decimal) -> int:
    """Encode ``value`` into the raw register representation.

    The value is scaled by ten and rounded half-up. Range checks are left to
    the controller, which rejects values it does not accept; only values that
    cannot be represented in a register raise ``ValueError``.
    """

    try:
        scaled = Decimal(str(value)).scaleb(1).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except InvalidOperation as err:
        raise ValueError(f"Cannot encode temperature {value!r}") from err
    if not scaled.is_finite():
        raise ValueError(f"Cannot encode temperature {value!r}")
    raw = int(scaled)
    if not 0 <= raw <= _UINT16_MAX:
        raise ValueError(f"Temperature {value!r} does not fit a 16-bit register")
    return raw


def decode_firmware_version(major: int, minor: int, revision: int) -> str:
    """Return ``major.minor.revision``."""

    return f"{major}.{minor}.{revision}"


def decode_serial_number(high: int, low: int) -> str:
    """Join the two serial number words as text, high word first."""

    return f"{high}{low}"


def decode_firmware_date(raw: int) -> str:
    return str(raw)


def decode_firmware_time(raw: int) -> str:
    return str(raw)
