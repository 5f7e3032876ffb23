"""Pydantic model describing the bridge configuration.

The command line arguments are validated here before any connection is made.
Key rules:

* ``device`` is either a serial device path (``/dev/ttyUSB0``) for Modbus RTU
  or a ``tcp://host[:port]`` URL for Modbus TCP. Anything else is a fatal
  configuration error.
* ``modbus_slave`` must be a valid Modbus unit address (``1``-``247``).
* ``mqtt_broker_url`` should use the ``mqtt://`` or ``mqtts://`` scheme. Other
  schemes are logged but tolerated, the MQTT client decides whether it can
  connect.
* Credentials are only used when both username and password are present.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import pydantic
from pydantic import Field, field_validator

from .const import (
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTTS_PORT,
    DEFAULT_PROBE_INTERVAL,
    DEFAULT_PUBLISH_INTERVAL,
    DEFAULT_SLAVE_ID,
    DEFAULT_TCP_PORT,
    DEFAULT_TIMEOUT,
)
from .exceptions import ConfigurationError

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModbusRtuDevice:
    """Serial Modbus device."""

    path: str


@dataclass(frozen=True, slots=True)
class ModbusTcpDevice:
    """Modbus TCP endpoint."""

    hostname: str
    port: int = DEFAULT_TCP_PORT


ModbusDevice = ModbusRtuDevice | ModbusTcpDevice


@dataclass(frozen=True, slots=True)
class MqttBroker:
    """Connection parameters extracted from the broker URL."""

    hostname: str
    port: int
    tls: bool


def validate_device(device: str) -> bool:
    """Return whether ``device`` looks like a serial path or TCP URL."""

    return device.startswith("/") or device.startswith("tcp://")


def parse_device(device: str) -> ModbusDevice:
    """Parse the ``--device`` argument."""

    if not validate_device(device):
        raise ValueError(f"Malformed Modbus device {device!r}")
    if device.startswith("/"):
        return ModbusRtuDevice(path=device)

    parts = urlsplit(device)
    if not parts.hostname:
        raise ValueError(f"Missing host in Modbus device {device!r}")
    try:
        port = parts.port or DEFAULT_TCP_PORT
    except ValueError as err:
        raise ValueError(f"Invalid port in Modbus device {device!r}") from err
    return ModbusTcpDevice(hostname=parts.hostname, port=port)


def validate_broker_url(broker_url: str) -> bool:
    return broker_url.startswith("mqtt://") or broker_url.startswith("mqtts://")


def parse_broker_url(broker_url: str) -> MqttBroker:
    """Extract host, port and TLS flag from ``broker_url``."""

    parts = urlsplit(broker_url)
    tls = parts.scheme == "mqtts"
    if not parts.hostname:
        raise ValueError(f"Missing host in MQTT broker URL {broker_url!r}")
    try:
        port = parts.port
    except ValueError as err:
        raise ValueError(f"Invalid port in MQTT broker URL {broker_url!r}") from err
    if port is None:
        port = DEFAULT_MQTTS_PORT if tls else DEFAULT_MQTT_PORT
    return MqttBroker(hostname=parts.hostname, port=port, tls=tls)


class BridgeConfig(pydantic.BaseModel):
    """Validated runtime configuration."""

    model_config = pydantic.ConfigDict(frozen=True)

    device: str
    modbus_slave: int = Field(DEFAULT_SLAVE_ID, ge=1, le=247)
    modbus_timeout: float = Field(DEFAULT_TIMEOUT, gt=0)
    mqtt_broker_url: str
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_publish_interval: float = Field(DEFAULT_PUBLISH_INTERVAL, ge=1)
    probe_interval: float = Field(DEFAULT_PROBE_INTERVAL, ge=1)
    mqtt_discovery: bool = True
    debug: bool = False

    @field_validator("device")
    @classmethod
    def _check_device(cls, value: str) -> str:
        value = value.strip()
        parse_device(value)
        return value

    @field_validator("mqtt_broker_url")
    @classmethod
    def _check_broker_url(cls, value: str) -> str:
        value = value.strip()
        if not validate_broker_url(value):
            _LOGGER.error(
                "Malformed MQTT broker URL: %s. Should be e.g. mqtt://localhost:1883.", value
            )
        parse_broker_url(value)
        return value

    @property
    def modbus_device(self) -> ModbusDevice:
        return parse_device(self.device)

    @property
    def mqtt_broker(self) -> MqttBroker:
        return parse_broker_url(self.mqtt_broker_url)

    @property
    def mqtt_credentials(self) -> tuple[str, str] | None:
        """Return ``(username, password)`` when authentication is configured."""

        if self.mqtt_username and self.mqtt_password:
            return self.mqtt_username, self.mqtt_password
        return None


def load_config(data: dict[str, Any]) -> BridgeConfig:
    """Validate ``data`` into a :class:`BridgeConfig`."""

    try:
        return BridgeConfig.model_validate(data)
    except pydantic.ValidationError as err:
        raise ConfigurationError(str(err)) from err
