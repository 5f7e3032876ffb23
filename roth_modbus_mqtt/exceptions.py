"""Custom exceptions for the Roth Modbus MQTT bridge."""
from __future__ import annotations


class RothModbusMqttError(Exception):
    """Base exception for the bridge."""


class TransportError(RothModbusMqttError):
    """Exception for Modbus or MQTT I/O failures."""


class ModbusTransportError(TransportError):
    """Exception for Modbus communication errors."""

    def __init__(self, message: str, *, exception_code: int | None = None) -> None:
        super().__init__(message)
        self.exception_code = exception_code


class MqttTransportError(TransportError):
    """Exception for MQTT communication errors."""


class ValidationError(RothModbusMqttError):
    """Exception for malformed inbound topics or payloads."""


class ConfigurationError(RothModbusMqttError):
    """Exception for invalid startup configuration."""
