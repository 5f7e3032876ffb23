"""Roth Touchline SL Modbus to MQTT bridge."""

__version__ = "0.1.0"
