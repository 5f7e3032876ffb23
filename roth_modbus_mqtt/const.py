"""Constants for the Roth Touchline SL Modbus to MQTT bridge."""

from __future__ import annotations

# Device identity used in discovery documents
MANUFACTURER = "Roth"
MODEL = "Touchline SL"
DEVICE_NAME = "Roth Touchline SL"
DEVICE_ID_PREFIX = "roth"

# Connection defaults
DEFAULT_SLAVE_ID = 1
DEFAULT_TCP_PORT = 502
DEFAULT_TIMEOUT = 5
DEFAULT_BAUD_RATE = 19200
DEFAULT_BYTESIZE = 8
DEFAULT_PARITY = "N"
DEFAULT_STOP_BITS = 1

DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTTS_PORT = 8883
DEFAULT_MQTT_KEEPALIVE = 60
DEFAULT_MQTT_CONNECT_TIMEOUT = 10

# Scheduling defaults (seconds)
DEFAULT_PUBLISH_INTERVAL = 10
DEFAULT_PROBE_INTERVAL = 600

# The controller supports at most this many peripherals of each class
MAX_PERIPHERALS = 48

# Probe base addresses; a read failure at base + i means "not configured"
PROBE_BASE_ZONES = 23
PROBE_BASE_ACTUATORS = 170
PROBE_BASE_WINDOW_SENSORS = 218

# Scaled temperature/humidity values above this mean "no sensor"
SENSOR_ABSENT_THRESHOLD = 1000

# Select options, indexed by the raw register value
QUICK_ACTION_MODES = ["Normal", "Vacation", "Eco", "Comfort"]
HEATING_COOLING_MODES = ["Heating", "Cooling", "Auto"]

# MQTT topic layout
TOPIC_PREFIX = "roth-modbus-mqtt"
TOPIC_PREFIX_DEVICE_INFORMATION = f"{TOPIC_PREFIX}/deviceInformation"
TOPIC_PREFIX_STATUS = f"{TOPIC_PREFIX}/status"
TOPIC_PREFIX_ZONE = f"{TOPIC_PREFIX_STATUS}/zone"
TOPIC_NAME_STATUS = f"{TOPIC_PREFIX}/status"
TOPIC_CONTROL_PROBE = f"{TOPIC_PREFIX}/control/probe"
TOPIC_SUFFIX_SET = "set"
DISCOVERY_PREFIX = "homeassistant"

PAYLOAD_ONLINE = "online"
# Published for optional values the controller reports as absent
PAYLOAD_ABSENT = "None"
# Last will, published by the broker when the bridge drops off
PAYLOAD_OFFLINE = "offline"
