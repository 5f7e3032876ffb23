"""Tests for configuration parsing and validation."""

import logging

import pytest

from roth_modbus_mqtt.config import (
    ModbusRtuDevice,
    ModbusTcpDevice,
    MqttBroker,
    load_config,
    parse_broker_url,
    parse_device,
)
from roth_modbus_mqtt.exceptions import ConfigurationError


def _config(**overrides):
    data = {"device": "/dev/ttyUSB0", "mqtt_broker_url": "mqtt://localhost:1883"}
    data.update(overrides)
    return load_config(data)


@pytest.mark.parametrize(
    ("device", "expected"),
    [
        ("/dev/ttyUSB0", ModbusRtuDevice("/dev/ttyUSB0")),
        ("tcp://192.168.1.40:502", ModbusTcpDevice("192.168.1.40", 502)),
        ("tcp://controller", ModbusTcpDevice("controller", 502)),
        ("tcp://controller:5020", ModbusTcpDevice("controller", 5020)),
    ],
)
def test_parse_device(device, expected):
    assert parse_device(device) == expected


@pytest.mark.parametrize("device", ["ttyUSB0", "udp://host:502", "tcp://", "tcp://host:port"])
def test_parse_device_rejects_malformed(device):
    with pytest.raises(ValueError):
        parse_device(device)


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("mqtt://localhost:1883", MqttBroker("localhost", 1883, False)),
        ("mqtt://broker", MqttBroker("broker", 1883, False)),
        ("mqtts://broker", MqttBroker("broker", 8883, True)),
        ("mqtts://broker:9000", MqttBroker("broker", 9000, True)),
    ],
)
def test_parse_broker_url(url, expected):
    assert parse_broker_url(url) == expected


def test_defaults():
    config = _config()

    assert config.modbus_slave == 1
    assert config.modbus_timeout == 5
    assert config.mqtt_publish_interval == 10
    assert config.probe_interval == 600
    assert config.mqtt_discovery is True
    assert config.debug is False
    assert config.modbus_device == ModbusRtuDevice("/dev/ttyUSB0")
    assert config.mqtt_broker == MqttBroker("localhost", 1883, False)


def test_malformed_device_is_configuration_error():
    with pytest.raises(ConfigurationError):
        _config(device="COM3")


@pytest.mark.parametrize("slave", [0, 248])
def test_slave_id_range(slave):
    with pytest.raises(ConfigurationError):
        _config(modbus_slave=slave)


def test_publish_interval_must_be_positive():
    with pytest.raises(ConfigurationError):
        _config(mqtt_publish_interval=0)


def test_unexpected_broker_scheme_is_logged_not_fatal(caplog):
    with caplog.at_level(logging.ERROR):
        config = _config(mqtt_broker_url="tcp://broker:1883")

    assert config.mqtt_broker.hostname == "broker"
    assert "Malformed MQTT broker URL" in caplog.text


def test_broker_url_without_host_is_fatal():
    with pytest.raises(ConfigurationError):
        _config(mqtt_broker_url="mqtt://")


@pytest.mark.parametrize(
    ("username", "password", "expected"),
    [
        ("user", "secret", ("user", "secret")),
        ("user", None, None),
        (None, "secret", None),
        (None, None, None),
    ],
)
def test_credentials_require_both(username, password, expected):
    config = _config(mqtt_username=username, mqtt_password=password)

    assert config.mqtt_credentials == expected
