"""Tests for the paho-mqtt client wrapper."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import paho.mqtt.client as mqtt
import pytest

from roth_modbus_mqtt.config import MqttBroker
from roth_modbus_mqtt.exceptions import MqttTransportError
from roth_modbus_mqtt.mqtt_client import MqttClient

pytestmark = pytest.mark.asyncio

PAHO_CLIENT = "roth_modbus_mqtt.mqtt_client.mqtt.Client"


def _success():
    reason_code = MagicMock()
    reason_code.is_failure = False
    return reason_code


def _client(**kwargs):
    return MqttClient(
        MqttBroker("broker", 1883, False), broker_url="mqtt://broker:1883", **kwargs
    )


async def _connected_client(paho, **kwargs):
    client = _client(**kwargs)
    paho.loop_start.side_effect = lambda: client._on_connect(paho, None, None, _success(), None)
    paho.subscribe.return_value = (mqtt.MQTT_ERR_SUCCESS, 1)
    await client.connect()
    return client


async def test_create_client_configures_session():
    client = MqttClient(MqttBroker("broker", 8883, True), credentials=("user", "secret"))

    with patch(PAHO_CLIENT) as client_cls:
        paho = client._create_client()

    client_cls.assert_called_once_with(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2, client_id=""
    )
    paho.username_pw_set.assert_called_once_with("user", "secret")
    paho.tls_set.assert_called_once_with()
    paho.will_set.assert_called_once_with(
        "roth-modbus-mqtt/status", "offline", qos=0, retain=True
    )


async def test_create_client_without_credentials_or_tls():
    with patch(PAHO_CLIENT) as client_cls:
        paho = _client()._create_client()

    assert client_cls.called
    paho.username_pw_set.assert_not_called()
    paho.tls_set.assert_not_called()


async def test_connect_waits_for_session():
    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value
        client = await _connected_client(paho)

    paho.connect_async.assert_called_once_with("broker", 1883, 60)
    assert client.connected


async def test_subscribe_after_connect_and_on_reconnect():
    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value
        client = await _connected_client(paho)
        client.subscribe(["a/+/set", "b"], AsyncMock())

        paho.subscribe.assert_called_once_with([("a/+/set", 0), ("b", 0)])

        client._on_connect(paho, None, None, _success(), None)
        assert paho.subscribe.call_count == 2


async def test_publish():
    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value
        paho.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
        client = await _connected_client(paho)

        client.publish("topic", "1", retain=True)
        client.publish_many({"x": "2", "y": "3"})

    assert paho.publish.call_args_list[0].args == ("topic", "1")
    assert paho.publish.call_args_list[0].kwargs == {"qos": 0, "retain": True}
    assert paho.publish.call_count == 3


async def test_publish_failure_raises():
    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value
        paho.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_NO_CONN)
        client = await _connected_client(paho)

        with pytest.raises(MqttTransportError):
            client.publish("topic", "1")


async def test_publish_before_connect_raises():
    with pytest.raises(MqttTransportError):
        _client().publish("topic", "1")


async def test_message_is_dispatched_to_event_loop():
    handler = AsyncMock()
    client = _client()
    client._loop = asyncio.get_running_loop()
    client.subscribe(["topic/set"], handler)

    message = MagicMock(topic="topic/set", payload=b"21.5")
    client._on_message(None, None, message)
    for _ in range(5):
        await asyncio.sleep(0)

    handler.assert_awaited_once_with("topic/set", b"21.5")


async def test_disconnect_logs_reconnect_attempt(caplog):
    client = _client()
    client._loop = asyncio.get_running_loop()
    client._client = MagicMock()

    with caplog.at_level(logging.INFO):
        client._on_disconnect(None, None, None, "keepalive timeout", None)

    assert "Attempting to reconnect to mqtt://broker:1883" in caplog.text


async def test_disconnect_stops_network_loop():
    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value
        client = await _connected_client(paho)

        await client.disconnect()

    paho.disconnect.assert_called_once_with()
    paho.loop_stop.assert_called_once_with()
    assert not client.connected


async def test_refused_connection_raises():
    refused = MagicMock()
    refused.is_failure = True
    client = _client()

    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value
        paho.loop_start.side_effect = lambda: client._on_connect(paho, None, None, refused, None)

        with pytest.raises(MqttTransportError, match="refused connection"):
            await client.connect()

    paho.loop_stop.assert_called_once_with()
    assert not client.connected
    assert client._client is None


async def test_failed_connection_attempt_raises():
    client = _client()

    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value
        paho.loop_start.side_effect = lambda: client._on_connect_fail(paho, None)

        with pytest.raises(MqttTransportError, match="Cannot connect"):
            await client.connect()

    paho.loop_stop.assert_called_once_with()


async def test_unanswered_connection_times_out():
    client = _client(connect_timeout=0.01)

    with patch(PAHO_CLIENT) as client_cls:
        paho = client_cls.return_value

        with pytest.raises(MqttTransportError, match="Timed out"):
            await asyncio.wait_for(client.connect(), timeout=1)

    paho.loop_stop.assert_called_once_with()
    assert client._client is None
    await client.disconnect()
