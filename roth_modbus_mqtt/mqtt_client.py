"""Asyncio facade over the paho-mqtt client.

paho runs its network loop in a background thread. Connection state changes
and inbound messages are handed over to the asyncio event loop that called
:meth:`MqttClient.connect`, so everything downstream runs on one loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from concurrent.futures import Future
from typing import Any

import paho.mqtt.client as mqtt

from .config import MqttBroker
from .const import (
    DEFAULT_MQTT_CONNECT_TIMEOUT,
    DEFAULT_MQTT_KEEPALIVE,
    PAYLOAD_OFFLINE,
    TOPIC_NAME_STATUS,
)
from .exceptions import MqttTransportError

_LOGGER = logging.getLogger(__name__)

MessageHandler = Callable[[str, bytes], Awaitable[None]]


class MqttClient:
    """Publish and subscribe on one broker connection."""

    def __init__(
        self,
        broker: MqttBroker,
        *,
        broker_url: str | None = None,
        credentials: tuple[str, str] | None = None,
        client_id: str = "",
        keepalive: int = DEFAULT_MQTT_KEEPALIVE,
        connect_timeout: float = DEFAULT_MQTT_CONNECT_TIMEOUT,
    ) -> None:
        self.broker = broker
        self.broker_url = broker_url or f"{broker.hostname}:{broker.port}"
        self.credentials = credentials
        self.client_id = client_id
        self.keepalive = keepalive
        self.connect_timeout = connect_timeout
        self.subscriptions: list[str] = []
        self._client: mqtt.Client | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._connected = asyncio.Event()
        self._connect_waiter: asyncio.Future[None] | None = None
        self._message_handler: MessageHandler | None = None
        self._has_connected = False

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
        )
        if self.credentials is not None:
            client.username_pw_set(*self.credentials)
        if self.broker.tls:
            client.tls_set()
        client.will_set(TOPIC_NAME_STATUS, PAYLOAD_OFFLINE, qos=0, retain=True)
        client.on_connect = self._on_connect
        client.on_connect_fail = self._on_connect_fail
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    async def connect(self) -> None:
        """Connect to the broker and wait until the session is established.

        Raises :class:`MqttTransportError` when the broker cannot be reached,
        refuses the connection, or does not answer within
        ``connect_timeout`` seconds. Once connected, paho reconnects in the
        background on its own.
        """

        self._loop = asyncio.get_running_loop()
        self._connect_waiter = self._loop.create_future()
        self._client = self._create_client()
        _LOGGER.info("Connecting to MQTT broker at %s", self.broker_url)
        try:
            self._client.connect_async(self.broker.hostname, self.broker.port, self.keepalive)
        except (OSError, ValueError) as err:
            self._abort_connect()
            raise MqttTransportError(f"Cannot connect to {self.broker_url}: {err}") from err
        self._client.loop_start()
        try:
            await asyncio.wait_for(self._connect_waiter, self.connect_timeout)
        except TimeoutError as err:
            self._abort_connect()
            raise MqttTransportError(
                f"Timed out after {self.connect_timeout}s connecting to {self.broker_url}"
            ) from err
        except MqttTransportError:
            self._abort_connect()
            raise
        finally:
            self._connect_waiter = None
        _LOGGER.info("Successfully connected to MQTT broker at %s", self.broker_url)

    def _abort_connect(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.loop_stop()
        self._connected.clear()

    def _resolve_connect(self, err: MqttTransportError | None) -> None:
        waiter = self._connect_waiter
        if waiter is None or waiter.done():
            return
        if err is None:
            waiter.set_result(None)
        else:
            waiter.set_exception(err)

    def _signal_connect(self, err: MqttTransportError | None = None) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._resolve_connect, err)

    async def disconnect(self) -> None:
        """Close the broker connection and stop the network thread."""

        client, self._client = self._client, None
        if client is None:
            return
        client.publish(TOPIC_NAME_STATUS, PAYLOAD_OFFLINE, qos=0, retain=True)
        client.disconnect()
        client.loop_stop()
        self._connected.clear()
        _LOGGER.debug("Disconnected from MQTT broker at %s", self.broker_url)

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> None:
        """Queue ``payload`` on ``topic``; raise if paho refuses it."""

        if self._client is None:
            raise MqttTransportError(f"Not connected, cannot publish to {topic}")
        info = self._client.publish(topic, payload, qos=0, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise MqttTransportError(
                f"Failed to publish to {topic}: {mqtt.error_string(info.rc)}"
            )
        _LOGGER.debug("Published %s to %s", payload, topic)

    def publish_many(self, topics: Mapping[str, str], *, retain: bool = False) -> None:
        for topic, payload in topics.items():
            self.publish(topic, payload, retain=retain)

    def subscribe(self, topics: Iterable[str], handler: MessageHandler) -> None:
        """Subscribe to ``topics`` and route messages to ``handler``.

        Subscriptions are remembered and renewed after every reconnect.
        """

        self._message_handler = handler
        self.subscriptions = list(topics)
        if self.connected:
            self._subscribe_all()

    def _subscribe_all(self) -> None:
        if self._client is None or not self.subscriptions:
            return
        result, _mid = self._client.subscribe([(topic, 0) for topic in self.subscriptions])
        if result != mqtt.MQTT_ERR_SUCCESS:
            _LOGGER.error(
                "Failed to subscribe to %s: %s", self.subscriptions, mqtt.error_string(result)
            )
            return
        for topic in self.subscriptions:
            _LOGGER.info("Subscribed to topic %s", topic)

    def _set_connected(self, connected: bool) -> None:
        if self._loop is None:
            return
        action = self._connected.set if connected else self._connected.clear
        self._loop.call_soon_threadsafe(action)

    def _on_connect(
        self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any
    ) -> None:
        if reason_code.is_failure:
            _LOGGER.error("MQTT broker at %s refused connection: %s", self.broker_url, reason_code)
            self._signal_connect(
                MqttTransportError(f"{self.broker_url} refused connection: {reason_code}")
            )
            return
        if self._has_connected:
            _LOGGER.info("Reconnected to MQTT broker at %s", self.broker_url)
        self._has_connected = True
        self._subscribe_all()
        self._set_connected(True)
        self._signal_connect()

    def _on_connect_fail(self, client: mqtt.Client, userdata: Any) -> None:
        _LOGGER.debug("Connection attempt to %s failed", self.broker_url)
        self._signal_connect(MqttTransportError(f"Cannot connect to {self.broker_url}"))

    def _on_disconnect(
        self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any
    ) -> None:
        self._set_connected(False)
        if self._client is None:
            return
        _LOGGER.warning("Lost connection to MQTT broker: %s", reason_code)
        _LOGGER.info("Attempting to reconnect to %s", self.broker_url)

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        if self._loop is None or self._message_handler is None:
            return
        _LOGGER.debug("Received %r on %s", msg.payload, msg.topic)
        future = asyncio.run_coroutine_threadsafe(
            self._message_handler(msg.topic, msg.payload), self._loop
        )
        future.add_done_callback(self._log_handler_failure)

    @staticmethod
    def _log_handler_failure(future: Future) -> None:
        if future.cancelled():
            return
        err = future.exception()
        if err is not None:
            _LOGGER.error("Unhandled error while processing MQTT message", exc_info=err)
