"""Bridge loop tying the Modbus coordinator to the MQTT broker."""

from __future__ import annotations

import asyncio
import logging

from .config import BridgeConfig
from .const import TOPIC_NAME_STATUS
from .coordinator import RothModbusCoordinator
from .device_scanner import CapabilitySnapshot
from .discovery import build_discovery_documents
from .exceptions import RothModbusMqttError, TransportError, ValidationError
from .modbus_transport import create_transport
from .mqtt_client import MqttClient
from .topics import (
    ProbeCommand,
    WriteCommand,
    device_information_topics,
    parse_command,
    state_to_topics,
    subscription_topics,
)

_LOGGER = logging.getLogger(__name__)


class RothModbusMqttBridge:
    """Publish controller state periodically and apply inbound settings.

    Three activities share the coordinator: the publish tick, the probe tick
    and inbound messages. Each tick runs to completion before the next one of
    the same kind starts, and all Modbus requests are serialised by the
    transport.
    """

    def __init__(
        self,
        coordinator: RothModbusCoordinator,
        mqtt_client: MqttClient,
        *,
        publish_interval: float,
        probe_interval: float,
        discovery: bool = True,
    ) -> None:
        self.coordinator = coordinator
        self.mqtt = mqtt_client
        self.publish_interval = publish_interval
        self.probe_interval = probe_interval
        self.discovery = discovery
        self._discovery_capabilities: CapabilitySnapshot | None = None
        self._tasks: list[asyncio.Task] = []
        self._stopped = asyncio.Event()

    @classmethod
    def from_config(cls, config: BridgeConfig) -> RothModbusMqttBridge:
        transport = create_transport(
            config.modbus_device, slave_id=config.modbus_slave, timeout=config.modbus_timeout
        )
        mqtt_client = MqttClient(
            config.mqtt_broker,
            broker_url=config.mqtt_broker_url,
            credentials=config.mqtt_credentials,
        )
        return cls(
            RothModbusCoordinator(transport),
            mqtt_client,
            publish_interval=config.mqtt_publish_interval,
            probe_interval=config.probe_interval,
            discovery=config.mqtt_discovery,
        )

    async def async_start(self) -> None:
        """Connect both ends, publish the initial state and start the ticks.

        Failures here propagate; there is nothing sensible to publish without
        the device information block.
        """

        _LOGGER.info("Connecting to %s", self.coordinator.transport.describe())
        await self.mqtt.connect()
        information = await self.coordinator.async_setup()

        self.mqtt.publish_many(device_information_topics(information), retain=True)
        _LOGGER.info("Published device information")

        await self._async_publish_tick()
        self._tasks.append(asyncio.create_task(self._publish_loop(), name="publish"))
        _LOGGER.info(
            "MQTT scheduler started, will publish readings every %s seconds",
            self.publish_interval,
        )

        if self.discovery:
            self.async_publish_discovery()
            _LOGGER.info("Finished configuration Home Assistant MQTT discovery")

        self._tasks.append(asyncio.create_task(self._probe_loop(), name="probe"))
        self.mqtt.subscribe(subscription_topics(), self.async_handle_message)

    async def async_publish_values(self) -> None:
        """Run one read pass and publish every state topic."""

        state = await self.coordinator.async_read_state()
        for topic, payload in state_to_topics(state).items():
            self.mqtt.publish(topic, payload, retain=topic == TOPIC_NAME_STATUS)

    def async_publish_discovery(self) -> None:
        """Publish discovery documents for the current snapshot.

        The snapshot is remembered only once every document went out, so a
        failed publish is retried by the next probe.
        """

        information = self.coordinator.device_information
        if information is None:
            _LOGGER.debug("Device information not read yet, skipping discovery")
            return
        capabilities = self.coordinator.capabilities
        documents = build_discovery_documents(information, capabilities)
        for document in documents:
            self.mqtt.publish(document.topic, document.payload, retain=True)
        self._discovery_capabilities = capabilities
        _LOGGER.debug("Published %d discovery documents", len(documents))

    async def async_probe(self) -> None:
        """Re-probe capabilities and refresh discovery when it is out of date."""

        await self.coordinator.async_probe()
        if self.discovery and self.coordinator.capabilities != self._discovery_capabilities:
            self.async_publish_discovery()

    async def _async_publish_tick(self) -> None:
        try:
            await self.async_publish_values()
        except TransportError as err:
            _LOGGER.error(
                "Failed to publish values (%d failed reads so far), retrying on next tick: %s",
                self.coordinator.statistics.failed_reads,
                err,
            )

    async def _publish_loop(self) -> None:
        while True:
            await asyncio.sleep(self.publish_interval)
            await self._async_publish_tick()

    async def _probe_loop(self) -> None:
        while True:
            await asyncio.sleep(self.probe_interval)
            try:
                await self.async_probe()
            except TransportError as err:
                _LOGGER.error("Capability re-probe failed: %s", err)

    async def async_handle_message(self, topic: str, payload: bytes) -> None:
        """Apply one inbound message. Never raises for bad input or I/O."""

        try:
            command = parse_command(topic, payload)
            if command is None:
                return
            if isinstance(command, ProbeCommand):
                _LOGGER.info("Re-probe requested over MQTT")
                await self.async_probe()
            elif isinstance(command, WriteCommand):
                await self.coordinator.async_write_register(
                    command.register, command.value, zone=command.zone
                )
        except ValidationError as err:
            _LOGGER.warning("Ignoring message on %s: %s", topic, err)
        except RothModbusMqttError as err:
            _LOGGER.error("Failed to handle message on %s: %s", topic, err)

    async def run(self) -> None:
        """Start the bridge and block until :meth:`async_stop` is called."""

        try:
            await self.async_start()
            await self._stopped.wait()
        finally:
            await self.async_shutdown()

    def async_stop(self) -> None:
        self._stopped.set()

    async def async_shutdown(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self.mqtt.disconnect()
        await self.coordinator.async_shutdown()
