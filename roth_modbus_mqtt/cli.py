"""Command line entry point.

Usage:
    roth-modbus-mqtt -d /dev/ttyUSB0 -m mqtt://localhost:1883
    roth-modbus-mqtt -d tcp://192.168.1.40:502 -m mqtt://localhost:1883 -v
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Sequence

from .bridge import RothModbusMqttBridge
from .config import BridgeConfig, load_config
from .const import DEFAULT_PROBE_INTERVAL, DEFAULT_PUBLISH_INTERVAL, DEFAULT_SLAVE_ID
from .exceptions import ConfigurationError, TransportError

_LOGGER = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="roth-modbus-mqtt",
        description="Bridge a Roth Touchline SL controller between Modbus and MQTT",
    )
    parser.add_argument(
        "-d",
        "--device",
        required=True,
        help="The Modbus device to use, e.g. /dev/ttyUSB0 for Modbus RTU or "
        "tcp://192.168.1.40:502 for Modbus TCP",
    )
    parser.add_argument(
        "-s",
        "--modbus-slave",
        type=int,
        default=DEFAULT_SLAVE_ID,
        help="The Modbus slave address",
    )
    parser.add_argument(
        "-m",
        "--mqtt-broker-url",
        required=True,
        help="The URL to the MQTT broker, e.g. mqtt://localhost:1883",
    )
    parser.add_argument(
        "--mqtt-username",
        help="The username to use when connecting to the MQTT broker. "
        "Omit to disable authentication.",
    )
    parser.add_argument(
        "--mqtt-password",
        help="The password to use when connecting to the MQTT broker. "
        "Required when --mqtt-username is given.",
    )
    parser.add_argument(
        "-i",
        "--mqtt-publish-interval",
        type=float,
        default=DEFAULT_PUBLISH_INTERVAL,
        help="How often messages should be published over MQTT (in seconds)",
    )
    parser.add_argument(
        "--probe-interval",
        type=float,
        default=DEFAULT_PROBE_INTERVAL,
        help="How often the controller is re-probed for zones and peripherals (in seconds)",
    )
    parser.add_argument(
        "--mqtt-discovery",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Whether to enable Home Assistant MQTT discovery support",
    )
    parser.add_argument(
        "-v",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    if not debug:
        logging.getLogger("pymodbus").setLevel(logging.WARNING)


async def _run(config: BridgeConfig) -> None:
    bridge = RothModbusMqttBridge.from_config(config)
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, bridge.async_stop)
    except NotImplementedError:
        # Signal handlers are unavailable on Windows event loops
        pass
    await bridge.run()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(args.debug)

    try:
        config = load_config(vars(args))
    except ConfigurationError as err:
        _LOGGER.error("Invalid configuration, exiting: %s", err)
        return 1

    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted, shutting down")
    except TransportError as err:
        _LOGGER.error("Could not start the bridge: %s", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
