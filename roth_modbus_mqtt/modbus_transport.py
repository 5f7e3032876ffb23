"""Transport abstractions for Modbus communication."""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, cast

from pymodbus.client import AsyncModbusSerialClient, AsyncModbusTcpClient
from pymodbus.exceptions import ConnectionException, ModbusException, ModbusIOException

from .config import ModbusDevice, ModbusRtuDevice, ModbusTcpDevice
from .const import (
    DEFAULT_BAUD_RATE,
    DEFAULT_BYTESIZE,
    DEFAULT_PARITY,
    DEFAULT_SLAVE_ID,
    DEFAULT_STOP_BITS,
    DEFAULT_TIMEOUT,
)
from .exceptions import ModbusTransportError
from .modbus_helpers import _call_modbus

_LOGGER = logging.getLogger(__name__)


class BaseModbusTransport(ABC):
    """Base interface for Modbus transports.

    Requests are serialised: only one request is outstanding at a time, and
    every request is bounded by ``timeout``. Any failure is raised as
    :class:`ModbusTransportError`; transient failures additionally drop the
    underlying client so the next request reconnects. Requests are never
    retried here.
    """

    def __init__(
        self,
        *,
        slave_id: int = DEFAULT_SLAVE_ID,
        timeout: float = DEFAULT_TIMEOUT,
        offline_state: bool = False,
    ) -> None:
        self.slave_id = slave_id
        self.timeout = float(timeout)
        self.offline_state = offline_state
        self.client: Any = None
        self._lock = asyncio.Lock()

    @property
    def offline(self) -> bool:
        """Return whether the transport is offline."""

        return self.offline_state

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        """Read ``count`` holding registers starting at ``address``."""

        response = await self.call("read_holding_registers", address, count)
        registers = getattr(response, "registers", None)
        if registers is None or len(registers) < count:
            raise ModbusTransportError(
                f"Malformed response reading holding registers {address}-{address + count - 1}"
            )
        values = [int(value) for value in registers[:count]]
        _LOGGER.debug("Read holding registers %d-%d: %s", address, address + count - 1, values)
        return values

    async def read_coils(self, address: int, count: int) -> list[bool]:
        """Read ``count`` coils starting at ``address``."""

        response = await self.call("read_coils", address, count)
        bits = getattr(response, "bits", None)
        if bits is None or len(bits) < count:
            raise ModbusTransportError(
                f"Malformed response reading coils {address}-{address + count - 1}"
            )
        values = [bool(bit) for bit in bits[:count]]
        _LOGGER.debug("Read coils %d-%d: %s", address, address + count - 1, values)
        return values

    async def write_register(self, address: int, value: int) -> None:
        """Write a single holding register."""

        await self.call("write_register", address, value)
        _LOGGER.debug("Wrote %d to holding register %d", value, address)

    async def call(self, func_name: str, *args: Any, **kwargs: Any) -> Any:
        """Call a Modbus client method with connection management."""

        async with self._lock:
            try:
                await self._ensure_connected()
                func = getattr(self.client, func_name)
                response = await _call_modbus(
                    func, self.slave_id, *args, timeout=self.timeout, **kwargs
                )
            except (asyncio.TimeoutError, TimeoutError) as exc:
                _LOGGER.warning("Modbus call %s%s timed out: %s", func_name, args, exc)
                await self._handle_transient()
                raise ModbusTransportError(f"Timeout calling {func_name}{args}") from exc
            except (ConnectionException, ModbusIOException, OSError) as exc:
                _LOGGER.warning("Transient Modbus transport error on %s%s: %s", func_name, args, exc)
                await self._handle_transient()
                raise ModbusTransportError(f"Transport error calling {func_name}{args}: {exc}") from exc
            except ModbusException as exc:
                _LOGGER.error("Permanent Modbus error on %s%s: %s", func_name, args, exc)
                raise ModbusTransportError(f"Modbus error calling {func_name}{args}: {exc}") from exc

            self.offline_state = False

        if response is None:
            raise ModbusTransportError(f"No response to {func_name}{args}")
        if response.isError():
            code = cast(int | None, getattr(response, "exception_code", None))
            raise ModbusTransportError(
                f"Exception response to {func_name}{args} (code {code})", exception_code=code
            )
        return response

    async def close(self) -> None:
        """Close the transport."""

        async with self._lock:
            await self._reset_connection()
            self.offline_state = True

    async def _ensure_connected(self) -> None:
        """Ensure the underlying transport is connected."""

        if self._is_connected():
            return
        await self._reset_connection()
        await self._connect()

    async def _handle_transient(self) -> None:
        self.offline_state = True
        await self._reset_connection()

    def _is_connected(self) -> bool:
        return bool(self.client and getattr(self.client, "connected", False))

    async def _reset_connection(self) -> None:
        client = self.client
        if client is None:
            return
        try:
            result = client.close()
            if inspect.isawaitable(result):
                await result
        except (OSError, ConnectionException, ModbusIOException):
            _LOGGER.debug("Error closing Modbus client", exc_info=True)
        finally:
            self.client = None

    async def _connect(self) -> None:
        """Connect the underlying transport."""

        self.client = self._create_client()
        try:
            connected = await asyncio.wait_for(self.client.connect(), timeout=self.timeout)
        except (asyncio.TimeoutError, TimeoutError) as exc:
            self.offline_state = True
            raise ConnectionException(f"Timeout connecting to {self.describe()}") from exc
        if not connected:
            self.offline_state = True
            raise ConnectionException(f"Could not connect to {self.describe()}")
        _LOGGER.info("Modbus connection established to %s", self.describe())
        self.offline_state = False

    @abstractmethod
    def _create_client(self) -> Any:
        """Create the pymodbus client."""

    @abstractmethod
    def describe(self) -> str:
        """Return a human readable description of the endpoint."""


class TcpModbusTransport(BaseModbusTransport):
    """TCP Modbus transport implementation."""

    def __init__(self, *, host: str, port: int, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.host = host
        self.port = port

    def _create_client(self) -> AsyncModbusTcpClient:
        return AsyncModbusTcpClient(self.host, port=self.port, timeout=self.timeout, retries=0)

    def describe(self) -> str:
        return f"{self.host}:{self.port}"


class RtuModbusTransport(BaseModbusTransport):
    """Serial (RTU) Modbus transport implementation."""

    def __init__(
        self,
        *,
        path: str,
        baudrate: int = DEFAULT_BAUD_RATE,
        bytesize: int = DEFAULT_BYTESIZE,
        parity: str = DEFAULT_PARITY,
        stopbits: int = DEFAULT_STOP_BITS,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.path = path
        self.baudrate = baudrate
        self.bytesize = bytesize
        self.parity = parity
        self.stopbits = stopbits

    def _create_client(self) -> AsyncModbusSerialClient:
        return AsyncModbusSerialClient(
            self.path,
            baudrate=self.baudrate,
            bytesize=self.bytesize,
            parity=self.parity,
            stopbits=self.stopbits,
            timeout=self.timeout,
            retries=0,
        )

    def describe(self) -> str:
        return self.path


def create_transport(
    device: ModbusDevice, *, slave_id: int = DEFAULT_SLAVE_ID, timeout: float = DEFAULT_TIMEOUT
) -> BaseModbusTransport:
    """Return the transport matching ``device``."""

    if isinstance(device, ModbusRtuDevice):
        return RtuModbusTransport(path=device.path, slave_id=slave_id, timeout=timeout)
    if isinstance(device, ModbusTcpDevice):
        return TcpModbusTransport(
            host=device.hostname, port=device.port, slave_id=slave_id, timeout=timeout
        )
    raise TypeError(f"Unsupported Modbus device {device!r}")
