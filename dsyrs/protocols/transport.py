"""
Transport port.

A transport performs one register transaction against one slave and
honours the timeout it is given. Transports never retry; the bus manager
serializes calls and the device session decides on retries.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..core.constants import BROADCAST_TURNAROUND
from .modbus import ModbusRTU
from .serial import SerialConnection, SerialSettings


class BlockingTransport(ABC):
    """Register transactions for thread-based callers."""

    @abstractmethod
    def read_registers(self, slave_id: int, address: int, count: int, timeout: float) -> List[int]:
        """
        Read ``count`` holding registers starting at ``address``.

        Raises
        ------
        TransportTimeoutError
            If no complete reply arrives within ``timeout``
        TransportError
            For framing, CRC or Modbus exception replies
        """

    @abstractmethod
    def write_registers(self, slave_id: int, address: int, words: Sequence[int], timeout: float) -> None:
        """Write ``words`` to consecutive registers starting at ``address``."""

    def close(self) -> None:
        pass


class AsyncTransport(ABC):
    """Register transactions for asyncio callers."""

    @abstractmethod
    async def read_registers(self, slave_id: int, address: int, count: int, timeout: float) -> List[int]:
        """Coroutine counterpart of :meth:`BlockingTransport.read_registers`."""

    @abstractmethod
    async def write_registers(self, slave_id: int, address: int, words: Sequence[int], timeout: float) -> None:
        """Coroutine counterpart of :meth:`BlockingTransport.write_registers`."""

    async def close(self) -> None:
        pass


class SerialTransport(BlockingTransport):
    """
    Modbus RTU over a pyserial port.

    Single-word writes use function 0x06, longer writes 0x10.

    Parameters
    ----------
    connection : SerialConnection
        Port to use; opened by :meth:`open` or the context manager
    turnaround : float
        Silent interval after broadcast frames, in seconds
    """

    def __init__(self, connection: SerialConnection, turnaround: float = BROADCAST_TURNAROUND):
        self.connection = connection
        self._modbus = ModbusRTU(connection, turnaround=turnaround)

    @classmethod
    def from_settings(cls, settings: SerialSettings, **kwargs) -> 'SerialTransport':
        return cls(SerialConnection.from_settings(settings), **kwargs)

    def open(self) -> 'SerialTransport':
        self.connection.connect()
        return self

    def close(self) -> None:
        self.connection.disconnect()

    def read_registers(self, slave_id: int, address: int, count: int, timeout: float) -> List[int]:
        self.connection.set_timeout(timeout)
        return self._modbus.read_holding_registers(slave_id, address, count)

    def write_registers(self, slave_id: int, address: int, words: Sequence[int], timeout: float) -> None:
        self.connection.set_timeout(timeout)
        if len(words) == 1:
            self._modbus.write_single_register(slave_id, address, words[0])
        else:
            self._modbus.write_multiple_registers(slave_id, address, list(words))

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"SerialTransport({self.connection!r})"


class ThreadedAsyncTransport(AsyncTransport):
    """
    Run a blocking transport from asyncio code.

    Each call executes in a worker thread. The wrapped transport enforces
    the timeout itself, so a call always finishes its frame even if the
    awaiting task is cancelled.
    """

    def __init__(self, transport: BlockingTransport):
        self.transport = transport

    async def read_registers(self, slave_id: int, address: int, count: int, timeout: float) -> List[int]:
        return await asyncio.to_thread(
            self.transport.read_registers, slave_id, address, count, timeout
        )

    async def write_registers(self, slave_id: int, address: int, words: Sequence[int], timeout: float) -> None:
        await asyncio.to_thread(
            self.transport.write_registers, slave_id, address, list(words), timeout
        )

    async def close(self) -> None:
        await asyncio.to_thread(self.transport.close)

    def __repr__(self) -> str:
        return f"ThreadedAsyncTransport({self.transport!r})"


def open_serial_transport(settings: SerialSettings, turnaround: Optional[float] = None) -> SerialTransport:
    """Create a :class:`SerialTransport` and open its port."""
    kwargs = {} if turnaround is None else {'turnaround': turnaround}
    transport = SerialTransport.from_settings(settings, **kwargs)
    return transport.open()
