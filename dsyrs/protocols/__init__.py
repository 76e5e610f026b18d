"""Communication protocol implementations."""

from .modbus import ModbusRTU
from .serial import SerialConnection, SerialSettings
from .transport import (
    AsyncTransport, BlockingTransport, SerialTransport, ThreadedAsyncTransport,
    open_serial_transport
)
from .bus import AsyncBusManager, AsyncSlaveContext, BusManager, SlaveContext

__all__ = [
    'ModbusRTU',
    'SerialConnection',
    'SerialSettings',
    'AsyncTransport',
    'BlockingTransport',
    'SerialTransport',
    'ThreadedAsyncTransport',
    'open_serial_transport',
    'AsyncBusManager',
    'AsyncSlaveContext',
    'BusManager',
    'SlaveContext',
]
