"""
DSY-RS Series Servo Driver Library
==================================

A Python library for configuring and monitoring DSY-RS AC servo drives over
Modbus RTU. Several drives can share one RS-485 port through a bus manager.

Basic usage:
    >>> import dsyrs
    >>> with dsyrs.open_bus('COM3') as bus:
    ...     servo = dsyrs.ServoDriver.on_bus(bus, 1)
    ...     servo.init()
    ...     print(servo.get_status())
"""

__version__ = '1.0.0'
__all__ = [
    'ServoDriver',
    'AsyncServoDriver',
    'BusManager',
    'AsyncBusManager',
    'SerialSettings',
    'ServoConfig',
    'ControlMode',
    'ServoState',
    'ServoStatus',
    'DeviceInfo',
    'SERVO_SCHEMA',
    'DsyrsError',
    'CommunicationError',
    'ValidationError',
    'PartialWriteError',
    'open_bus',
    'open_async_bus',
]

from .core.driver import ServoDriver
from .core.async_driver import AsyncServoDriver
from .core.config import ServoConfig
from .core.constants import ControlMode
from .core.schema import SERVO_SCHEMA
from .core.status import DeviceInfo, ServoState, ServoStatus
from .core.exceptions import DsyrsError, CommunicationError, ValidationError, PartialWriteError
from .protocols.bus import AsyncBusManager, BusManager
from .protocols.serial import SerialSettings
from .protocols.transport import ThreadedAsyncTransport, open_serial_transport


def _settings(port, kwargs) -> SerialSettings:
    if isinstance(port, SerialSettings):
        return port
    return SerialSettings(port, **kwargs)


# Convenience functions for quick connection
def open_bus(port, name=None, **kwargs) -> BusManager:
    """
    Open a serial port and return a bus manager for it.

    Parameters
    ----------
    port : str or SerialSettings
        Serial port name (e.g., 'COM3' or '/dev/ttyUSB0') or full settings
    name : str, optional
        Bus label used in log messages
    **kwargs
        Additional ``SerialSettings`` fields (baudrate, parity, timeout, ...)

    Returns
    -------
    BusManager
        Manager owning the opened transport

    Examples
    --------
    >>> bus = dsyrs.open_bus('/dev/ttyUSB0', baudrate=57600)
    >>> servo = dsyrs.ServoDriver.on_bus(bus, 3)
    """
    settings = _settings(port, kwargs)
    return BusManager(open_serial_transport(settings), timeout=settings.timeout, name=name or settings.port)


def open_async_bus(port, name=None, **kwargs) -> AsyncBusManager:
    """
    Open a serial port for asyncio callers.

    The port is driven from worker threads; see ``ThreadedAsyncTransport``.
    """
    settings = _settings(port, kwargs)
    transport = ThreadedAsyncTransport(open_serial_transport(settings))
    return AsyncBusManager(transport, timeout=settings.timeout, name=name or settings.port)
