"""
Serial communication layer.

This module provides the pyserial port wrapper used by the Modbus RTU
transport and the settings record that describes how to open it.
"""

import json
import logging
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Union

import serial

from ..core.config import CommConfig
from ..core.constants import (
    DEFAULT_BAUDRATE, DEFAULT_BYTESIZE, DEFAULT_PARITY,
    DEFAULT_STOPBITS, DEFAULT_TIMEOUT, BaudRate, DataFormat
)
from ..core.exceptions import (
    CommunicationError, PortOpenError, TransportTimeoutError
)

logger = logging.getLogger(__name__)


@dataclass
class SerialSettings:
    """
    Host-side serial line settings.

    Defaults are 115200 baud, 8 data bits, no parity, 1 stop bit.
    """
    port: str
    baudrate: int = DEFAULT_BAUDRATE
    bytesize: int = DEFAULT_BYTESIZE
    parity: str = DEFAULT_PARITY
    stopbits: int = DEFAULT_STOPBITS
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SerialSettings':
        """
        Build settings from a mapping, ignoring unknown keys.

        Raises
        ------
        ValueError
            If ``port`` is missing
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown serial settings: {', '.join(sorted(unknown))}")
        if 'port' not in data:
            raise ValueError("Serial settings require a 'port'")
        return cls(**{key: value for key, value in data.items() if key in known})

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'SerialSettings':
        """
        Load settings from a JSON file.

        Parameters
        ----------
        path : str or Path
            JSON file holding an object with at least ``port``

        Returns
        -------
        SerialSettings
            Parsed settings
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.info(f"Loaded serial settings from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_comm_config(cls, port: str, comm: CommConfig, timeout: float = DEFAULT_TIMEOUT) -> 'SerialSettings':
        """Host settings matching a drive's communication configuration."""
        return cls(
            port=port,
            baudrate=comm.baud_rate.bps,
            parity=comm.data_format.parity,
            stopbits=comm.data_format.stopbits,
            timeout=timeout,
        )

    def to_comm_config(self, address: int = 1, **kwargs) -> CommConfig:
        """
        Drive communication settings matching this host line.

        Parameters
        ----------
        address : int, optional
            Slave address to configure (default: 1)
        **kwargs
            Other ``CommConfig`` fields, such as ``address_source``

        Raises
        ------
        ValueError
            If the drive has no code for the baud rate or line format
        """
        if self.bytesize != 8:
            raise ValueError(f"Drive only supports 8 data bits, not {self.bytesize}")
        return CommConfig(
            address=address,
            baud_rate=BaudRate.from_bps(self.baudrate),
            data_format=DataFormat.from_line(self.parity, self.stopbits),
            **kwargs
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SerialConnection:
    """
    Thread-safe serial connection handler.

    This class manages the serial port connection and provides
    thread-safe read/write operations.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = DEFAULT_TIMEOUT,
        **kwargs
    ):
        """
        Initialize serial connection.

        Parameters
        ----------
        port : str
            Serial port name (e.g., 'COM3' or '/dev/ttyUSB0')
        baudrate : int
            Baud rate (default: 115200)
        timeout : float
            Read timeout in seconds (default: 1.0)
        **kwargs
            Additional arguments passed to serial.Serial
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.serial_args = {
            'bytesize': kwargs.get('bytesize', serial.EIGHTBITS),
            'parity': kwargs.get('parity', serial.PARITY_NONE),
            'stopbits': kwargs.get('stopbits', serial.STOPBITS_ONE),
            'xonxoff': kwargs.get('xonxoff', False),
            'rtscts': kwargs.get('rtscts', False),
            'write_timeout': kwargs.get('write_timeout', None),
        }

        self._serial: Optional[serial.Serial] = None
        self._lock = Lock()

    @classmethod
    def from_settings(cls, settings: SerialSettings) -> 'SerialConnection':
        return cls(
            settings.port,
            baudrate=settings.baudrate,
            timeout=settings.timeout,
            bytesize=settings.bytesize,
            parity=settings.parity,
            stopbits=settings.stopbits,
        )

    @property
    def is_connected(self) -> bool:
        """Check if serial port is open."""
        return self._serial is not None and self._serial.is_open

    def connect(self) -> None:
        """
        Open serial connection.

        Raises
        ------
        PortOpenError
            If the port cannot be opened
        """
        with self._lock:
            if self.is_connected:
                logger.debug(f"Already connected to {self.port}")
                return

            try:
                logger.info(f"Opening serial port {self.port} at {self.baudrate} baud")

                self._serial = serial.Serial(
                    port=self.port,
                    baudrate=self.baudrate,
                    timeout=self.timeout,
                    **self.serial_args
                )

                self._serial.reset_input_buffer()
                self._serial.reset_output_buffer()

                logger.info(f"Serial port {self.port} opened successfully")

            except (serial.SerialException, ValueError) as e:
                self._serial = None
                logger.error(f"Failed to open serial port {self.port}: {e}")
                raise PortOpenError(f"Cannot open serial port {self.port}: {e}") from e

    def disconnect(self):
        """Close serial connection."""
        with self._lock:
            if self._serial is None:
                return
            try:
                if self._serial.is_open:
                    self._serial.flush()
                    self._serial.close()
                logger.info(f"Serial port {self.port} closed")
            except serial.SerialException as e:
                logger.warning(f"Error closing serial port: {e}")
            finally:
                self._serial = None

    def write(self, data: bytes) -> int:
        """
        Write data to serial port.

        Raises
        ------
        TransportTimeoutError
            If the write times out
        CommunicationError
            If the port is closed or the write fails
        """
        if not self.is_connected:
            raise CommunicationError("Serial port not connected")

        with self._lock:
            try:
                bytes_written = self._serial.write(data)
                self._serial.flush()
                return bytes_written
            except serial.SerialTimeoutException as e:
                raise TransportTimeoutError("Serial write timeout") from e
            except serial.SerialException as e:
                raise CommunicationError(f"Serial write error: {e}") from e

    def read(self, size: int = 1) -> bytes:
        """
        Read data from serial port.

        Parameters
        ----------
        size : int
            Number of bytes to read

        Returns
        -------
        bytes
            Data read (may be less than size if timeout)

        Raises
        ------
        TransportTimeoutError
            If no data received within timeout
        CommunicationError
            If read fails
        """
        if not self.is_connected:
            raise CommunicationError("Serial port not connected")

        with self._lock:
            try:
                data = self._serial.read(size)
            except serial.SerialException as e:
                raise CommunicationError(f"Serial read error: {e}") from e

        if not data and size > 0:
            raise TransportTimeoutError("Serial read timeout")
        return data

    def reset_buffers(self):
        """Clear input and output buffers."""
        if not self.is_connected:
            return

        with self._lock:
            try:
                self._serial.reset_input_buffer()
                self._serial.reset_output_buffer()
            except serial.SerialException as e:
                logger.warning(f"Failed to reset buffers: {e}")

    def set_timeout(self, timeout: float):
        """
        Set read timeout.

        Parameters
        ----------
        timeout : float
            Timeout in seconds
        """
        self.timeout = timeout
        if self._serial:
            with self._lock:
                self._serial.timeout = timeout

    def set_baudrate(self, baudrate: int):
        """
        Change baudrate of the open port.

        Raises
        ------
        CommunicationError
            If the port rejects the new rate
        """
        if not self.is_connected:
            self.baudrate = baudrate
            return

        with self._lock:
            try:
                self._serial.baudrate = baudrate
                self.baudrate = baudrate
                logger.info(f"Baudrate changed to {baudrate}")
            except (serial.SerialException, ValueError) as e:
                logger.error(f"Failed to change baudrate: {e}")
                raise CommunicationError(f"Cannot change baudrate: {e}") from e

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def __repr__(self) -> str:
        status = "connected" if self.is_connected else "disconnected"
        return f"SerialConnection(port='{self.port}', baudrate={self.baudrate}, status='{status}')"
