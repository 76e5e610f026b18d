"""
Modbus RTU protocol implementation.

This module provides frame construction, CRC checking and single request /
reply transactions over a serial connection. It performs exactly one
exchange per call; retry decisions belong to the caller.
"""

import struct
import time
import logging
from typing import List, Optional, Sequence
from dataclasses import dataclass

from ..core.constants import BROADCAST_ID, BROADCAST_TURNAROUND
from ..core.exceptions import (
    ModbusExceptionError,
    TransportError,
    TransportTimeoutError
)

logger = logging.getLogger(__name__)


@dataclass
class ModbusFrame:
    """Represents a Modbus RTU frame."""
    slave_id: int
    function_code: int
    data: bytes
    crc: Optional[int] = None

    def to_bytes(self) -> bytes:
        """Convert frame to bytes with CRC."""
        frame = struct.pack('BB', self.slave_id, self.function_code) + self.data
        if self.crc is None:
            self.crc = calculate_crc16(frame)
        return frame + struct.pack('<H', self.crc)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'ModbusFrame':
        """Parse bytes into ModbusFrame."""
        if len(data) < 4:
            raise ValueError("Frame too short")

        slave_id = data[0]
        function_code = data[1]
        frame_data = data[2:-2]
        crc = struct.unpack('<H', data[-2:])[0]

        return cls(slave_id, function_code, frame_data, crc)

    @property
    def is_exception(self) -> bool:
        return bool(self.function_code & 0x80)


def calculate_crc16(data: bytes) -> int:
    """
    Calculate Modbus CRC16.

    Parameters
    ----------
    data : bytes
        Data to calculate CRC for

    Returns
    -------
    int
        CRC16 value
    """
    crc = 0xFFFF

    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ 0xA001
            else:
                crc >>= 1

    return crc


class ModbusRTU:
    """
    Modbus RTU protocol handler.

    Builds request frames, sends them and validates the reply: slave id,
    function code, CRC and length. Requests addressed to the broadcast id
    are sent without waiting for a reply.

    Parameters
    ----------
    serial_connection : SerialConnection
        Open serial connection used for the exchange
    turnaround : float
        Silent interval kept after a broadcast frame, in seconds
    """

    # Function codes
    READ_HOLDING_REGISTERS = 0x03
    WRITE_SINGLE_REGISTER = 0x06
    WRITE_MULTIPLE_REGISTERS = 0x10

    MAX_READ_COUNT = 125
    MAX_WRITE_COUNT = 123

    def __init__(self, serial_connection, turnaround: float = BROADCAST_TURNAROUND):
        self.serial = serial_connection
        self.turnaround = turnaround

    def read_holding_registers(
        self,
        slave_id: int,
        address: int,
        count: int = 1
    ) -> List[int]:
        """
        Read holding registers (function code 0x03).

        Parameters
        ----------
        slave_id : int
            Slave device ID (1-247)
        address : int
            Starting register address
        count : int
            Number of registers to read

        Returns
        -------
        List[int]
            Register values

        Raises
        ------
        ModbusExceptionError
            If the slave answers with an exception response
        TransportTimeoutError
            If the reply does not arrive in time
        TransportError
            If the reply is malformed
        """
        if slave_id == BROADCAST_ID:
            raise ValueError("Cannot read from the broadcast address")
        if not 1 <= count <= self.MAX_READ_COUNT:
            raise ValueError(f"Register count must be 1-{self.MAX_READ_COUNT}, got {count}")

        data = struct.pack('>HH', address, count)
        request = ModbusFrame(slave_id, self.READ_HOLDING_REGISTERS, data)

        response = self._execute_transaction(request)

        byte_count = response.data[0]
        if byte_count != count * 2 or len(response.data) != byte_count + 1:
            raise TransportError(f"Invalid byte count: {byte_count}")

        return [
            struct.unpack('>H', response.data[i:i + 2])[0]
            for i in range(1, byte_count + 1, 2)
        ]

    def write_single_register(
        self,
        slave_id: int,
        address: int,
        value: int
    ) -> None:
        """
        Write single register (function code 0x06).

        Raises
        ------
        ModbusExceptionError
            If the slave answers with an exception response
        TransportTimeoutError
            If the echo does not arrive in time
        TransportError
            If the echo does not match the request
        """
        data = struct.pack('>HH', address, value & 0xFFFF)
        request = ModbusFrame(slave_id, self.WRITE_SINGLE_REGISTER, data)

        response = self._execute_transaction(request)
        if response is None:
            return

        resp_addr, resp_value = struct.unpack('>HH', response.data)
        if resp_addr != address or resp_value != (value & 0xFFFF):
            raise TransportError("Write verification failed")

    def write_multiple_registers(
        self,
        slave_id: int,
        address: int,
        values: Sequence[int]
    ) -> None:
        """
        Write multiple registers (function code 0x10).

        Raises
        ------
        ModbusExceptionError
            If the slave answers with an exception response
        TransportTimeoutError
            If the acknowledgement does not arrive in time
        TransportError
            If the acknowledgement does not match the request
        """
        count = len(values)
        if not 1 <= count <= self.MAX_WRITE_COUNT:
            raise ValueError(f"Register count must be 1-{self.MAX_WRITE_COUNT}, got {count}")
        byte_count = count * 2

        data = struct.pack('>HHB', address, count, byte_count)
        for value in values:
            data += struct.pack('>H', value & 0xFFFF)

        request = ModbusFrame(slave_id, self.WRITE_MULTIPLE_REGISTERS, data)

        response = self._execute_transaction(request)
        if response is None:
            return

        resp_addr, resp_count = struct.unpack('>HH', response.data)
        if resp_addr != address or resp_count != count:
            raise TransportError("Write verification failed")

    def _execute_transaction(self, request: ModbusFrame) -> Optional[ModbusFrame]:
        """
        Send one request and return the validated reply.

        Returns ``None`` for broadcast requests, which get no reply.
        """
        self.serial.reset_buffers()

        request_bytes = request.to_bytes()
        logger.debug(f"TX: {request_bytes.hex(' ').upper()}")
        self.serial.write(request_bytes)

        if request.slave_id == BROADCAST_ID:
            time.sleep(self.turnaround)
            return None

        response_bytes = self._receive_response(request.slave_id, request.function_code)
        logger.debug(f"RX: {response_bytes.hex(' ').upper()}")

        try:
            response = ModbusFrame.from_bytes(response_bytes)
        except ValueError as e:
            raise TransportError(f"Malformed response: {e}")

        calc_crc = calculate_crc16(response_bytes[:-2])
        if calc_crc != response.crc:
            raise TransportError(f"CRC mismatch: {calc_crc:04X} != {response.crc:04X}")

        if response.is_exception:
            raise ModbusExceptionError(response.data[0])

        return response

    def _receive_response(self, slave_id: int, function_code: int) -> bytes:
        """
        Receive a complete reply frame.

        Raises
        ------
        TransportTimeoutError
            If the frame is incomplete when the port times out
        TransportError
            If the header does not belong to this request
        """
        header = self.serial.read(2)
        if len(header) < 2:
            raise TransportTimeoutError("Response timeout")

        recv_slave_id, recv_function = struct.unpack('BB', header)

        if recv_slave_id != slave_id:
            raise TransportError(f"Slave ID mismatch: {recv_slave_id} != {slave_id}")

        if recv_function & 0x80:
            # Exception code + CRC
            exception_data = self.serial.read(3)
            if len(exception_data) < 3:
                raise TransportTimeoutError("Exception response incomplete")
            return header + exception_data

        if recv_function != function_code:
            raise TransportError(f"Function code mismatch: {recv_function} != {function_code}")

        if function_code == self.READ_HOLDING_REGISTERS:
            byte_count_data = self.serial.read(1)
            if not byte_count_data:
                raise TransportTimeoutError("Byte count missing")

            byte_count = byte_count_data[0]
            data_and_crc = self.serial.read(byte_count + 2)
            if len(data_and_crc) < byte_count + 2:
                raise TransportTimeoutError("Response data incomplete")

            return header + byte_count_data + data_and_crc

        elif function_code in (self.WRITE_SINGLE_REGISTER, self.WRITE_MULTIPLE_REGISTERS):
            # Address (2) + value/count (2) + CRC (2)
            data = self.serial.read(6)
            if len(data) < 6:
                raise TransportTimeoutError("Response data incomplete")
            return header + data

        else:
            raise TransportError(f"Unknown function code: {function_code}")
