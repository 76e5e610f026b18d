"""Unit tests for Modbus protocol implementation."""

import struct

import pytest
from unittest.mock import Mock

from dsyrs.protocols.modbus import ModbusRTU, ModbusFrame, calculate_crc16
from dsyrs.core.exceptions import ModbusExceptionError, TransportError, TransportTimeoutError


def _reply(slave_id, function_code, data):
    return ModbusFrame(slave_id, function_code, data).to_bytes()


class BufferedSerial:
    """Serial stand-in that serves a prepared reply byte by byte."""

    def __init__(self, reply=b''):
        self.buffer = bytearray(reply)
        self.sent = []
        self.reset_buffers = Mock()

    def write(self, data):
        self.sent.append(bytes(data))
        return len(data)

    def read(self, size=1):
        chunk = bytes(self.buffer[:size])
        del self.buffer[:size]
        return chunk


class TestCRC16:
    """Test CRC16 calculation."""

    def test_crc16_calculation(self):
        """Test CRC16 calculation with known values."""
        # Read one register from slave 1: 01 03 00 00 00 01 84 0A
        data = bytes([0x01, 0x03, 0x00, 0x00, 0x00, 0x01])
        assert calculate_crc16(data) == 0x0A84

    def test_crc16_empty(self):
        """Test CRC16 with empty data."""
        assert calculate_crc16(bytes()) == 0xFFFF


class TestModbusFrame:
    """Test ModbusFrame class."""

    def test_frame_to_bytes(self):
        """Test converting frame to bytes with CRC, low byte first."""
        frame = ModbusFrame(slave_id=1, function_code=0x03, data=bytes([0x00, 0x00, 0x00, 0x01]))
        assert frame.to_bytes() == bytes([0x01, 0x03, 0x00, 0x00, 0x00, 0x01, 0x84, 0x0A])

    def test_frame_from_bytes(self):
        """Test parsing bytes into ModbusFrame."""
        raw = _reply(1, 0x03, bytes([0x02, 0x00, 0x01]))
        frame = ModbusFrame.from_bytes(raw)

        assert frame.slave_id == 1
        assert frame.function_code == 0x03
        assert frame.data == bytes([0x02, 0x00, 0x01])
        assert frame.crc == calculate_crc16(raw[:-2])
        assert not frame.is_exception

    def test_frame_too_short(self):
        with pytest.raises(ValueError):
            ModbusFrame.from_bytes(bytes([0x01, 0x03]))


class TestModbusRTU:
    """Test ModbusRTU protocol handler."""

    def test_read_holding_registers(self):
        """Test reading holding registers."""
        serial = BufferedSerial(_reply(1, 0x03, bytes([0x04, 0x00, 0x01, 0x00, 0x02])))
        modbus = ModbusRTU(serial)

        values = modbus.read_holding_registers(1, 0x1200, 2)

        assert values == [1, 2]
        assert serial.reset_buffers.called
        assert serial.sent == [_reply(1, 0x03, struct.pack('>HH', 0x1200, 2))]

    def test_write_single_register(self):
        """Test writing single register."""
        echo = _reply(1, 0x06, struct.pack('>HH', 0x0007, 3000))
        serial = BufferedSerial(echo)
        modbus = ModbusRTU(serial)

        assert modbus.write_single_register(1, 0x0007, 3000) is None
        assert serial.sent == [echo]

    def test_write_multiple_registers(self):
        serial = BufferedSerial(_reply(1, 0x10, struct.pack('>HH', 0x0D08, 2)))
        modbus = ModbusRTU(serial)

        modbus.write_multiple_registers(1, 0x0D08, [0x86A0, 0x0001])

        request = serial.sent[0]
        assert request[:7] == bytes([0x01, 0x10, 0x0D, 0x08, 0x00, 0x02, 0x04])
        assert request[7:11] == bytes([0x86, 0xA0, 0x00, 0x01])

    def test_write_echo_mismatch(self):
        serial = BufferedSerial(_reply(1, 0x06, struct.pack('>HH', 0x0007, 1)))
        modbus = ModbusRTU(serial)
        with pytest.raises(TransportError):
            modbus.write_single_register(1, 0x0007, 3000)

    def test_modbus_exception(self):
        """Test handling Modbus exception response."""
        serial = BufferedSerial(_reply(1, 0x83, bytes([0x02])))
        modbus = ModbusRTU(serial)

        with pytest.raises(ModbusExceptionError) as exc_info:
            modbus.read_holding_registers(1, 0x1863, 1)

        assert exc_info.value.exception_code == 0x02
        assert 'Illegal data address' in str(exc_info.value)

    def test_crc_mismatch(self):
        reply = bytearray(_reply(1, 0x03, bytes([0x02, 0x00, 0x01])))
        reply[-1] ^= 0xFF
        modbus = ModbusRTU(BufferedSerial(bytes(reply)))
        with pytest.raises(TransportError):
            modbus.read_holding_registers(1, 0x0000, 1)

    def test_wrong_slave(self):
        modbus = ModbusRTU(BufferedSerial(_reply(2, 0x03, bytes([0x02, 0x00, 0x01]))))
        with pytest.raises(TransportError):
            modbus.read_holding_registers(1, 0x0000, 1)

    def test_communication_timeout(self):
        """Test handling communication timeout."""
        modbus = ModbusRTU(BufferedSerial())
        with pytest.raises(TransportTimeoutError):
            modbus.read_holding_registers(1, 0x0000, 1)

    def test_truncated_reply_is_timeout(self):
        reply = _reply(1, 0x03, bytes([0x04, 0x00, 0x01, 0x00, 0x02]))
        modbus = ModbusRTU(BufferedSerial(reply[:-3]))
        with pytest.raises(TransportTimeoutError):
            modbus.read_holding_registers(1, 0x0000, 2)

    def test_broadcast_write_waits_without_reading(self, mocker):
        sleep = mocker.patch('dsyrs.protocols.modbus.time.sleep')
        serial = BufferedSerial()
        modbus = ModbusRTU(serial, turnaround=0.05)

        modbus.write_single_register(0, 0x0A04, 1)

        assert len(serial.sent) == 1
        sleep.assert_called_once_with(0.05)

    def test_request_limits(self):
        modbus = ModbusRTU(BufferedSerial())
        with pytest.raises(ValueError):
            modbus.read_holding_registers(0, 0x0000, 1)
        with pytest.raises(ValueError):
            modbus.read_holding_registers(1, 0x0000, 126)
        with pytest.raises(ValueError):
            modbus.write_multiple_registers(1, 0x0000, [])
