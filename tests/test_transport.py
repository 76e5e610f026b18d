"""Unit tests for transports and serial settings."""

import json

import pytest
import serial
from unittest.mock import MagicMock, Mock

from dsyrs.core.config import CommConfig
from dsyrs.core.constants import BaudRate, DataFormat
from dsyrs.core.exceptions import PortOpenError, TransportTimeoutError
from dsyrs.protocols.serial import SerialConnection, SerialSettings
from dsyrs.protocols.transport import SerialTransport, ThreadedAsyncTransport


class TestSerialSettings:

    def test_defaults(self):
        settings = SerialSettings('COM3')
        assert (settings.baudrate, settings.bytesize, settings.parity, settings.stopbits) == (115200, 8, 'N', 1)
        assert settings.timeout == 1.0

    def test_from_dict_ignores_unknown_keys(self, caplog):
        settings = SerialSettings.from_dict({'port': '/dev/ttyUSB0', 'baudrate': 57600, 'colour': 'blue'})
        assert settings.baudrate == 57600
        assert 'colour' in caplog.text

    def test_from_dict_requires_port(self):
        with pytest.raises(ValueError):
            SerialSettings.from_dict({'baudrate': 9600})

    def test_load(self, tmp_path):
        path = tmp_path / 'bus.json'
        path.write_text(json.dumps({'port': 'COM7', 'parity': 'E', 'timeout': 0.3}), encoding='utf-8')
        settings = SerialSettings.load(path)
        assert settings.port == 'COM7'
        assert settings.parity == 'E'
        assert settings.to_dict()['timeout'] == 0.3

    def test_from_comm_config(self):
        comm = CommConfig(baud_rate=BaudRate.BAUD_19200, data_format=DataFormat.NO_PARITY_2_STOP)
        settings = SerialSettings.from_comm_config('COM1', comm)
        assert settings.baudrate == 19200
        assert settings.parity == 'N'
        assert settings.stopbits == 2

    def test_to_comm_config(self):
        comm = SerialSettings('COM1', baudrate=57600, parity='E').to_comm_config(address=4)
        assert comm.address == 4
        assert comm.baud_rate is BaudRate.BAUD_57600
        assert comm.data_format is DataFormat.EVEN_PARITY_1_STOP

    def test_to_comm_config_round_trip(self):
        comm = CommConfig(address=2, baud_rate=BaudRate.BAUD_9600, data_format=DataFormat.ODD_PARITY_1_STOP)
        assert SerialSettings.from_comm_config('COM1', comm).to_comm_config(address=2) == comm

    @pytest.mark.parametrize('settings', [
        SerialSettings('COM1', baudrate=14400),
        SerialSettings('COM1', parity='E', stopbits=2),
        SerialSettings('COM1', bytesize=7),
    ])
    def test_to_comm_config_unsupported(self, settings):
        with pytest.raises(ValueError):
            settings.to_comm_config()


class TestSerialConnection:

    def test_connect_failure(self, mocker):
        mocker.patch('dsyrs.protocols.serial.serial.Serial', side_effect=serial.SerialException('busy'))
        connection = SerialConnection('COM9')
        with pytest.raises(PortOpenError):
            connection.connect()
        assert not connection.is_connected

    def test_connect_and_settings(self, mocker):
        port = MagicMock()
        port.is_open = True
        serial_class = mocker.patch('dsyrs.protocols.serial.serial.Serial', return_value=port)

        connection = SerialConnection.from_settings(SerialSettings('COM4', baudrate=38400, parity='E'))
        connection.connect()

        kwargs = serial_class.call_args.kwargs
        assert kwargs['baudrate'] == 38400
        assert kwargs['parity'] == 'E'
        assert connection.is_connected

        connection.set_timeout(0.25)
        assert port.timeout == 0.25

    def test_empty_read_is_timeout(self, mocker):
        port = MagicMock()
        port.is_open = True
        port.read.return_value = b''
        mocker.patch('dsyrs.protocols.serial.serial.Serial', return_value=port)

        connection = SerialConnection('COM4')
        connection.connect()
        with pytest.raises(TransportTimeoutError):
            connection.read(2)


class TestSerialTransport:

    @pytest.fixture
    def transport(self):
        connection = Mock(spec=SerialConnection)
        transport = SerialTransport(connection)
        transport._modbus = Mock()
        return transport

    def test_read_sets_timeout(self, transport):
        transport._modbus.read_holding_registers.return_value = [7]
        assert transport.read_registers(1, 0x0007, 1, 0.4) == [7]
        transport.connection.set_timeout.assert_called_once_with(0.4)
        transport._modbus.read_holding_registers.assert_called_once_with(1, 0x0007, 1)

    def test_single_word_uses_function_06(self, transport):
        transport.write_registers(1, 0x0007, [3000], 0.4)
        transport._modbus.write_single_register.assert_called_once_with(1, 0x0007, 3000)
        transport._modbus.write_multiple_registers.assert_not_called()

    def test_two_words_use_function_10(self, transport):
        transport.write_registers(1, 0x0D08, (0x86A0, 0x0001), 0.4)
        transport._modbus.write_multiple_registers.assert_called_once_with(1, 0x0D08, [0x86A0, 0x0001])

    def test_context_manager(self, transport):
        with transport:
            transport.connection.connect.assert_called_once()
        transport.connection.disconnect.assert_called_once()


class TestThreadedAsyncTransport:

    @pytest.mark.asyncio
    async def test_delegates(self, transport):
        threaded = ThreadedAsyncTransport(transport)
        await threaded.write_registers(1, 0x0007, [5], 0.2)
        assert await threaded.read_registers(1, 0x0007, 1, 0.2) == [5]
        await threaded.close()
        assert transport.closed
