"""Unit tests for status decoding."""

import pytest

from dsyrs.core.config import ServoConfig
from dsyrs.core.constants import EncoderType
from dsyrs.core.schema import SERVO_SCHEMA
from dsyrs.core.status import (
    ServoState, classify_state, decode_device_block, decode_status,
    motor_mismatches, status_block_address
)


class TestClassifyState:

    @pytest.mark.parametrize('code, state', [
        (0x0000, ServoState.READY),
        (0x0001, ServoState.RUNNING),
        (0x0002, ServoState.FAULT),
        (0x0003, ServoState.ALARM),
        (0x0004, ServoState.UNKNOWN),
        (0x000F, ServoState.UNKNOWN),
        (0x0031, ServoState.RUNNING),  # upper bits ignored
    ])
    def test_low_nibble(self, code, state):
        assert classify_state(code) is state


class TestDecodeStatus:

    def test_full_block(self):
        words = [
            0x0001,         # P18.00 running
            0xFC18,         # P18.01 speed -1000 rpm
            456,            # P18.02 load 45.6 %
            1500,           # P18.03 speed command
            0xFF38,         # P18.04 torque -20.0 %
            123,            # P18.05 1.23 A
            3105,           # P18.06 310.5 V
            0x86A0, 0x0001,  # P18.07 position 100000
            900,            # P18.09 90.0 deg
        ]
        status = decode_status(SERVO_SCHEMA, words)

        assert status.state is ServoState.RUNNING
        assert status.speed == -1000
        assert status.load_rate == pytest.approx(45.6)
        assert status.speed_command == 1500
        assert status.torque == pytest.approx(-20.0)
        assert status.current == pytest.approx(1.23)
        assert status.bus_voltage == pytest.approx(310.5)
        assert status.position == 100000
        assert status.electrical_angle == pytest.approx(90.0)
        assert not status.is_faulted

    def test_faulted(self):
        status = decode_status(SERVO_SCHEMA, [0x0002] + [0] * 9)
        assert status.is_faulted

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            decode_status(SERVO_SCHEMA, [0] * 9)

    def test_block_address(self):
        assert status_block_address(SERVO_SCHEMA) == 0x1200


class TestDeviceInfo:

    def test_decode_device_block(self):
        assert decode_device_block(SERVO_SCHEMA, [0x0102, 0x0003, 0x5A10]) == {
            'software_version': 0x0102,
            'fpga_version': 0x0003,
            'product_code': 0x5A10,
        }

    def test_motor_mismatches(self):
        config = ServoConfig(rated_current=2.8, encoder_type=EncoderType.BIT17_ABSOLUTE)
        actual = {
            'motor_model': 1234,
            'rated_current': 2.8,
            'encoder_type': EncoderType.BIT23_ABSOLUTE,
            'encoder_resolution': 8388608,
        }
        messages = motor_mismatches(config, actual)
        assert len(messages) == 1
        assert 'encoder_type' in messages[0]

    def test_no_expectations(self):
        assert motor_mismatches(ServoConfig(), {'motor_model': 1}) == []
