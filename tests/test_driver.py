"""Unit tests for the blocking servo driver."""

import logging

import pytest

from dsyrs.core.config import CommConfig, HomingConfig, SegmentConfig, ServoConfig
from dsyrs.core.constants import (
    ControlMode, DiFunction, Direction, EncoderType, HomingEnableMode
)
from dsyrs.core.driver import PauseStep, ReadStep, ServoCommands, ServoDriver, WriteStep
from dsyrs.core.exceptions import (
    DeviceUnreachableError, ModbusExceptionError, OutOfRangeError, PartialWriteError,
    ReadOnlyParameterError, TransportError, TransportTimeoutError, UnknownParameterError
)
from dsyrs.core.plans import parameter_plan, segment_plan
from dsyrs.core.schema import SERVO_SCHEMA
from dsyrs.core.status import ServoState


def _address(name):
    return SERVO_SCHEMA[name].address


def _load_identity(transport, slave_id=1, status=0x0000):
    transport.load(slave_id, 'software_version', 0x0102)
    transport.load(slave_id, 'fpga_version', 0x0003)
    transport.load(slave_id, 'product_code', 0x5A10)
    transport.load(slave_id, 'servo_status', status)
    transport.load(slave_id, 'motor_model', 1234)
    transport.load(slave_id, 'rated_current', 2.8)
    transport.load(slave_id, 'encoder_type', EncoderType.BIT23_ABSOLUTE)
    transport.load(slave_id, 'encoder_resolution', 8388608)


@pytest.fixture
def servo(bus):
    return ServoDriver.on_bus(bus, 1, retry_delay=0)


class TestInit:
    """Test the initialization sequence."""

    def test_init_reads_then_configures(self, bus, transport):
        _load_identity(transport, status=0x0001)
        config = ServoConfig(control_mode=ControlMode.SPEED, direction=Direction.CW_FORWARD, max_speed=3000)
        servo = ServoDriver.on_bus(bus, 1, config)

        info = servo.init()

        assert info.slave_id == 1
        assert info.software_version == 0x0102
        assert info.fpga_version == 0x0003
        assert info.product_code == 0x5A10
        assert info.state is ServoState.RUNNING
        assert info.encoder_type is EncoderType.BIT23_ABSOLUTE
        assert info.rated_current == pytest.approx(2.8)
        assert servo.device_info is info

        kinds = [call[0] for call in transport.calls]
        assert kinds[:2] == ['read', 'read']
        assert transport.calls[0][2:4] == (_address('software_version'), 3)
        assert transport.calls[1][2:4] == (0x1200, 1)
        assert [call[2:4] for call in transport.writes()] == [
            (_address('control_mode'), [1]),
            (_address('direction'), [1]),
            (_address('max_speed'), [3000]),
        ]

    def test_init_without_config(self, servo, transport):
        _load_identity(transport)
        servo.init(apply_config=False)
        assert transport.writes() == []

    def test_unreachable_device(self, servo, transport, no_sleep):
        for _ in range(3):
            transport.fail_next(TransportTimeoutError("no reply"))

        with pytest.raises(DeviceUnreachableError) as exc_info:
            servo.init()

        assert exc_info.value.slave_id == 1
        assert isinstance(exc_info.value.__cause__, TransportTimeoutError)
        assert transport.writes() == []

    def test_modbus_exception_is_not_wrapped(self, servo, transport):
        transport.fail_next(ModbusExceptionError(0x02))
        with pytest.raises(ModbusExceptionError):
            servo.init()
        assert len(transport.calls) == 1

    def test_motor_mismatch_is_logged(self, bus, transport, caplog):
        _load_identity(transport)
        config = ServoConfig(rated_current=4.0, encoder_resolution=8388608)
        servo = ServoDriver.on_bus(bus, 1, config)

        with caplog.at_level(logging.WARNING, logger='dsyrs.core.driver'):
            servo.init()

        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert any('rated_current' in m for m in messages)
        assert not any('encoder_resolution' in m for m in messages)

    def test_undocumented_encoder_code(self, servo, transport, caplog):
        _load_identity(transport)
        transport.registers[(1, _address('encoder_type'))] = 9

        with caplog.at_level(logging.WARNING, logger='dsyrs.core.driver'):
            info = servo.init()

        assert info.encoder_type == 9
        assert 'undocumented' in caplog.text

    def test_config_slave_follows_context(self, bus, caplog):
        with caplog.at_level(logging.WARNING, logger='dsyrs.core.driver'):
            servo = ServoDriver(bus.register_slave(4), ServoConfig(slave_id=9))
        assert servo.config.slave_id == 4
        assert 'differs' in caplog.text


class TestParameters:
    """Test generic parameter access and validation."""

    def test_read_parameter(self, servo, transport):
        transport.load(1, 'inertia_ratio', 2.5)
        assert servo.read_parameter('inertia_ratio') == pytest.approx(2.5)
        assert servo.read_parameter('P00.05') == pytest.approx(2.5)

    def test_write_parameter(self, servo, transport):
        servo.write_parameter('max_speed', 3000)
        assert transport.writes() == [('write', 1, 0x0007, [3000], 0.5)]

    def test_validation_happens_before_traffic(self, servo, transport):
        with pytest.raises(OutOfRangeError):
            servo.set_max_speed(20000)
        with pytest.raises(UnknownParameterError):
            servo.write_parameter('turbo', 1)
        with pytest.raises(ReadOnlyParameterError):
            servo.write_parameter('bus_voltage', 300)
        with pytest.raises(OutOfRangeError):
            servo.set_di_function(4, DiFunction.SERVO_ENABLE)
        assert transport.calls == []

    def test_32_bit_write_low_word_first(self, servo, transport):
        servo.set_gear_ratio(131072, 10000)
        assert [call[2:4] for call in transport.writes()] == [
            (_address('gear1_numerator'), [0x0000, 0x0002]),
            (_address('gear1_denominator'), [10000, 0x0000]),
        ]

    def test_commands(self, servo, transport):
        servo.save_to_eeprom()
        servo.emergency_stop()
        servo.clear_emergency_stop()
        servo.factory_reset()
        assert [call[2:4] for call in transport.writes()] == [
            (_address('write_eeprom'), [1]),
            (_address('emergency_stop'), [1]),
            (_address('emergency_stop'), [0]),
            (_address('system_init'), [1]),
        ]

    def test_comm_and_homing(self, servo, transport):
        servo.apply_comm_config(CommConfig(address=3))
        servo.apply_homing_config(HomingConfig(enable_mode=HomingEnableMode.HOST))
        writes = transport.writes()
        assert len(writes) == 4 + 7
        assert writes[-1][2:4] == (_address('homing_enable_mode'), [6])


class TestRetries:
    """Test read retries and write verification."""

    def test_read_retries_then_succeeds(self, bus, transport, no_sleep):
        servo = ServoDriver.on_bus(bus, 1)
        transport.load(1, 'max_speed', 4500)
        transport.fail_next(TransportTimeoutError("no reply"))
        transport.fail_next(TransportError("CRC mismatch"))

        assert servo.read_parameter('max_speed') == 4500
        assert len(transport.reads()) == 3
        assert no_sleep.call_count == 2

    def test_read_gives_up(self, servo, transport):
        for _ in range(3):
            transport.fail_next(TransportTimeoutError("no reply"))
        with pytest.raises(TransportTimeoutError):
            servo.get_speed()
        assert len(transport.reads()) == 3

    def test_modbus_exception_is_final(self, servo, transport):
        transport.fail_next(ModbusExceptionError(0x02))
        with pytest.raises(ModbusExceptionError):
            servo.get_speed()
        assert len(transport.reads()) == 1

    def test_timed_out_write_that_landed_is_not_repeated(self, servo, transport):
        transport.fail_next(TransportTimeoutError("ack lost"), applied=True)
        servo.set_max_speed(3000)
        assert [call[0] for call in transport.calls] == ['write', 'read']
        assert transport.words(1, 0x0007, 1) == [3000]

    def test_timed_out_write_is_resent(self, servo, transport):
        transport.fail_next(TransportTimeoutError("no reply"))
        servo.set_max_speed(3000)
        assert [call[0] for call in transport.calls] == ['write', 'read', 'write']
        assert transport.words(1, 0x0007, 1) == [3000]

    def test_failed_readback_raises_original_timeout(self, servo, transport):
        original = TransportTimeoutError("no reply")
        transport.fail_next(original)
        transport.fail_next(TransportError("CRC mismatch"))
        with pytest.raises(TransportTimeoutError) as exc_info:
            servo.set_max_speed(3000)
        assert exc_info.value is original

    def test_other_write_errors_are_not_retried(self, servo, transport):
        transport.fail_next(ModbusExceptionError(0x03))
        with pytest.raises(ModbusExceptionError):
            servo.set_max_speed(3000)
        assert len(transport.calls) == 1

    def test_broadcast_write_is_not_retried(self, bus, transport):
        everyone = ServoDriver.on_bus(bus, 0)
        transport.fail_next(TransportTimeoutError("no reply"))
        with pytest.raises(TransportTimeoutError):
            everyone.save_to_eeprom()
        assert len(transport.calls) == 1


class TestCompositeWrites:
    """Test partial failure reporting."""

    def test_partial_write(self, servo, transport):
        attempted = []

        def fail_third(slave_id, address, words, timeout):
            attempted.append(address)
            if len(attempted) == 3:
                raise ModbusExceptionError(0x04)

        transport.write_registers = fail_third

        with pytest.raises(PartialWriteError) as exc_info:
            servo.configure_segment(SegmentConfig(segment=1, displacement=1000, speed=300))

        error = exc_info.value
        assert error.label == 'segment 1'
        assert error.failed.name == 'segment1_accel_decel_time'
        assert [w.name for w in error.committed] == ['segment1_displacement', 'segment1_speed']
        assert isinstance(error.cause, ModbusExceptionError)
        assert error.__cause__ is error.cause

    def test_single_write_error_is_raw(self, servo, transport):
        transport.fail_next(ModbusExceptionError(0x04))
        with pytest.raises(ModbusExceptionError):
            servo.reset_fault()


class TestStatus:
    """Test status and feedback reads."""

    def test_get_status(self, servo, transport):
        transport.load(1, 'servo_status', 0x0002)
        transport.load(1, 'speed_feedback', -250)
        transport.load(1, 'absolute_position', -70000)
        transport.load(1, 'bus_voltage', 311.0)

        status = servo.get_status()

        assert transport.reads() == [('read', 1, 0x1200, 10, 0.5)]
        assert status.state is ServoState.FAULT
        assert status.is_faulted
        assert status.speed == -250
        assert status.position == -70000
        assert status.bus_voltage == pytest.approx(311.0)

    def test_single_values(self, servo, transport):
        transport.load(1, 'servo_status', 0x0017)
        transport.load(1, 'absolute_position', 123456)
        transport.load(1, 'phase_current', 1.5)
        transport.load(1, 'control_mode', ControlMode.TORQUE)

        assert servo.get_servo_state() is ServoState.UNKNOWN
        assert servo.get_position() == 123456
        assert servo.get_current() == pytest.approx(1.5)
        assert servo.get_control_mode() is ControlMode.TORQUE

    def test_get_device_info(self, servo, transport):
        _load_identity(transport)
        info = servo.get_device_info()
        assert info.product_code == 0x5A10
        assert info.state is ServoState.UNKNOWN


class TestLifecycle:

    def test_context_manager_releases(self, bus):
        with ServoDriver.on_bus(bus, 7) as servo:
            assert bus.active_slaves == [7]
        assert servo.context.released
        assert bus.active_slaves == []


class TestStepSequences:
    """Drive the shared step generators by hand, without a transport."""

    @pytest.fixture
    def commands(self, bus):
        return ServoCommands(bus.register_slave(1), retries=2, retry_delay=0.2)

    def test_timed_out_write_is_checked_then_resent(self, commands):
        steps = commands._apply_steps(parameter_plan(SERVO_SCHEMA, 'max_speed', 2000))
        write = WriteStep(_address('max_speed'), (2000,))

        assert next(steps) == write
        assert steps.throw(TransportTimeoutError("no reply")) == ReadStep(_address('max_speed'), 1)
        assert steps.send([0]) == PauseStep(0.2)
        assert steps.send(None) == write
        with pytest.raises(StopIteration):
            steps.send(None)

    def test_landed_write_stops_after_readback(self, commands):
        steps = commands._apply_steps(parameter_plan(SERVO_SCHEMA, 'max_speed', 2000))

        next(steps)
        steps.throw(TransportTimeoutError("ack lost"))
        with pytest.raises(StopIteration):
            steps.send([2000])

    def test_partial_write_reports_committed(self, commands):
        steps = commands._apply_steps(segment_plan(SERVO_SCHEMA, SegmentConfig(segment=1)))

        next(steps)
        steps.send(None)
        with pytest.raises(PartialWriteError) as exc_info:
            steps.throw(ModbusExceptionError(0x03))

        assert [w.name for w in exc_info.value.committed] == ['segment1_displacement']

    def test_init_gives_up_after_retries(self, commands):
        steps = commands._init_steps(None)
        block = ReadStep(_address('software_version'), 3)

        assert next(steps) == block
        assert steps.throw(TransportTimeoutError("no reply")) == PauseStep(0.2)
        assert steps.send(None) == block
        with pytest.raises(DeviceUnreachableError):
            steps.throw(TransportTimeoutError("no reply"))
