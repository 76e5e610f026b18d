"""
Device session for DSY-RS servo drives.

``ServoCommands`` holds every drive operation once: it validates arguments
and builds the register plan or read request at call time, and it decides
how those run on the bus (retries, readback after a write timeout, partial
write reporting, the ``init`` sequence). That logic is written as step
generators which yield :class:`ReadStep`, :class:`WriteStep` and
:class:`PauseStep` requests and receive the results. ``ServoDriver`` runs
the steps on a blocking slave context; ``AsyncServoDriver`` (see
``async_driver``) awaits them instead.
"""

import logging
import time
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence, Tuple

from . import plans
from .codec import decode_value, join_words
from .config import (
    ServoConfig, SegmentConfig, MultiSegmentConfig, MultiSpeedConfig,
    SpeedSegmentConfig, HomingConfig, CommConfig, JogConfig, GainParams,
)
from .constants import (
    MAX_RETRIES, RETRY_DELAY, STATUS_BLOCK_SIZE,
    ControlMode, Direction, DiFunction, DiLogic, DoFunction, DoLogic,
    EncoderReset, HomingEnableMode, PositionCommandSource, SystemInit,
)
from .exceptions import (
    CommunicationError, DeviceUnreachableError, ModbusExceptionError,
    PartialWriteError, TransportTimeoutError, UnknownVariantError
)
from .plans import RegisterWrite, WritePlan
from .schema import SERVO_SCHEMA, ParameterDescriptor, ParameterSchema
from .status import (
    DEVICE_INFO_FIELDS, MOTOR_FIELDS, DeviceInfo, classify_state,
    decode_device_block, decode_status, motor_mismatches, status_block_address
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadStep:
    """Read ``count`` holding registers starting at ``address``."""
    address: int
    count: int


@dataclass(frozen=True)
class WriteStep:
    """Write ``words`` starting at ``address``."""
    address: int
    words: Tuple[int, ...]


@dataclass(frozen=True)
class PauseStep:
    """Wait ``seconds`` before the next step."""
    seconds: float


Step = Generator[Any, Any, Any]


class ServoCommands:
    """
    Drive operations shared by the blocking and asyncio drivers.

    Public methods validate their input and build the full plan before any
    step is produced, so invalid arguments raise immediately in both
    execution models. Subclasses only implement ``_run``, which drives a
    step generator to completion: it performs each yielded request on the
    slave context and sends the result back, or throws the failure into
    the generator.

    Parameters
    ----------
    context : SlaveContext or AsyncSlaveContext
        Context registered on a bus manager
    config : ServoConfig, optional
        Settings applied by :meth:`init`
    schema : ParameterSchema, optional
        Parameter table (default: the DSY-RS table)
    retries : int, optional
        Attempts per read, and per write after a timeout (default: 3)
    retry_delay : float, optional
        Pause between attempts in seconds (default: 0.1)
    """

    def __init__(
        self,
        context,
        config: Optional[ServoConfig] = None,
        schema: ParameterSchema = SERVO_SCHEMA,
        retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
    ):
        self._context = context
        self.schema = schema
        self.config = self._config_for(config, context.slave_id)
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.device_info: Optional[DeviceInfo] = None

    @classmethod
    def on_bus(cls, bus, slave_id: int, config: Optional[ServoConfig] = None, **kwargs):
        """Register ``slave_id`` on ``bus`` and wrap the new context."""
        return cls(bus.register_slave(slave_id), config, **kwargs)

    @property
    def slave_id(self) -> int:
        return self._context.slave_id

    @property
    def context(self):
        return self._context

    def release(self) -> None:
        """Give the slave context back to the bus."""
        if not self._context.released:
            self._context.release()

    def _run(self, steps: Step):
        raise NotImplementedError

    def _apply(self, plan: WritePlan):
        return self._run(self._apply_steps(plan))

    def _fetch(self, address: int, count: int, decode: Callable[[List[int]], Any]):
        return self._run(self._fetch_steps(address, count, decode))

    def _fetch_parameter(self, name: str, convert: Optional[Callable[[Any], Any]] = None):
        descriptor = self.schema.lookup_by_name(name)

        def decode(words):
            value = decode_value(descriptor, words)
            return convert(value) if convert else value

        return self._fetch(descriptor.address, descriptor.word_count, decode)

    # ==================== Connection Management ====================

    def init(self, apply_config: bool = True):
        """
        Verify the drive answers, then apply the configuration.

        Reads the identification block and status word first; any
        communication failure there raises :class:`DeviceUnreachableError`
        and nothing is written. Then writes the ``ServoConfig`` and checks
        the motor parameters in P01 against it.

        Returns
        -------
        DeviceInfo
            Identification, state and motor data of the drive (awaitable
            on the asyncio driver)
        """
        return self._run(self._init_steps(self._init_plan(apply_config)))

    # ==================== Generic access ====================

    def read_parameter(self, name: str):
        """
        Read one parameter by name or manual code.

        Parameters
        ----------
        name : str
            Symbolic name (``'max_speed'``) or code (``'P00.07'``)

        Returns
        -------
        int, float or IntEnum
            Decoded value in engineering units
        """
        return self._fetch_parameter(name)

    def write_parameter(self, name: str, value):
        """
        Write one parameter by name or manual code.

        Raises
        ------
        UnknownParameterError
            If the name is not in the schema
        ReadOnlyParameterError
            If the parameter cannot be written
        OutOfRangeError, UnknownVariantError
            If the value cannot be encoded
        """
        return self._apply(plans.parameter_plan(self.schema, name, value))

    # ==================== Basic control ====================

    def set_control_mode(self, mode: ControlMode):
        return self.write_parameter('control_mode', mode)

    def get_control_mode(self):
        return self._fetch_parameter('control_mode')

    def set_direction(self, direction: Direction):
        return self.write_parameter('direction', direction)

    def set_max_speed(self, rpm: int):
        return self.write_parameter('max_speed', rpm)

    def set_rigidity(self, level: int):
        return self.write_parameter('rigidity', level)

    def set_inertia_ratio(self, ratio: float):
        return self.write_parameter('inertia_ratio', ratio)

    def apply_servo_config(self, config: ServoConfig):
        """Write control mode, direction and maximum speed."""
        return self._apply(plans.servo_config_plan(self.schema, config))

    # ==================== Position control ====================

    def set_position_command_source(self, source: PositionCommandSource):
        return self.write_parameter('position_command_source', source)

    def set_step_amount(self, amount: int):
        return self.write_parameter('step_amount', amount)

    def set_gear_ratio(self, numerator: int, denominator: int, gear: int = 1):
        """Set electronic gear 1 or 2 (P04.07-P04.14)."""
        return self._apply(plans.gear_ratio_plan(self.schema, numerator, denominator, gear))

    # ==================== Speed / torque control ====================

    def set_speed_command(self, rpm: int):
        return self.write_parameter('speed_command', rpm)

    def set_jog_speed(self, rpm: int):
        return self.write_parameter('jog_speed', rpm)

    def set_accel_time(self, ms: int):
        return self.write_parameter('accel_time', ms)

    def set_decel_time(self, ms: int):
        return self.write_parameter('decel_time', ms)

    def set_speed_limits(self, forward: int, backward: int):
        return self._apply(plans.limits_plan(
            self.schema, 'speed limits',
            ('forward_speed_limit', 'backward_speed_limit'), (forward, backward)
        ))

    def set_torque_command(self, percent: float):
        """Torque command in percent of rated torque (0.1 % resolution)."""
        return self.write_parameter('torque_command', percent)

    def set_torque_limits(self, forward: float, backward: float):
        return self._apply(plans.limits_plan(
            self.schema, 'torque limits',
            ('forward_torque_limit', 'backward_torque_limit'), (forward, backward)
        ))

    def apply_jog_config(self, config: JogConfig):
        return self._apply(plans.jog_plan(self.schema, config))

    def apply_gain_params(self, params: GainParams):
        return self._apply(plans.gain_plan(self.schema, params))

    # ==================== Digital I/O ====================

    def set_di_function(self, number: int, function: DiFunction):
        """Assign a function to digital input DI1-DI3."""
        return self._apply(plans.di_plan(self.schema, number, 'function', function))

    def set_di_logic(self, number: int, logic: DiLogic):
        return self._apply(plans.di_plan(self.schema, number, 'logic', logic))

    def set_do_function(self, number: int, function: DoFunction):
        """Assign a function to digital output DO1-DO2."""
        return self._apply(plans.do_plan(self.schema, number, 'function', function))

    def set_do_logic(self, number: int, logic: DoLogic):
        return self._apply(plans.do_plan(self.schema, number, 'logic', logic))

    # ==================== Multi-segment position / speed ====================

    def configure_segment(self, config: SegmentConfig):
        """
        Program one multi-segment position entry.

        Writes displacement, speed, accel/decel time and wait time in that
        order. The writes are not atomic: a failure part way raises
        :class:`PartialWriteError` listing what was already written.
        """
        return self._apply(plans.segment_plan(self.schema, config))

    def configure_multi_segment(self, config: MultiSegmentConfig):
        return self._apply(plans.multi_segment_plan(self.schema, config))

    def configure_multi_speed(self, config: MultiSpeedConfig):
        return self._apply(plans.multi_speed_plan(self.schema, config))

    def configure_speed_segment(self, config: SpeedSegmentConfig):
        return self._apply(plans.speed_segment_plan(self.schema, config))

    # ==================== Homing ====================

    def set_homing_enable_mode(self, mode: HomingEnableMode):
        return self.write_parameter('homing_enable_mode', mode)

    def apply_homing_config(self, config: HomingConfig):
        """
        Write a homing setup.

        Order: mode, high speed, low speed, accel limit, timeout, offset and
        finally the enable mode when one is given.
        """
        return self._apply(plans.homing_plan(self.schema, config))

    # ==================== Communication ====================

    def apply_comm_config(self, config: CommConfig):
        """
        Write address, baud rate, data format and address source.

        The drive normally applies new communication settings after a
        restart; call :meth:`save_to_eeprom` to keep them.
        """
        return self._apply(plans.comm_plan(self.schema, config))

    def save_to_eeprom(self):
        """Persist parameters in the drive's EEPROM (P10.04)."""
        return self._apply(plans.command_plan(self.schema, 'save to EEPROM', 'write_eeprom'))

    # ==================== Auxiliary ====================

    def reset_fault(self):
        return self._apply(plans.command_plan(self.schema, 'fault reset', 'fault_reset'))

    def soft_reset(self):
        return self._apply(plans.command_plan(self.schema, 'soft reset', 'soft_reset'))

    def factory_reset(self):
        """Restore factory defaults (all groups except P01 and P17)."""
        return self._apply(plans.system_init_plan(self.schema, SystemInit.FACTORY_RESET))

    def clear_fault_record(self):
        return self._apply(plans.system_init_plan(self.schema, SystemInit.CLEAR_FAULT_RECORD))

    def reset_encoder(self, action: EncoderReset = EncoderReset.CLEAR_WARNINGS):
        return self._apply(plans.encoder_reset_plan(self.schema, action))

    def emergency_stop(self):
        return self._apply(plans.command_plan(self.schema, 'emergency stop', 'emergency_stop', 1))

    def clear_emergency_stop(self):
        return self._apply(plans.command_plan(self.schema, 'clear emergency stop', 'emergency_stop', 0))

    # ==================== Status ====================

    def get_status(self):
        """Read P18.00-P18.09 in one transaction and decode it."""
        return self._fetch(
            status_block_address(self.schema), STATUS_BLOCK_SIZE,
            partial(decode_status, self.schema)
        )

    def get_servo_state(self):
        return self._fetch_parameter('servo_status', classify_state)

    def get_speed(self):
        """Motor speed feedback in rpm."""
        return self._fetch_parameter('speed_feedback')

    def get_position(self):
        """Absolute position feedback (32-bit)."""
        return self._fetch_parameter('absolute_position')

    def get_torque(self):
        """Internal torque in percent of rated torque."""
        return self._fetch_parameter('internal_torque')

    def get_current(self):
        """Phase current RMS in amperes."""
        return self._fetch_parameter('phase_current')

    def get_bus_voltage(self):
        return self._fetch_parameter('bus_voltage')

    def get_load_rate(self):
        return self._fetch_parameter('load_rate')

    def get_device_info(self):
        """Read software version, FPGA version and product code (P12.12-P12.14)."""
        base = self.schema.lookup_by_name(DEVICE_INFO_FIELDS[0]).address

        def decode(words):
            return DeviceInfo(slave_id=self.slave_id, **decode_device_block(self.schema, words))

        return self._fetch(base, len(DEVICE_INFO_FIELDS), decode)

    # ==================== Step sequences ====================

    def _read_steps(self, address: int, count: int) -> Step:
        """Read with bounded retries; Modbus exception replies are final."""
        last_error = None
        for attempt in range(1, self.retries + 1):
            try:
                return (yield ReadStep(address, count))
            except ModbusExceptionError:
                raise
            except CommunicationError as e:
                last_error = e
                logger.warning(
                    f"Servo {self.slave_id} read 0x{address:04X} attempt {attempt}/{self.retries} failed: {e}"
                )
                if attempt < self.retries:
                    yield PauseStep(self.retry_delay)
        raise last_error

    def _fetch_steps(self, address: int, count: int, decode: Callable[[List[int]], Any]) -> Step:
        words = yield from self._read_steps(address, count)
        return decode(words)

    def _write_steps(self, write: RegisterWrite) -> Step:
        """
        Write one parameter.

        After a timeout the target registers are read back: if they already
        hold the intended words the write landed and is not repeated;
        otherwise the value is encoded again and resent.
        """
        for attempt in range(1, self.retries + 1):
            try:
                yield WriteStep(write.address, write.words)
                return
            except TransportTimeoutError as e:
                if self._context.is_broadcast or attempt == self.retries:
                    raise
                logger.warning(
                    f"Servo {self.slave_id} write {write.code} timed out "
                    f"(attempt {attempt}/{self.retries}): {e}"
                )
                if (yield from self._landed_steps(write, e)):
                    return
                yield PauseStep(self.retry_delay)
                write = write.reencode()

    def _landed_steps(self, write: RegisterWrite, original: TransportTimeoutError) -> Step:
        try:
            current = yield ReadStep(write.address, len(write.words))
        except CommunicationError as e:
            logger.error(f"Servo {self.slave_id} could not verify {write.code}: {e}")
            raise original
        if tuple(current) == write.words:
            logger.warning(f"Servo {self.slave_id} write {write.code} confirmed by readback")
            return True
        return False

    def _apply_steps(self, plan: WritePlan) -> Step:
        committed: List[RegisterWrite] = []
        for write in plan:
            try:
                yield from self._write_steps(write)
            except CommunicationError as e:
                if not plan.composite:
                    raise
                logger.error(f"Servo {self.slave_id}: {plan.label} failed at {write.code}: {e}")
                raise PartialWriteError(plan.label, write, committed, e) from e
            committed.append(write)

        if plan.composite:
            logger.info(f"Servo {self.slave_id}: applied {plan.label} ({len(plan)} writes)")

    def _init_steps(self, plan: Optional[WritePlan]) -> Step:
        info_base = self.schema.lookup_by_name(DEVICE_INFO_FIELDS[0]).address

        try:
            block = yield from self._read_steps(info_base, len(DEVICE_INFO_FIELDS))
            versions = decode_device_block(self.schema, block)
            status_code = (yield from self._read_steps(status_block_address(self.schema), 1))[0]
        except ModbusExceptionError:
            raise
        except CommunicationError as e:
            logger.error(f"Servo {self.slave_id} did not answer: {e}")
            raise DeviceUnreachableError(self.slave_id, e) from e

        if plan is not None:
            yield from self._apply_steps(plan)

        motor = {}
        for name in MOTOR_FIELDS:
            descriptor = self.schema.lookup_by_name(name)
            try:
                words = yield from self._read_steps(descriptor.address, descriptor.word_count)
            except ModbusExceptionError as e:
                logger.warning(f"Servo {self.slave_id} rejected read of {descriptor.code}: {e}")
                motor[name] = None
                continue
            motor[name] = self._decode_motor(descriptor, words)

        self.device_info = self._finish_init(versions, status_code, motor)
        return self.device_info

    # ==================== Initialization helpers ====================

    def _init_plan(self, apply_config: bool) -> Optional[WritePlan]:
        if not apply_config:
            return None
        return plans.servo_config_plan(self.schema, self.config)

    def _decode_motor(self, descriptor: ParameterDescriptor, words: Sequence[int]):
        try:
            return decode_value(descriptor, words)
        except UnknownVariantError:
            raw = join_words(words, descriptor.signed)
            logger.warning(f"Servo {self.slave_id} reports undocumented {descriptor.name} code {raw}")
            return raw

    def _finish_init(self, versions: Dict[str, int], status_code: int, motor: Dict[str, Any]) -> DeviceInfo:
        for message in motor_mismatches(self.config, motor):
            logger.warning(f"Slave {self.slave_id}: {message}")

        info = DeviceInfo(
            slave_id=self.slave_id,
            state=classify_state(status_code),
            **versions,
            **motor
        )
        logger.info(
            f"Servo {self.slave_id} initialized: software {info.software_version}, "
            f"FPGA {info.fpga_version}, product 0x{info.product_code:04X}, state {info.state.value}"
        )
        return info

    def _config_for(self, config: Optional[ServoConfig], slave_id: int) -> ServoConfig:
        if config is None:
            return ServoConfig(slave_id=slave_id)
        if config.slave_id != slave_id:
            logger.warning(
                f"ServoConfig slave_id {config.slave_id} differs from context slave "
                f"{slave_id}; using {slave_id}"
            )
            return replace(config, slave_id=slave_id)
        return config


class ServoDriver(ServoCommands):
    """
    Blocking session with one DSY-RS drive on a shared bus.

    Takes the same arguments as :class:`ServoCommands`; ``context`` is a
    :class:`~dsyrs.protocols.bus.SlaveContext`.

    Examples
    --------
    >>> bus = BusManager(SerialTransport.from_settings(SerialSettings('COM3')).open())
    >>> servo = ServoDriver(bus.register_slave(1), ServoConfig(control_mode=ControlMode.SPEED))
    >>> servo.init()
    >>> servo.set_speed_command(1000)
    >>> servo.get_speed()
    """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    def _run(self, steps: Step):
        result, error = None, None
        while True:
            try:
                step = steps.throw(error) if error is not None else steps.send(result)
            except StopIteration as stop:
                return stop.value
            result, error = None, None
            try:
                result = self._perform(step)
            except Exception as e:
                error = e

    def _perform(self, step):
        if isinstance(step, ReadStep):
            return self._context.read(step.address, step.count)
        if isinstance(step, WriteStep):
            return self._context.write(step.address, step.words)
        time.sleep(step.seconds)

    def __repr__(self) -> str:
        return f"ServoDriver(slave_id={self.slave_id}, control_mode={self.config.control_mode.name})"
