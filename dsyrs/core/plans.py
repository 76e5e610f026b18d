"""
Register write plans.

A plan is the complete, validated list of register writes that one drive
operation needs. Builders here are pure: they look parameters up in the
schema and encode every value before anything is sent, so a bad argument
in the last step of a composite operation fails before the first write.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence, Tuple, Union

from .codec import encode_value
from .config import (
    ServoConfig, SegmentConfig, MultiSegmentConfig, MultiSpeedConfig,
    SpeedSegmentConfig, HomingConfig, CommConfig, JogConfig, GainParams,
)
from .constants import (
    SEGMENT_COUNT, DIGITAL_INPUT_COUNT, DIGITAL_OUTPUT_COUNT,
    EncoderReset, SystemInit,
)
from .exceptions import OutOfRangeError, ReadOnlyParameterError
from .schema import ParameterDescriptor, ParameterSchema

ParameterRef = Union[str, ParameterDescriptor]


@dataclass(frozen=True)
class RegisterWrite:
    """One encoded parameter write."""
    descriptor: ParameterDescriptor
    value: Any
    words: Tuple[int, ...]

    @classmethod
    def build(cls, descriptor: ParameterDescriptor, value) -> 'RegisterWrite':
        """
        Validate and encode a value for a writable parameter.

        Raises
        ------
        ReadOnlyParameterError
            If the parameter cannot be written
        OutOfRangeError, UnknownVariantError
            If the value cannot be encoded
        """
        if descriptor.read_only:
            raise ReadOnlyParameterError(descriptor.name)
        return cls(descriptor, value, encode_value(descriptor, value))

    def reencode(self) -> 'RegisterWrite':
        """Run validation and encoding again from the logical value."""
        return RegisterWrite.build(self.descriptor, self.value)

    @property
    def address(self) -> int:
        return self.descriptor.address

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def code(self) -> str:
        return self.descriptor.code

    def __str__(self) -> str:
        words = ' '.join(f"0x{w:04X}" for w in self.words)
        return f"{self.code} {self.name} = {self.value} [{words}]"


@dataclass(frozen=True)
class WritePlan:
    """Ordered register writes of one operation."""
    label: str
    writes: Tuple[RegisterWrite, ...]

    @property
    def composite(self) -> bool:
        return len(self.writes) > 1

    def __iter__(self) -> Iterator[RegisterWrite]:
        return iter(self.writes)

    def __len__(self) -> int:
        return len(self.writes)


def _resolve(schema: ParameterSchema, parameter: ParameterRef) -> ParameterDescriptor:
    if isinstance(parameter, ParameterDescriptor):
        return parameter
    return schema.lookup_by_name(parameter)


def build_plan(
    schema: ParameterSchema,
    label: str,
    assignments: Iterable[Tuple[ParameterRef, Any]]
) -> WritePlan:
    """
    Build a plan from ``(parameter, value)`` pairs, in order.

    Raises on the first pair that fails validation; no partial plan is
    ever returned.
    """
    writes = tuple(
        RegisterWrite.build(_resolve(schema, parameter), value)
        for parameter, value in assignments
    )
    return WritePlan(label, writes)


def parameter_plan(schema: ParameterSchema, parameter: ParameterRef, value) -> WritePlan:
    descriptor = _resolve(schema, parameter)
    return build_plan(schema, f"write {descriptor.name}", [(descriptor, value)])


# ==================== Composite plans ====================

def servo_config_plan(schema: ParameterSchema, config: ServoConfig) -> WritePlan:
    return build_plan(schema, 'servo config', [
        ('control_mode', config.control_mode),
        ('direction', config.direction),
        ('max_speed', config.max_speed),
    ])


def segment_plan(schema: ParameterSchema, config: SegmentConfig) -> WritePlan:
    """
    Plan for one multi-segment position entry.

    Writes displacement (two words), speed, accel/decel time and wait time
    in that order.
    """
    registers = schema.segment_registers(config.segment)
    return build_plan(schema, f"segment {config.segment}", [
        (registers.displacement, config.displacement),
        (registers.speed, config.speed),
        (registers.accel_decel_time, config.accel_decel_time),
        (registers.wait_time, config.wait_time),
    ])


def multi_segment_plan(schema: ParameterSchema, config: MultiSegmentConfig) -> WritePlan:
    if (isinstance(config.start_segment, int) and isinstance(config.end_segment, int)
            and config.start_segment > config.end_segment):
        raise OutOfRangeError(
            'multi_segment_end', config.end_segment, config.start_segment, SEGMENT_COUNT
        )
    return build_plan(schema, 'multi-segment settings', [
        ('multi_segment_mode', config.mode),
        ('multi_segment_start', config.start_segment),
        ('multi_segment_end', config.end_segment),
        ('multi_segment_interrupt', int(config.interrupt_resume)),
        ('multi_segment_wait_unit', config.wait_time_unit),
        ('multi_segment_position_mode', config.position_mode),
    ])


def multi_speed_plan(schema: ParameterSchema, config: MultiSpeedConfig) -> WritePlan:
    if len(config.accel_times) != 4:
        raise ValueError(f"Expected 4 accel/decel times, got {len(config.accel_times)}")
    assignments = [
        ('speed_segment_mode', config.mode),
        ('speed_segment_end', config.end_segment),
        ('speed_segment_time_unit', config.time_unit),
    ]
    for n, accel_time in enumerate(config.accel_times, start=1):
        assignments.append((f'speed_segment_accel_time{n}', accel_time))
    return build_plan(schema, 'multi-speed settings', assignments)


def speed_segment_plan(schema: ParameterSchema, config: SpeedSegmentConfig) -> WritePlan:
    registers = schema.speed_segment_registers(config.segment)
    return build_plan(schema, f"speed segment {config.segment}", [
        (registers.speed, config.speed),
        (registers.run_time, config.run_time),
        (registers.accel_select, config.accel_select),
    ])


def homing_plan(schema: ParameterSchema, config: HomingConfig) -> WritePlan:
    assignments = [
        ('homing_mode', config.mode),
        ('homing_high_speed', config.high_speed),
        ('homing_low_speed', config.low_speed),
        ('homing_accel_limit', config.accel_limit),
        ('homing_timeout', config.timeout),
        ('home_offset', config.offset),
    ]
    if config.enable_mode is not None:
        assignments.append(('homing_enable_mode', config.enable_mode))
    return build_plan(schema, 'homing config', assignments)


def comm_plan(schema: ParameterSchema, config: CommConfig) -> WritePlan:
    assignments = [
        ('comm_address', config.address),
        ('modbus_baud_rate', config.baud_rate),
        ('modbus_data_format', config.data_format),
        ('address_source', config.address_source),
    ]
    if config.rs232_baud_rate is not None:
        assignments.append(('rs232_baud_rate', config.rs232_baud_rate))
    return build_plan(schema, 'communication config', assignments)


def jog_plan(schema: ParameterSchema, config: JogConfig) -> WritePlan:
    return build_plan(schema, 'jog config', [
        ('jog_speed', config.speed),
        ('accel_time', config.accel_time),
        ('decel_time', config.decel_time),
    ])


def gain_plan(schema: ParameterSchema, params: GainParams) -> WritePlan:
    return build_plan(schema, 'gain params', [
        ('position_gain1', params.position_gain),
        ('speed_gain1', params.speed_gain),
        ('speed_integral1', params.speed_integral),
        ('speed_filter1', params.speed_filter),
    ])


def limits_plan(schema: ParameterSchema, label: str, names: Sequence[str], values: Sequence) -> WritePlan:
    return build_plan(schema, label, list(zip(names, values)))


def gear_ratio_plan(schema: ParameterSchema, numerator: int, denominator: int, gear: int = 1) -> WritePlan:
    if gear not in (1, 2):
        raise OutOfRangeError('gear', gear, 1, 2)
    return build_plan(schema, f"electronic gear {gear}", [
        (f'gear{gear}_numerator', numerator),
        (f'gear{gear}_denominator', denominator),
    ])


# ==================== Digital I/O ====================

def _channel(kind: str, number: int, count: int) -> int:
    if isinstance(number, bool) or not isinstance(number, int) or not 1 <= number <= count:
        raise OutOfRangeError(f'{kind} channel', number, 1, count)
    return number


def di_plan(schema: ParameterSchema, number: int, setting: str, value) -> WritePlan:
    """Plan for ``di<number>_function`` or ``di<number>_logic``."""
    _channel('digital input', number, DIGITAL_INPUT_COUNT)
    return parameter_plan(schema, f'di{number}_{setting}', value)


def do_plan(schema: ParameterSchema, number: int, setting: str, value) -> WritePlan:
    _channel('digital output', number, DIGITAL_OUTPUT_COUNT)
    return parameter_plan(schema, f'do{number}_{setting}', value)


# ==================== Auxiliary commands ====================

def command_plan(schema: ParameterSchema, label: str, parameter: str, value=1) -> WritePlan:
    """Single-register command such as a fault reset or EEPROM write."""
    return build_plan(schema, label, [(parameter, value)])


def encoder_reset_plan(schema: ParameterSchema, action: EncoderReset) -> WritePlan:
    return command_plan(schema, 'encoder reset', 'encoder_reset', action)


def system_init_plan(schema: ParameterSchema, action: SystemInit) -> WritePlan:
    return command_plan(schema, 'system init', 'system_init', action)
