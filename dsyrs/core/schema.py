"""
Parameter schema for DSY-RS servo drives.

This module provides the parameter descriptors and the immutable table that
maps symbolic parameter names and ``PGG.II`` codes to register addresses,
widths, scales, ranges and enumerations. The table is validated when it is
built, so a malformed descriptor fails at import rather than on the bus.
"""

import logging
from collections import namedtuple
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .codec import encode_address, format_code, is_parameter_code, parse_code, scale_raw
from .constants import (
    MAX_INDEX, GROUP_STRIDE,
    SEGMENT_COUNT, SEGMENT_GROUP, SEGMENT_BASE_INDEX, SEGMENT_STRIDE,
    SPEED_SEGMENT_COUNT, SPEED_SEGMENT_GROUP, SPEED_SEGMENT_BASE_INDEX,
    SPEED_SEGMENT_STRIDE, STATUS_GROUP,
    Width, ParameterKind, Access,
    ControlMode, Direction, AbsoluteSystem, ServoOffStopMode,
    OvertravelStopMode, EnergyResistor, EncoderType,
    DiFunction, DiLogic, DoFunction, DoLogic,
    PositionCommandSource, PulseShape, DeviationClearMode,
    BaudRate, DataFormat, AddressSource, EncoderReset, SystemInit,
    MultiSegmentMode, MultiSegmentPositionMode, WaitTimeUnit, SpeedTimeUnit,
    HomingEnableMode, HomingMode,
)
from .exceptions import (
    InvalidAddressError, InvalidSegmentError, SchemaError,
    UnknownParameterError, UnknownVariantError
)

logger = logging.getLogger(__name__)

SegmentRegisters = namedtuple(
    'SegmentRegisters', ['displacement', 'speed', 'accel_decel_time', 'wait_time']
)
SpeedSegmentRegisters = namedtuple(
    'SpeedSegmentRegisters', ['speed', 'run_time', 'accel_select']
)


@dataclass(frozen=True)
class ParameterDescriptor:
    """
    Static description of one drive parameter.

    ``minimum`` and ``maximum`` are expressed in raw register units; the
    logical bounds are derived by ``scale``. Enumerated parameters take their
    variants from an ``IntEnum`` or a ``{code: symbol}`` mapping.
    """
    name: str
    group: int
    index: int
    minimum: int = 0
    maximum: int = 0xFFFF
    width: Width = Width.WORD
    signed: bool = False
    scale: Decimal = Decimal(1)
    kind: ParameterKind = ParameterKind.NUMERIC
    variants: Any = field(default=None, compare=False)
    access: Access = Access.READ_WRITE
    unit: str = ''
    description: str = ''
    _by_code: Dict[int, Any] = field(default=None, init=False, repr=False, compare=False)
    _by_symbol: Dict[str, int] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.scale, Decimal):
            object.__setattr__(self, 'scale', Decimal(str(self.scale)))

        by_code: Dict[int, Any] = {}
        by_symbol: Dict[str, int] = {}
        enum_type = self._enum_type
        for code, symbol in self.variant_pairs():
            by_code.setdefault(code, enum_type(code) if enum_type else symbol)
            by_symbol.setdefault(symbol.casefold(), code)
        object.__setattr__(self, '_by_code', by_code)
        object.__setattr__(self, '_by_symbol', by_symbol)

    @property
    def _enum_type(self):
        if isinstance(self.variants, type) and issubclass(self.variants, Enum):
            return self.variants
        return None

    # ==================== Derived attributes ====================

    @property
    def address(self) -> int:
        return self.group * GROUP_STRIDE + self.index

    @property
    def word_count(self) -> int:
        return 2 if self.width == Width.DWORD else 1

    @property
    def code(self) -> str:
        """Manual-style code, e.g. ``P13.08``."""
        return format_code(self.group, self.index)

    @property
    def read_only(self) -> bool:
        return self.access == Access.READ_ONLY

    @property
    def logical_minimum(self):
        return scale_raw(self.minimum, self.scale)

    @property
    def logical_maximum(self):
        return scale_raw(self.maximum, self.scale)

    # ==================== Enumerations ====================

    def variant_pairs(self) -> Tuple[Tuple[int, str], ...]:
        """All declared ``(code, symbol)`` pairs, aliases included."""
        if self.variants is None:
            return ()
        if self._enum_type is not None:
            return tuple(
                (int(member), name)
                for name, member in self.variants.__members__.items()
            )
        return tuple((int(code), str(symbol)) for code, symbol in self.variants.items())

    @property
    def symbols(self) -> Mapping[int, str]:
        """Code to symbol map of an enumerated parameter."""
        return MappingProxyType({
            code: variant.name if isinstance(variant, Enum) else variant
            for code, variant in self._by_code.items()
        })

    @property
    def codes(self) -> Mapping[str, int]:
        """Symbol (case-folded) to code map of an enumerated parameter."""
        return MappingProxyType(dict(self._by_symbol))

    def code_for(self, value) -> int:
        """
        Resolve an enumeration member, symbol name or documented code.

        Raises
        ------
        UnknownVariantError
            If the value does not name a documented variant
        """
        if isinstance(value, Enum):
            enum_type = self._enum_type
            if enum_type is not None and isinstance(value, enum_type):
                return int(value)
            raise UnknownVariantError(self.name, value)

        if isinstance(value, str):
            code = self._by_symbol.get(value.strip().casefold())
            if code is None:
                raise UnknownVariantError(self.name, value)
            return code

        if isinstance(value, int) and not isinstance(value, bool) and value in self._by_code:
            return int(value)

        raise UnknownVariantError(self.name, value)

    def variant_for(self, code: int):
        """Return the enumeration member (or symbol) for a raw code."""
        try:
            return self._by_code[code]
        except KeyError:
            raise UnknownVariantError(self.name, code) from None

    def __str__(self) -> str:
        return f"{self.code} {self.name}"


class ParameterSchema:
    """
    Immutable, validated table of parameter descriptors.

    Parameters
    ----------
    descriptors : Iterable[ParameterDescriptor]
        Parameters of one device family
    name : str
        Label used in log messages

    Raises
    ------
    SchemaError
        If names or addresses collide, an address is illegal, a range does
        not fit the declared width or an enumeration is not one-to-one
    """

    def __init__(self, descriptors: Iterable[ParameterDescriptor], name: str = 'custom'):
        self.name = name
        self._by_name: Dict[str, ParameterDescriptor] = {}
        self._by_address: Dict[int, ParameterDescriptor] = {}
        self._occupied: Dict[int, str] = {}

        for descriptor in descriptors:
            self._register(descriptor)

        logger.debug(f"Schema '{name}' built with {len(self._by_name)} parameters")

    # ==================== Validation ====================

    def _register(self, descriptor: ParameterDescriptor):
        try:
            encode_address(descriptor.group, descriptor.index)
        except InvalidAddressError as e:
            raise SchemaError(f"Parameter '{descriptor.name}': {e}") from e

        if descriptor.word_count == 2 and descriptor.index + 1 > MAX_INDEX:
            raise SchemaError(
                f"Parameter '{descriptor.name}' at {descriptor.code} has no room for its high word"
            )

        if descriptor.name in self._by_name:
            raise SchemaError(f"Duplicate parameter name '{descriptor.name}'")

        if descriptor.scale <= 0:
            raise SchemaError(f"Parameter '{descriptor.name}' has non-positive scale {descriptor.scale}")

        for offset in range(descriptor.word_count):
            address = descriptor.address + offset
            owner = self._occupied.get(address)
            if owner is not None:
                raise SchemaError(
                    f"Parameter '{descriptor.name}' overlaps '{owner}' at 0x{address:04X}"
                )

        low, high = self._representable(descriptor)
        if not low <= descriptor.minimum <= descriptor.maximum <= high:
            raise SchemaError(
                f"Parameter '{descriptor.name}' range [{descriptor.minimum}, "
                f"{descriptor.maximum}] does not fit a "
                f"{'signed' if descriptor.signed else 'unsigned'} {int(descriptor.width)}-bit register"
            )

        if descriptor.kind == ParameterKind.ENUMERATED:
            self._check_variants(descriptor, low, high)

        self._by_name[descriptor.name] = descriptor
        self._by_address[descriptor.address] = descriptor
        for offset in range(descriptor.word_count):
            self._occupied[descriptor.address + offset] = descriptor.name

    @staticmethod
    def _representable(descriptor: ParameterDescriptor) -> Tuple[int, int]:
        bits = int(descriptor.width)
        if descriptor.signed:
            return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
        return 0, (1 << bits) - 1

    @staticmethod
    def _check_variants(descriptor: ParameterDescriptor, low: int, high: int):
        pairs = descriptor.variant_pairs()
        if not pairs:
            raise SchemaError(f"Enumerated parameter '{descriptor.name}' has no variants")

        codes = [code for code, _ in pairs]
        symbols = [symbol.casefold() for _, symbol in pairs]
        if len(set(codes)) != len(codes):
            raise SchemaError(f"Parameter '{descriptor.name}' maps one code to several symbols")
        if len(set(symbols)) != len(symbols):
            raise SchemaError(f"Parameter '{descriptor.name}' maps one symbol to several codes")

        for code in codes:
            if not low <= code <= high:
                raise SchemaError(
                    f"Parameter '{descriptor.name}' variant code {code} does not fit its register"
                )

    # ==================== Lookup ====================

    def lookup(self, group: int, index: int) -> ParameterDescriptor:
        """
        Find the parameter stored at ``P<group>.<index>``.

        Raises
        ------
        InvalidAddressError
            If the address is outside the addressable space
        UnknownParameterError
            If the address is legal but not documented
        """
        address = encode_address(group, index)
        descriptor = self._by_address.get(address)
        if descriptor is None:
            raise UnknownParameterError(format_code(group, index))
        return descriptor

    def lookup_address(self, address: int) -> ParameterDescriptor:
        """
        Find a parameter by raw register address.

        Parameters
        ----------
        address : int
            Register address, ``group * 256 + index``

        Raises
        ------
        InvalidAddressError
            If the address is negative or lies outside P00.00-P24.99
        UnknownParameterError
            If the address is legal but not documented
        """
        group, index = divmod(address, GROUP_STRIDE)
        return self.lookup(group, index)

    def lookup_by_name(self, symbol: str) -> ParameterDescriptor:
        """
        Find a parameter by symbolic name or manual code.

        Parameters
        ----------
        symbol : str
            Name such as ``'max_speed'`` or code such as ``'P00.07'``

        Raises
        ------
        UnknownParameterError
            If no parameter has that name
        """
        if isinstance(symbol, ParameterDescriptor):
            symbol = symbol.name
        if not isinstance(symbol, str):
            raise UnknownParameterError(symbol)

        descriptor = self._by_name.get(symbol)
        if descriptor is not None:
            return descriptor

        if is_parameter_code(symbol):
            return self.lookup(*parse_code(symbol))

        raise UnknownParameterError(symbol)

    __getitem__ = lookup_by_name

    def group(self, group: int) -> List[ParameterDescriptor]:
        """All parameters of one group in address order."""
        return [d for d in self if d.group == group]

    def segment_registers(self, segment: int) -> SegmentRegisters:
        """
        Descriptors of one multi-segment position table entry (P13).

        Entry ``n`` starts at P13.(8 + 5 * (n - 1)) with the 32-bit
        displacement, followed by speed, accel/decel time and wait time.

        Raises
        ------
        InvalidSegmentError
            If segment is not 1-16
        """
        base = self._segment_base(
            segment, SEGMENT_COUNT, SEGMENT_BASE_INDEX, SEGMENT_STRIDE
        )
        return SegmentRegisters(
            self.lookup(SEGMENT_GROUP, base),
            self.lookup(SEGMENT_GROUP, base + 2),
            self.lookup(SEGMENT_GROUP, base + 3),
            self.lookup(SEGMENT_GROUP, base + 4),
        )

    def speed_segment_registers(self, segment: int) -> SpeedSegmentRegisters:
        """Descriptors of one multi-speed table entry (P14)."""
        base = self._segment_base(
            segment, SPEED_SEGMENT_COUNT, SPEED_SEGMENT_BASE_INDEX, SPEED_SEGMENT_STRIDE
        )
        return SpeedSegmentRegisters(
            self.lookup(SPEED_SEGMENT_GROUP, base),
            self.lookup(SPEED_SEGMENT_GROUP, base + 1),
            self.lookup(SPEED_SEGMENT_GROUP, base + 2),
        )

    @staticmethod
    def _segment_base(segment, count, base, stride) -> int:
        if isinstance(segment, bool) or not isinstance(segment, int) or not 1 <= segment <= count:
            raise InvalidSegmentError(segment, count)
        return base + stride * (segment - 1)

    def __iter__(self) -> Iterator[ParameterDescriptor]:
        return iter(sorted(self._by_name.values(), key=lambda d: d.address))

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, item) -> bool:
        if isinstance(item, ParameterDescriptor):
            return self._by_name.get(item.name) == item
        return item in self._by_name

    def __repr__(self) -> str:
        return f"ParameterSchema(name='{self.name}', parameters={len(self)})"


# ==================== DSY-RS parameter table ====================

def _param(
    name: str,
    group: int,
    index: int,
    minimum: int = 0,
    maximum: int = 0xFFFF,
    scale='1',
    unit: str = '',
    width: Width = Width.WORD,
    signed: Optional[bool] = None,
    access: Access = Access.READ_WRITE,
    description: str = '',
) -> ParameterDescriptor:
    return ParameterDescriptor(
        name=name,
        group=group,
        index=index,
        minimum=minimum,
        maximum=maximum,
        width=width,
        signed=minimum < 0 if signed is None else signed,
        scale=Decimal(scale),
        unit=unit,
        access=access,
        description=description,
    )


def _param32(name: str, group: int, index: int, minimum: int, maximum: int, **kwargs) -> ParameterDescriptor:
    return _param(name, group, index, minimum, maximum, width=Width.DWORD, **kwargs)


def _choice(name: str, group: int, index: int, variants, description: str = '') -> ParameterDescriptor:
    codes = [int(member) for member in variants]
    return ParameterDescriptor(
        name=name,
        group=group,
        index=index,
        minimum=min(codes),
        maximum=max(codes),
        kind=ParameterKind.ENUMERATED,
        variants=variants,
        description=description,
    )


def _flags(name: str, group: int, index: int, maximum: int = 0xFFFF,
           access: Access = Access.READ_WRITE, description: str = '') -> ParameterDescriptor:
    return ParameterDescriptor(
        name=name,
        group=group,
        index=index,
        maximum=maximum,
        kind=ParameterKind.BITFIELD,
        access=access,
        description=description,
    )


def _status(name: str, index: int, minimum: int = 0, maximum: int = 0xFFFF, **kwargs) -> ParameterDescriptor:
    return _param(name, STATUS_GROUP, index, minimum, maximum, access=Access.READ_ONLY, **kwargs)


_POSITION_LIMIT = 1 << 30
_RO = Access.READ_ONLY


def _basic_parameters() -> List[ParameterDescriptor]:
    return [
        _choice('control_mode', 0, 0, ControlMode, 'Control mode'),
        _choice('direction', 0, 1, Direction, 'Rotation direction'),
        _param('pulse_output_direction', 0, 2, 0, 1),
        _param('rigidity', 0, 4, 0, 31, description='Rigidity grade'),
        _param('inertia_ratio', 0, 5, 0, 3000, scale='0.01', unit='times'),
        _choice('absolute_system', 0, 6, AbsoluteSystem),
        _param('max_speed', 0, 7, 0, 10000, unit='rpm', description='Maximum speed limit'),
        _choice('servo_off_stop_mode', 0, 10, ServoOffStopMode),
        _param('fault1_stop_mode', 0, 11, 0, 1),
        _param('fault2_stop_mode', 0, 12, 0, 1),
        _choice('overtravel_stop_mode', 0, 13, OvertravelStopMode),
        _param('brake_on_delay', 0, 14, 0, 10000, unit='ms'),
        _param('brake_off_delay', 0, 15, 10, 10000, unit='ms'),
        _param('brake_speed_threshold', 0, 16, 0, 1000, unit='rpm'),
        _param('fault_brake_delay', 0, 17, 0, 10000, unit='ms'),
        _choice('energy_resistor', 0, 18, EnergyResistor),
        _param('external_resistor_power', 0, 19, 1, 65535, unit='W'),
        _param('external_resistance', 0, 20, 1, 1000, unit='ohm'),
        _param('external_resistor_time', 0, 21, 1000, 65535, unit='ms'),
        _param('brake_voltage', 0, 22, 0, 1000, unit='V'),
        _param('pulse_increment_threshold', 0, 37, 0, 200),
        _param('pulseless_cycle', 0, 38, 1, 200),
    ]


def _motor_parameters() -> List[ParameterDescriptor]:
    return [
        _param('motor_model', 1, 0, description='Motor model code'),
        _param('phase_sequence', 1, 1, 0, 1),
        _param('rated_voltage', 1, 2, 1, 1000, unit='V'),
        _param('rated_power', 1, 3, scale='0.01', unit='kW'),
        _param('rated_current', 1, 4, 1, 10000, scale='0.01', unit='A'),
        _param('rated_torque', 1, 5, scale='0.01', unit='N.m'),
        _param('motor_max_speed', 1, 8, 0, 9000, unit='rpm'),
        _param('rotor_inertia', 1, 9, 0, 10000, scale='0.01', unit='kg.cm2'),
        _param('pole_pairs', 1, 10, 1, 50),
        _param('stator_resistance', 1, 11, 1, 65535, scale='0.001', unit='ohm'),
        _param('q_axis_inductance', 1, 12, scale='0.01', unit='mH'),
        _param('d_axis_inductance', 1, 13, scale='0.01', unit='mH'),
        _param('back_emf_coefficient', 1, 14, scale='0.01', unit='mV/rpm'),
        _param('torque_coefficient', 1, 15, scale='0.001', unit='N.m/A'),
        _choice('encoder_type', 1, 18, EncoderType),
        _param32('encoder_resolution', 1, 20, 1, _POSITION_LIMIT, unit='P/r'),
        _param('z_electrical_angle', 1, 22, 0, 3600, scale='0.1', unit='deg'),
        _param('u_electrical_angle', 1, 23, 0, 3600, scale='0.1', unit='deg'),
        _param('fpga_motor_model', 1, 24, access=_RO),
    ]


def _io_parameters() -> List[ParameterDescriptor]:
    params = [
        _flags('di_function_state_low', 2, 0, description='FunIN.1-16 state'),
        _flags('di_function_state_high', 2, 10, description='FunIN.17-32 state'),
    ]
    for n in range(1, 4):
        params.append(_choice(f'di{n}_function', 2, n, DiFunction))
        params.append(_choice(f'di{n}_logic', 2, 10 + n, DiLogic))
    for n in range(1, 3):
        params.append(_choice(f'do{n}_function', 2, 20 + n, DoFunction))
        params.append(_choice(f'do{n}_logic', 2, 30 + n, DoLogic))
    return params


def _position_parameters() -> List[ParameterDescriptor]:
    return [
        _choice('position_command_source', 4, 0, PositionCommandSource),
        _param('step_amount', 4, 2, -9999, 9999),
        _param('position_filter', 4, 3, scale='0.1', unit='ms'),
        _param('position_fir_filter', 4, 4, 0, 1280, scale='0.1', unit='ms'),
        _param32('pulses_per_revolution', 4, 5, 0, _POSITION_LIMIT),
        _param32('gear1_numerator', 4, 7, 1, _POSITION_LIMIT),
        _param32('gear1_denominator', 4, 9, 1, _POSITION_LIMIT),
        _param32('gear2_numerator', 4, 11, 1, _POSITION_LIMIT),
        _param32('gear2_denominator', 4, 13, 1, _POSITION_LIMIT),
        _choice('pulse_shape', 4, 21, PulseShape),
        _choice('deviation_clear_mode', 4, 22, DeviationClearMode),
        _param('positioning_complete_condition', 4, 23, 0, 2),
        _param('positioning_complete_range', 4, 24, 1, 65535),
        _param('positioning_approach_range', 4, 25, 1, 65535),
    ]


def _speed_parameters() -> List[ParameterDescriptor]:
    return [
        _param('speed_command_source', 5, 0, 0, 2),
        _param('aux_speed_command_source', 5, 1, 0, 3),
        _param('speed_command_select', 5, 2, 0, 3),
        _param('speed_command', 5, 3, -9000, 9000, unit='rpm'),
        _param('jog_speed', 5, 4, 0, 9000, unit='rpm'),
        _param('accel_time', 5, 5, 0, 10000, unit='ms'),
        _param('decel_time', 5, 6, 0, 10000, unit='ms'),
        _param('speed_limit_select', 5, 7, 0, 2),
        _param('forward_speed_limit', 5, 8, 0, 9000, unit='rpm'),
        _param('backward_speed_limit', 5, 9, 0, 9000, unit='rpm'),
        _param('speed_direction', 5, 14, 0, 3),
        _param('zero_speed_clamp', 5, 15, 0, 6000, unit='rpm'),
        _param('running_threshold', 5, 16, 0, 1000, unit='rpm'),
        _param('speed_consistent_width', 5, 17, 0, 100, unit='rpm'),
        _param('speed_reached_value', 5, 18, 0, 6000, unit='rpm'),
        _param('zero_speed_threshold', 5, 20, 0, 6000, unit='rpm'),
    ]


def _torque_parameters() -> List[ParameterDescriptor]:
    return [
        _param('torque_command_source', 6, 0, 0, 1),
        _param('torque_command_select', 6, 2, 0, 3),
        _param('torque_filter', 6, 4, -3000, 3000, scale='0.01', unit='ms'),
        _param('torque_command', 6, 5, -3000, 3000, scale='0.1', unit='%'),
        _param('torque_limit_source', 6, 6, 0, 1),
        _param('forward_torque_limit', 6, 8, 0, 5000, scale='0.1', unit='%'),
        _param('backward_torque_limit', 6, 9, 0, 5000, scale='0.1', unit='%'),
        _param('forward_ext_torque_limit', 6, 10, 0, 5000, scale='0.1', unit='%'),
        _param('backward_ext_torque_limit', 6, 11, 0, 5000, scale='0.1', unit='%'),
        _param('torque_speed_limit_source', 6, 13, 0, 1),
        _param('torque_positive_speed_limit', 6, 15, 0, 9000, unit='rpm'),
        _param('torque_negative_speed_limit', 6, 16, 0, 9000, unit='rpm'),
        _param('torque_segment1', 6, 21, -3000, 3000, scale='0.1', unit='%'),
        _param('torque_segment2', 6, 22, -3000, 3000, scale='0.1', unit='%'),
        _param('torque_segment3', 6, 23, -3000, 3000, scale='0.1', unit='%'),
    ]


def _gain_parameters() -> List[ParameterDescriptor]:
    return [
        _param('position_gain1', 7, 0, 10, 20000, scale='0.1', unit='Hz'),
        _param('speed_gain1', 7, 1, 10, 20000, scale='0.1', unit='Hz'),
        _param('speed_integral1', 7, 2, 15, 51200, scale='0.01', unit='ms'),
        _param('speed_filter1', 7, 3, 0, 200, scale='0.01', unit='ms'),
        _param('position_gain2', 7, 5, 10, 20000, scale='0.1', unit='Hz'),
        _param('speed_gain2', 7, 6, 10, 20000, scale='0.1', unit='Hz'),
        _param('gain_switch_action', 7, 10, 0, 1),
        _param('gain_switch_mode', 7, 11, 0, 13),
    ]


def _advanced_parameters() -> List[ParameterDescriptor]:
    return [
        _param('adaptive_filter_mode', 8, 0, 0, 5),
        _param('notch1_frequency', 8, 2, 10, 4000, unit='Hz'),
        _param('notch1_width', 8, 3, 0, 8),
        _param('notch1_depth', 8, 4, 0, 100),
        _param('damping_filter_enable', 8, 15, 0, 1),
        _param('damping_filter_select', 8, 17, 0, 1),
        _param('inertia_identification_mode', 8, 23, 0, 1),
        _param('hf_vibration_suppression', 8, 26, 0, 1),
        _param('disturbance_observer', 8, 33, 0, 1),
        _param('speed_feedforward_compensation', 8, 39, 0, 1),
        _param('model_compensation', 8, 45, 0, 2),
    ]


def _protection_parameters() -> List[ParameterDescriptor]:
    return [
        _param('undervoltage_delay', 9, 2, 100, 20000, scale='0.1', unit='ms'),
        _param('runaway_protection', 9, 4, 0, 1),
        _param('overload_warning', 9, 5, 1, 100, unit='%'),
        _param('motor_overload_factor', 9, 6, 10, 300, unit='%'),
        _param('undervoltage_point', 9, 7, 50, 100, unit='%'),
        _param('overspeed_point', 9, 8, 50, 120, unit='%'),
        _param32('position_deviation_limit', 9, 9, 1, _POSITION_LIMIT),
        _param('locked_rotor_protection', 9, 24, 0, 1),
        _param('overload_protection', 9, 25, 0, 3),
    ]


def _comm_parameters() -> List[ParameterDescriptor]:
    return [
        _param('comm_address', 10, 0, 0, 247, description='RS485 slave address'),
        _choice('modbus_baud_rate', 10, 2, BaudRate),
        _choice('modbus_data_format', 10, 3, DataFormat),
        _param('write_eeprom', 10, 4, 0, 1, description='Write parameters to EEPROM'),
        _choice('rs232_baud_rate', 10, 5, BaudRate),
        _choice('address_source', 10, 6, AddressSource),
    ]


def _aux_parameters() -> List[ParameterDescriptor]:
    return [
        _param('fault_reset', 11, 1, 0, 1),
        _param('soft_reset', 11, 2, 0, 1),
        _param('inertia_recognition', 11, 3, 0, 1),
        _choice('encoder_reset', 11, 6, EncoderReset),
        _param('soft_limit_set', 11, 7, 0, 2),
        _choice('system_init', 11, 9, SystemInit),
        _param('forced_dido', 11, 10, 0, 3),
        _flags('forced_di_value', 11, 11, maximum=0x01FF),
        _flags('forced_do_value', 11, 12, maximum=0x001F),
        _param('emergency_stop', 11, 13, 0, 1),
    ]


def _display_parameters() -> List[ParameterDescriptor]:
    return [
        _param('led_warning_display', 12, 0, 0, 1),
        _param('default_display', 12, 1, 0, 100),
        _param('speed_display_filter', 12, 3, 0, 10000, scale='0.1', unit='ms'),
        _param('nonstandard_version', 12, 11, access=_RO),
        _param('software_version', 12, 12, access=_RO),
        _param('fpga_version', 12, 13, access=_RO),
        _param('product_code', 12, 14, access=_RO),
    ]


def _multi_segment_parameters() -> List[ParameterDescriptor]:
    params = [
        _choice('multi_segment_mode', 13, 0, MultiSegmentMode),
        _param('multi_segment_start', 13, 1, 1, SEGMENT_COUNT),
        _param('multi_segment_end', 13, 2, 1, SEGMENT_COUNT),
        _param('multi_segment_interrupt', 13, 3, 0, 1),
        _choice('multi_segment_wait_unit', 13, 4, WaitTimeUnit),
        _choice('multi_segment_position_mode', 13, 5, MultiSegmentPositionMode),
    ]
    for n in range(1, SEGMENT_COUNT + 1):
        base = SEGMENT_BASE_INDEX + SEGMENT_STRIDE * (n - 1)
        params.extend([
            _param32(f'segment{n}_displacement', SEGMENT_GROUP, base,
                     -_POSITION_LIMIT, _POSITION_LIMIT - 1, unit='pulse'),
            _param(f'segment{n}_speed', SEGMENT_GROUP, base + 2, 0, 9000, unit='rpm'),
            _param(f'segment{n}_accel_decel_time', SEGMENT_GROUP, base + 3, unit='ms'),
            _param(f'segment{n}_wait_time', SEGMENT_GROUP, base + 4),
        ])
    return params


def _multi_speed_parameters() -> List[ParameterDescriptor]:
    params = [
        _choice('speed_segment_mode', 14, 0, MultiSegmentMode),
        _param('speed_segment_end', 14, 1, 1, SPEED_SEGMENT_COUNT),
        _choice('speed_segment_time_unit', 14, 2, SpeedTimeUnit),
    ]
    for n in range(1, 5):
        params.append(_param(f'speed_segment_accel_time{n}', 14, 2 + n, 0, 10000, unit='ms'))
    for n in range(1, SPEED_SEGMENT_COUNT + 1):
        base = SPEED_SEGMENT_BASE_INDEX + SPEED_SEGMENT_STRIDE * (n - 1)
        params.extend([
            _param(f'speed_segment{n}_speed', SPEED_SEGMENT_GROUP, base, -9000, 9000, unit='rpm'),
            _param(f'speed_segment{n}_run_time', SPEED_SEGMENT_GROUP, base + 1),
            _param(f'speed_segment{n}_accel_select', SPEED_SEGMENT_GROUP, base + 2, 0, 3),
        ])
    return params


def _special_parameters() -> List[ParameterDescriptor]:
    return [
        _param('fixed_length_enable', 16, 0, 0, 1),
        _param32('fixed_length1_displacement', 16, 1, 0, _POSITION_LIMIT),
        _param('fixed_length1_speed', 16, 3, 0, 9000, unit='rpm'),
        _param('fixed_length_accel', 16, 4, 0, 1000, unit='ms'),
        _param('fixed_length_decel', 16, 5, 0, 1000, unit='ms'),
        _param('lock_release_enable', 16, 6, 0, 1),
        _choice('homing_enable_mode', 16, 8, HomingEnableMode),
        _choice('homing_mode', 16, 9, HomingMode),
        _param('homing_high_speed', 16, 10, 10, 3000, unit='rpm'),
        _param('homing_low_speed', 16, 11, 10, 1000, unit='rpm'),
        _param('homing_accel_limit', 16, 12, unit='ms'),
        _param('homing_timeout', 16, 13, unit='ms'),
        _param32('home_offset', 16, 14, -_POSITION_LIMIT, _POSITION_LIMIT),
        _param32('encoder_origin', 16, 28, 0, 0xFFFFFFFF),
        _param('encoder_origin_turns', 16, 30, 0, 32767),
        _param('zero_wait_count', 16, 31),
        _param32('fixed_length2_displacement', 16, 37, -_POSITION_LIMIT, _POSITION_LIMIT),
        _param('fixed_length2_speed', 16, 39, 0, 9000, unit='rpm'),
    ]


def _status_parameters() -> List[ParameterDescriptor]:
    return [
        ParameterDescriptor(
            name='servo_status', group=STATUS_GROUP, index=0,
            kind=ParameterKind.BITFIELD, access=_RO,
            description='Servo status word, state in the low nibble',
        ),
        _status('speed_feedback', 1, -32768, 32767, unit='rpm'),
        _status('load_rate', 2, scale='0.1', unit='%'),
        _status('speed_command_feedback', 3, -32768, 32767, unit='rpm'),
        _status('internal_torque', 4, -32768, 32767, scale='0.1', unit='%'),
        _status('phase_current', 5, scale='0.01', unit='A'),
        _status('bus_voltage', 6, scale='0.1', unit='V'),
        _status('absolute_position', 7, -(1 << 31), (1 << 31) - 1,
                width=Width.DWORD, unit='pulse'),
        _status('electrical_angle', 9, 0, 3600, scale='0.1', unit='deg'),
    ]


def build_servo_table() -> List[ParameterDescriptor]:
    """Return the documented DSY-RS parameters in manual order."""
    return (
        _basic_parameters()
        + _motor_parameters()
        + _io_parameters()
        + _position_parameters()
        + _speed_parameters()
        + _torque_parameters()
        + _gain_parameters()
        + _advanced_parameters()
        + _protection_parameters()
        + _comm_parameters()
        + _aux_parameters()
        + _display_parameters()
        + _multi_segment_parameters()
        + _multi_speed_parameters()
        + _special_parameters()
        + _status_parameters()
    )


SERVO_SCHEMA = ParameterSchema(build_servo_table(), name='DSY-RS')
