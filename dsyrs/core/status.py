"""
Servo status decoding.

The drive reports its operating state in the low nibble of P18.00 and the
rest of its live feedback in P18.01-P18.09, which are read as one block.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from .codec import decode_value
from .constants import SERVO_STATE_MASK, STATUS_BLOCK_SIZE, STATUS_GROUP, EncoderType
from .schema import ParameterSchema


class ServoState(Enum):
    """Operating state derived from the servo status word."""
    READY = 'ready'
    RUNNING = 'running'
    FAULT = 'fault'
    ALARM = 'alarm'
    UNKNOWN = 'unknown'


_STATE_CODES = {
    0: ServoState.READY,
    1: ServoState.RUNNING,
    2: ServoState.FAULT,
    3: ServoState.ALARM,
}

# (parameter, ServoStatus field)
_STATUS_FIELDS = (
    ('servo_status', 'status_code'),
    ('speed_feedback', 'speed'),
    ('load_rate', 'load_rate'),
    ('speed_command_feedback', 'speed_command'),
    ('internal_torque', 'torque'),
    ('phase_current', 'current'),
    ('bus_voltage', 'bus_voltage'),
    ('absolute_position', 'position'),
    ('electrical_angle', 'electrical_angle'),
)

DEVICE_INFO_FIELDS = ('software_version', 'fpga_version', 'product_code')
MOTOR_FIELDS = ('motor_model', 'rated_current', 'encoder_type', 'encoder_resolution')


def classify_state(status_code: int) -> ServoState:
    """
    Classify a raw P18.00 status word.

    Codes whose low nibble is not 0-3 map to ``ServoState.UNKNOWN``; this is
    never an error.
    """
    return _STATE_CODES.get(status_code & SERVO_STATE_MASK, ServoState.UNKNOWN)


@dataclass(frozen=True)
class ServoStatus:
    """Snapshot of the P18 status block."""
    state: ServoState
    status_code: int
    speed: int
    load_rate: float
    speed_command: int
    torque: float
    current: float
    bus_voltage: float
    position: int
    electrical_angle: float

    @property
    def is_faulted(self) -> bool:
        return self.state in (ServoState.FAULT, ServoState.ALARM)


@dataclass(frozen=True)
class DeviceInfo:
    """Identification and motor data read during initialization."""
    slave_id: int
    software_version: int
    fpga_version: int
    product_code: int
    state: ServoState = ServoState.UNKNOWN
    motor_model: Optional[int] = None
    rated_current: Optional[float] = None
    encoder_type: Optional[EncoderType] = None
    encoder_resolution: Optional[int] = None


def status_block_address(schema: ParameterSchema) -> int:
    return schema.lookup(STATUS_GROUP, 0).address


def decode_status(schema: ParameterSchema, words: Sequence[int]) -> ServoStatus:
    """
    Decode the ten-word block read from P18.00.

    Parameters
    ----------
    schema : ParameterSchema
        Schema holding the P18 descriptors
    words : Sequence[int]
        Registers P18.00-P18.09

    Returns
    -------
    ServoStatus
        Decoded snapshot; the state is recomputed from the status word
    """
    if len(words) != STATUS_BLOCK_SIZE:
        raise ValueError(f"Status block needs {STATUS_BLOCK_SIZE} words, got {len(words)}")

    base = status_block_address(schema)
    values: Dict[str, Any] = {}
    for name, field_name in _STATUS_FIELDS:
        descriptor = schema.lookup_by_name(name)
        offset = descriptor.address - base
        values[field_name] = decode_value(descriptor, words[offset:offset + descriptor.word_count])

    return ServoStatus(state=classify_state(values['status_code']), **values)


def decode_device_block(schema: ParameterSchema, words: Sequence[int]) -> Dict[str, int]:
    """Decode the contiguous P12.12-P12.14 identification block."""
    base = schema.lookup_by_name(DEVICE_INFO_FIELDS[0]).address
    values = {}
    for name in DEVICE_INFO_FIELDS:
        descriptor = schema.lookup_by_name(name)
        offset = descriptor.address - base
        values[name] = decode_value(descriptor, words[offset:offset + descriptor.word_count])
    return values


def motor_mismatches(expected, actual: Dict[str, Any]) -> list:
    """
    Compare expected motor data from a ``ServoConfig`` with values read back.

    Returns one message per mismatch; fields left ``None`` in the config are
    not checked.
    """
    messages = []
    for name, config_field in (
        ('motor_model', 'motor_model_code'),
        ('rated_current', 'rated_current'),
        ('encoder_type', 'encoder_type'),
        ('encoder_resolution', 'encoder_resolution'),
    ):
        wanted = getattr(expected, config_field)
        if wanted is None:
            continue
        found = actual.get(name)
        if name == 'rated_current' and found is not None:
            matches = abs(found - wanted) < 0.005
        else:
            matches = found == wanted
        if not matches:
            messages.append(f"{name} mismatch: expected {wanted}, drive reports {found}")
    return messages
