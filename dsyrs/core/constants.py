"""
Constants and enumerations for DSY-RS servo drives.

This module contains the enumerated parameter values documented in the
drive manual, the register layout constants used by the schema, and the
communication defaults used throughout the library.
"""

from enum import IntEnum
from typing import Dict, Tuple


# ==================== P00 Basic control ====================

class ControlMode(IntEnum):
    """Control mode selection (P00.00)."""
    POSITION = 0
    SPEED = 1
    TORQUE = 2


class Direction(IntEnum):
    """Motor rotation direction (P00.01)."""
    CCW_FORWARD = 0
    CW_FORWARD = 1


class AbsoluteSystem(IntEnum):
    """Absolute value system selection (P00.06)."""
    INCREMENTAL = 0
    ABSOLUTE_LINEAR = 1
    ABSOLUTE_ROTATION = 2


class ServoOffStopMode(IntEnum):
    """Servo OFF stop mode (P00.10)."""
    FREEWHEEL = 0
    ZERO_SPEED = 1


class OvertravelStopMode(IntEnum):
    """Overtravel stop mode (P00.13)."""
    FREEWHEEL = 0
    DECEL_THEN_LOCK = 1
    DECEL_THEN_FREEWHEEL = 2


class EnergyResistor(IntEnum):
    """Energy consumption resistor setting (P00.18)."""
    BUILT_IN = 0
    EXTERNAL_NATURAL = 1
    EXTERNAL_FORCED = 2
    NONE = 3


# ==================== P01 Motor ====================

class EncoderType(IntEnum):
    """Encoder selection (P01.18)."""
    LINE_2500 = 0
    BIT17_INCREMENTAL = 1
    BIT17_ABSOLUTE = 2
    BIT23_INCREMENTAL = 3
    BIT23_ABSOLUTE = 4


# ==================== P02 Digital I/O ====================

class DiFunction(IntEnum):
    """Digital input function selection (P02.01-P02.03), FunIN.1-41."""
    NONE = 0
    SERVO_ENABLE = 1
    ALARM_RESET = 2
    PROPORTIONAL_ACTION_SWITCH = 3
    MAIN_AUX_COMMAND_SWITCH = 4
    PULSE_DEVIATION_CLEAR = 5
    MULTI_SEG_CMD1 = 6
    MULTI_SEG_CMD2 = 7
    MULTI_SEG_CMD3 = 8
    MULTI_SEG_CMD4 = 9
    P_MODE_SWITCH = 10
    ZERO_FIXED_ENABLE = 11
    PULSE_PROHIBITION = 12
    FORWARD_OVERTRAVEL = 13
    BACKWARD_OVERTRAVEL = 14
    FORWARD_EXT_TORQUE_LIMIT = 15
    BACKWARD_EXT_TORQUE_LIMIT = 16
    FORWARD_JOG = 17
    BACKWARD_JOG = 18
    POSITION_STEP_INPUT = 19
    HANDWHEEL_MAGNIFICATION1 = 20
    HANDWHEEL_MAGNIFICATION2 = 21
    HANDWHEEL_ENABLE = 22
    ELECTRONIC_GEAR_SELECT = 23
    POSITION_COMMAND_REVERSE = 24
    SPEED_COMMAND_REVERSE = 25
    TORQUE_COMMAND_REVERSE = 26
    HANDWHEEL_A = 27
    HANDWHEEL_B = 28
    MULTI_SEG_POSITION_ENABLE = 29
    FIXED_LENGTH_DONE_CONFIRM = 30
    FIXED_LENGTH_PROHIBITION = 31
    HOME_SWITCH = 32
    HOMING_START = 33
    EMERGENCY_STOP = 34
    POSITION_CONSTANT_SPEED = 35
    FIXED_LENGTH_RESET = 36
    FIXED_LENGTH_PAUSE = 37
    MULTI_SEG_TORQUE_CMD1 = 38
    MULTI_STEP_TORQUE_CMD1 = 39
    SPEED_A1_DIRECTION1 = 40
    SPEED_A1_DIRECTION2 = 41


class DiLogic(IntEnum):
    """Digital input logic selection (P02.11-P02.13)."""
    LOW_ACTIVE = 0
    HIGH_ACTIVE = 1
    RISING_EDGE = 2
    FALLING_EDGE = 3
    BOTH_EDGES = 4


class DoFunction(IntEnum):
    """Digital output function selection (P02.21-P02.22), FunOUT.1-24."""
    NONE = 0
    SERVO_READY = 1
    FAULT = 2
    WARNING = 3
    MOTOR_ROTATING = 4
    ZERO_SPEED = 5
    SPEED_CONSISTENT = 6
    POSITION_COMPLETED = 7
    POSITIONING_APPROACH = 8
    TORQUE_LIMIT = 9
    SPEED_LIMIT = 10
    BRAKE_RELEASE = 11
    TORQUE_REACHED = 12
    SPEED_REACHED = 13
    ANGLE_RECOGNITION_DONE = 14
    ALARM_CODE1 = 15
    ALARM_CODE2 = 16
    ALARM_CODE3 = 17
    FIXED_LENGTH_DONE = 18
    HOMING_DONE = 19
    RESERVED_20 = 20
    MULTI_SEG_DONE1 = 21
    MULTI_SEG_DONE2 = 22
    MULTI_SEG_DONE3 = 23
    MULTI_SEG_DONE4 = 24


class DoLogic(IntEnum):
    """Digital output logic (P02.31-P02.32)."""
    NORMALLY_OPEN = 0
    NORMALLY_CLOSED = 1


# ==================== P04 Position control ====================

class PositionCommandSource(IntEnum):
    """Position command source (P04.00). Code 3 is not assigned."""
    LOW_SPEED_PULSE = 0
    HIGH_SPEED_PULSE = 1
    STEP_AMOUNT = 2
    MULTI_SEGMENT = 4
    COMMUNICATION = 5


class PulseShape(IntEnum):
    """Pulse input shape (P04.21)."""
    PULSE_DIR_POSITIVE = 0
    DIR_PULSE_NEGATIVE = 1
    QUADRATURE_POSITIVE = 2
    QUADRATURE_NEGATIVE = 3
    CCW_CW_POSITIVE = 4
    CCW_CW_NEGATIVE = 5


class DeviationClearMode(IntEnum):
    """Position deviation clear mode (P04.22)."""
    ON_FAULT_OR_OFF = 0
    ON_FAULT = 1
    BY_DI = 2


# ==================== P10 Communication ====================

class BaudRate(IntEnum):
    """Modbus / RS232 baud rate code (P10.02, P10.05)."""
    BAUD_2400 = 0
    BAUD_4800 = 1
    BAUD_9600 = 2
    BAUD_19200 = 3
    BAUD_38400 = 4
    BAUD_57600 = 5
    BAUD_115200 = 6

    @property
    def bps(self) -> int:
        """Line speed in bits per second."""
        return BAUD_RATES[self]

    @classmethod
    def from_bps(cls, bps: int) -> 'BaudRate':
        """Return the code for a line speed in bits per second."""
        for code, rate in BAUD_RATES.items():
            if rate == bps:
                return code
        raise ValueError(f"Unsupported baud rate: {bps}")


class DataFormat(IntEnum):
    """Modbus data format (P10.03)."""
    NO_PARITY_2_STOP = 0
    EVEN_PARITY_1_STOP = 1
    ODD_PARITY_1_STOP = 2
    NO_PARITY_1_STOP = 3

    @property
    def parity(self) -> str:
        """pyserial parity letter."""
        return DATA_FORMATS[self][0]

    @property
    def stopbits(self) -> int:
        return DATA_FORMATS[self][1]

    @classmethod
    def from_line(cls, parity: str, stopbits: int) -> 'DataFormat':
        """Return the code for a pyserial parity letter and stop bit count."""
        for code, line in DATA_FORMATS.items():
            if line == (parity, stopbits):
                return code
        raise ValueError(f"Unsupported data format: parity {parity}, {stopbits} stop bits")


class AddressSource(IntEnum):
    """RS485 address source (P10.06)."""
    DIP_SWITCH = 0
    HOST_SETTING = 1


# ==================== P11 Auxiliary ====================

class EncoderReset(IntEnum):
    """Absolute encoder reset command (P11.06)."""
    NONE = 0
    CLEAR_WARNINGS = 1
    RESET_MULTI_TURN = 2


class SystemInit(IntEnum):
    """System initialization command (P11.09)."""
    NONE = 0
    FACTORY_RESET = 1
    CLEAR_FAULT_RECORD = 2


# ==================== P13 / P14 Multi-segment ====================

class MultiSegmentMode(IntEnum):
    """Multi-segment operation mode (P13.00, P14.00)."""
    SINGLE = 0
    CYCLE = 1
    DI_SWITCH = 2


class MultiSegmentPositionMode(IntEnum):
    """Multi-segment position mode (P13.05)."""
    INCREMENTAL = 0
    ABSOLUTE = 1


class WaitTimeUnit(IntEnum):
    """Wait time unit (P13.04)."""
    MILLISECONDS = 0
    SECONDS = 1


class SpeedTimeUnit(IntEnum):
    """Run time unit of the multi-speed table (P14.02)."""
    SECONDS = 0
    MINUTES = 1


# ==================== P16 Homing ====================

class HomingEnableMode(IntEnum):
    """Homing enable control (P16.08)."""
    DISABLED = 0
    DI_TRIGGER = 1
    ON_POWER_UP = 2
    IMMEDIATE = 3
    CURRENT_POSITION = 4
    DI_SET_HOME = 5
    HOST = 6


class HomingMode(IntEnum):
    """Homing mode (P16.09). Modes 11-17 are described in the manual."""
    FORWARD_LIMIT_Z = 0
    REVERSE_LIMIT_Z = 1
    FORWARD_HOME_Z = 2
    REVERSE_HOME_Z = 3
    FORWARD_LIMIT = 4
    REVERSE_LIMIT = 5
    FORWARD_HOME = 6
    REVERSE_HOME = 7
    FORWARD_Z = 8
    REVERSE_Z = 9
    CURRENT_POSITION = 10
    MODE_11 = 11
    MODE_12 = 12
    MODE_13 = 13
    MODE_14 = 14
    MODE_15 = 15
    MODE_16 = 16
    MODE_17 = 17


# ==================== Lookup tables ====================

BAUD_RATES: Dict[BaudRate, int] = {
    BaudRate.BAUD_2400: 2400,
    BaudRate.BAUD_4800: 4800,
    BaudRate.BAUD_9600: 9600,
    BaudRate.BAUD_19200: 19200,
    BaudRate.BAUD_38400: 38400,
    BaudRate.BAUD_57600: 57600,
    BaudRate.BAUD_115200: 115200,
}

# (parity, stop bits)
DATA_FORMATS: Dict[DataFormat, Tuple[str, int]] = {
    DataFormat.NO_PARITY_2_STOP: ('N', 2),
    DataFormat.EVEN_PARITY_1_STOP: ('E', 1),
    DataFormat.ODD_PARITY_1_STOP: ('O', 1),
    DataFormat.NO_PARITY_1_STOP: ('N', 1),
}

# Low nibble of P18.00
SERVO_STATE_MASK = 0x0F

# ==================== Register layout ====================

MAX_GROUP = 24
MAX_INDEX = 99
GROUP_STRIDE = 256

# P13 multi-segment position table: five registers per segment
SEGMENT_COUNT = 16
SEGMENT_GROUP = 13
SEGMENT_BASE_INDEX = 8
SEGMENT_STRIDE = 5

# P14 multi-speed table: three registers per segment
SPEED_SEGMENT_COUNT = 16
SPEED_SEGMENT_GROUP = 14
SPEED_SEGMENT_BASE_INDEX = 7
SPEED_SEGMENT_STRIDE = 3

# P18.00-P18.09 read as one block
STATUS_GROUP = 18
STATUS_BLOCK_SIZE = 10

DIGITAL_INPUT_COUNT = 3
DIGITAL_OUTPUT_COUNT = 2

# ==================== Communication ====================

BROADCAST_ID = 0
MAX_SLAVE_ID = 247

DEFAULT_BAUDRATE = 115200
DEFAULT_BYTESIZE = 8
DEFAULT_PARITY = 'N'
DEFAULT_STOPBITS = 1
DEFAULT_TIMEOUT = 1.0
MAX_RETRIES = 3
RETRY_DELAY = 0.1

# Silent interval after a broadcast frame before the next request
BROADCAST_TURNAROUND = 0.1

# ==================== Parameter descriptors ====================

class Width(IntEnum):
    """Register width of a parameter in bits."""
    WORD = 16
    DWORD = 32


class ParameterKind(IntEnum):
    """How a parameter's raw value is interpreted."""
    NUMERIC = 0
    ENUMERATED = 1
    BITFIELD = 2


class Access(IntEnum):
    """Parameter access rights."""
    READ_WRITE = 0
    READ_ONLY = 1
