"""
Configuration structures for composite drive operations.

These dataclasses carry the values of one multi-register operation
(a segment entry, a homing setup, communication settings, ...). They hold
values in engineering units; validation happens when a write plan is built.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import (
    ControlMode, Direction, EncoderType,
    BaudRate, DataFormat, AddressSource,
    HomingMode, HomingEnableMode,
    MultiSegmentMode, MultiSegmentPositionMode, WaitTimeUnit, SpeedTimeUnit,
)


@dataclass
class ServoConfig:
    """
    Per-drive configuration applied by ``init``.

    The optional motor fields are the values expected in group P01; when set,
    ``init`` reads the drive's motor parameters back and logs a warning for
    every mismatch.
    """
    slave_id: int = 1
    control_mode: ControlMode = ControlMode.POSITION
    direction: Direction = Direction.CCW_FORWARD
    max_speed: int = 4500
    motor_model_code: Optional[int] = None
    rated_current: Optional[float] = None
    encoder_type: Optional[EncoderType] = None
    encoder_resolution: Optional[int] = None


@dataclass
class SegmentConfig:
    """One entry of the multi-segment position table (P13)."""
    segment: int
    displacement: int = 0
    speed: int = 200
    accel_decel_time: int = 50
    wait_time: int = 0


@dataclass
class MultiSegmentConfig:
    """Global multi-segment position settings (P13.00-P13.05)."""
    mode: MultiSegmentMode = MultiSegmentMode.SINGLE
    start_segment: int = 1
    end_segment: int = 1
    interrupt_resume: bool = False
    wait_time_unit: WaitTimeUnit = WaitTimeUnit.MILLISECONDS
    position_mode: MultiSegmentPositionMode = MultiSegmentPositionMode.INCREMENTAL


@dataclass
class MultiSpeedConfig:
    """Global multi-speed settings (P14.00-P14.06)."""
    mode: MultiSegmentMode = MultiSegmentMode.SINGLE
    end_segment: int = 1
    time_unit: SpeedTimeUnit = SpeedTimeUnit.SECONDS
    accel_times: Tuple[int, int, int, int] = (100, 100, 100, 100)


@dataclass
class SpeedSegmentConfig:
    """One entry of the multi-speed table (P14)."""
    segment: int
    speed: int = 0
    run_time: int = 0
    accel_select: int = 0


@dataclass
class HomingConfig:
    """
    Homing setup (P16.08-P16.14).

    ``enable_mode`` is written last because some modes start homing as soon
    as they are set; leave it ``None`` to keep the drive's current setting.
    """
    mode: HomingMode = HomingMode.FORWARD_LIMIT_Z
    high_speed: int = 100
    low_speed: int = 10
    accel_limit: int = 1000
    timeout: int = 10000
    offset: int = 0
    enable_mode: Optional[HomingEnableMode] = None


@dataclass
class CommConfig:
    """RS485 communication settings (P10)."""
    address: int = 1
    baud_rate: BaudRate = BaudRate.BAUD_115200
    data_format: DataFormat = DataFormat.NO_PARITY_1_STOP
    address_source: AddressSource = AddressSource.DIP_SWITCH
    rs232_baud_rate: Optional[BaudRate] = None


@dataclass
class JogConfig:
    """Jog speed and ramp (P05.04-P05.06)."""
    speed: int = 200
    accel_time: int = 50
    decel_time: int = 50


@dataclass
class GainParams:
    """First gain set (P07.00-P07.03) in engineering units."""
    position_gain: float = 32.0
    speed_gain: float = 18.0
    speed_integral: float = 31.0
    speed_filter: float = 0.2
