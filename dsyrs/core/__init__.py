"""Core functionality for DSY-RS servo drives."""

from .driver import ServoCommands, ServoDriver
from .async_driver import AsyncServoDriver
from .schema import SERVO_SCHEMA, ParameterDescriptor, ParameterSchema
from .status import DeviceInfo, ServoState, ServoStatus
from .constants import ControlMode, Direction
from .exceptions import (
    DsyrsError, ValidationError, CommunicationError, BusError, PartialWriteError
)

__all__ = [
    'ServoCommands',
    'ServoDriver',
    'AsyncServoDriver',
    'SERVO_SCHEMA',
    'ParameterDescriptor',
    'ParameterSchema',
    'DeviceInfo',
    'ServoState',
    'ServoStatus',
    'ControlMode',
    'Direction',
    'DsyrsError',
    'ValidationError',
    'CommunicationError',
    'BusError',
    'PartialWriteError',
]
