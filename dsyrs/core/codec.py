"""
Register codec.

Pure translation between parameter values and the 16-bit words stored in
the drive's holding registers. Scaled quantities are computed with
``decimal.Decimal`` so that ``0.01``-step parameters round exactly; 32-bit
values are stored low word first.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from fractions import Fraction
from typing import Sequence, Tuple

from .constants import (
    MAX_GROUP, MAX_INDEX, GROUP_STRIDE,
    Width, ParameterKind
)
from .exceptions import InvalidAddressError, OutOfRangeError

_CODE_PATTERN = re.compile(r'^P(\d{1,2})\.(\d{1,2})$', re.IGNORECASE)
_ONE = Decimal(1)


# ==================== Addresses ====================

def encode_address(group: int, index: int) -> int:
    """
    Compute the Modbus register address of parameter ``P<group>.<index>``.

    Parameters
    ----------
    group : int
        Parameter group (0-24)
    index : int
        Index within the group (0-99)

    Returns
    -------
    int
        ``group * 256 + index``

    Raises
    ------
    InvalidAddressError
        If group or index is outside the addressable space

    Examples
    --------
    >>> hex(encode_address(18, 1))
    '0x1201'
    """
    if (isinstance(group, bool) or isinstance(index, bool)
            or not isinstance(group, int) or not isinstance(index, int)):
        raise InvalidAddressError(group, index)
    if not 0 <= group <= MAX_GROUP or not 0 <= index <= MAX_INDEX:
        raise InvalidAddressError(group, index)
    return group * GROUP_STRIDE + index


def decode_address(address: int) -> Tuple[int, int]:
    """Split a register address back into ``(group, index)``."""
    if address < 0:
        raise InvalidAddressError(address // GROUP_STRIDE, address % GROUP_STRIDE)
    group, index = divmod(address, GROUP_STRIDE)
    encode_address(group, index)
    return group, index


def format_code(group: int, index: int) -> str:
    """Format a parameter code the way the manual prints it, e.g. ``P13.08``."""
    return f"P{group:02d}.{index:02d}"


def parse_code(code: str) -> Tuple[int, int]:
    """
    Parse a manual-style parameter code such as ``"P13.08"``.

    Raises
    ------
    ValueError
        If the text is not a parameter code
    InvalidAddressError
        If the code names an address outside the addressable space
    """
    match = _CODE_PATTERN.match(code.strip())
    if match is None:
        raise ValueError(f"Not a parameter code: {code!r}")
    group, index = int(match.group(1)), int(match.group(2))
    encode_address(group, index)
    return group, index


def is_parameter_code(text: str) -> bool:
    return _CODE_PATTERN.match(text.strip()) is not None


# ==================== Words ====================

def split_words(raw: int, width: int = Width.WORD) -> Tuple[int, ...]:
    """
    Split a raw integer into register words, low word first.

    Negative values are stored as two's complement of the register width.
    """
    if width == Width.DWORD:
        value = raw & 0xFFFFFFFF
        return (value & 0xFFFF, (value >> 16) & 0xFFFF)
    return (raw & 0xFFFF,)


def join_words(words: Sequence[int], signed: bool = False) -> int:
    """Reassemble register words (low word first) into a raw integer."""
    for word in words:
        if not 0 <= word <= 0xFFFF:
            raise ValueError(f"Register word out of range: {word}")

    if len(words) == 2:
        raw = (words[1] << 16) | words[0]
        bits = 32
    elif len(words) == 1:
        raw = words[0]
        bits = 16
    else:
        raise ValueError(f"Expected 1 or 2 register words, got {len(words)}")

    if signed and raw & (1 << (bits - 1)):
        raw -= 1 << bits
    return raw


# ==================== Scaling ====================

def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bool, int)):
        return Decimal(int(value))
    if isinstance(value, float):
        # Shortest repr, so 0.1 stays 0.1
        return Decimal(repr(value))
    if isinstance(value, Fraction):
        return Decimal(value.numerator) / Decimal(value.denominator)
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}") from None
    raise TypeError(f"Expected a number, got {type(value).__name__}")


def scale_raw(raw: int, scale: Decimal):
    """Convert a raw register value to engineering units."""
    if scale == _ONE:
        return raw
    return float(Decimal(raw) * scale)


def to_raw(descriptor, value) -> int:
    """
    Convert a logical value to the raw integer stored by the drive.

    No range check is applied here; see :func:`encode_value`.
    """
    if descriptor.kind == ParameterKind.ENUMERATED:
        return descriptor.code_for(value)

    if descriptor.kind == ParameterKind.BITFIELD or descriptor.scale == _ONE:
        if isinstance(value, int):
            return int(value)

    quantity = _as_decimal(value)
    try:
        if not quantity.is_finite():
            raise InvalidOperation
        raw = (quantity / descriptor.scale).quantize(_ONE, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise OutOfRangeError(
            descriptor.name, value,
            descriptor.logical_minimum, descriptor.logical_maximum
        )
    return int(raw)


def from_raw(descriptor, raw: int):
    """Convert a raw integer read from the drive to its logical value."""
    if descriptor.kind == ParameterKind.ENUMERATED:
        return descriptor.variant_for(raw)
    if descriptor.kind == ParameterKind.BITFIELD:
        return raw
    return scale_raw(raw, descriptor.scale)


# ==================== Values ====================

def encode_value(descriptor, value) -> Tuple[int, ...]:
    """
    Encode a logical value into register words.

    Parameters
    ----------
    descriptor : ParameterDescriptor
        Parameter to encode for
    value : int, float, Decimal, str or IntEnum
        Value in engineering units, or a variant for enumerated parameters

    Returns
    -------
    Tuple[int, ...]
        One word for 16-bit parameters, ``(low, high)`` for 32-bit ones

    Raises
    ------
    OutOfRangeError
        If the raw value falls outside the parameter's valid range
    UnknownVariantError
        If an enumerated parameter has no such variant
    """
    raw = to_raw(descriptor, value)

    if descriptor.kind != ParameterKind.ENUMERATED:
        if not descriptor.minimum <= raw <= descriptor.maximum:
            raise OutOfRangeError(
                descriptor.name, value,
                descriptor.logical_minimum, descriptor.logical_maximum
            )

    return split_words(raw, descriptor.width)


def decode_value(descriptor, words: Sequence[int]):
    """
    Decode register words into a logical value.

    Parameters
    ----------
    descriptor : ParameterDescriptor
        Parameter to decode for
    words : Sequence[int]
        Exactly ``descriptor.word_count`` words, low word first

    Returns
    -------
    int, float or IntEnum
        ``int`` for unscaled parameters, ``float`` for scaled ones and the
        enumeration member for enumerated ones

    Raises
    ------
    UnknownVariantError
        If an enumerated parameter reports an undocumented code
    ValueError
        If the word count does not match the parameter width
    """
    if len(words) != descriptor.word_count:
        raise ValueError(
            f"Parameter '{descriptor.name}' needs {descriptor.word_count} "
            f"word(s), got {len(words)}"
        )
    raw = join_words(words, descriptor.signed)
    return from_raw(descriptor, raw)
