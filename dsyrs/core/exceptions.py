"""
Exception classes for the DSY-RS driver.

This module defines all custom exceptions used in the library. Validation
errors are raised before any bus traffic; communication errors come from
the transport; bus errors from misuse of slave contexts.
"""


class DsyrsError(Exception):
    """Base exception for all DSY-RS driver errors."""
    pass


# ==================== Validation ====================

class ValidationError(DsyrsError):
    """Raised when a value or address is rejected before any traffic."""
    pass


class InvalidAddressError(ValidationError):
    """Raised when a group/index pair lies outside the addressable space."""

    def __init__(self, group, index):
        self.group = group
        self.index = index
        super().__init__(
            f"Invalid register address P{group}.{index} "
            f"(group must be 0-24, index 0-99)"
        )


class UnknownParameterError(ValidationError):
    """Raised when an address or symbol is not documented in the schema."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"Unknown parameter: {key}")


class OutOfRangeError(ValidationError):
    """Raised when a parameter value is outside its valid range."""

    def __init__(self, param_name, value, min_val=None, max_val=None):
        self.param_name = param_name
        self.value = value
        self.min_val = min_val
        self.max_val = max_val

        if min_val is not None and max_val is not None:
            message = f"Parameter '{param_name}' value {value} out of range [{min_val}, {max_val}]"
        else:
            message = f"Parameter '{param_name}' value {value} out of range"

        super().__init__(message)


class InvalidSegmentError(OutOfRangeError):
    """Raised when a multi-segment table entry number is invalid."""

    def __init__(self, segment, count=16):
        super().__init__('segment', segment, 1, count)
        self.segment = segment


class UnknownVariantError(ValidationError):
    """Raised when an enumerated value or code is not documented."""

    def __init__(self, param_name, value):
        self.param_name = param_name
        self.value = value
        super().__init__(f"Parameter '{param_name}' has no variant {value!r}")


class ReadOnlyParameterError(ValidationError):
    """Raised when trying to write to a read-only parameter."""

    def __init__(self, param_name):
        self.param_name = param_name
        super().__init__(f"Parameter '{param_name}' is read-only")


class SchemaError(DsyrsError):
    """Raised when a parameter table is malformed."""
    pass


# ==================== Communication ====================

class CommunicationError(DsyrsError):
    """Raised when communication with the servo fails."""

    def __init__(self, message="Communication error occurred", error_code=None):
        self.error_code = error_code
        if error_code:
            message = f"{message} (Error code: 0x{error_code:02X})"
        super().__init__(message)


class TransportTimeoutError(CommunicationError):
    """Raised when no complete reply arrives within the timeout."""
    pass


class TransportError(CommunicationError):
    """Raised for framing, CRC and port failures."""
    pass


class PortOpenError(TransportError):
    """Raised when the serial port cannot be opened."""
    pass


class ModbusExceptionError(TransportError):
    """Raised when the slave answers with a Modbus exception response."""

    EXCEPTION_CODES = {
        0x01: "Illegal function",
        0x02: "Illegal data address",
        0x03: "Illegal data value",
        0x04: "Slave device failure",
        0x05: "Acknowledge",
        0x06: "Slave device busy",
        0x08: "Memory parity error",
        0x0A: "Gateway path unavailable",
        0x0B: "Gateway target device failed to respond"
    }

    def __init__(self, exception_code):
        self.exception_code = exception_code
        message = self.EXCEPTION_CODES.get(
            exception_code,
            f"Unknown Modbus exception (0x{exception_code:02X})"
        )
        super().__init__(f"Modbus exception: {message}", exception_code)


class DeviceUnreachableError(CommunicationError):
    """Raised when a device does not answer during initialization."""

    def __init__(self, slave_id, cause=None):
        self.slave_id = slave_id
        message = f"Servo at slave {slave_id} is unreachable"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


# ==================== Bus ====================

class BusError(DsyrsError):
    """Raised for misuse of the bus manager or its slave contexts."""
    pass


class DuplicateSlaveError(BusError):
    """Raised when a slave id already has an active context on the bus."""

    def __init__(self, slave_id):
        self.slave_id = slave_id
        super().__init__(f"Slave {slave_id} is already registered on this bus")


class InvalidSlaveIdError(BusError):
    """Raised when a slave id is outside 0-247."""

    def __init__(self, slave_id):
        self.slave_id = slave_id
        super().__init__(f"Invalid slave id: {slave_id!r} (must be 0-247)")


class ContextReleasedError(BusError):
    """Raised when a released or foreign slave context is used."""

    def __init__(self, slave_id):
        self.slave_id = slave_id
        super().__init__(f"Context for slave {slave_id} is not registered on this bus")


class BroadcastReadError(BusError):
    """Raised when a read is attempted through the broadcast context."""

    def __init__(self):
        super().__init__("Broadcast address 0 is write-only")


# ==================== Composite operations ====================

class PartialWriteError(DsyrsError):
    """
    Raised when a composite write fails after some registers were written.

    Attributes
    ----------
    label : str
        Name of the composite operation
    failed : RegisterWrite
        Sub-write that failed
    committed : tuple
        Sub-writes acknowledged by the device before the failure
    """

    def __init__(self, label, failed, committed, cause=None):
        self.label = label
        self.failed = failed
        self.committed = tuple(committed)
        self.cause = cause

        done = ', '.join(write.code for write in self.committed) or 'none'
        message = (
            f"{label} failed at {failed.code} ({failed.name}); "
            f"committed before failure: {done}"
        )
        if cause is not None:
            message += f" ({cause})"
        super().__init__(message)
