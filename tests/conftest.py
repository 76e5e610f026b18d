"""Shared fixtures: in-memory transports standing in for a real RS-485 line."""

import asyncio

import pytest

from dsyrs.core.codec import encode_value
from dsyrs.core.schema import SERVO_SCHEMA
from dsyrs.protocols.bus import AsyncBusManager, BusManager
from dsyrs.protocols.transport import AsyncTransport, BlockingTransport


class _RegisterMemory:
    """Register images of several slaves plus a queue of injected failures."""

    def __init__(self):
        self.registers = {}
        self.calls = []
        self._failures = []
        self.closed = False

    def load(self, slave_id, name, value, schema=SERVO_SCHEMA):
        """Store a parameter value as the drive would hold it."""
        descriptor = schema.lookup_by_name(name)
        for offset, word in enumerate(encode_value(descriptor, value)):
            self.registers[(slave_id, descriptor.address + offset)] = word

    def words(self, slave_id, address, count):
        return [self.registers.get((slave_id, address + i), 0) for i in range(count)]

    def fail_next(self, error, applied=False):
        """
        Make the next transaction raise ``error``.

        With ``applied=True`` a write still reaches the registers before the
        error is raised, like a lost acknowledgement.
        """
        self._failures.append((error, applied))

    def writes(self, slave_id=None):
        return [call for call in self.calls
                if call[0] == 'write' and (slave_id is None or call[1] == slave_id)]

    def reads(self, slave_id=None):
        return [call for call in self.calls
                if call[0] == 'read' and (slave_id is None or call[1] == slave_id)]

    def _read(self, slave_id, address, count, timeout):
        self.calls.append(('read', slave_id, address, count, timeout))
        if self._failures:
            error, _ = self._failures.pop(0)
            raise error
        return self.words(slave_id, address, count)

    def _write(self, slave_id, address, words, timeout):
        words = list(words)
        self.calls.append(('write', slave_id, address, words, timeout))
        if self._failures:
            error, applied = self._failures.pop(0)
            if applied:
                self._store(slave_id, address, words)
            raise error
        self._store(slave_id, address, words)

    def _store(self, slave_id, address, words):
        for offset, word in enumerate(words):
            self.registers[(slave_id, address + offset)] = word


class FakeTransport(_RegisterMemory, BlockingTransport):
    """Blocking transport backed by a dict of registers."""

    def read_registers(self, slave_id, address, count, timeout):
        return self._read(slave_id, address, count, timeout)

    def write_registers(self, slave_id, address, words, timeout):
        self._write(slave_id, address, words, timeout)

    def close(self):
        self.closed = True


class FakeAsyncTransport(_RegisterMemory, AsyncTransport):
    """
    asyncio transport backed by a dict of registers.

    Each transaction yields to the event loop for ``delay`` seconds and
    records how many transactions were in flight at once.
    """

    def __init__(self, delay=0.0):
        super().__init__()
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.completed = 0

    async def _enter(self):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(self.delay)

    async def read_registers(self, slave_id, address, count, timeout):
        await self._enter()
        try:
            return self._read(slave_id, address, count, timeout)
        finally:
            self.in_flight -= 1
            self.completed += 1

    async def write_registers(self, slave_id, address, words, timeout):
        await self._enter()
        try:
            self._write(slave_id, address, words, timeout)
        finally:
            self.in_flight -= 1
            self.completed += 1

    async def close(self):
        self.closed = True


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def bus(transport):
    return BusManager(transport, timeout=0.5, name='test-bus')


@pytest.fixture
def async_transport():
    return FakeAsyncTransport()


@pytest.fixture
def async_bus(async_transport):
    return AsyncBusManager(async_transport, timeout=0.5, name='test-bus')


@pytest.fixture
def no_sleep(mocker):
    """Skip retry delays in the blocking driver."""
    return mocker.patch('dsyrs.core.driver.time.sleep')


@pytest.fixture
def slow_async_transport():
    """Factory for asyncio transports whose transactions take ``delay`` seconds."""
    return FakeAsyncTransport
