"""
Bus manager.

One physical RS-485 port carries the traffic of every drive on it, and only
one request/reply exchange may be on the wire at a time. The managers here
hand out a slave context per device and pass every transaction through a
single first-come, first-served gate for the port.
"""

import asyncio
import itertools
import logging
import threading
from typing import Dict, List, Optional, Sequence, Set

from ..core.constants import BROADCAST_ID, MAX_SLAVE_ID, DEFAULT_TIMEOUT
from ..core.exceptions import (
    BroadcastReadError, ContextReleasedError, DuplicateSlaveError,
    InvalidSlaveIdError, TransportError
)
from .transport import AsyncTransport, BlockingTransport

logger = logging.getLogger(__name__)


class _FifoGate:
    """
    Admit one holder at a time, in arrival order.

    Waiters take a ticket; a waiter interrupted before its turn gives the
    ticket up so later waiters are not blocked behind it.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        self._abandoned: Set[int] = set()

    def acquire(self):
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            try:
                while ticket != self._serving:
                    self._cond.wait()
            except BaseException:
                if ticket == self._serving:
                    self._advance()
                else:
                    self._abandoned.add(ticket)
                raise

    def release(self):
        with self._cond:
            self._advance()

    def _advance(self):
        self._serving += 1
        while self._serving in self._abandoned:
            self._abandoned.discard(self._serving)
            self._serving += 1
        self._cond.notify_all()

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


def _validate_words(words: Sequence[int]) -> List[int]:
    words = list(words)
    if not words:
        raise ValueError("Nothing to write")
    for word in words:
        if isinstance(word, bool) or not isinstance(word, int) or not 0 <= word <= 0xFFFF:
            raise ValueError(f"Register word out of range: {word!r}")
    return words


def _validate_count(count: int):
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValueError(f"Register count must be a positive integer, got {count!r}")


class _SlaveRegistry:
    """Slave id bookkeeping shared by the blocking and asyncio managers."""

    context_class = None

    def __init__(self, timeout: float, name: Optional[str]):
        self.timeout = timeout
        self.name = name or f"bus-{id(self):x}"
        self._contexts: Dict[int, object] = {}
        self._registry_lock = threading.Lock()
        self._sequence = itertools.count(1)

    def register_slave(self, slave_id: int):
        """
        Create the context through which one device uses this bus.

        Parameters
        ----------
        slave_id : int
            Modbus slave id, 1-247, or 0 for write-only broadcast

        Raises
        ------
        InvalidSlaveIdError
            If the id is not an integer in 0-247
        DuplicateSlaveError
            If the id already has an active context on this bus
        """
        if isinstance(slave_id, bool) or not isinstance(slave_id, int):
            raise InvalidSlaveIdError(slave_id)
        if not BROADCAST_ID <= slave_id <= MAX_SLAVE_ID:
            raise InvalidSlaveIdError(slave_id)

        with self._registry_lock:
            if slave_id in self._contexts:
                raise DuplicateSlaveError(slave_id)
            context = self.context_class(self, slave_id)
            self._contexts[slave_id] = context

        logger.info(f"[{self.name}] registered slave {slave_id}")
        return context

    def release_slave(self, context) -> None:
        """
        Give up a context; the slave id may then be registered again.

        Raises
        ------
        ContextReleasedError
            If the context was already released or belongs to another bus
        """
        with self._registry_lock:
            if self._contexts.get(context.slave_id) is not context:
                raise ContextReleasedError(context.slave_id)
            del self._contexts[context.slave_id]
            context._released = True

        logger.info(f"[{self.name}] released slave {context.slave_id}")

    @property
    def active_slaves(self) -> List[int]:
        with self._registry_lock:
            return sorted(self._contexts)

    def _check(self, context):
        if self._contexts.get(context.slave_id) is not context:
            raise ContextReleasedError(context.slave_id)

    def _release_all(self):
        with self._registry_lock:
            for context in self._contexts.values():
                context._released = True
            self._contexts.clear()

    def _tag(self, sequence: int, context) -> str:
        return f"[{self.name} #{sequence} slave {context.slave_id}]"

    @staticmethod
    def _check_reply(words: List[int], count: int) -> List[int]:
        if len(words) != count:
            raise TransportError(f"Expected {count} registers, transport returned {len(words)}")
        return list(words)


class _ContextBase:

    def __init__(self, bus, slave_id: int):
        self._bus = bus
        self._slave_id = slave_id
        self._released = False

    @property
    def slave_id(self) -> int:
        return self._slave_id

    @property
    def bus(self):
        return self._bus

    @property
    def is_broadcast(self) -> bool:
        return self._slave_id == BROADCAST_ID

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        self._bus.release_slave(self)

    def __repr__(self) -> str:
        state = "released" if self._released else "active"
        return f"{type(self).__name__}(slave_id={self._slave_id}, bus='{self._bus.name}', {state})"


# ==================== Blocking ====================

class SlaveContext(_ContextBase):
    """
    Handle through which one device talks on a shared bus (threads).

    A context must not be shared between independent call sites; create one
    per logical device.
    """

    def read(self, address: int, count: int, timeout: Optional[float] = None) -> List[int]:
        return self._bus.read(self, address, count, timeout)

    def write(self, address: int, words: Sequence[int], timeout: Optional[float] = None) -> None:
        self._bus.write(self, address, words, timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._released:
            self.release()


class BusManager(_SlaveRegistry):
    """
    Share one blocking transport between several slaves.

    Transactions from all contexts are executed one at a time in the order
    callers arrive at the gate.

    Parameters
    ----------
    transport : BlockingTransport
        Transport for the physical port
    timeout : float
        Default per-transaction timeout in seconds
    name : str, optional
        Label used in log messages

    Examples
    --------
    >>> bus = BusManager(transport)
    >>> servo = bus.register_slave(1)
    >>> servo.read(0x1200, 10)
    """

    context_class = SlaveContext

    def __init__(self, transport: BlockingTransport, timeout: float = DEFAULT_TIMEOUT, name: Optional[str] = None):
        super().__init__(timeout, name)
        self.transport = transport
        self._gate = _FifoGate()

    def read(self, context: SlaveContext, address: int, count: int, timeout: Optional[float] = None) -> List[int]:
        """
        Read registers on behalf of a context.

        Raises
        ------
        ContextReleasedError
            If the context is not active on this bus
        BroadcastReadError
            If the context is the broadcast context
        """
        self._check(context)
        if context.is_broadcast:
            raise BroadcastReadError()
        _validate_count(count)
        timeout = self.timeout if timeout is None else timeout

        with self._gate:
            sequence = next(self._sequence)
            tag = self._tag(sequence, context)
            logger.debug(f"{tag} read 0x{address:04X} x{count}")
            try:
                words = self.transport.read_registers(context.slave_id, address, count, timeout)
                return self._check_reply(words, count)
            except Exception as e:
                logger.warning(f"{tag} read 0x{address:04X} failed: {e}")
                raise

    def write(self, context: SlaveContext, address: int, words: Sequence[int], timeout: Optional[float] = None) -> None:
        """Write registers on behalf of a context."""
        self._check(context)
        words = _validate_words(words)
        timeout = self.timeout if timeout is None else timeout

        with self._gate:
            sequence = next(self._sequence)
            tag = self._tag(sequence, context)
            logger.debug(f"{tag} write 0x{address:04X} {words}")
            try:
                self.transport.write_registers(context.slave_id, address, words, timeout)
            except Exception as e:
                logger.warning(f"{tag} write 0x{address:04X} failed: {e}")
                raise

    def close(self) -> None:
        """Release every context and close the transport."""
        with self._gate:
            self._release_all()
            self.transport.close()
        logger.info(f"[{self.name}] closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"BusManager(name='{self.name}', slaves={self.active_slaves})"


# ==================== asyncio ====================

class AsyncSlaveContext(_ContextBase):
    """Handle through which one device talks on a shared bus (asyncio)."""

    async def read(self, address: int, count: int, timeout: Optional[float] = None) -> List[int]:
        return await self._bus.read(self, address, count, timeout)

    async def write(self, address: int, words: Sequence[int], timeout: Optional[float] = None) -> None:
        await self._bus.write(self, address, words, timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if not self._released:
            self.release()


class AsyncBusManager(_SlaveRegistry):
    """
    Share one asyncio transport between several slaves.

    A caller cancelled while waiting for the port simply leaves the queue.
    Once a transaction has been handed to the transport it runs to
    completion even if its caller is cancelled, and the port is released
    only when it finishes.

    Parameters
    ----------
    transport : AsyncTransport
        Transport for the physical port
    timeout : float
        Default per-transaction timeout in seconds
    name : str, optional
        Label used in log messages
    """

    context_class = AsyncSlaveContext

    def __init__(self, transport: AsyncTransport, timeout: float = DEFAULT_TIMEOUT, name: Optional[str] = None):
        super().__init__(timeout, name)
        self.transport = transport
        self._lock = asyncio.Lock()

    async def read(self, context: AsyncSlaveContext, address: int, count: int,
                   timeout: Optional[float] = None) -> List[int]:
        """Read registers on behalf of a context."""
        self._check(context)
        if context.is_broadcast:
            raise BroadcastReadError()
        _validate_count(count)
        timeout = self.timeout if timeout is None else timeout

        words = await self._transact(
            context, f"read 0x{address:04X} x{count}",
            self.transport.read_registers, context.slave_id, address, count, timeout
        )
        return self._check_reply(words, count)

    async def write(self, context: AsyncSlaveContext, address: int, words: Sequence[int],
                    timeout: Optional[float] = None) -> None:
        """Write registers on behalf of a context."""
        self._check(context)
        words = _validate_words(words)
        timeout = self.timeout if timeout is None else timeout

        await self._transact(
            context, f"write 0x{address:04X} {words}",
            self.transport.write_registers, context.slave_id, address, words, timeout
        )

    async def _transact(self, context, description: str, call, *args):
        await self._lock.acquire()
        try:
            sequence = next(self._sequence)
            tag = self._tag(sequence, context)
            logger.debug(f"{tag} {description}")
            task = asyncio.ensure_future(call(*args))
        except BaseException:
            self._lock.release()
            raise

        task.add_done_callback(lambda t: self._finish(t, tag, description))
        return await asyncio.shield(task)

    def _finish(self, task: asyncio.Future, tag: str, description: str):
        self._lock.release()
        if task.cancelled():
            logger.warning(f"{tag} {description} cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"{tag} {description} failed: {error}")

    async def close(self) -> None:
        """Wait for the port, release every context and close the transport."""
        async with self._lock:
            self._release_all()
            await self.transport.close()
        logger.info(f"[{self.name}] closed")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"AsyncBusManager(name='{self.name}', slaves={self.active_slaves})"
