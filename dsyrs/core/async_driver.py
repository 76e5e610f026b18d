"""
asyncio device session for DSY-RS servo drives.

Every operation of :class:`~dsyrs.core.driver.ServoCommands` is available
here as a coroutine. Arguments are validated when the method is called, so
``servo.set_max_speed(-1)`` raises before anything is awaited.
"""

import asyncio

from .driver import ReadStep, ServoCommands, Step, WriteStep


class AsyncServoDriver(ServoCommands):
    """
    asyncio session with one DSY-RS drive on a shared bus.

    Takes the same arguments as :class:`~dsyrs.core.driver.ServoCommands`;
    ``context`` is an :class:`~dsyrs.protocols.bus.AsyncSlaveContext`.

    Examples
    --------
    >>> async with AsyncBusManager(ThreadedAsyncTransport(transport)) as bus:
    ...     servo = AsyncServoDriver.on_bus(bus, 2)
    ...     await servo.init()
    ...     status = await servo.get_status()
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.release()

    async def _run(self, steps: Step):
        result, error = None, None
        try:
            while True:
                try:
                    step = steps.throw(error) if error is not None else steps.send(result)
                except StopIteration as stop:
                    return stop.value
                result, error = None, None
                try:
                    result = await self._perform(step)
                except Exception as e:
                    error = e
        finally:
            steps.close()

    async def _perform(self, step):
        if isinstance(step, ReadStep):
            return await self._context.read(step.address, step.count)
        if isinstance(step, WriteStep):
            return await self._context.write(step.address, step.words)
        await asyncio.sleep(step.seconds)

    def __repr__(self) -> str:
        return f"AsyncServoDriver(slave_id={self.slave_id}, control_mode={self.config.control_mode.name})"
