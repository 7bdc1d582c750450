"""Hand-off channel between the stream reader and the forwarding worker."""

import asyncio

from matterhook.bus.events import GatewayEvent, Message, Record, decode_record


class MessageBus:
    """
    Async hand-off channel carrying messages from the reader to the worker.

    With ``capacity=0`` the bus is a rendezvous: ``publish`` only returns once
    the worker has taken the message, so a slow webhook stalls the reader.
    A positive capacity turns it into a bounded FIFO buffer.
    """

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=capacity or 1)

    @property
    def pending(self) -> int:
        """Number of messages published but not yet consumed."""
        return self._queue.qsize()

    async def publish(self, msg: Message) -> None:
        """Hand a message to the worker (blocks until accepted or buffered)."""
        await self._queue.put(msg)
        if self.capacity == 0:
            await self._queue.join()

    async def consume(self) -> Message:
        """Take the next message (blocks until available)."""
        msg = await self._queue.get()
        self._queue.task_done()
        return msg


__all__ = ["MessageBus", "Message", "GatewayEvent", "Record", "decode_record"]
