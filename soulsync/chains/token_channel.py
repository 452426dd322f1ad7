# soulsync/chains/token_channel.py
"""
Bounded producer/consumer channel for streamed fragments

A producer task drains the completion stream into an asyncio.Queue; the SSE
writer consumes it in arrival order. Closing the channel cancels the producer,
which closes the upstream generator and its HTTP connection.
"""

import asyncio
from typing import AsyncIterator, Optional

from soulsync.utils.logger import logger

_END = object()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


class TokenChannel:
    def __init__(self, source: AsyncIterator[str], maxsize: int = 32):
        self._source = source
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._producer: Optional[asyncio.Task] = None
        self._finished = False

    async def __aenter__(self) -> "TokenChannel":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def start(self):
        if self._producer is None:
            self._producer = asyncio.create_task(self._produce())

    async def _produce(self):
        try:
            async for fragment in self._source:
                await self._queue.put(fragment)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._queue.put(_Failure(e))
        else:
            await self._queue.put(_END)
        finally:
            aclose = getattr(self._source, "aclose", None)
            if aclose is not None:
                await aclose()

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self._finished:
            raise StopAsyncIteration
        if self._producer is None:
            self.start()

        item = await self._queue.get()
        if item is _END:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._finished = True
            raise item.error
        return item

    async def aclose(self):
        self._finished = True
        producer = self._producer
        if producer is None or producer.done():
            return
        producer.cancel()
        try:
            await producer
        except asyncio.CancelledError:
            # Our own cancellation propagates; the producer's is expected
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        except Exception as e:
            logger.warning(f" Stream producer raised while closing: {e}")
        logger.debug(" Token channel closed, upstream stream released")
