"""In-process batch queue."""

import asyncio
import logging
import uuid
from typing import Optional

from feed_mailer.adapters.queue import codec
from feed_mailer.core import Batch, BatchQueue, Delivery

logger = logging.getLogger(__name__)


class MemoryBatchQueue(BatchQueue):
    """Queue living in process memory.

    Batches are stored serialized so the consumer always gets its own copy.
    Nothing survives a restart; use DirectoryBatchQueue for that.
    """

    def __init__(self) -> None:
        self._pending: asyncio.Queue[str] = asyncio.Queue()
        self._inflight: dict[str, str] = {}

    async def publish(self, batch: Batch) -> str:
        message_id = uuid.uuid4().hex
        await self._pending.put(codec.dumps(codec.batch_to_message(message_id, batch)))
        logger.info(f"Queued batch {message_id} ({len(batch)} entries)")
        return message_id

    async def consume(self, timeout: Optional[float] = None) -> Optional[Delivery]:
        try:
            if timeout is not None and timeout <= 0:
                text = self._pending.get_nowait()
            else:
                text = await asyncio.wait_for(self._pending.get(), timeout)
        except (asyncio.QueueEmpty, asyncio.TimeoutError):
            return None

        message = codec.loads(text)
        self._inflight[message["id"]] = text
        return Delivery(
            message_id=message["id"],
            batch=codec.message_to_batch(message),
            attempt=message.get("attempt", 1),
        )

    async def ack(self, delivery: Delivery) -> None:
        self._inflight.pop(delivery.message_id, None)

    async def release(self, delivery: Delivery) -> None:
        text = self._inflight.pop(delivery.message_id, None)
        if text is None:
            logger.warning(f"Release of unknown delivery {delivery.message_id}")
            return

        message = codec.loads(text)
        message["attempt"] = delivery.attempt + 1
        await self._pending.put(codec.dumps(message))

    def __len__(self) -> int:
        """Messages waiting or in flight."""
        return self._pending.qsize() + len(self._inflight)
