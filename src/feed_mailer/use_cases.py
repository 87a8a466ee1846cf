"""Business logic use cases."""

import asyncio
import logging
from typing import Optional

from feed_mailer.config import EmailConfig
from feed_mailer.core import (
    Batch,
    BatchQueue,
    DigestRenderer,
    EmailRequest,
    EmailSender,
    FeedSource,
    MailError,
    SendOutcome,
)

logger = logging.getLogger(__name__)


class FeedPublisher:
    """Producer stage: fetch the feed and queue the resulting batch."""

    def __init__(self, source: FeedSource, queue: BatchQueue, feed_url: str) -> None:
        self.source = source
        self.queue = queue
        self.feed_url = feed_url

    async def run_once(self) -> Batch:
        """Fetch and publish one batch.

        A FetchError propagates and nothing is published.
        """
        batch = await self.source.fetch(self.feed_url)
        message_id = await self.queue.publish(batch)
        logger.info(f"Published {len(batch)} entries as {message_id}")
        return batch


class BatchNotifier:
    """Consumer stage: render a delivered batch and mail it.

    Holds no per-batch state, so redelivered or concurrently delivered
    batches are handled independently.
    """

    def __init__(
        self,
        renderer: DigestRenderer,
        sender: EmailSender,
        email_config: EmailConfig,
    ) -> None:
        self.renderer = renderer
        self.sender = sender
        self.email_config = email_config

    async def handle(self, batch: Batch) -> SendOutcome:
        """Render the batch and send it. Never raises for mail failures."""
        logger.info(f"Processing batch with {len(batch)} entries")
        return await self._send(batch, self.renderer.render(batch))

    async def _send(self, batch: Batch, body: str) -> SendOutcome:
        request = EmailRequest.build(self.email_config, self.email_config.subject, body)
        try:
            outcome = await self.sender.send(request)
        except Exception as e:
            # A sender that breaks its no-raise contract still counts as a lost email
            logger.exception(f"Email sender raised for {len(batch)} entries")
            error = MailError(f"Send mail with error: {e}")
            error.__cause__ = e
            outcome = SendOutcome(sent=False, error=error)

        if not outcome.ok:
            logger.warning(f"Notification for {len(batch)} entries was not delivered: {outcome.error}")
        return outcome

    async def process_next(self, queue: BatchQueue, timeout: Optional[float] = None) -> Optional[SendOutcome]:
        """Consume, handle and ack one delivery.

        A rendering failure releases the delivery for redelivery and
        re-raises. Mail failures, raised or returned, are acked.

        Returns:
            The send outcome, or None if nothing arrived before timeout
        """
        delivery = await queue.consume(timeout)
        if delivery is None:
            return None

        if delivery.attempt > 1:
            logger.info(f"Redelivery #{delivery.attempt} of {delivery.message_id}")
        logger.info(f"Processing batch with {len(delivery.batch)} entries")

        try:
            body = self.renderer.render(delivery.batch)
        except Exception:
            await queue.release(delivery)
            raise

        outcome = await self._send(delivery.batch, body)
        # Mail failures are acked too: a lost email is acceptable, a retry storm is not
        await queue.ack(delivery)
        return outcome

    async def drain(
        self,
        queue: BatchQueue,
        stop: Optional[asyncio.Event] = None,
        idle_timeout: Optional[float] = None,
        poll_interval: float = 1.0,
    ) -> int:
        """Process deliveries until stop is set or the queue stays idle.

        Without idle_timeout this runs until stop is set (or the task is
        cancelled), checking stop every poll_interval seconds.

        Returns:
            Number of batches processed
        """
        wait = idle_timeout if idle_timeout is not None else poll_interval
        processed = 0
        while stop is None or not stop.is_set():
            outcome = await self.process_next(queue, timeout=wait)
            if outcome is None:
                if idle_timeout is not None:
                    break
                continue
            processed += 1
        return processed
