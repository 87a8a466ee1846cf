"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import Optional

from feed_mailer.core.entities import Batch, Delivery, EmailRequest, SendOutcome


class FeedSource(ABC):
    """Interface for turning a feed URL into a batch."""

    @abstractmethod
    async def fetch(self, feed_url: str) -> Batch:
        """Fetch the current feed window as a batch."""
        pass


class BatchQueue(ABC):
    """Interface for the durable handoff between fetching and notifying.

    Delivery is at-least-once: anything consumed but not acked may be
    delivered again, in no strict order.
    """

    @abstractmethod
    async def publish(self, batch: Batch) -> str:
        """Enqueue a batch and return its message id."""
        pass

    @abstractmethod
    async def consume(self, timeout: Optional[float] = None) -> Optional[Delivery]:
        """Wait for the next delivery, or return None after timeout."""
        pass

    @abstractmethod
    async def ack(self, delivery: Delivery) -> None:
        """Drop a delivered message for good."""
        pass

    @abstractmethod
    async def release(self, delivery: Delivery) -> None:
        """Hand a delivered message back for redelivery."""
        pass


class DigestRenderer(ABC):
    """Interface for rendering a batch into a document."""

    @abstractmethod
    def render(self, batch: Batch) -> str:
        """Render batch."""
        pass


class EmailSender(ABC):
    """Interface for delivering a rendered document."""

    @abstractmethod
    async def send(self, request: EmailRequest) -> SendOutcome:
        """Send one email. Failures are reported in the outcome, not raised."""
        pass
