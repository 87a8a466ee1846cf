"""Core domain layer."""

from feed_mailer.core.entities import (
    UNKNOWN_PUBLISHED,
    Batch,
    Delivery,
    EmailRequest,
    EntryKey,
    FeedEntry,
    SendOutcome,
)
from feed_mailer.core.errors import (
    ConfigError,
    FeedMailerError,
    FetchError,
    MailError,
    QueueError,
)
from feed_mailer.core.interfaces import BatchQueue, DigestRenderer, EmailSender, FeedSource

__all__ = [
    "UNKNOWN_PUBLISHED",
    "Batch",
    "Delivery",
    "EmailRequest",
    "EntryKey",
    "FeedEntry",
    "SendOutcome",
    "FeedMailerError",
    "FetchError",
    "MailError",
    "QueueError",
    "ConfigError",
    "FeedSource",
    "BatchQueue",
    "DigestRenderer",
    "EmailSender",
]
