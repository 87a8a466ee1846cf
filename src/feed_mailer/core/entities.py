"""Core domain entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Iterator, NamedTuple, Optional

from feed_mailer.core.errors import MailError

if TYPE_CHECKING:
    from feed_mailer.config import EmailConfig


# Used when a feed item carries no date at all
UNKNOWN_PUBLISHED = datetime.min.replace(tzinfo=timezone.utc)


class EntryKey(NamedTuple):
    """Dedup key: all four entry fields."""

    title: str
    summary: str
    published: datetime
    link: str


@dataclass(frozen=True)
class FeedEntry:
    """One normalized feed item."""

    title: str
    summary: str
    published: datetime
    link: str

    def __post_init__(self) -> None:
        if self.published.tzinfo is None:
            raise ValueError("Published timestamp must carry an offset")

    @property
    def key(self) -> EntryKey:
        return EntryKey(self.title, self.summary, self.published, self.link)


@dataclass(frozen=True)
class Batch:
    """Deduplicated entries produced by one fetch cycle, in first-seen order."""

    entries: tuple[FeedEntry, ...] = ()

    @classmethod
    def collect(cls, entries: Iterable[FeedEntry]) -> "Batch":
        """Build a batch, dropping entries whose key was already seen."""
        unique: dict[EntryKey, FeedEntry] = {}
        for entry in entries:
            unique.setdefault(entry.key, entry)
        return cls(entries=tuple(unique.values()))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[FeedEntry]:
        return iter(self.entries)

    def __contains__(self, entry: object) -> bool:
        return isinstance(entry, FeedEntry) and any(e.key == entry.key for e in self.entries)


@dataclass(frozen=True)
class EmailRequest:
    """Everything needed for a single SMTP send."""

    from_address: str
    to_address: str
    smtp_host: str
    smtp_port: int
    username: str
    password: str = field(repr=False)
    subject: str
    html_body: str
    high_priority: bool = True

    @classmethod
    def build(cls, email_config: "EmailConfig", subject: str, html_body: str) -> "EmailRequest":
        """Create a fresh request from the email config section."""
        return cls(
            from_address=email_config.from_address,
            to_address=email_config.to_address,
            smtp_host=email_config.smtp_host,
            smtp_port=email_config.smtp_port,
            username=email_config.username or email_config.from_address,
            password=email_config.password,
            subject=subject,
            html_body=html_body,
        )


@dataclass(frozen=True)
class SendOutcome:
    """Result of one send attempt."""

    sent: bool
    error: Optional[MailError] = None

    @property
    def ok(self) -> bool:
        return self.sent and self.error is None


@dataclass(frozen=True)
class Delivery:
    """A batch handed out by a queue, pending ack or release."""

    message_id: str
    batch: Batch
    attempt: int = 1
