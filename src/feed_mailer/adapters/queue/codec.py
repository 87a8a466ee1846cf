"""Wire format for batches crossing the queue."""

from datetime import datetime, timezone
from typing import Any

import yaml

from feed_mailer.core import Batch, FeedEntry, QueueError


def batch_to_message(message_id: str, batch: Batch, attempt: int = 1) -> dict[str, Any]:
    """Turn a batch into a plain mapping."""
    return {
        "id": message_id,
        "published_at": datetime.now(timezone.utc).isoformat(),
        "attempt": attempt,
        "entries": [
            {
                "title": entry.title,
                "summary": entry.summary,
                "published": entry.published.isoformat(),
                "link": entry.link,
            }
            for entry in batch
        ],
    }


def message_to_batch(message: dict[str, Any]) -> Batch:
    """Rebuild a batch; uniqueness is enforced again on this side."""
    try:
        entries = [
            FeedEntry(
                title=raw["title"],
                summary=raw["summary"],
                published=_timestamp(raw["published"]),
                link=raw["link"],
            )
            for raw in message.get("entries") or []
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise QueueError(f"Malformed batch message {message.get('id', '?')}: {e}") from e

    return Batch.collect(entries)


def _timestamp(value: Any) -> datetime:
    # Hand-edited files may hold an unquoted YAML timestamp
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def dumps(message: dict[str, Any]) -> str:
    return yaml.safe_dump(message, allow_unicode=True, default_flow_style=False, sort_keys=False)


def loads(text: str) -> dict[str, Any]:
    try:
        message = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise QueueError(f"Unreadable queue message: {e}") from e

    if not isinstance(message, dict) or "id" not in message:
        raise QueueError("Queue message is not a batch mapping")
    return message
