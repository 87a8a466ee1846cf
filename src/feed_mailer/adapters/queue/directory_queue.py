"""Durable batch queue kept as YAML files in a directory."""

import asyncio
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Optional

from feed_mailer.adapters.queue import codec
from feed_mailer.core import Batch, BatchQueue, Delivery, QueueError

logger = logging.getLogger(__name__)


class DirectoryBatchQueue(BatchQueue):
    """Queue where each message is one YAML file.

    Layout:
        <root>/pending/   messages waiting for a consumer
        <root>/inflight/  messages handed out but not yet acked
        <root>/failed/    messages that could not be decoded

    Claiming a message is an atomic rename from pending/ to inflight/, so
    several consumers can share the directory. Call recover() on startup to
    put back whatever a crashed consumer left in flight.
    """

    def __init__(self, root: Path, poll_interval: float = 1.0) -> None:
        self.root = root
        self.poll_interval = poll_interval
        self.pending_dir = root / "pending"
        self.inflight_dir = root / "inflight"
        self.failed_dir = root / "failed"
        self._ensure_structure()

    def _ensure_structure(self) -> None:
        """Create directory structure for messages."""
        self.pending_dir.mkdir(parents=True, exist_ok=True)
        self.inflight_dir.mkdir(parents=True, exist_ok=True)
        self.failed_dir.mkdir(parents=True, exist_ok=True)

    async def publish(self, batch: Batch) -> str:
        # Time prefix keeps directory listing roughly in publish order
        message_id = f"{time.time_ns():020d}-{uuid.uuid4().hex[:8]}"
        self._write(self.pending_dir, message_id, codec.batch_to_message(message_id, batch))
        logger.info(f"Queued batch {message_id} ({len(batch)} entries)")
        return message_id

    async def consume(self, timeout: Optional[float] = None) -> Optional[Delivery]:
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            delivery = self._claim_next()
            if delivery is not None:
                return delivery

            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                await asyncio.sleep(min(self.poll_interval, remaining))
            else:
                await asyncio.sleep(self.poll_interval)

    async def ack(self, delivery: Delivery) -> None:
        path = self._path(self.inflight_dir, delivery.message_id)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning(f"Ack of unknown delivery {delivery.message_id}")

    async def release(self, delivery: Delivery) -> None:
        path = self._path(self.inflight_dir, delivery.message_id)
        try:
            message = codec.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning(f"Release of unknown delivery {delivery.message_id}")
            return

        message["attempt"] = delivery.attempt + 1
        self._write(self.pending_dir, delivery.message_id, message)
        path.unlink(missing_ok=True)

    def recover(self) -> int:
        """Move in-flight messages back to pending.

        Returns:
            Number of messages put back
        """
        recovered = 0
        for path in sorted(self.inflight_dir.glob("*.yaml")):
            try:
                os.replace(path, self.pending_dir / path.name)
            except FileNotFoundError:
                continue
            recovered += 1

        if recovered:
            logger.info(f"Recovered {recovered} in-flight messages")
        return recovered

    def pending_count(self) -> int:
        return len(list(self.pending_dir.glob("*.yaml")))

    def _claim_next(self) -> Optional[Delivery]:
        for path in sorted(self.pending_dir.glob("*.yaml")):
            claimed = self.inflight_dir / path.name
            try:
                os.rename(path, claimed)
            except FileNotFoundError:
                # Another consumer got there first
                continue

            try:
                message = codec.loads(claimed.read_text(encoding="utf-8"))
                batch = codec.message_to_batch(message)
            except (QueueError, UnicodeDecodeError) as e:
                self._dead_letter(claimed, e)
                continue

            return Delivery(
                message_id=message["id"],
                batch=batch,
                attempt=message.get("attempt", 1),
            )
        return None

    def _dead_letter(self, path: Path, error: Exception) -> None:
        """Park an unreadable message in failed/ so it cannot block the queue."""
        os.replace(path, self.failed_dir / path.name)
        logger.error(f"Moved unreadable message {path.name} to {self.failed_dir}: {error}")

    def _path(self, directory: Path, message_id: str) -> Path:
        return directory / f"{message_id}.yaml"

    def _write(self, directory: Path, message_id: str, message: dict) -> None:
        target = self._path(directory, message_id)
        tmp = directory / f".{message_id}.tmp"
        tmp.write_text(codec.dumps(message), encoding="utf-8")
        os.replace(tmp, target)
