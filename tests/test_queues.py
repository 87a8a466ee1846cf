"""Tests for batch queues."""

import asyncio
import logging
from pathlib import Path

import pytest

from feed_mailer.adapters.queue import DirectoryBatchQueue, MemoryBatchQueue
from feed_mailer.adapters.queue import codec
from feed_mailer.core import Batch, QueueError


@pytest.fixture(params=["memory", "directory"])
def queue(request, tmp_path):
    """Both queue implementations share the same contract."""
    if request.param == "memory":
        return MemoryBatchQueue()
    return DirectoryBatchQueue(tmp_path / "queue", poll_interval=0.01)


@pytest.mark.asyncio
async def test_publish_then_consume(queue, make_entry) -> None:
    batch = Batch.collect([make_entry(), make_entry(title="Second")])

    message_id = await queue.publish(batch)
    delivery = await queue.consume(timeout=1)

    assert delivery is not None
    assert delivery.message_id == message_id
    assert delivery.attempt == 1
    assert delivery.batch == batch
    assert [e.title for e in delivery.batch] == ["Announcing .NET 9", "Second"]


@pytest.mark.asyncio
async def test_empty_batch_crosses_queue(queue) -> None:
    await queue.publish(Batch.collect([]))

    delivery = await queue.consume(timeout=1)

    assert delivery is not None
    assert len(delivery.batch) == 0


@pytest.mark.asyncio
async def test_consume_times_out_on_empty_queue(queue) -> None:
    assert await queue.consume(timeout=0.05) is None
    assert await queue.consume(timeout=0) is None


@pytest.mark.asyncio
async def test_ack_removes_message(queue, make_entry) -> None:
    await queue.publish(Batch.collect([make_entry()]))

    delivery = await queue.consume(timeout=1)
    await queue.ack(delivery)

    assert await queue.consume(timeout=0.05) is None


@pytest.mark.asyncio
async def test_release_redelivers(queue, make_entry) -> None:
    """Released deliveries come back with the attempt counter raised."""
    batch = Batch.collect([make_entry()])
    await queue.publish(batch)

    first = await queue.consume(timeout=1)
    await queue.release(first)
    second = await queue.consume(timeout=1)

    assert second.message_id == first.message_id
    assert second.attempt == 2
    assert second.batch == batch


@pytest.mark.asyncio
async def test_consume_waits_for_publish(queue, make_entry) -> None:
    async def publish_later() -> None:
        await asyncio.sleep(0.05)
        await queue.publish(Batch.collect([make_entry()]))

    task = asyncio.create_task(publish_later())
    delivery = await queue.consume(timeout=2)
    await task

    assert delivery is not None
    assert len(delivery.batch) == 1


@pytest.mark.asyncio
async def test_directory_queue_survives_restart(tmp_path, make_entry) -> None:
    """A batch consumed but never acked is redelivered after recover()."""
    root = tmp_path / "queue"
    batch = Batch.collect([make_entry()])

    crashed = DirectoryBatchQueue(root, poll_interval=0.01)
    await crashed.publish(batch)
    lost = await crashed.consume(timeout=1)
    assert lost is not None

    restarted = DirectoryBatchQueue(root, poll_interval=0.01)
    assert await restarted.consume(timeout=0) is None
    assert restarted.recover() == 1

    delivery = await restarted.consume(timeout=1)
    assert delivery.message_id == lost.message_id
    assert delivery.batch == batch


@pytest.mark.asyncio
async def test_directory_queue_single_claim(tmp_path, make_entry) -> None:
    """Two consumers on one directory never get the same message."""
    root = tmp_path / "queue"
    producer = DirectoryBatchQueue(root)
    await producer.publish(Batch.collect([make_entry()]))

    first = DirectoryBatchQueue(root, poll_interval=0.01)
    second = DirectoryBatchQueue(root, poll_interval=0.01)
    results = await asyncio.gather(first.consume(timeout=0.1), second.consume(timeout=0.1))

    assert sum(r is not None for r in results) == 1


@pytest.mark.asyncio
async def test_directory_queue_files(tmp_path, make_entry) -> None:
    root = tmp_path / "queue"
    queue = DirectoryBatchQueue(root, poll_interval=0.01)

    message_id = await queue.publish(Batch.collect([make_entry()]))
    assert (root / "pending" / f"{message_id}.yaml").exists()
    assert queue.pending_count() == 1

    delivery = await queue.consume(timeout=1)
    assert (root / "inflight" / f"{message_id}.yaml").exists()
    assert queue.pending_count() == 0

    await queue.ack(delivery)
    assert list((root / "inflight").iterdir()) == []


@pytest.mark.asyncio
async def test_directory_queue_corrupt_message_is_dead_lettered(tmp_path, caplog) -> None:
    root = tmp_path / "queue"
    queue = DirectoryBatchQueue(root, poll_interval=0.01)
    (root / "pending" / "0001-broken.yaml").write_text("entries: [unclosed", encoding="utf-8")

    with caplog.at_level(logging.ERROR):
        assert await queue.consume(timeout=0) is None

    assert [p.name for p in (root / "failed").iterdir()] == ["0001-broken.yaml"]
    assert list((root / "inflight").iterdir()) == []
    assert any("0001-broken.yaml" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_directory_queue_bad_message_does_not_block_later_batches(tmp_path, make_entry) -> None:
    """A malformed message sorting first is parked and the valid batch behind it is delivered."""
    root = tmp_path / "queue"
    queue = DirectoryBatchQueue(root, poll_interval=0.01)
    batch = Batch.collect([make_entry(title="Valid")])
    message_id = await queue.publish(batch)
    (root / "pending" / "00000000000000000000-bad.yaml").write_text("- not\n- a batch\n", encoding="utf-8")

    for _ in range(2):
        queue.recover()
        delivery = await queue.consume(timeout=0)
        assert delivery is not None
        assert delivery.message_id == message_id
        assert delivery.batch == batch
        await queue.release(delivery)

    assert [p.name for p in (root / "failed").iterdir()] == ["00000000000000000000-bad.yaml"]
    assert queue.pending_count() == 1


@pytest.mark.asyncio
async def test_uniqueness_enforced_on_consumer_side(tmp_path) -> None:
    """A message carrying duplicate entries still yields a unique batch."""
    root = tmp_path / "queue"
    queue = DirectoryBatchQueue(root, poll_interval=0.01)
    entry = {"title": "X", "summary": "", "published": "2024-01-15T10:00:00-05:00", "link": "http://a"}
    message = {"id": "0001-dup", "attempt": 1, "entries": [entry, dict(entry)]}
    (root / "pending" / "0001-dup.yaml").write_text(codec.dumps(message), encoding="utf-8")

    delivery = await queue.consume(timeout=0)

    assert len(delivery.batch) == 1


def test_codec_rejects_incomplete_entry() -> None:
    message = {"id": "x", "entries": [{"title": "X"}]}

    with pytest.raises(QueueError, match="Malformed batch message x"):
        codec.message_to_batch(message)


def test_codec_keeps_timestamps_as_strings(make_entry) -> None:
    """ISO timestamps are quoted so YAML does not turn them into naive datetimes."""
    text = codec.dumps(codec.batch_to_message("id-1", Batch.collect([make_entry()])))

    batch = codec.message_to_batch(codec.loads(text))

    assert batch.entries[0].published.utcoffset() is not None
    assert batch.entries[0] == make_entry()
