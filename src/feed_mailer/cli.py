"""CLI entry point for feed mailer."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from feed_mailer.adapters.digest import HtmlDigestRenderer
from feed_mailer.adapters.notifications import SmtpEmailSender
from feed_mailer.adapters.queue import DirectoryBatchQueue, MemoryBatchQueue
from feed_mailer.adapters.scheduling import PeriodicScheduler
from feed_mailer.adapters.sources import RSSFeedSource
from feed_mailer.config import Settings, get_settings
from feed_mailer.core import BatchQueue, ConfigError, FetchError
from feed_mailer.use_cases import BatchNotifier, FeedPublisher

logger = logging.getLogger(__name__)


app = typer.Typer(help="Poll an RSS feed and mail new entries as an HTML digest.")

ConfigOption = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to YAML config")
LogLevelOption = typer.Option("INFO", "--log-level", envvar="LOG_LEVEL", help="Logging level")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def load_settings(config: Path) -> Settings:
    """Load and validate settings, exiting on configuration errors."""
    try:
        return get_settings(config).validate()
    except ConfigError as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=1)


def build_queue(settings: Settings) -> BatchQueue:
    if settings.queue.backend == "memory":
        return MemoryBatchQueue()
    return DirectoryBatchQueue(settings.queue.directory, poll_interval=settings.queue.poll_interval)


def build_publisher(settings: Settings, queue: BatchQueue) -> FeedPublisher:
    return FeedPublisher(
        source=RSSFeedSource(timeout=settings.feed.timeout),
        queue=queue,
        feed_url=settings.feed_url,
    )


def build_notifier(settings: Settings) -> BatchNotifier:
    return BatchNotifier(
        renderer=HtmlDigestRenderer(escape_html=settings.render.escape_html),
        sender=SmtpEmailSender(timeout=settings.email.timeout),
        email_config=settings.email,
    )


def _durable_queue(settings: Settings) -> DirectoryBatchQueue:
    queue = build_queue(settings)
    if not isinstance(queue, DirectoryBatchQueue):
        typer.echo("❌ The memory queue only lives inside `run`; use queue.backend: directory", err=True)
        raise typer.Exit(code=1)
    return queue


@app.command()
def fetch(config: Path = ConfigOption, log_level: str = LogLevelOption) -> None:
    """Fetch the feed once and queue the batch."""
    setup_logging(log_level)
    settings = load_settings(config)
    queue = _durable_queue(settings)

    try:
        batch = asyncio.run(build_publisher(settings, queue).run_once())
    except FetchError as e:
        typer.echo(f"❌ Fetch failed: {e}", err=True)
        raise typer.Exit(code=1)

    print(f"✓ Queued {len(batch)} entries")


@app.command()
def notify(
    config: Path = ConfigOption,
    log_level: str = LogLevelOption,
    wait: float = typer.Option(0.0, "--wait", help="Seconds to wait for the first batch"),
) -> None:
    """Send an email for every queued batch, then exit."""
    setup_logging(log_level)
    settings = load_settings(config)
    queue = _durable_queue(settings)
    queue.recover()

    processed = asyncio.run(_notify(build_notifier(settings), queue, wait))
    print(f"✓ Processed {processed} batches")


async def _notify(notifier: BatchNotifier, queue: DirectoryBatchQueue, wait: float) -> int:
    processed = 0
    if await notifier.process_next(queue, timeout=wait) is not None:
        processed += 1
        processed += await notifier.drain(queue, idle_timeout=0)
    return processed


@app.command()
def run(
    config: Path = ConfigOption,
    log_level: str = LogLevelOption,
    ticks: Optional[int] = typer.Option(None, "--ticks", help="Stop after this many fetches"),
) -> None:
    """Fetch on a schedule and send notifications until interrupted."""
    setup_logging(log_level)
    settings = load_settings(config)

    print("\n" + "=" * 70)
    print("📡 FEED MAILER")
    print("=" * 70)
    print(f"  • Feed: {settings.feed_url}")
    print(f"  • Every: {settings.scheduler.interval_seconds:g}s")
    print(f"  • Queue: {settings.queue.backend}")
    print(f"  • Mail to: {settings.email.to_address} via {settings.email.smtp_host}:{settings.email.smtp_port}")

    try:
        asyncio.run(_run(settings, ticks))
    except KeyboardInterrupt:
        print("\nStopped.")


async def _run(settings: Settings, ticks: Optional[int]) -> None:
    queue = build_queue(settings)
    if isinstance(queue, DirectoryBatchQueue):
        queue.recover()

    publisher = build_publisher(settings, queue)
    notifier = build_notifier(settings)
    scheduler = PeriodicScheduler(settings.scheduler.interval_seconds, publisher.run_once)

    stop = asyncio.Event()
    consumer = asyncio.create_task(
        notifier.drain(queue, stop=stop, poll_interval=settings.queue.poll_interval)
    )
    consumer.add_done_callback(lambda task: _on_consumer_done(task, stop))
    try:
        await scheduler.run(max_ticks=ticks, stop=stop)
    finally:
        stop.set()
        await asyncio.gather(consumer, return_exceptions=True)

    if not consumer.cancelled() and consumer.exception() is not None:
        typer.echo(f"❌ Notification consumer failed: {consumer.exception()}", err=True)
        raise typer.Exit(code=1)

    # Whatever the last tick queued
    await notifier.drain(queue, idle_timeout=0)


def _on_consumer_done(task: asyncio.Task, stop: asyncio.Event) -> None:
    """Stop the schedule as soon as the consumer dies, so nothing piles up unread."""
    if task.cancelled() or task.exception() is None:
        return
    logger.error("Notification consumer stopped, shutting down", exc_info=task.exception())
    stop.set()


@app.command()
def preview(config: Path = ConfigOption, log_level: str = LogLevelOption) -> None:
    """Fetch the feed and print the rendered HTML without queueing or mailing."""
    setup_logging(log_level)
    try:
        settings = get_settings(config)
    except ConfigError as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(code=1)

    if not settings.feed_url:
        typer.echo("❌ Configuration error: Missing required configuration: FEED_URL", err=True)
        raise typer.Exit(code=1)

    source = RSSFeedSource(timeout=settings.feed.timeout)
    try:
        batch = asyncio.run(source.fetch(settings.feed_url))
    except FetchError as e:
        typer.echo(f"❌ Fetch failed: {e}", err=True)
        raise typer.Exit(code=1)

    print(HtmlDigestRenderer(escape_html=settings.render.escape_html).render(batch))


if __name__ == "__main__":
    app()
