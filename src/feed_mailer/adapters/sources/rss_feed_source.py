"""RSS/Atom feed source."""

import logging
from calendar import timegm
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import feedparser
import httpx

from feed_mailer.core import UNKNOWN_PUBLISHED, Batch, FeedEntry, FeedSource, FetchError

logger = logging.getLogger(__name__)

# Parser complaints that still leave a usable feed behind
TOLERATED_BOZO = (feedparser.CharacterEncodingOverride, feedparser.NonXMLContentType)


class RSSFeedSource(FeedSource):
    """Fetch one RSS/Atom feed and normalize its items into a batch."""

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, feed_url: str) -> Batch:
        """Fetch the feed and return every item currently in it.

        Raises:
            FetchError: network failure, bad status, malformed payload, or an
                item without a link.
        """
        logger.info(f"Fetching feed: {feed_url}")

        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True, transport=self.transport
        ) as client:
            try:
                response = await client.get(feed_url)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise FetchError(f"HTTP {e.response.status_code} from {feed_url}") from e
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise FetchError(f"Could not retrieve {feed_url}: {e}") from e

        batch = self.parse(
            response.content,
            content_type=response.headers.get("content-type", ""),
            base_url=str(response.url),
        )
        logger.info(f"Fetched {len(batch)} unique entries from {feed_url}")
        return batch

    def parse(self, payload: bytes | str, content_type: str = "", base_url: str = "") -> Batch:
        """Parse a raw feed document into a batch."""
        response_headers = {}
        if content_type:
            response_headers["content-type"] = content_type
        if base_url:
            response_headers["content-location"] = base_url

        feed = feedparser.parse(payload, response_headers=response_headers)

        if not feed.get("version"):
            raise FetchError(f"Not a recognized RSS/Atom document: {feed.get('bozo_exception', 'unknown format')}")

        if feed.bozo and not isinstance(feed.bozo_exception, TOLERATED_BOZO):
            raise FetchError(f"Malformed feed: {feed.bozo_exception}")

        entries = [self._to_entry(position, item) for position, item in enumerate(feed.entries, 1)]
        logger.debug(f"Parsed {len(entries)} items")

        return Batch.collect(entries)

    def _to_entry(self, position: int, item: Any) -> FeedEntry:
        """Normalize a feedparser entry."""
        title = item.get("title", "")
        link = self._first_link(item)
        if not link:
            raise FetchError(f"Feed item #{position} ('{title}') has no link")

        return FeedEntry(
            title=title,
            summary=self._summary(item),
            published=self._published(item),
            link=link,
        )

    @staticmethod
    def _first_link(item: Any) -> str:
        for link in item.get("links", []):
            href = link.get("href")
            if href:
                return href
        return item.get("link", "")

    @staticmethod
    def _summary(item: Any) -> str:
        if "summary" in item:
            return item.summary
        if "description" in item:
            return item.description
        content = item.get("content")
        if isinstance(content, list) and content:
            return content[0].get("value", "")
        return ""

    @staticmethod
    def _published(item: Any) -> datetime:
        """Publish timestamp, keeping the feed's own offset where possible."""
        for raw_key, parsed_key in (("published", "published_parsed"), ("updated", "updated_parsed")):
            raw = item.get(raw_key)
            if raw:
                parsed = _parse_timestamp(raw)
                if parsed is not None:
                    return parsed

            # feedparser's normalized struct is always UTC
            struct = item.get(parsed_key)
            if struct:
                return datetime.fromtimestamp(timegm(struct), tz=timezone.utc)

        return UNKNOWN_PUBLISHED


def _parse_timestamp(raw: str) -> Optional[datetime]:
    """Parse an RFC 822 or ISO 8601 date, treating a missing offset as UTC."""
    value: Optional[datetime] = None
    try:
        value = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        try:
            value = datetime.fromisoformat(raw.strip())
        except ValueError:
            return None

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
