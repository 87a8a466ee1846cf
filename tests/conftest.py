"""Shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
import pytest

from feed_mailer.config import EmailConfig
from feed_mailer.core import FeedEntry


RSS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>.NET Blog</title>
    <link>https://devblogs.microsoft.com/dotnet/</link>
    <description>Free. Cross-platform. Open source.</description>
{items}
  </channel>
</rss>
"""

RSS_ITEM = """    <item>
      <title>{title}</title>
      <link>{link}</link>
      <description>{summary}</description>
      <pubDate>{pub_date}</pubDate>
    </item>"""


def rss_feed(*items: dict) -> str:
    """Build an RSS 2.0 document from item dicts."""
    rendered = []
    for item in items:
        rendered.append(RSS_ITEM.format(
            title=item.get("title", "X"),
            link=item.get("link", "http://a"),
            summary=item.get("summary", "Summary"),
            pub_date=item.get("pub_date", "Mon, 15 Jan 2024 10:00:00 -0500"),
        ))
    return RSS_TEMPLATE.format(items="\n".join(rendered))


def feed_transport(body: str, status_code: int = 200) -> httpx.MockTransport:
    """Transport answering every request with the given feed document."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code,
            content=body.encode("utf-8"),
            headers={"content-type": "application/rss+xml; charset=utf-8"},
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def make_entry() -> Callable[..., FeedEntry]:
    """Factory for feed entries with sensible defaults."""
    def factory(
        title: str = "Announcing .NET 9",
        summary: str = "Today we are excited to announce .NET 9.",
        published: datetime = datetime(2024, 11, 12, 9, 0, tzinfo=timezone(timedelta(hours=-8))),
        link: str = "https://devblogs.microsoft.com/dotnet/announcing-dotnet-9/",
    ) -> FeedEntry:
        return FeedEntry(title=title, summary=summary, published=published, link=link)

    return factory


@pytest.fixture
def email_config() -> EmailConfig:
    return EmailConfig(
        from_address="sender@hotmail.com",
        to_address="reader@example.com",
        smtp_host="smtp-mail.outlook.com",
        smtp_port=587,
        password="app-password",
    )


@pytest.fixture(name="rss_feed")
def rss_feed_fixture() -> Callable[..., str]:
    return rss_feed


@pytest.fixture(name="feed_transport")
def feed_transport_fixture() -> Callable[..., httpx.MockTransport]:
    return feed_transport
