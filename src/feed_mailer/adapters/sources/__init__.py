"""Source adapters for fetching feeds."""

from feed_mailer.adapters.sources.rss_feed_source import RSSFeedSource

__all__ = ["RSSFeedSource"]
