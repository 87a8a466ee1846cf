"""Digest renderers."""

from feed_mailer.adapters.digest.html_renderer import HtmlDigestRenderer

__all__ = ["HtmlDigestRenderer"]
