"""HTML digest renderer."""

import html

from feed_mailer.core import Batch, DigestRenderer, FeedEntry


class HtmlDigestRenderer(DigestRenderer):
    """Render a batch as an HTML fragment for the notification email.

    Feed text is inserted verbatim unless escape_html is set. Verbatim output
    lets a hostile feed inject markup into the email.
    """

    def __init__(self, escape_html: bool = False) -> None:
        self.escape_html = escape_html

    def render(self, batch: Batch) -> str:
        """Render heading with entry count, then one block per entry."""
        lines = [self._format_entry(entry) for entry in batch]
        content = "".join(f"{line}\n" for line in lines)
        return f"<h1>{len(batch)} new feeds!</h1><br>" + content

    def _format_entry(self, entry: FeedEntry) -> str:
        """Format single entry block."""
        title = self._text(entry.title)
        link = self._text(entry.link)
        summary = self._text(entry.summary)

        return (
            f"<h2>{title}</h2><br>"
            f"<a href={link}>{link}</a><br>"
            f"<p>{summary}</p><br>"
            f"<p>{entry.published}</p><br/>"
        )

    def _text(self, value: str) -> str:
        return html.escape(value) if self.escape_html else value
