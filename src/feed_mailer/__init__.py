"""Feed mailer: poll an RSS/Atom feed and mail new entries as HTML."""

__version__ = "0.1.0"
