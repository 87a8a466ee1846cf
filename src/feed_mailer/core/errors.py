"""Error types."""


class FeedMailerError(Exception):
    """Base class for all feed mailer errors."""


class FetchError(FeedMailerError):
    """Feed could not be retrieved or parsed."""


class MailError(FeedMailerError):
    """SMTP delivery failed."""


class QueueError(FeedMailerError):
    """A queued message could not be read back."""


class ConfigError(FeedMailerError):
    """Configuration is missing or malformed."""
