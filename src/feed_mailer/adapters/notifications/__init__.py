"""Notification adapters."""

from feed_mailer.adapters.notifications.smtp_sender import SmtpEmailSender

__all__ = ["SmtpEmailSender"]
