"""SMTP email notification adapter."""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from feed_mailer.core import EmailRequest, EmailSender, MailError, SendOutcome

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


class SmtpEmailSender(EmailSender):
    """Send HTML email over a TLS-secured SMTP session.

    Sending is best effort: one connection per message, no retry, and any
    failure, SMTP or otherwise, comes back in the SendOutcome instead of being
    raised.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self.timeout = timeout

    async def send(self, request: EmailRequest) -> SendOutcome:
        """Send one message.

        Args:
            request: Addresses, SMTP endpoint, credentials and content

        Returns:
            SendOutcome with sent=True, or sent=False and the MailError
        """
        try:
            message = self._build_message(request)
            await asyncio.to_thread(self._deliver, request, message)
        except Exception as e:
            # Any failure, including non-SMTP ones such as a non-ASCII password at AUTH
            error = MailError(f"Send mail with error: {e}")
            error.__cause__ = e
            logger.error(f"Failed to send email to {request.to_address} via {request.smtp_host}:{request.smtp_port}: {e}")
            return SendOutcome(sent=False, error=error)

        logger.info(f"Email sent successfully to {request.to_address}")
        return SendOutcome(sent=True)

    def _build_message(self, request: EmailRequest) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = request.from_address
        msg["To"] = request.to_address
        msg["Subject"] = request.subject

        if request.high_priority:
            msg["X-Priority"] = "1 (Highest)"
            msg["X-MSMail-Priority"] = "High"
            msg["Importance"] = "High"

        msg.attach(MIMEText(request.html_body, "html", "utf-8"))
        return msg

    def _deliver(self, request: EmailRequest, msg: MIMEMultipart) -> None:
        """Open a session, log in, send, close. Runs in a worker thread."""
        context = ssl.create_default_context()
        logger.debug(f"Connecting to SMTP server: {request.smtp_host}:{request.smtp_port}")

        if request.smtp_port == IMPLICIT_TLS_PORT:
            server = smtplib.SMTP_SSL(
                request.smtp_host, request.smtp_port, timeout=self.timeout, context=context
            )
        else:
            server = smtplib.SMTP(request.smtp_host, request.smtp_port, timeout=self.timeout)

        with server:
            if request.smtp_port != IMPLICIT_TLS_PORT:
                server.starttls(context=context)
            server.login(request.username, request.password)
            server.send_message(msg)
