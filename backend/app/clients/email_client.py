"""
Outbound email

Two transports: ``console`` writes the message to the structured log (local
development, CI), ``smtp`` delivers through aiosmtplib.
"""

from email.message import EmailMessage
from email.utils import formataddr, make_msgid

import aiosmtplib

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class EmailClient:
    def __init__(self, transport: str | None = None):
        self.transport = (transport or settings.EMAIL_TRANSPORT).lower()

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((settings.EMAIL_FROM_NAME, settings.EMAIL_FROM_ADDRESS))
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=settings.EMAIL_FROM_ADDRESS.split("@")[-1])
        message.set_content(body)
        return message

    async def send(self, to: str, subject: str, body: str) -> str:
        """
        Deliver one plain-text message and return its Message-ID.

        Raises whatever the transport raises; callers decide whether a failed
        email matters.
        """
        message = self.build_message(to, subject, body)

        if self.transport == "smtp":
            await aiosmtplib.send(
                message,
                hostname=settings.EMAIL_HOST,
                port=settings.EMAIL_PORT,
                username=settings.EMAIL_USERNAME,
                password=settings.EMAIL_PASSWORD,
                use_tls=settings.EMAIL_USE_TLS,
                start_tls=settings.EMAIL_START_TLS and not settings.EMAIL_USE_TLS,
                timeout=settings.EMAIL_TIMEOUT_SECONDS,
            )
            logger.info("email_sent", to=to, subject=subject, transport="smtp")
        else:
            logger.info(
                "email_logged",
                to=to,
                subject=subject,
                body=body,
                transport="console",
            )

        return message["Message-ID"]


email_client = EmailClient()
