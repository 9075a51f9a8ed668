# hyperlocal/utils/email_utils.py
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from hyperlocal.core.config import Settings
from hyperlocal.core.exceptions import MailTransportUnavailableError

logger = logging.getLogger(__name__)


class SmtpMailer:
    """SMTP transport. Blocking smtplib calls run in a worker thread."""

    def __init__(self, config: Settings):
        self.server = config.SMTP_SERVER
        self.port = config.SMTP_PORT
        self.user = config.SMTP_USER
        self.password = config.SMTP_PASSWORD
        self.sender = config.mail_sender

    @property
    def ready(self) -> bool:
        return bool(self.user and self.password)

    def build_message(self, to: str, subject: str, html: str, text: str,
                      from_addr: Optional[str] = None) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = from_addr or self.sender
        msg["To"] = to
        msg["Message-ID"] = make_msgid(domain=(self.user or "localhost").split("@")[-1])
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    async def send_mail(self, to: str, subject: str, html: str, text: str,
                        from_addr: Optional[str] = None) -> str:
        """Send one message and return its Message-ID."""
        if not self.ready:
            raise MailTransportUnavailableError("SMTP credentials are not configured")
        msg = self.build_message(to, subject, html, text, from_addr)
        await asyncio.to_thread(self._send, msg)
        logger.info("Email sent to %s: %s", to, subject)
        return msg["Message-ID"]

    def _send(self, msg: EmailMessage) -> None:
        with smtplib.SMTP_SSL(self.server, self.port) as smtp:
            smtp.login(self.user, self.password)
            smtp.send_message(msg)
