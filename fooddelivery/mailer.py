"""Outbound email.

Sending is fire-and-forget: routes schedule ``send`` as a background task and
a failed send is logged, never raised back into the request that caused it.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from .config import MailBackend, Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class MailResult:
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


@dataclass
class OutgoingMail:
    to_email: str
    subject: str
    body: str


class BaseMailer(ABC):

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    def deliver(self, mail: OutgoingMail) -> MailResult:
        """Hand the message to the transport. May raise."""

    def send(self, to_email: str, subject: str, body: str) -> MailResult:
        mail = OutgoingMail(to_email=to_email, subject=subject, body=body)
        try:
            result = self.deliver(mail)
        except Exception as e:
            logger.error(f"Email to {to_email} failed ({self.provider_name}): {e}")
            return MailResult(success=False, error_message=str(e), provider=self.provider_name)
        if result.success:
            logger.info(f"Email sent to {to_email}: {subject} (ID: {result.message_id})")
        else:
            logger.warning(f"Email to {to_email} not sent: {result.error_message}")
        return result


class LogMailer(BaseMailer):
    """Development mailer: writes messages to the log and keeps them in ``outbox``."""

    def __init__(self):
        self.outbox: list[OutgoingMail] = []

    @property
    def provider_name(self) -> str:
        return "log"

    def deliver(self, mail: OutgoingMail) -> MailResult:
        self.outbox.append(mail)
        logger.debug(f"Mail body for {mail.to_email}:\n{mail.body}")
        return MailResult(success=True, message_id=f"log_{uuid.uuid4().hex[:12]}", provider=self.provider_name)


class SendGridMailer(BaseMailer):

    def __init__(self, api_key: str, from_email: str):
        self.client = SendGridAPIClient(api_key)
        self.from_email = from_email

    @property
    def provider_name(self) -> str:
        return "sendgrid"

    def deliver(self, mail: OutgoingMail) -> MailResult:
        message = Mail(
            from_email=self.from_email,
            to_emails=mail.to_email,
            subject=mail.subject,
            plain_text_content=mail.body,
        )
        response = self.client.send(message)
        return MailResult(
            success=response.status_code in (200, 201, 202),
            message_id=response.headers.get("X-Message-Id"),
            error_message=None if response.status_code < 300 else f"status {response.status_code}",
            provider=self.provider_name,
        )


def build_mailer(settings: Settings) -> BaseMailer:
    if settings.mail_backend == MailBackend.SENDGRID:
        if not settings.sendgrid_api_key:
            raise ValueError("SENDGRID_API_KEY is required when MAIL_BACKEND=sendgrid")
        logger.info("Mailer: SendGrid")
        return SendGridMailer(settings.sendgrid_api_key, settings.mail_from)
    logger.info("Mailer: log only")
    return LogMailer()


@lru_cache()
def get_mailer() -> BaseMailer:
    return build_mailer(get_settings())


def verification_email(settings: Settings, token: str) -> tuple[str, str]:
    body = (
        "Please click on the link below to verify your email\n\n"
        f"{settings.app_base_url}/auth/verifyEmail?token={token}\n\n"
        "Thank you"
    )
    return "Verify your email", body


def password_reset_email(settings: Settings, token: str) -> tuple[str, str]:
    body = (
        f"Your password reset code is: {token}\n\n"
        f"Submit it with your new password to {settings.app_base_url}/auth/updatepassword\n\n"
        "If you did not ask for a reset you can ignore this email."
    )
    return "Reset your password", body
