"""Relay contact and quote requests to the support mailbox."""

from dataclasses import dataclass
from email.utils import make_msgid
from pathlib import Path
from typing import Any

import emails  # type: ignore
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlmodel import SQLModel

from skill_matrix.core.config import settings
from skill_matrix.core.observability import SUPPORT_EMAILS, get_logger
from skill_matrix.models import ContactRequest, QuoteRequest

logger = get_logger(__name__)

_templates = Environment(
    loader=FileSystemLoader(Path(__file__).parents[2] / "email-templates"),
    autoescape=select_autoescape(["html"]),
)


class EmailConfigurationError(Exception):
    """Outbound email is not configured."""


class EmailDeliveryError(Exception):
    """The SMTP server refused or failed the message."""


@dataclass
class EmailData:
    html_content: str
    subject: str
    text_content: str = ""


def render_email_template(*, template_name: str, context: dict[str, Any]) -> str:
    return _templates.get_template(template_name).render(context)


def missing_fields(payload: SQLModel, required: tuple[str, ...]) -> list[str]:
    return [name for name in required if not (getattr(payload, name) or "").strip()]


def send_email(
    *,
    email_to: str,
    subject: str = "",
    html_content: str = "",
    text_content: str = "",
    reply_to: str | None = None,
) -> str:
    """
    Send an email through the configured SMTP server.

    Returns:
        The Message-ID of the sent email

    Raises:
        EmailConfigurationError: If SMTP or the sender address is not configured
        EmailDeliveryError: If the server does not accept the message
    """
    if not settings.emails_enabled:
        raise EmailConfigurationError("no provided configuration for email variables")
    message_id = make_msgid(domain=str(settings.EMAILS_FROM_EMAIL).split("@")[-1])
    message = emails.Message(
        subject=subject,
        html=html_content,
        text=text_content or None,
        mail_from=(settings.EMAILS_FROM_NAME, settings.EMAILS_FROM_EMAIL),
        headers={"Reply-To": reply_to} if reply_to else None,
        message_id=message_id,
    )
    smtp_options: dict[str, Any] = {
        "host": settings.SMTP_HOST,
        "port": settings.SMTP_PORT,
    }
    if settings.SMTP_TLS:
        smtp_options["tls"] = True
    elif settings.SMTP_SSL:
        smtp_options["ssl"] = True
    if settings.SMTP_USER:
        smtp_options["user"] = settings.SMTP_USER
    if settings.SMTP_PASSWORD:
        smtp_options["password"] = settings.SMTP_PASSWORD
    response = message.send(to=email_to, smtp=smtp_options)
    logger.info("send email result", status_code=response.status_code, to=email_to)
    if response.status_code not in (250, 251):
        raise EmailDeliveryError(
            str(response.error or response.status_text or "SMTP delivery failed")
        )
    return message_id


def _support_recipient() -> str:
    recipient = settings.SUPPORT_EMAIL_TO or settings.EMAILS_FROM_EMAIL
    if not recipient:
        raise EmailConfigurationError("SUPPORT_EMAIL_TO is not configured")
    return str(recipient)


def generate_contact_email(payload: ContactRequest) -> EmailData:
    return EmailData(
        subject=f"[{settings.PROJECT_NAME} Support] {payload.subject}",
        html_content=render_email_template(
            template_name="contact.html",
            context={
                "project_name": settings.PROJECT_NAME,
                "email": payload.email,
                "subject": payload.subject,
                "message": payload.message,
            },
        ),
        text_content=f"From: {payload.email}\n\n{payload.message}",
    )


def generate_quote_email(payload: QuoteRequest) -> EmailData:
    return EmailData(
        subject=f"[{settings.PROJECT_NAME} Quote Request] from {payload.company}",
        html_content=render_email_template(
            template_name="quote.html",
            context={
                "project_name": settings.PROJECT_NAME,
                "company": payload.company,
                "name": payload.name,
                "email": payload.email,
                "phone": payload.phone,
                "message": payload.message,
            },
        ),
        text_content=(
            f"Company: {payload.company}\nContact: {payload.name}\n"
            f"Email: {payload.email}\nPhone: {payload.phone or 'N/A'}\n\n"
            f"{payload.message}"
        ),
    )


def relay(kind: str, data: EmailData, reply_to: str | None) -> str:
    """Send a support email and count the outcome."""
    try:
        message_id = send_email(
            email_to=_support_recipient(),
            subject=data.subject,
            html_content=data.html_content,
            text_content=data.text_content,
            reply_to=reply_to,
        )
    except EmailConfigurationError:
        SUPPORT_EMAILS.labels(kind=kind, status="not_configured").inc()
        raise
    except EmailDeliveryError:
        SUPPORT_EMAILS.labels(kind=kind, status="failed").inc()
        raise
    SUPPORT_EMAILS.labels(kind=kind, status="sent").inc()
    return message_id
