"""
Public contact and quote forms.

Mounted under ``/api`` without authentication. Errors use the flat
``{"error": ...}`` body the marketing site expects instead of FastAPI's
``detail`` envelope.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from skill_matrix.application.services.support_service import (
    EmailConfigurationError,
    EmailData,
    EmailDeliveryError,
    generate_contact_email,
    generate_quote_email,
    missing_fields,
    relay,
)
from skill_matrix.core.observability import get_logger
from skill_matrix.models import ContactRequest, QuoteRequest

logger = get_logger(__name__)

router = APIRouter(tags=["support"])

CONTACT_FIELDS = ("email", "subject", "message")
QUOTE_FIELDS = ("company", "name", "email", "message")


def _send(kind: str, data: EmailData, reply_to: str | None) -> JSONResponse:
    try:
        message_id = relay(kind, data, reply_to)
    except EmailConfigurationError as e:
        logger.error("Support email not configured", kind=kind, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Email service configuration error"},
        )
    except EmailDeliveryError as e:
        logger.error("Support email failed", kind=kind, error=str(e))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to send email", "details": str(e)},
        )
    return JSONResponse(content={"success": True, "messageId": message_id})


@router.post("/contact")
def send_contact(payload: ContactRequest) -> JSONResponse:
    if missing_fields(payload, CONTACT_FIELDS):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing required fields: email, subject, message"},
        )
    return _send("contact", generate_contact_email(payload), payload.email)


@router.post("/quote")
def send_quote(payload: QuoteRequest) -> JSONResponse:
    if missing_fields(payload, QUOTE_FIELDS):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing required fields: company, name, email, message"},
        )
    return _send("quote", generate_quote_email(payload), payload.email)
