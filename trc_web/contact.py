"""Contact form relay: validate a submission and forward it by email."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

import anyio
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import Settings, email_service_configured, load_settings
from .mailer import EmailDeliveryError, EmailMessage, ResendMailer
from .recaptcha import RecaptchaVerifier

logger = logging.getLogger("trc.contact")

RECAPTCHA_ACTION = "submit_contact_form"
REQUIRED_FIELDS = ("name", "email", "interest")

EMAIL_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates" / "emails"


class ContactError(Exception):
    """A failure that maps onto an HTTP error response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, str]:
        payload = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ServiceNotConfiguredError(ContactError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvalidSubmissionError(ContactError):
    status_code = status.HTTP_400_BAD_REQUEST


class VerificationFailedError(ContactError):
    status_code = status.HTTP_403_FORBIDDEN


class NotificationDeliveryError(ContactError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ContactSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    interest: Optional[str] = None
    message: Optional[str] = None
    recaptcha_token: Optional[str] = Field(default=None, alias="recaptchaToken")

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value: object) -> Optional[str]:
        # Browsers and scripted clients post numbers or booleans for free-text fields.
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return json.dumps(value)

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


def _single_line(value: str) -> str:
    return " ".join(value.split())


def _default_timestamp() -> str:
    return datetime.now().strftime("%m/%d/%Y, %I:%M:%S %p")


class ContactService:
    """Relay contact submissions to the business owner and acknowledge the sender."""

    def __init__(
        self,
        settings: Settings,
        *,
        mailer: Optional[ResendMailer] = None,
        verifier: Optional[RecaptchaVerifier] = None,
        timestamp: Callable[[], str] = _default_timestamp,
    ) -> None:
        self._settings = settings
        self._mailer = mailer
        self._verifier = verifier or RecaptchaVerifier(
            settings.recaptcha_secret_key,
            min_score=settings.recaptcha_min_score,
        )
        self._timestamp = timestamp
        self._templates = Environment(
            loader=FileSystemLoader(str(EMAIL_TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    @property
    def success_message(self) -> str:
        return (
            "Your message has been sent successfully. "
            f"{self._settings.owner_name} will respond within 24 hours."
        )

    def _require_mailer(self) -> ResendMailer:
        if not email_service_configured(self._settings):
            raise ServiceNotConfiguredError(
                "Email service is not configured. Please contact us directly at "
                f"{self._settings.business_email} or call {self._settings.business_phone}"
            )
        if self._mailer is None:
            self._mailer = ResendMailer(self._settings.resend_api_key or "")
        return self._mailer

    def parse(self, body: bytes) -> ContactSubmission:
        try:
            raw = json.loads(body or b"null")
        except ValueError as exc:
            raise InvalidSubmissionError("Invalid request payload") from exc
        if not isinstance(raw, dict):
            raise InvalidSubmissionError("Invalid request payload")
        submission = ContactSubmission.model_validate(raw)
        if submission.missing_fields():
            raise InvalidSubmissionError("Missing required fields")
        return submission

    def verify(self, submission: ContactSubmission, *, remote_ip: Optional[str] = None) -> None:
        token = submission.recaptcha_token
        if not token:
            return
        result = self._verifier.verify(token, RECAPTCHA_ACTION, remote_ip=remote_ip)
        if not result.success:
            logger.warning("reCAPTCHA verification failed: %s", result.error)
            raise VerificationFailedError(
                result.error or "Security verification failed. Please try again."
            )
        logger.info("reCAPTCHA verified successfully (score: %s)", result.score)

    def render_notification(self, submission: ContactSubmission) -> EmailMessage:
        html = self._templates.get_template("admin_notification.html").render(
            submission=submission,
            submitted_at=self._timestamp(),
        )
        return EmailMessage(
            sender=self._settings.notification_sender,
            to=self._settings.business_email,
            subject=f"New Contact Form Submission from {_single_line(submission.name or '')}",
            html=html,
            reply_to=submission.email,
        )

    def render_confirmation(self, submission: ContactSubmission) -> EmailMessage:
        settings = self._settings
        html = self._templates.get_template("customer_confirmation.html").render(
            submission=submission,
            brand_name=settings.brand_name,
            owner_name=settings.owner_name,
            business_email=settings.business_email,
            business_phone=settings.business_phone,
            site_domain=settings.site_domain,
        )
        return EmailMessage(
            sender=settings.confirmation_sender,
            to=submission.email or "",
            subject=f"Thank You for Contacting {settings.brand_name}",
            html=html,
        )

    def _send_confirmation(self, mailer: ResendMailer, submission: ContactSubmission) -> bool:
        try:
            mailer.send(self.render_confirmation(submission))
        except EmailDeliveryError as exc:
            logger.warning("Customer confirmation email failed: %s", exc)
            return False
        except Exception:
            logger.warning("Customer confirmation email could not be prepared", exc_info=True)
            return False
        return True

    def handle(self, body: bytes, *, remote_ip: Optional[str] = None) -> Dict[str, object]:
        """Process one raw request body and return the success payload.

        Raises :class:`ContactError` subclasses for every required-path failure.
        """

        mailer = self._require_mailer()
        submission = self.parse(body)
        self.verify(submission, remote_ip=remote_ip)

        try:
            mailer.send(self.render_notification(submission))
        except EmailDeliveryError as exc:
            logger.error("Email send error: %s", exc)
            raise NotificationDeliveryError(
                "Failed to send email notification",
                details=str(exc) or "Unknown error",
            ) from exc

        confirmed = self._send_confirmation(mailer, submission)
        logger.info(
            "Contact form submission from %s (%s) - admin notified, confirmation %s",
            submission.name,
            submission.email,
            "sent" if confirmed else "failed",
        )
        return {"success": True, "message": self.success_message}


def create_router(service: ContactService) -> APIRouter:
    router = APIRouter()

    @router.post("/contact", name="submit_contact")
    async def submit_contact(request: Request):
        remote_ip = request.client.host if request.client else None
        try:
            body = await request.body()

            def _handle_sync() -> Dict[str, object]:
                return service.handle(body, remote_ip=remote_ip)

            payload = await anyio.to_thread.run_sync(_handle_sync)
        except ContactError as exc:
            return JSONResponse(status_code=exc.status_code, content=exc.to_payload())
        except Exception:
            logger.exception("Contact form error")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "An error occurred while processing your request"},
            )
        return JSONResponse(status_code=status.HTTP_200_OK, content=payload)

    return router


def create_app(
    *,
    settings: Optional[Settings] = None,
    service: Optional[ContactService] = None,
) -> FastAPI:
    """Create a standalone application serving ``POST /api/contact``."""

    if service is None:
        service = ContactService(settings or load_settings())

    app = FastAPI(
        title="TRC Contact Relay",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.contact_service = service
    app.include_router(create_router(service), prefix="/api")
    return app


__all__ = [
    "ContactError",
    "ContactService",
    "ContactSubmission",
    "InvalidSubmissionError",
    "NotificationDeliveryError",
    "RECAPTCHA_ACTION",
    "ServiceNotConfiguredError",
    "VerificationFailedError",
    "create_app",
    "create_router",
]
