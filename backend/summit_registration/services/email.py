"""
Email service using Resend for sending registration confirmations.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import resend

from summit_registration.core.config import settings
from summit_registration.utils.image import data_url_to_bytes

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"success": self.success, "messageId": self.message_id, "error": self.error}


class EmailService:
    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None, enabled: Optional[bool] = None):
        self.api_key = api_key or settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.enabled = settings.EMAIL_ENABLED if enabled is None else enabled

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.api_key)

    def send_confirmation(self, participant: dict, registration: dict) -> DeliveryResult:
        """
        Send the registration confirmation with the QR ticket attached.

        Args:
            participant: Participant fields (firstName, lastName, email, ...)
            registration: Registration fields (id, participantId, qrCode, ...)

        Returns:
            DeliveryResult; never raises for delivery problems
        """
        if not self.configured:
            logger.warning("Email delivery skipped: Resend is not configured")
            return DeliveryResult(success=False, error="Email service not configured")

        resend.api_key = self.api_key

        params = {
            "from": f"Youth Advocacy Hub <{self.sender}>",
            "to": [participant["email"]],
            "subject": f"Your Registration Confirmation - {settings.EVENT_NAME}",
            "html": self.render_html(participant, registration),
            "text": self.render_text(participant, registration),
        }

        qr_code = registration.get("qrCode")
        if qr_code:
            params["attachments"] = [{
                "filename": f"ticket-{registration.get('participantId') or registration.get('id')}.png",
                "content": list(data_url_to_bytes(qr_code)),
            }]

        try:
            response = resend.Emails.send(params)
        except Exception as e:
            logger.error(f"[EMAIL ERROR] Failed to send confirmation to {participant['email']}: {e}")
            return DeliveryResult(success=False, error=str(e))

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info(f"📧 Confirmation sent to {participant['email']} (message {message_id})")
        return DeliveryResult(success=True, message_id=message_id)

    def render_html(self, participant: dict, registration: dict) -> str:
        # Participant fields are escaped at intake
        name = f"{participant['firstName']} {participant['lastName']}"
        participant_id = registration.get("participantId", "")
        ticket_note = (
            "<p>Your QR ticket is attached to this email. Present it at the venue entrance for check-in.</p>"
            if registration.get("qrCode")
            else "<p>Your ticket will follow in a separate email.</p>"
        )

        return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: #2c5aa0; color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }}
            .content {{ background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px; }}
            .ticket-box {{ background: white; border: 2px dashed #2c5aa0; padding: 20px; text-align: center; margin: 20px 0; border-radius: 8px; }}
            .ticket-code {{ font-size: 28px; font-weight: bold; color: #2c5aa0; letter-spacing: 3px; }}
            .footer {{ text-align: center; color: #888; font-size: 12px; margin-top: 20px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>You're Registered!</h1>
            </div>
            <div class="content">
                <p>Hi {name},</p>
                <p>Your registration for <strong>{settings.EVENT_NAME}</strong> has been confirmed.</p>

                <div class="ticket-box">
                    <p style="margin: 0 0 10px 0; color: #666;">Your Participant ID</p>
                    <div class="ticket-code">{participant_id}</div>
                </div>

                {ticket_note}

                <p>Questions? Contact us at {settings.SUPPORT_EMAIL}.</p>
            </div>
            <div class="footer">
                <p>{settings.APP_BASE_URL}</p>
            </div>
        </div>
    </body>
    </html>
    """

    def render_text(self, participant: dict, registration: dict) -> str:
        return (
            f"Hi {participant['firstName']} {participant['lastName']},\n\n"
            f"Your registration for {settings.EVENT_NAME} has been confirmed.\n"
            f"Participant ID: {registration.get('participantId', '')}\n\n"
            "Your QR ticket is attached. Present it at the venue entrance for check-in.\n\n"
            f"Questions? Contact us at {settings.SUPPORT_EMAIL}.\n"
        )


def dispatch_confirmation(email_service: EmailService, participant: dict, registration: dict) -> DeliveryResult:
    """
    Fire-and-forget wrapper run after the HTTP response.

    A delivery problem is logged and never re-raised: the registration
    stands and an administrator can resend the ticket later.
    """
    try:
        result = email_service.send_confirmation(participant, registration)
    except Exception as e:
        logger.error(
            f"❌ Failed to send confirmation for registration {registration.get('id')} "
            f"to {participant.get('email')}: {e}",
            exc_info=True,
        )
        return DeliveryResult(success=False, error=str(e))

    if not result.success:
        logger.error(
            f"❌ Confirmation for registration {registration.get('id')} not delivered: {result.error}"
        )
    return result
