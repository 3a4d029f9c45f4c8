from unittest.mock import MagicMock, patch

from summit_registration.services.email import DeliveryResult, EmailService, dispatch_confirmation
from summit_registration.utils.image import png_to_data_url

PARTICIPANT = {
    "participantId": "KDYES2542",
    "firstName": "Aminata",
    "lastName": "Kamara",
    "email": "aminata.kamara@example.com",
}
REGISTRATION = {
    "id": 7,
    "participantId": "KDYES2542",
    "qrCode": png_to_data_url(b"\x89PNG fake image"),
}


def test_unconfigured_service_does_not_send():
    service = EmailService(api_key=None, enabled=True)

    with patch("summit_registration.services.email.resend.Emails.send") as send:
        result = service.send_confirmation(PARTICIPANT, REGISTRATION)

    assert result.success is False
    assert result.error == "Email service not configured"
    send.assert_not_called()


def test_send_confirmation_attaches_ticket():
    service = EmailService(api_key="re_test_key", sender="noreply@example.org", enabled=True)

    with patch("summit_registration.services.email.resend.Emails.send", return_value={"id": "msg_123"}) as send:
        result = service.send_confirmation(PARTICIPANT, REGISTRATION)

    assert result == DeliveryResult(success=True, message_id="msg_123")
    params = send.call_args.args[0]
    assert params["to"] == ["aminata.kamara@example.com"]
    assert "KDYES2542" in params["html"]
    assert "KDYES2542" in params["text"]
    assert params["attachments"][0]["filename"] == "ticket-KDYES2542.png"
    assert bytes(params["attachments"][0]["content"]) == b"\x89PNG fake image"


def test_send_failure_is_returned_not_raised():
    service = EmailService(api_key="re_test_key", enabled=True)

    with patch("summit_registration.services.email.resend.Emails.send", side_effect=RuntimeError("rate limited")):
        result = service.send_confirmation(PARTICIPANT, REGISTRATION)

    assert result.success is False
    assert "rate limited" in result.error


def test_dispatch_swallows_collaborator_errors():
    service = MagicMock()
    service.send_confirmation.side_effect = RuntimeError("connection reset")

    result = dispatch_confirmation(service, PARTICIPANT, REGISTRATION)

    assert result.success is False
    assert result.to_dict() == {"success": False, "messageId": None, "error": "connection reset"}
