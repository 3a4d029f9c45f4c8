"""
Ticket issuance.

A ticket is a small JSON payload identifying the registration, rendered as
a QR image. ``parse_ticket_payload`` is the inverse used by the scanner: it
turns whatever the scanner read back into a registration lookup key.
"""

import io
import json
import logging
import time
from dataclasses import dataclass
from typing import Optional

import qrcode
import qrcode.image.pil
from PIL import Image

from summit_registration.core.config import settings
from summit_registration.core.exceptions import TicketRenderError
from summit_registration.db.base import utcnow
from summit_registration.utils.image import png_to_data_url

logger = logging.getLogger(__name__)


class QRRenderer:
    """Renders a payload string into PNG bytes"""

    def __init__(self, size: int = None, fill_color: str = None, back_color: str = None):
        self.size = size or settings.QR_CODE_SIZE
        self.fill_color = fill_color or settings.QR_FILL_COLOR
        self.back_color = back_color or settings.QR_BACK_COLOR

    def render(self, payload: str) -> bytes:
        qr = qrcode.QRCode(
            version=None,  # Smallest version that fits
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=2,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(
            image_factory=qrcode.image.pil.PilImage,
            fill_color=self.fill_color,
            back_color=self.back_color,
        ).get_image()
        img = img.resize((self.size, self.size), Image.Resampling.NEAREST)

        buffer = io.BytesIO()
        img.save(buffer, format="PNG", optimize=True)
        return buffer.getvalue()


@dataclass
class Ticket:
    registration_id: int
    payload: str
    image_data_url: str


class TicketIssuer:
    def __init__(self, renderer: Optional[QRRenderer] = None):
        self.renderer = renderer or QRRenderer()

    @staticmethod
    def build_payload(registration_id: int, participant: dict) -> dict:
        return {
            "registrationId": registration_id,
            "type": settings.TICKET_TYPE,
            "participant": {
                "name": f"{participant['firstName']} {participant['lastName']}",
                "email": participant["email"],
            },
            "event": settings.EVENT_TAG,
            "issued": utcnow().isoformat() + "Z",
        }

    def issue(self, registration_id: int, participant: dict) -> Ticket:
        """
        Build the payload and render it. Any renderer failure becomes a
        TicketRenderError; the registration itself is left untouched.
        """
        start_time = time.time()
        payload = json.dumps(self.build_payload(registration_id, participant), separators=(",", ":"))

        try:
            image = self.renderer.render(payload)
        except Exception as e:
            logger.error(f"❌ QR generation failed for registration {registration_id}: {e}", exc_info=True)
            raise TicketRenderError(registration_id=registration_id) from e

        elapsed = time.time() - start_time
        if elapsed > 2:
            logger.warning(f"QR generation took {elapsed:.2f}s for registration {registration_id}")
        logger.info(f"✅ Ticket issued for registration {registration_id} in {elapsed:.2f}s")

        return Ticket(
            registration_id=registration_id,
            payload=payload,
            image_data_url=png_to_data_url(image),
        )


def parse_ticket_payload(raw: str) -> Optional[str]:
    """
    Extract a registration lookup key from scanned data.

    Accepts the JSON ticket payload, a URL ending in ``/verify/{code}``, or
    a bare registration id, participant id or access code. Returns None if
    nothing usable is found.
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None

    try:
        data = json.loads(raw)
    except ValueError:
        data = None

    if isinstance(data, dict):
        if data.get("type") == settings.TICKET_TYPE and data.get("registrationId") is not None:
            return str(data["registrationId"])
        # Older tickets carried a bare id
        if data.get("id") is not None:
            return str(data["id"])
        return None

    if isinstance(data, int):
        return str(data)

    if "/verify/" in raw:
        code = raw.rsplit("/verify/", 1)[1]
        return code if len(code) == settings.ACCESS_CODE_LENGTH else None

    return raw
