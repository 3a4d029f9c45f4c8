import base64
import io
import logging

from PIL import Image

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"

def png_to_data_url(image_bytes: bytes) -> str:
    """Wrap PNG bytes in a data URL that browsers and email clients can display"""
    return DATA_URL_PREFIX + base64.b64encode(image_bytes).decode("ascii")

def data_url_to_bytes(data_url: str) -> bytes:
    """Strip the data URL header and decode the image"""
    if "," not in data_url:
        raise ValueError("Not a data URL")
    return base64.b64decode(data_url.split(",", 1)[1])

def image_stats(data_url: str) -> dict:
    """
    Size and dimensions of a stored ticket image.
    Returns {"error": ...} when the image cannot be read.
    """
    try:
        raw = data_url_to_bytes(data_url)
        image = Image.open(io.BytesIO(raw))
        return {
            "size": len(raw),
            "sizeKB": round(len(raw) / 1024, 2),
            "format": image.format,
            "width": image.width,
            "height": image.height,
        }
    except (ValueError, OSError) as e:
        logger.warning(f"Unable to analyze ticket image: {e}")
        return {"error": "Unable to analyze QR code"}
