"""Image payload helpers.

Frames carry their images as ``data:`` URLs (base64), the same form the
vision providers accept, so payloads pass through unchanged until export.
"""

import base64
import binascii

_DATA_URL_PREFIX = "data:"


def encode_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    """Wrap raw image bytes in a base64 data URL."""
    encoded = base64.b64encode(data).decode("ascii")
    return f"{_DATA_URL_PREFIX}{mime_type};base64,{encoded}"


def split_data_url(payload: str) -> tuple[str, str]:
    """Return ``(mime_type, base64_data)`` for a data URL.

    A bare base64 string (no ``data:`` header) is treated as JPEG.
    """
    if not payload.startswith(_DATA_URL_PREFIX):
        return "image/jpeg", payload
    header, _, data = payload.partition(",")
    mime_type = header[len(_DATA_URL_PREFIX):].split(";", 1)[0] or "image/jpeg"
    return mime_type, data


def decode_data_url(payload: str) -> bytes:
    """Return the raw bytes of a data URL (or bare base64 string).

    Raises:
        ValueError: payload is not valid base64
    """
    _, data = split_data_url(payload)
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e
