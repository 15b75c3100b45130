"""
Image payload decoding shared by the API routes.

Payloads are only checked here (base64 and JPEG signature). The pixels are
decoded once, by the extractor, when the frame is processed.
"""

import base64
import binascii

from core.errors import InputFormatError
from core.extractor import validate_jpeg


def decode_base64_image(encoded: str) -> bytes:
    """
    Decode a base64 JPEG payload.

    Args:
        encoded: Base64 string, optionally with a "data:image/jpeg;base64," prefix.

    Returns:
        Raw JPEG bytes.

    Raises:
        InputFormatError: If the string is not valid base64 or not a JPEG.
    """
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InputFormatError(f"Invalid Base64 string: {e}") from e

    validate_jpeg(data)
    return data
