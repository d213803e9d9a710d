"""
imaging/validator.py — Retinal image intake gate
==================================================
Runs before any image is sent for remote risk assessment.  Checks are
ordered from cheapest to most expensive and stop at the first failure:

    1. Format      JPEG or PNG only (data-URI prefix or magic bytes)
    2. Size        ≤ 10 MB of image bytes, checked before decoding
    3. Decode      OpenCV must be able to read the pixels
    4. Dimensions  width and height both within [512, 4096] px

Rejections are returned as an `ImageValidation` with a human-readable
reason, never raised.  The payload is read, never modified or stored.
"""

import base64
import binascii
import re
from dataclasses import dataclass

import cv2
import numpy as np

from config import IMAGE_MAX_BYTES, IMAGE_MAX_DIMENSION, IMAGE_MIN_DIMENSION
from utils.logger import get_logger

logger = get_logger("imaging.validator")

DATA_URI_PATTERN = re.compile(r"^data:image/(jpeg|jpg|png);base64,", re.IGNORECASE)

_JPEG_MAGIC = b"\xff\xd8\xff"
_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

FORMAT_ERROR = "Invalid image format. Please provide a JPEG or PNG image."
CORRUPTED_ERROR = "Unable to read image. The file may be corrupted."


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class ImageValidation:
    is_valid: bool
    reason: str | None = None
    dimensions: Dimensions | None = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "reason": self.reason,
            "dimensions": (
                {"width": self.dimensions.width, "height": self.dimensions.height}
                if self.dimensions is not None
                else None
            ),
        }


def _has_supported_signature(raw: bytes) -> bool:
    return raw.startswith(_JPEG_MAGIC) or raw.startswith(_PNG_MAGIC)


def _encoded_size(b64_body: str) -> int:
    """Byte length the base64 body decodes to, computed without decoding."""
    body = b64_body.strip()
    padding = len(body) - len(body.rstrip("="))
    return (len(body) * 3) // 4 - padding


def decode_dimensions(raw: bytes) -> Dimensions | None:
    """Decode image bytes with OpenCV; None if they cannot be decoded."""
    buffer = np.frombuffer(raw, dtype=np.uint8)
    if buffer.size == 0:
        return None
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if image is None:
        return None
    height, width = image.shape[:2]
    return Dimensions(width=int(width), height=int(height))


def validate_image(payload: str | bytes) -> ImageValidation:
    """
    Gate an image before remote analysis.

    Parameters
    ----------
    payload : str | bytes
        Either a `data:image/...;base64,` URI or the raw file bytes.

    Returns
    -------
    ImageValidation
        `dimensions` is filled whenever the image was decoded.
    """
    # ── 1. Format ──────────────────────────────────────────────────────────
    if isinstance(payload, str):
        match = DATA_URI_PATTERN.match(payload)
        if match is None:
            logger.warning("Rejected image: unsupported data-URI prefix.")
            return ImageValidation(is_valid=False, reason=FORMAT_ERROR)
        b64_body = payload[match.end():]

        # ── 2. Size (from the base64 length, nothing decoded yet) ──────────
        if _encoded_size(b64_body) > IMAGE_MAX_BYTES:
            logger.warning("Rejected image: exceeds %d bytes.", IMAGE_MAX_BYTES)
            return ImageValidation(is_valid=False, reason=_size_error())
        try:
            raw = base64.b64decode(b64_body, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Rejected image: base64 payload is malformed.")
            return ImageValidation(is_valid=False, reason=CORRUPTED_ERROR)
    elif isinstance(payload, (bytes, bytearray)):
        raw = bytes(payload)
        if not _has_supported_signature(raw):
            logger.warning("Rejected image: not a JPEG or PNG byte stream.")
            return ImageValidation(is_valid=False, reason=FORMAT_ERROR)
        if len(raw) > IMAGE_MAX_BYTES:
            logger.warning("Rejected image: exceeds %d bytes.", IMAGE_MAX_BYTES)
            return ImageValidation(is_valid=False, reason=_size_error())
    else:
        return ImageValidation(is_valid=False, reason=FORMAT_ERROR)

    # ── 3. Decode ──────────────────────────────────────────────────────────
    dims = decode_dimensions(raw)
    if dims is None:
        logger.warning("Rejected image: decode failed.")
        return ImageValidation(is_valid=False, reason=CORRUPTED_ERROR)

    # ── 4. Dimensions ──────────────────────────────────────────────────────
    if dims.width < IMAGE_MIN_DIMENSION or dims.height < IMAGE_MIN_DIMENSION:
        logger.warning("Rejected image: %s is below minimum.", dims)
        return ImageValidation(
            is_valid=False,
            reason=(
                f"Image too small for medical analysis. Minimum "
                f"{IMAGE_MIN_DIMENSION}x{IMAGE_MIN_DIMENSION} pixels required, got {dims}."
            ),
            dimensions=dims,
        )
    if dims.width > IMAGE_MAX_DIMENSION or dims.height > IMAGE_MAX_DIMENSION:
        logger.warning("Rejected image: %s is above maximum.", dims)
        return ImageValidation(
            is_valid=False,
            reason=(
                f"Image too large. Maximum "
                f"{IMAGE_MAX_DIMENSION}x{IMAGE_MAX_DIMENSION} pixels allowed, got {dims}."
            ),
            dimensions=dims,
        )

    logger.info("Image accepted (%s, %d bytes).", dims, len(raw))
    return ImageValidation(is_valid=True, dimensions=dims)


def _size_error() -> str:
    return f"Image file too large. Maximum size is {IMAGE_MAX_BYTES // (1024 * 1024)} MB."
