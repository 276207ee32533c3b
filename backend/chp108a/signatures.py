from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from reportlab.lib.utils import ImageReader

DATA_URI_PATTERN = re.compile(r"^data:image/(png|jpeg);base64,(.+)$", re.DOTALL)


@dataclass(frozen=True)
class SignatureImage:
    image: Optional[ImageReader] = None
    width: int = 0
    height: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None and self.error is None

    @classmethod
    def failure(cls, reason: str) -> "SignatureImage":
        return cls(error=reason)


def decode_signature(data_uri: str) -> SignatureImage:
    """Decode a captured signature data URI into an embeddable image.

    Never raises: unsupported encodings and undecodable images come back as a
    failure result carrying the reason.
    """
    match = DATA_URI_PATTERN.match((data_uri or "").strip())
    if match is None:
        return SignatureImage.failure("unsupported signature encoding")
    try:
        raw = base64.b64decode(re.sub(r"\s+", "", match.group(2)), validate=True)
    except (binascii.Error, ValueError) as exc:
        return SignatureImage.failure(f"invalid base64 payload: {exc}")
    if not raw:
        return SignatureImage.failure("empty image payload")
    try:
        reader = ImageReader(io.BytesIO(raw))
        width, height = reader.getSize()
        # Force a full pixel decode now so drawing cannot fail later.
        reader.getRGBData()
    except Exception as exc:
        return SignatureImage.failure(f"undecodable {match.group(1)} image: {exc}")
    if width <= 0 or height <= 0:
        return SignatureImage.failure("image has no pixels")
    return SignatureImage(image=reader, width=width, height=height)


def fit_within(width: float, height: float, max_width: float, max_height: float) -> Tuple[float, float]:
    scale = min(max_width / width, max_height / height)
    return width * scale, height * scale
