"""
image_format.py — identify an image by its leading bytes.

The Content-Type header of a remote server is not trusted; the saved file's
extension always comes from the bytes themselves.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DetectedFormat:
    extension: str
    mime_type: str


JPEG = DetectedFormat("jpg", "image/jpeg")
PNG  = DetectedFormat("png", "image/png")
GIF  = DetectedFormat("gif", "image/gif")
WEBP = DetectedFormat("webp", "image/webp")
BMP  = DetectedFormat("bmp", "image/bmp")
ICO  = DetectedFormat("ico", "image/x-icon")
TIFF = DetectedFormat("tiff", "image/tiff")
SVG  = DetectedFormat("svg", "image/svg+xml")

# Checked in order, first match wins.
_SIGNATURES: tuple[tuple[bytes, DetectedFormat], ...] = (
    (b"\xff\xd8\xff", JPEG),
    (b"\x89PNG\r\n\x1a\n", PNG),
    (b"GIF87a", GIF),
    (b"GIF89a", GIF),
)
_LATE_SIGNATURES: tuple[tuple[bytes, DetectedFormat], ...] = (
    (b"BM", BMP),
    (b"\x00\x00\x01\x00", ICO),
    (b"II*\x00", TIFF),
    (b"MM\x00*", TIFF),
)

_SVG_SCAN_BYTES = 1000
_SVG_NAMESPACE = "http://www.w3.org/2000/svg"


def detect(data: bytes) -> Optional[DetectedFormat]:
    """Return the format of `data`, or None if it is not a recognised image."""
    if not data:
        return None

    for magic, fmt in _SIGNATURES:
        if data.startswith(magic):
            return fmt

    # RIFF container: bytes 4-8 are the chunk size, WEBP tag follows
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return WEBP

    for magic, fmt in _LATE_SIGNATURES:
        if data.startswith(magic):
            return fmt

    if _looks_like_svg(data):
        return SVG
    return None


def _looks_like_svg(data: bytes) -> bool:
    head = data[:_SVG_SCAN_BYTES].decode("utf-8", errors="ignore")
    return "<svg" in head.lower() and _SVG_NAMESPACE in head
