from __future__ import annotations

import mimetypes

from photoshelf.core.errors import ValidationError

MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024

JPEG_MAGIC = b"\xFF\xD8\xFF"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
WEBP_RIFF = b"RIFF"
WEBP_TYPE = b"WEBP"
GIF87A = b"GIF87a"
GIF89A = b"GIF89a"


def detect_image_content_type(filename: str | None, file_bytes: bytes) -> str | None:
    guessed, _ = mimetypes.guess_type(filename or "")
    if guessed and guessed.startswith("image/"):
        return guessed

    if file_bytes.startswith(JPEG_MAGIC):
        return "image/jpeg"
    if file_bytes.startswith(PNG_MAGIC):
        return "image/png"
    if file_bytes.startswith(GIF87A) or file_bytes.startswith(GIF89A):
        return "image/gif"
    if len(file_bytes) >= 12 and file_bytes[:4] == WEBP_RIFF and file_bytes[8:12] == WEBP_TYPE:
        return "image/webp"
    return None


def normalize_image_content_type(filename: str, content_type: str | None, file_bytes: bytes) -> str:
    if content_type and content_type.startswith("image/"):
        return content_type
    detected = detect_image_content_type(filename, file_bytes)
    if detected:
        return detected
    return "application/octet-stream"


def validate_image_upload(filename: str, file_bytes: bytes, content_type: str | None) -> str:
    """Check an uploaded image and return its effective content type."""
    if not file_bytes:
        raise ValidationError(f"{filename} is empty.")
    if len(file_bytes) > MAX_FILE_SIZE_BYTES:
        raise ValidationError(f"{filename} exceeds the {MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB limit.")

    content_type = normalize_image_content_type(filename, content_type, file_bytes)
    if not content_type.startswith("image/"):
        raise ValidationError(f"{filename} is not an image.")

    if content_type in {"image/jpeg", "image/jpg"} and not file_bytes.startswith(JPEG_MAGIC):
        raise ValidationError(f"Magic bytes do not match claimed type for {filename} (expected JPEG).")
    if content_type == "image/png" and not file_bytes.startswith(PNG_MAGIC):
        raise ValidationError(f"Magic bytes do not match claimed type for {filename} (expected PNG).")
    return content_type
