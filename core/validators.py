"""
Input validation utilities for image submissions.
"""
import base64
import binascii
import os
from typing import Iterable, Tuple, Optional


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for use in a storage key
    """
    if not filename:
        raise ValueError("Filename cannot be empty")

    # Remove directory separators and path components
    filename = os.path.basename(filename.replace("\\", "/"))

    # Keep alphanumeric, dots, dashes, underscores
    safe_chars = []
    for char in filename:
        if char.isalnum() or char in "._-":
            safe_chars.append(char)
        else:
            safe_chars.append("_")

    sanitized = "".join(safe_chars)

    if len(sanitized) > 200:
        sanitized = sanitized[:200]

    if not sanitized.strip("._"):
        raise ValueError("Filename became empty after sanitization")

    return sanitized


def validate_image_mime_type(mime_type: str, allowed_mime_types: Iterable[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate image MIME type.

    Returns:
        Tuple of (is_valid, error_message)
    """
    allowed = sorted(allowed_mime_types)
    if mime_type not in allowed:
        return False, f"Invalid image format. Only {', '.join(allowed)} are supported."
    return True, None


def validate_file_size(file_size: int, max_size_bytes: int) -> Tuple[bool, Optional[str]]:
    """
    Validate file size.

    Args:
        file_size: File size in bytes
        max_size_bytes: Maximum allowed size in bytes

    Returns:
        Tuple of (is_valid, error_message)
    """
    if file_size <= 0:
        return False, "File size must be greater than 0"

    if file_size > max_size_bytes:
        max_size_mb = max_size_bytes // (1024 * 1024)
        return False, f"File size exceeds {max_size_mb}MB limit"

    return True, None


def decode_base64_image(payload: str) -> bytes:
    """
    Decode a base64 image payload. Accepts an optional data-URL prefix
    (``data:image/png;base64,...``).

    Raises:
        ValueError: If the payload is empty or not valid base64
    """
    if not payload:
        raise ValueError("Image payload is empty")
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    # Line-wrapped base64 is accepted
    payload = "".join(payload.split())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Image payload is not valid base64")
    if not data:
        raise ValueError("Image payload is empty")
    return data
