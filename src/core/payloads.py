"""
Helpers for base64 / data-URI encoded file payloads.

Clients send files as `data:<mime>;base64,<data>` or as bare base64.
"""

import base64
import binascii
import re

from src.core.errors import ValidationError

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w=.-]+)*?;base64,(?P<data>.*)$", re.DOTALL)


def decode_payload(payload: str) -> tuple[str | None, bytes]:
    """
    Decode a data URI or bare base64 string.

    Returns:
        (mime type or None, raw bytes)

    Raises:
        ValidationError: payload is empty or not valid base64.
    """
    if not payload or not payload.strip():
        raise ValidationError("File content is empty")

    mime = None
    data = payload.strip()
    match = _DATA_URI.match(data)
    if match:
        mime = (match.group("mime") or "").lower() or None
        data = match.group("data")

    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"File content is not valid base64: {e}") from e

    if not raw:
        raise ValidationError("File content is empty")
    return mime, raw


def encode_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


_IDENTIFIER = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:-]{0,63}$")


def require_identifier(name: str, value: str) -> str:
    """
    Client-supplied ids end up in storage keys and indexed columns:
    letters, digits and `_ . : -`, at most 64 characters.
    """
    value = (value or "").strip()
    if not _IDENTIFIER.match(value):
        raise ValidationError(
            f"{name} must be 1-64 letters, digits, '_', '.', ':' or '-' and start with a letter or digit"
        )
    return value
