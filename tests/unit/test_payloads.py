from __future__ import annotations

import base64

import pytest

from src.core.errors import ValidationError
from src.core.payloads import decode_payload, encode_data_uri, require_identifier


def test_decode_data_uri_returns_mime_and_bytes():
    mime, raw = decode_payload(encode_data_uri(b"%PDF-1.4 body", "application/pdf"))
    assert mime == "application/pdf"
    assert raw == b"%PDF-1.4 body"


def test_decode_bare_base64_has_no_mime():
    mime, raw = decode_payload(base64.b64encode(b"hello").decode())
    assert mime is None
    assert raw == b"hello"


def test_decode_data_uri_with_extra_parameters():
    payload = "data:image/jpeg;name=x.jpg;base64," + base64.b64encode(b"\xff\xd8\xff").decode()
    mime, raw = decode_payload(payload)
    assert mime == "image/jpeg"
    assert raw == b"\xff\xd8\xff"


@pytest.mark.parametrize("payload", ["", "   ", "not base64 !!", "data:image/png;base64,"])
def test_decode_rejects_empty_or_invalid(payload):
    with pytest.raises(ValidationError):
        decode_payload(payload)


@pytest.mark.parametrize("value", ["sup1", "SUP-2024.07", "farm:42", "a_b"])
def test_identifier_accepts_plain_ids(value):
    assert require_identifier("supplierId", f" {value} ") == value


@pytest.mark.parametrize("value", ["../../..", "sup/1", "..", ".hidden", "sup 1", "x" * 65, ""])
def test_identifier_rejects_path_like_or_oversized_ids(value):
    with pytest.raises(ValidationError, match="supplierId"):
        require_identifier("supplierId", value)
