from __future__ import annotations

import httpx
import pytest

from src.core.errors import ValidationError
from src.core.payloads import encode_data_uri
from src.infrastructure.storage.image_fetcher import ImageFetcher


def test_stored_reference_is_read_from_storage(storage):
    ref = storage.upload(b"\xff\xd8stored", "live/sup1/photo-1.jpg", content_type="image/jpeg")
    fetch = ImageFetcher(storage=storage)
    assert fetch(storage.reference_for(ref.key)) == b"\xff\xd8stored"


def test_reference_escaping_the_store_is_refused(storage, tmp_path):
    secret = tmp_path / "secret.jpg"
    secret.write_bytes(b"not for you")
    escaping = storage.root.as_uri() + "/../secret.jpg"

    with pytest.raises(ValidationError, match="outside the verification store"):
        ImageFetcher(storage=storage)(escaping)


def test_percent_encoded_escape_is_refused(storage, tmp_path):
    (tmp_path / "secret.jpg").write_bytes(b"not for you")
    escaping = storage.root.as_uri() + "/%2E%2E/secret.jpg"

    with pytest.raises(ValidationError, match="outside the verification store"):
        ImageFetcher(storage=storage)(escaping)


def test_missing_stored_image_is_a_validation_error(storage):
    with pytest.raises(ValidationError, match="does not exist"):
        ImageFetcher(storage=storage)(storage.root.as_uri() + "/live/sup1/gone.jpg")


def test_file_reference_without_storage_is_refused():
    with pytest.raises(ValidationError):
        ImageFetcher()("file:///etc/hosts")


def test_data_uri_and_size_cap():
    fetch = ImageFetcher(max_bytes=4)
    assert fetch(encode_data_uri(b"abcd", "image/jpeg")) == b"abcd"
    with pytest.raises(ValidationError, match="less than"):
        fetch(encode_data_uri(b"abcde", "image/jpeg"))


def test_http_image_is_downloaded():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"\x89PNG")))
    assert ImageFetcher(client=client)("https://cdn.example.com/p.png") == b"\x89PNG"


def test_http_error_status_is_a_validation_error():
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    with pytest.raises(ValidationError, match="404"):
        ImageFetcher(client=client)("https://cdn.example.com/missing.png")
