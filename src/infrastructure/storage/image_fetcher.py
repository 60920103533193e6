"""
Image Fetcher — resolves an image URL to bytes for analysis.

Supports data URIs, http(s) URLs (httpx) and file:// references
returned by the local storage.
"""

import logging

import httpx

from src.core.errors import ValidationError
from src.core.payloads import decode_payload
from src.core.interfaces.storage_service import IStorageService

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10.0


class ImageFetcher:
    """Callable: url -> bytes. Raises ValidationError when the image can't be read."""

    def __init__(
        self,
        storage: IStorageService | None = None,
        max_bytes: int = 10 * 1024 * 1024,
        client: httpx.Client | None = None,
    ):
        self._storage = storage
        self._max_bytes = max_bytes
        self._client = client

    def __call__(self, url: str) -> bytes:
        if url.startswith("data:"):
            _, data = decode_payload(url)
        elif url.startswith(("http://", "https://")):
            data = self._fetch_http(url)
        elif url.startswith("file://"):
            data = self._fetch_stored(url)
        else:
            raise ValidationError(f"Unsupported image URL: {url[:60]}")

        if len(data) > self._max_bytes:
            raise ValidationError(f"Image size must be less than {self._max_bytes // (1024 * 1024)}MB")
        return data

    def _fetch_http(self, url: str) -> bytes:
        try:
            if self._client is not None:
                resp = self._client.get(url, timeout=HTTP_TIMEOUT, follow_redirects=True)
            else:
                resp = httpx.get(url, timeout=HTTP_TIMEOUT, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ValidationError(f"Image URL returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch image {url}: {e}")
            raise ValidationError(f"Could not fetch image: {e}") from e
        return resp.content

    def _fetch_stored(self, url: str) -> bytes:
        key = self._storage.key_for(url) if self._storage else None
        if key is None:
            raise ValidationError("Image reference is outside the verification store")
        try:
            return self._storage.download(key)
        except FileNotFoundError as e:
            raise ValidationError("Referenced image does not exist") from e
        except ValueError as e:
            raise ValidationError("Image reference is outside the verification store") from e
