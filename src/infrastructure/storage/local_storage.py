"""
Adapter: Local Filesystem Storage

Concrete IStorageService writing under a root directory. In production,
swap for an object store without touching any other code.
"""

import hashlib
import logging
from pathlib import Path
from urllib.parse import unquote

from src.core.interfaces.storage_service import IStorageService, StorageRef

logger = logging.getLogger(__name__)


class LocalStorageService(IStorageService):
    """Stores artifacts as plain files: <root>/<key>."""

    def __init__(self, root: str | Path):
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def upload(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> StorageRef:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug(f"Stored {key} ({len(data)} bytes, {content_type})")
        return StorageRef(
            key=key,
            size_bytes=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
            content_type=content_type,
        )

    def download(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise FileNotFoundError(key)
        return path.read_bytes()

    def reference_for(self, key: str) -> str:
        return self._path_for(key).as_uri()

    def key_for(self, reference: str) -> str | None:
        """file:// URI under the root → key. None for anything that resolves outside it."""
        if not reference.startswith("file://"):
            return None
        prefix = self._root.as_uri().rstrip("/") + "/"
        if not reference.startswith(prefix):
            return None
        key = unquote(reference[len(prefix):])
        try:
            self._path_for(key)
        except ValueError:
            return None
        return key

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path
