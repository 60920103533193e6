"""
Contract: Storage Service

Binary content of uploaded documents and live photos. Records never hold
the bytes, only the reference returned by `reference_for`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StorageRef:
    key: str
    size_bytes: int
    sha256: str
    content_type: str


class IStorageService(ABC):
    """Port: key/value blob store (local disk, S3, MinIO...)."""

    @abstractmethod
    def upload(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> StorageRef:
        """
        Store `data` under `key`, replacing any previous content.

        Returns:
            StorageRef with size and sha256 of what was written.
        """
        ...

    @abstractmethod
    def download(self, key: str) -> bytes:
        """Raises FileNotFoundError for unknown keys."""
        ...

    @abstractmethod
    def reference_for(self, key: str) -> str:
        """Reference (URL/URI) persisted on the record."""
        ...

    @abstractmethod
    def key_for(self, reference: str) -> str | None:
        """Inverse of reference_for; None when the reference is not ours."""
        ...
