# application/ports/blob_store_port.py
# Port interface for the external blob store holding uploaded files.

from abc import ABC, abstractmethod
from typing import Optional

from application.dto.share_dto import FileRef


class IBlobStore(ABC):
    """Abstract base class for blob storage backends."""

    @abstractmethod
    def upload(
        self,
        data: bytes,
        name: str,
        content_type: Optional[str],
        ttl_seconds: int,
    ) -> FileRef:
        """
        Store *data* and return a reference to it.

        Args:
            data:         Raw file bytes.
            name:         Sanitized display name (may be empty).
            content_type: MIME type if known.
            ttl_seconds:  Provider-side expiry hint. Best-effort only.

        Returns:
            FileRef with a public retrieval URL and a deletion identifier.

        Raises:
            UpstreamUnavailable: the backend rejected or could not store the blob.
        """
        ...

    @abstractmethod
    def delete(self, blob_id: str) -> bool:
        """
        Delete a blob by identifier.

        Returns False when the blob was already gone. Raises
        UpstreamUnavailable when the backend could not be reached.
        """
        ...
