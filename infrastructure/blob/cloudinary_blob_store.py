# infrastructure/blob/cloudinary_blob_store.py
# Cloudinary-backed blob store.
# blob_id encodes "<resource_type>/<public_id>" because destroy() needs both.

import io
import logging
from typing import Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from application.dto.share_dto import FileRef
from application.ports.blob_store_port import IBlobStore
from codeshare.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

DEFAULT_FOLDER: str = "clipboard"
GONE_RESULTS: frozenset = frozenset({"not found", "not_found"})


def expiration_hint(ttl_seconds: int) -> str:
    """Provider context hint: 7200 → 'expiration=2h', 90 → 'expiration=90s'."""
    if ttl_seconds % 3600 == 0:
        return f"expiration={ttl_seconds // 3600}h"
    return f"expiration={ttl_seconds}s"


def split_blob_id(blob_id: str) -> tuple[str, str]:
    resource_type, sep, public_id = blob_id.partition("/")
    if not sep or resource_type not in ("image", "video", "raw"):
        # Bare public id, assume image like the upload default
        return "image", blob_id
    return resource_type, public_id


class CloudinaryBlobStore(IBlobStore):
    """
    Upload into a Cloudinary folder with a provider-side expiry hint.

    Credentials are passed on every call instead of through the SDK's
    process-wide ``cloudinary.config()``.
    """

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        folder: str = DEFAULT_FOLDER,
    ) -> None:
        self.folder: str = folder
        self._credentials: dict = {
            k: v
            for k, v in {
                "cloud_name": cloud_name,
                "api_key":    api_key,
                "api_secret": api_secret,
            }.items()
            if v
        }

    def upload(
        self,
        data: bytes,
        name: str,
        content_type: Optional[str],
        ttl_seconds: int,
    ) -> FileRef:
        options: dict = {
            "folder":        self.folder,
            "resource_type": "auto",
            "context":       expiration_hint(ttl_seconds),
            **self._credentials,
        }
        if name:
            options["filename_override"] = name

        try:
            result: dict = cloudinary.uploader.upload(io.BytesIO(data), **options)
        except CloudinaryError as e:
            logger.error("cloudinary upload failed: %s", e)
            raise UpstreamUnavailable(
                f"Failed to upload file: {e}\n"
                f"    → Try again in a moment."
            ) from e

        url = result.get("secure_url") or result.get("url")
        public_id = result.get("public_id")
        if not url or not public_id:
            raise UpstreamUnavailable("Failed to upload file: storage returned no URL.")

        resource_type = result.get("resource_type", "image")
        return FileRef(url=url, blob_id=f"{resource_type}/{public_id}", name=name or None)

    def delete(self, blob_id: str) -> bool:
        resource_type, public_id = split_blob_id(blob_id)
        try:
            result: dict = cloudinary.uploader.destroy(
                public_id,
                resource_type=resource_type,
                invalidate=True,
                **self._credentials,
            )
        except CloudinaryError as e:
            raise UpstreamUnavailable(f"Could not delete blob '{blob_id}': {e}") from e

        outcome = (result or {}).get("result", "")
        if outcome == "ok":
            return True
        if outcome in GONE_RESULTS:
            return False
        raise UpstreamUnavailable(f"Could not delete blob '{blob_id}': {outcome or 'no result'}")
