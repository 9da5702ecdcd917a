# infrastructure/blob/local_blob_store.py
# Filesystem blob store. Files are served back by the web app at /blobs/<blob_id>.

import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional

from application.dto.share_dto import FileRef
from application.ports.blob_store_port import IBlobStore
from codeshare.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

BLOB_ID_PATTERN: re.Pattern = re.compile(r"^[0-9a-f]{32}(\.[A-Za-z0-9]{1,10})?$")


class LocalBlobStore(IBlobStore):
    """Store blobs as flat files under *root_dir*."""

    def __init__(self, root_dir: str, base_url: str = "") -> None:
        self.root_dir: str = os.path.realpath(root_dir)
        self.base_url: str = base_url.rstrip("/")
        os.makedirs(self.root_dir, exist_ok=True)

    def upload(
        self,
        data: bytes,
        name: str,
        content_type: Optional[str],
        ttl_seconds: int,
    ) -> FileRef:
        suffix = Path(name).suffix.lower() if name else ""
        if suffix and not re.fullmatch(r"\.[a-z0-9]{1,10}", suffix):
            suffix = ""
        blob_id = f"{uuid.uuid4().hex}{suffix}"
        path = os.path.join(self.root_dir, blob_id)
        try:
            with open(path, "wb") as fh:
                fh.write(data)
        except OSError as e:
            logger.error("blob write failed path=%s: %s", path, e)
            raise UpstreamUnavailable(
                "Could not store the file.\n"
                "    → The storage directory is not writable."
            ) from e
        logger.debug("blob stored id=%s size=%dB ttl=%ds", blob_id, len(data), ttl_seconds)
        return FileRef(url=f"{self.base_url}/blobs/{blob_id}", blob_id=blob_id, name=name or None)

    def delete(self, blob_id: str) -> bool:
        path = self.path_for(blob_id)
        if path is None or not os.path.exists(path):
            return False
        try:
            os.unlink(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise UpstreamUnavailable(f"Could not delete blob '{blob_id}': {e}") from e
        return True

    def path_for(self, blob_id: str) -> Optional[str]:
        """Return the on-disk path for *blob_id*, or None if the id is not one of ours."""
        if not BLOB_ID_PATTERN.match(blob_id or ""):
            return None
        path = os.path.realpath(os.path.join(self.root_dir, blob_id))
        if not path.startswith(self.root_dir + os.sep):
            return None
        return path
