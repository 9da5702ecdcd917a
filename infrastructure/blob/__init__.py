from .cloudinary_blob_store import CloudinaryBlobStore
from .local_blob_store import LocalBlobStore

__all__ = [
    "CloudinaryBlobStore",
    "LocalBlobStore",
]
