# codeshare/wiring.py
# Builds the concrete stores and the service from Settings.

import logging

from application.ports.blob_store_port import IBlobStore
from application.ports.record_store_port import IRecordStore
from codeshare.config import Settings
from codeshare.core import ShareService
from infrastructure.blob import CloudinaryBlobStore, LocalBlobStore
from infrastructure.record import SqlRecordStore

logger = logging.getLogger(__name__)

BLOB_BACKENDS: frozenset = frozenset({"local", "cloudinary"})


def build_record_store(settings: Settings) -> IRecordStore:
    return SqlRecordStore(settings.database_url)


def build_blob_store(settings: Settings) -> IBlobStore:
    if settings.blob_backend not in BLOB_BACKENDS:
        raise ValueError(
            f"Unknown blob backend: '{settings.blob_backend}'.\n"
            f"    Supported: {', '.join(sorted(BLOB_BACKENDS))}\n"
            f"    → Set BLOB_BACKEND=local or BLOB_BACKEND=cloudinary."
        )
    if settings.blob_backend == "cloudinary":
        return CloudinaryBlobStore(
            cloud_name=settings.cloudinary_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
        )
    return LocalBlobStore(settings.blob_dir, base_url=settings.public_base_url)


def build_service(settings: Settings) -> ShareService:
    logger.info(
        "wiring service db=%s blobs=%s ttl=%ds",
        settings.database_url.split("://", 1)[0],
        settings.blob_backend,
        settings.share_ttl_seconds,
    )
    return ShareService(
        records=build_record_store(settings),
        blobs=build_blob_store(settings),
        ttl_seconds=settings.share_ttl_seconds,
        max_file_bytes=settings.max_file_bytes,
        max_text_chars=settings.max_text_chars,
        max_attempts=settings.max_code_attempts,
        sweep_batch_size=settings.sweep_batch_size,
    )
