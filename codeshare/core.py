import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from application.dto.share_dto import (
    FileRef,
    ReclaimReportDTO,
    RetrieveResultDTO,
    ShareRecord,
    SweepReportDTO,
    UploadDTO,
)
from application.ports.blob_store_port import IBlobStore
from application.ports.record_store_port import IRecordStore
from codeshare.errors import CapacityExhausted, Conflict, ShareError
from codeshare.utils import (
    DEFAULT_FILE_NAME,
    MAX_CODE_ATTEMPTS,
    MAX_FILE_BYTES,
    MAX_TEXT_CHARS,
    SHARE_TTL_SECONDS,
    SWEEP_BATCH_SIZE,
    format_size,
    generate_code,
    normalize_code,
    sanitize_filename,
    validate_payload,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShareService:
    """
    Issue, retrieve and reclaim short-code shares.

    Args:
        records:       Persistence store keyed by code.
        blobs:         Blob store for uploaded files.
        clock:         Returns the current time as an aware UTC datetime.
        code_factory:  Draws a candidate code. Injected by tests.
        ttl_seconds:   Lifetime of a share.
        max_file_bytes, max_text_chars: payload limits.
        max_attempts:  Code draws before giving up with CapacityExhausted.
        sweep_batch_size: Expired records fetched per scan in sweep().
    """

    def __init__(
        self,
        records: IRecordStore,
        blobs: IBlobStore,
        clock: Callable[[], datetime] = utcnow,
        code_factory: Callable[[], str] = generate_code,
        ttl_seconds: int = SHARE_TTL_SECONDS,
        max_file_bytes: int = MAX_FILE_BYTES,
        max_text_chars: int = MAX_TEXT_CHARS,
        max_attempts: int = MAX_CODE_ATTEMPTS,
        sweep_batch_size: int = SWEEP_BATCH_SIZE,
    ) -> None:
        self.records = records
        self.blobs = blobs
        self.clock = clock
        self.code_factory = code_factory
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_file_bytes = max_file_bytes
        self.max_text_chars = max_text_chars
        self.max_attempts = max_attempts
        self.sweep_batch_size = sweep_batch_size

    # ── Code Issuer ──────────────────────────────────────────────

    def issue(self, text: Optional[str] = None, file: Optional[UploadDTO] = None) -> str:
        """Persist a new share and return its code."""
        return self.create(text=text, file=file).code

    def create(self, text: Optional[str] = None, file: Optional[UploadDTO] = None) -> ShareRecord:
        """
        Persist a new share and return the stored record.

        The blob (if any) is uploaded before the row is written; if the row
        cannot be written the blob is removed again, so a failed call leaves
        nothing behind.
        """
        data = file.data if file is not None else None
        validate_payload(text, data, self.max_file_bytes, self.max_text_chars)

        file_ref: Optional[FileRef] = None
        if data:
            name = sanitize_filename(file.name)
            file_ref = self.blobs.upload(
                data, name, file.content_type, int(self.ttl.total_seconds())
            )

        try:
            record = self._insert_with_fresh_code(text or "", file_ref)
        except Exception:
            if file_ref is not None:
                self._discard_blob(file_ref.blob_id)
            raise

        logger.info(
            "share issued code=%s kind=%s size=%s",
            record.code,
            record.kind,
            format_size(len(data)) if data else f"{len(record.text)} chars",
        )
        return record

    def _insert_with_fresh_code(self, text: str, file_ref: Optional[FileRef]) -> ShareRecord:
        for attempt in range(1, self.max_attempts + 1):
            code = self.code_factory()
            now = self.clock()

            # Fast path only; the store's unique key is the real guard.
            # Expired rows still hold their code until the sweep removes them.
            if self.records.get(code) is not None:
                continue

            record = ShareRecord(
                code=code,
                text=text,
                file_ref=file_ref,
                created_at=now,
                expires_at=now + self.ttl,
            )
            try:
                self.records.create(record)
            except Conflict:
                logger.debug("code collision on insert code=%s attempt=%d", code, attempt)
                continue
            return record

        logger.error("no free code after %d attempts", self.max_attempts)
        raise CapacityExhausted(
            f"No free code available after {self.max_attempts} attempts.\n"
            f"    → Too many active shares. Try again in a few minutes."
        )

    def _discard_blob(self, blob_id: str) -> None:
        try:
            self.blobs.delete(blob_id)
        except ShareError as e:
            logger.warning("orphan blob cleanup failed blob=%s: %s", blob_id, e)

    # ── Retriever ────────────────────────────────────────────────

    def retrieve(self, code: str) -> Optional[RetrieveResultDTO]:
        """Return the shaped share for *code*, or None if absent or expired."""
        code = normalize_code(code)
        record = self.records.get(code)
        if record is None or not record.is_live(self.clock()):
            return None

        if record.file_ref is not None:
            return RetrieveResultDTO(
                kind="file",
                text=record.text or "",
                file_name=_display_name(record.file_ref),
                file_url=record.file_ref.url,
                expires_at=record.expires_at,
            )
        return RetrieveResultDTO(
            kind="text",
            text=record.text or "",
            expires_at=record.expires_at,
        )

    # ── Expiry Manager ───────────────────────────────────────────

    def reclaim(self, code: str, record: Optional[ShareRecord] = None) -> ReclaimReportDTO:
        """
        Delete the blob and the row for *code*. Never raises.

        Either deletion may fail without blocking the other; "already gone"
        counts as success.
        """
        report = ReclaimReportDTO(code=code)

        if record is None:
            try:
                record = self.records.get(code)
            except ShareError as e:
                report.errors.append(f"lookup: {e}")
                logger.warning("reclaim lookup failed code=%s: %s", code, e)

        if record is not None and record.file_ref is not None and record.file_ref.blob_id:
            try:
                report.blob_deleted = self.blobs.delete(record.file_ref.blob_id)
            except Exception as e:
                report.errors.append(f"blob: {e}")
                logger.warning(
                    "blob delete failed code=%s blob=%s: %s", code, record.file_ref.blob_id, e
                )

        try:
            report.record_deleted = self.records.delete(
                code, record.expires_at if record is not None else None
            )
        except Exception as e:
            report.errors.append(f"record: {e}")
            logger.warning("record delete failed code=%s: %s", code, e)

        return report

    def sweep(self, now: Optional[datetime] = None, batch_size: Optional[int] = None) -> SweepReportDTO:
        """
        Reclaim every record whose expiry has passed.

        Scans in batches until a batch comes back short. Records whose row
        could not be deleted are skipped for the rest of the pass so a
        persistent failure cannot loop forever.
        """
        now = now or self.clock()
        batch_size = batch_size or self.sweep_batch_size
        report = SweepReportDTO()
        stuck: set = set()

        while True:
            try:
                batch = self.records.list_expired(now, limit=batch_size + len(stuck))
            except ShareError as e:
                logger.warning("sweep scan failed: %s", e)
                report.failures += 1
                break

            batch = [r for r in batch if r.code not in stuck]
            for record in batch:
                result = self.reclaim(record.code, record)
                report.add(result)
                if result.errors and not result.record_deleted:
                    stuck.add(record.code)

            if len(batch) < batch_size:
                break

        if report.scanned:
            logger.info(
                "sweep done scanned=%d records=%d blobs=%d failures=%d",
                report.scanned, report.records_deleted, report.blobs_deleted, report.failures,
            )
        return report

    def live_count(self) -> int:
        return self.records.count_live(self.clock())


def _display_name(file_ref: FileRef) -> str:
    if file_ref.name:
        return file_ref.name
    if file_ref.blob_id:
        return file_ref.blob_id.rsplit("/", 1)[-1]
    return DEFAULT_FILE_NAME

