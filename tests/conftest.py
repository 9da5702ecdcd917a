from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from application.dto.share_dto import FileRef, ShareRecord
from application.ports.blob_store_port import IBlobStore
from codeshare.core import ShareService
from codeshare.errors import Conflict, UpstreamUnavailable
from infrastructure.blob import LocalBlobStore
from infrastructure.record import MemoryRecordStore

START: datetime = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now: datetime = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class SequenceCodes:
    """Code factory returning a fixed sequence, then repeating the last one."""

    def __init__(self, *codes: str) -> None:
        self.codes: List[str] = list(codes)
        self.drawn: List[str] = []

    def __call__(self) -> str:
        code = self.codes.pop(0) if len(self.codes) > 1 else self.codes[0]
        self.drawn.append(code)
        return code


class FailingBlobStore(IBlobStore):
    """Blob store whose upload and/or delete always fail."""

    def __init__(self, fail_upload: bool = True, fail_delete: bool = True) -> None:
        self.fail_upload = fail_upload
        self.fail_delete = fail_delete
        self.uploads: int = 0
        self.deletes: List[str] = []

    def upload(self, data: bytes, name: str, content_type: Optional[str], ttl_seconds: int) -> FileRef:
        self.uploads += 1
        if self.fail_upload:
            raise UpstreamUnavailable("Failed to upload file: storage offline")
        return FileRef(url=f"https://blobs.example/{self.uploads}", blob_id=f"raw/{self.uploads}", name=name)

    def delete(self, blob_id: str) -> bool:
        self.deletes.append(blob_id)
        if self.fail_delete:
            raise UpstreamUnavailable("storage offline")
        return True


class RacingRecordStore(MemoryRecordStore):
    """
    Memory store whose lookups never see the competing writes, so the
    pre-check passes and only the insert detects the collision.
    """

    def __init__(self, taken: List[str]) -> None:
        super().__init__()
        self.taken = set(taken)
        self.conflicts: int = 0

    def get(self, code: str) -> Optional[ShareRecord]:
        if code in self.taken:
            return None
        return super().get(code)

    def create(self, record: ShareRecord) -> None:
        if record.code in self.taken:
            self.conflicts += 1
            raise Conflict(record.code)
        super().create(record)


class BrokenCreateRecordStore(MemoryRecordStore):
    """Memory store whose inserts fail with *error* after the lookup passes."""

    def __init__(self, error: Exception) -> None:
        super().__init__()
        self.error = error

    def create(self, record: ShareRecord) -> None:
        raise self.error


class BrokenDeleteRecordStore(MemoryRecordStore):
    """Memory store whose delete always fails."""

    def delete(self, code: str, expires_at: Optional[datetime] = None) -> bool:
        raise UpstreamUnavailable("database offline")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def records() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def blobs(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(str(tmp_path / "blobs"), base_url="http://testserver")


@pytest.fixture
def service(records: MemoryRecordStore, blobs: LocalBlobStore, clock: FakeClock) -> ShareService:
    return ShareService(records=records, blobs=blobs, clock=clock)
