# application/dto/share_dto.py
# Data Transfer Objects for share records, uploads and housekeeping reports.

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class FileRef:
    """Reference to a blob held by the external blob store."""
    url: str
    blob_id: str                 # opaque deletion identifier
    name: Optional[str] = None   # original display name


@dataclass(frozen=True)
class ShareRecord:
    """The persisted share. Immutable once created."""
    code: str
    created_at: datetime
    expires_at: datetime
    text: str = ""
    file_ref: Optional[FileRef] = None

    @property
    def kind(self) -> str:
        return "file" if self.file_ref is not None else "text"

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass
class UploadDTO:
    """A file handed to the issuer by the caller boundary."""
    data: bytes
    name: str = ""
    content_type: Optional[str] = None


@dataclass
class RetrieveResultDTO:
    """Shaped retrieval result returned to callers."""
    kind: str                       # text | file
    text: str = ""
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "kind":      self.kind,
            "text":      self.text,
            "fileName":  self.file_name,
            "fileUrl":   self.file_url,
            "expiresAt": isoformat_utc(self.expires_at),
        }


@dataclass
class ReclaimReportDTO:
    """Outcome of reclaiming a single code."""
    code: str
    record_deleted: bool = False
    blob_deleted: bool = False
    errors: List[str] = field(default_factory=list)


@dataclass
class SweepReportDTO:
    """Aggregate outcome of one sweep pass."""
    scanned: int = 0
    records_deleted: int = 0
    blobs_deleted: int = 0
    failures: int = 0

    def add(self, report: ReclaimReportDTO) -> None:
        self.scanned += 1
        self.records_deleted += int(report.record_deleted)
        self.blobs_deleted += int(report.blob_deleted)
        self.failures += int(bool(report.errors))

    def to_dict(self) -> dict:
        return {
            "scanned":        self.scanned,
            "recordsDeleted": self.records_deleted,
            "blobsDeleted":   self.blobs_deleted,
            "failures":       self.failures,
        }


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")
