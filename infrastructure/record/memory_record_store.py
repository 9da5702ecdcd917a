# infrastructure/record/memory_record_store.py
# Thread-safe in-memory share record store.

from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional

from application.dto.share_dto import ShareRecord
from application.ports.record_store_port import IRecordStore
from codeshare.errors import Conflict


class MemoryRecordStore(IRecordStore):
    def __init__(self) -> None:
        self._store: Dict[str, ShareRecord] = {}
        self._lock: Lock = Lock()

    def create(self, record: ShareRecord) -> None:
        with self._lock:
            if record.code in self._store:
                raise Conflict(record.code)
            self._store[record.code] = record

    def get(self, code: str) -> Optional[ShareRecord]:
        with self._lock:
            return self._store.get(code)

    def delete(self, code: str, expires_at: Optional[datetime] = None) -> bool:
        """Delete a record (no-op if missing)."""
        with self._lock:
            record = self._store.get(code)
            if record is None:
                return False
            if expires_at is not None and record.expires_at != expires_at:
                return False
            del self._store[code]
            return True

    def list_expired(self, now: datetime, limit: int = 200) -> List[ShareRecord]:
        with self._lock:
            expired = [r for r in self._store.values() if r.expires_at <= now]
        expired.sort(key=lambda r: r.expires_at)
        return expired[:limit]

    def count_live(self, now: datetime) -> int:
        with self._lock:
            return sum(1 for r in self._store.values() if r.expires_at > now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
