# application/ports/record_store_port.py
# Port interface for the share record persistence store.
# Domain layer: must not import infrastructure or adapter code.

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from application.dto.share_dto import ShareRecord


class IRecordStore(ABC):
    """Key-value row store keyed by share code."""

    @abstractmethod
    def create(self, record: ShareRecord) -> None:
        """
        Insert *record*. Must fail atomically with ``Conflict`` when a row
        with the same code already exists.
        """
        ...

    @abstractmethod
    def get(self, code: str) -> Optional[ShareRecord]:
        """Return the stored record for *code* (live or not), or None."""
        ...

    @abstractmethod
    def delete(self, code: str, expires_at: Optional[datetime] = None) -> bool:
        """
        Delete the row if it exists. Returns False when it was already gone.

        With *expires_at*, only a row carrying that exact expiry is removed.
        """
        ...

    @abstractmethod
    def list_expired(self, now: datetime, limit: int = 200) -> List[ShareRecord]:
        """Return up to *limit* records whose expires_at <= now, oldest first."""
        ...

    @abstractmethod
    def count_live(self, now: datetime) -> int:
        """Number of records with expires_at > now."""
        ...
