# infrastructure/record/sql_record_store.py
# Durable share record store backed by SQLAlchemy.
# Timestamps are stored as naive UTC and re-tagged as UTC on the way out.

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, func, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from application.dto.share_dto import FileRef, ShareRecord
from application.ports.record_store_port import IRecordStore
from codeshare.errors import Conflict, UpstreamUnavailable

logger = logging.getLogger(__name__)

Base = declarative_base()


class ShareRow(Base):
    __tablename__ = "shares"

    code = Column(String(4), primary_key=True)
    text = Column(Text, nullable=False, default="")
    file_url = Column(String(1024), nullable=True)
    blob_id = Column(String(512), nullable=True)
    file_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_record(row: ShareRow) -> ShareRecord:
    file_ref = None
    if row.file_url:
        file_ref = FileRef(url=row.file_url, blob_id=row.blob_id or "", name=row.file_name)
    return ShareRecord(
        code=row.code,
        text=row.text or "",
        file_ref=file_ref,
        created_at=_to_aware_utc(row.created_at),
        expires_at=_to_aware_utc(row.expires_at),
    )


def _ensure_sqlite_dir(url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database
    if database and database != ":memory:":
        parent = os.path.dirname(os.path.abspath(database))
        os.makedirs(parent, exist_ok=True)


class SqlRecordStore(IRecordStore):
    """
    Record store over any SQLAlchemy URL.

    The primary key on ``code`` is the authoritative uniqueness guard:
    a duplicate insert raises IntegrityError, surfaced as Conflict.
    """

    def __init__(self, url: str = "sqlite:///data/shares.sqlite3", engine: Optional[Engine] = None) -> None:
        if engine is None:
            _ensure_sqlite_dir(url)
            engine = create_engine(url, future=True)
        self._session = sessionmaker(bind=engine, expire_on_commit=False)
        Base.metadata.create_all(engine)

    def create(self, record: ShareRecord) -> None:
        row = ShareRow(
            code=record.code,
            text=record.text or "",
            file_url=record.file_ref.url if record.file_ref else None,
            blob_id=record.file_ref.blob_id if record.file_ref else None,
            file_name=record.file_ref.name if record.file_ref else None,
            created_at=_to_naive_utc(record.created_at),
            expires_at=_to_naive_utc(record.expires_at),
        )
        try:
            with self._session() as session:
                session.add(row)
                session.commit()
        except IntegrityError as e:
            raise Conflict(record.code) from e
        except SQLAlchemyError as e:
            logger.error("record insert failed code=%s: %s", record.code, e)
            raise UpstreamUnavailable(
                "Could not save the share.\n"
                "    → The database is unavailable. Try again shortly."
            ) from e

    def get(self, code: str) -> Optional[ShareRecord]:
        try:
            with self._session() as session:
                row = session.get(ShareRow, code)
                return _row_to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error("record lookup failed code=%s: %s", code, e)
            raise UpstreamUnavailable(
                "Could not look up the share.\n"
                "    → The database is unavailable. Try again shortly."
            ) from e

    def delete(self, code: str, expires_at: Optional[datetime] = None) -> bool:
        query_filter = [ShareRow.code == code]
        if expires_at is not None:
            query_filter.append(ShareRow.expires_at == _to_naive_utc(expires_at))
        try:
            with self._session() as session:
                deleted = session.query(ShareRow).filter(*query_filter).delete()
                session.commit()
                return deleted > 0
        except SQLAlchemyError as e:
            raise UpstreamUnavailable(f"Could not delete share '{code}'.") from e

    def list_expired(self, now: datetime, limit: int = 200) -> List[ShareRecord]:
        stmt = (
            select(ShareRow)
            .where(ShareRow.expires_at <= _to_naive_utc(now))
            .order_by(ShareRow.expires_at)
            .limit(limit)
        )
        try:
            with self._session() as session:
                return [_row_to_record(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise UpstreamUnavailable("Could not scan for expired shares.") from e

    def count_live(self, now: datetime) -> int:
        stmt = select(func.count()).select_from(ShareRow).where(
            ShareRow.expires_at > _to_naive_utc(now)
        )
        try:
            with self._session() as session:
                return int(session.scalar(stmt) or 0)
        except SQLAlchemyError as e:
            raise UpstreamUnavailable("Could not count live shares.") from e
