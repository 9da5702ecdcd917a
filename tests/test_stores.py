import os
from datetime import timedelta
from unittest import mock

import pytest
from cloudinary.exceptions import Error as CloudinaryError
from sqlalchemy.exc import OperationalError

from application.dto.share_dto import FileRef, ShareRecord, UploadDTO
from codeshare.core import ShareService
from codeshare.errors import Conflict, UpstreamUnavailable
from infrastructure.blob import CloudinaryBlobStore, LocalBlobStore
from infrastructure.blob.cloudinary_blob_store import expiration_hint, split_blob_id
from infrastructure.record import MemoryRecordStore, SqlRecordStore

from conftest import START, FakeClock


def make_record(code: str = "1234", minutes: int = 120, **kwargs) -> ShareRecord:
    return ShareRecord(
        code=code,
        created_at=START,
        expires_at=START + timedelta(minutes=minutes),
        **kwargs,
    )


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryRecordStore()
    return SqlRecordStore(f"sqlite:///{tmp_path / 'shares.sqlite3'}")


class TestRecordStores:
    """Contract tests run against both record store implementations."""

    def test_create_then_get(self, store) -> None:
        record = make_record(text="hello")
        store.create(record)
        assert store.get("1234") == record

    def test_file_ref_survives_storage(self, store) -> None:
        ref = FileRef(url="https://cdn.example/a", blob_id="raw/clipboard/a", name="a.txt")
        store.create(make_record(file_ref=ref))
        assert store.get("1234").file_ref == ref

    def test_timestamps_come_back_as_utc(self, store) -> None:
        store.create(make_record())
        got = store.get("1234")
        assert got.created_at == START
        assert got.expires_at.utcoffset() == timedelta(0)

    def test_duplicate_code_conflicts(self, store) -> None:
        store.create(make_record(text="first"))
        with pytest.raises(Conflict):
            store.create(make_record(text="second"))
        assert store.get("1234").text == "first"

    def test_get_missing_returns_none(self, store) -> None:
        assert store.get("9999") is None

    def test_delete_is_idempotent(self, store) -> None:
        store.create(make_record())
        assert store.delete("1234") is True
        assert store.delete("1234") is False
        assert store.get("1234") is None

    def test_conditional_delete_requires_matching_expiry(self, store) -> None:
        record = make_record()
        store.create(record)
        assert store.delete("1234", record.expires_at + timedelta(seconds=1)) is False
        assert store.delete("1234", record.expires_at) is True

    def test_list_expired_oldest_first_with_limit(self, store) -> None:
        store.create(make_record("1001", minutes=30))
        store.create(make_record("1002", minutes=10))
        store.create(make_record("1003", minutes=20))
        store.create(make_record("1004", minutes=500))

        now = START + timedelta(minutes=60)
        assert [r.code for r in store.list_expired(now)] == ["1002", "1003", "1001"]
        assert [r.code for r in store.list_expired(now, limit=2)] == ["1002", "1003"]

    def test_list_expired_includes_exact_boundary(self, store) -> None:
        store.create(make_record(minutes=10))
        assert len(store.list_expired(START + timedelta(minutes=10))) == 1

    def test_count_live(self, store) -> None:
        store.create(make_record("1001", minutes=10))
        store.create(make_record("1002", minutes=30))
        assert store.count_live(START + timedelta(minutes=20)) == 1


class TestSqlRecordStore:
    """SQL-specific behaviour: durability across instances."""

    def test_creates_missing_sqlite_directory(self, tmp_path) -> None:
        db: str = str(tmp_path / "nested" / "dir" / "shares.sqlite3")
        SqlRecordStore(f"sqlite:///{db}")
        assert os.path.exists(db)

    def test_recovery_sweep_after_restart(self, tmp_path) -> None:
        url: str = f"sqlite:///{tmp_path / 'shares.sqlite3'}"
        blobs = LocalBlobStore(str(tmp_path / "blobs"))
        clock = FakeClock()

        first = ShareService(records=SqlRecordStore(url), blobs=blobs, clock=clock)
        code: str = first.issue(text="hello")
        del first

        clock.advance(hours=5)
        restarted = ShareService(records=SqlRecordStore(url), blobs=blobs, clock=clock)
        assert restarted.retrieve(code) is None

        report = restarted.sweep()
        assert report.records_deleted == 1
        assert restarted.records.get(code) is None

    def test_unreachable_database_is_upstream_error(self, tmp_path) -> None:
        store = SqlRecordStore(f"sqlite:///{tmp_path / 'shares.sqlite3'}")
        with mock.patch.object(store, "_session", side_effect=_raise_operational):
            with pytest.raises(UpstreamUnavailable):
                store.get("1234")
            with pytest.raises(UpstreamUnavailable):
                store.create(make_record())

    def test_failed_insert_leaves_no_blob(self, tmp_path) -> None:
        store = SqlRecordStore(f"sqlite:///{tmp_path / 'shares.sqlite3'}")
        blobs = LocalBlobStore(str(tmp_path / "blobs"))
        svc = ShareService(records=store, blobs=blobs, clock=FakeClock())

        # Lookup gets a working session, the insert does not
        sessions = [store._session(), OperationalError("INSERT", {}, Exception("disk I/O error"))]
        with mock.patch.object(store, "_session", side_effect=sessions):
            with pytest.raises(UpstreamUnavailable):
                svc.issue(file=UploadDTO(data=b"abc", name="a.txt"))

        assert os.listdir(blobs.root_dir) == []
        assert store.count_live(START) == 0


def _raise_operational(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))


class TestLocalBlobStore:
    """Tests for the filesystem blob store."""

    def test_upload_writes_bytes_and_builds_url(self, tmp_path) -> None:
        store = LocalBlobStore(str(tmp_path), base_url="http://host/")
        ref = store.upload(b"abc", "notes.txt", "text/plain", 7200)
        assert ref.url == f"http://host/blobs/{ref.blob_id}"
        assert ref.blob_id.endswith(".txt")
        assert ref.name == "notes.txt"
        with open(store.path_for(ref.blob_id), "rb") as fh:
            assert fh.read() == b"abc"

    def test_odd_extension_is_dropped(self, tmp_path) -> None:
        store = LocalBlobStore(str(tmp_path))
        ref = store.upload(b"abc", "weird.ex-t", None, 7200)
        assert "." not in ref.blob_id

    def test_delete_then_delete_again(self, tmp_path) -> None:
        store = LocalBlobStore(str(tmp_path))
        ref = store.upload(b"abc", "", None, 7200)
        assert store.delete(ref.blob_id) is True
        assert store.delete(ref.blob_id) is False

    @pytest.mark.parametrize("blob_id", ["../etc/passwd", "..", "", "abc", "0" * 32 + "/x"])
    def test_foreign_ids_are_rejected(self, tmp_path, blob_id: str) -> None:
        store = LocalBlobStore(str(tmp_path))
        assert store.path_for(blob_id) is None
        assert store.delete(blob_id) is False

    def test_write_failure_is_upstream_error(self, tmp_path) -> None:
        store = LocalBlobStore(str(tmp_path))
        with mock.patch("builtins.open", side_effect=PermissionError("read-only")):
            with pytest.raises(UpstreamUnavailable):
                store.upload(b"abc", "a.txt", None, 7200)


class TestCloudinaryBlobStore:
    """Cloudinary adapter with the SDK calls patched out."""

    UPLOAD = "cloudinary.uploader.upload"
    DESTROY = "cloudinary.uploader.destroy"

    def test_upload_passes_folder_and_expiry_hint(self) -> None:
        store = CloudinaryBlobStore(cloud_name="demo", api_key="k", api_secret="s")
        result = {
            "secure_url": "https://res.cloudinary.com/demo/raw/upload/clipboard/abc",
            "public_id": "clipboard/abc",
            "resource_type": "raw",
        }
        with mock.patch(self.UPLOAD, return_value=result) as upload:
            ref = store.upload(b"abc", "a.txt", "text/plain", 7200)

        kwargs = upload.call_args.kwargs
        assert kwargs["folder"] == "clipboard"
        assert kwargs["resource_type"] == "auto"
        assert kwargs["context"] == "expiration=2h"
        assert kwargs["cloud_name"] == "demo"
        assert kwargs["filename_override"] == "a.txt"
        assert upload.call_args.args[0].read() == b"abc"
        assert ref.url == result["secure_url"]
        assert ref.blob_id == "raw/clipboard/abc"

    def test_upload_error_is_upstream_error(self) -> None:
        store = CloudinaryBlobStore()
        with mock.patch(self.UPLOAD, side_effect=CloudinaryError("bad credentials")):
            with pytest.raises(UpstreamUnavailable):
                store.upload(b"abc", "", None, 7200)

    def test_upload_without_url_is_upstream_error(self) -> None:
        store = CloudinaryBlobStore()
        with mock.patch(self.UPLOAD, return_value={"public_id": "x"}):
            with pytest.raises(UpstreamUnavailable):
                store.upload(b"abc", "", None, 7200)

    def test_delete_ok(self) -> None:
        store = CloudinaryBlobStore()
        with mock.patch(self.DESTROY, return_value={"result": "ok"}) as destroy:
            assert store.delete("video/clipboard/abc") is True
        assert destroy.call_args.args[0] == "clipboard/abc"
        assert destroy.call_args.kwargs["resource_type"] == "video"

    def test_delete_not_found_is_already_gone(self) -> None:
        store = CloudinaryBlobStore()
        with mock.patch(self.DESTROY, return_value={"result": "not found"}):
            assert store.delete("image/clipboard/abc") is False

    def test_delete_error_is_upstream_error(self) -> None:
        store = CloudinaryBlobStore()
        with mock.patch(self.DESTROY, side_effect=CloudinaryError("timeout")):
            with pytest.raises(UpstreamUnavailable):
                store.delete("image/clipboard/abc")

    def test_expiration_hint(self) -> None:
        assert expiration_hint(7200) == "expiration=2h"
        assert expiration_hint(90) == "expiration=90s"

    def test_split_blob_id(self) -> None:
        assert split_blob_id("raw/clipboard/a") == ("raw", "clipboard/a")
        assert split_blob_id("clipboard/a") == ("image", "clipboard/a")
