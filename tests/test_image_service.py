import os

import pytest
from sqlmodel import select

from imagevault.db.models import Image, Shard
from imagevault.exceptions import (
    BulkDeleteError,
    EmptyImageError,
    NoDefaultRenditionError,
    NotFoundError,
    StorageError,
    UnsupportedFormatError,
)
from imagevault.infrastructure.storage.local_storage import LocalStorageRepository
from imagevault.services.media.color import RGB
from imagevault.services.media.geometry import ImageFit, contain_fit
from imagevault.services.media.identifier import Identifier, ns_to_datetime
from imagevault.services.media.variant_pipeline import RenditionSpec

from conftest import FakeCodec, make_image

CONTAIN = ImageFit.CONTAIN
COVER = ImageFit.COVER


def _files(storage, shard_id):
    return sorted(os.listdir(storage.shard_dir(shard_id)))


def test_save_stores_default_and_copies(make_service, storage):
    service = make_service()
    buf = make_image(400, 200, (255, 0, 0))
    record = service.save(buf, [
        RenditionSpec(300, 300, CONTAIN, is_default=True),
        RenditionSpec(100, 100, CONTAIN),
        RenditionSpec(64, 64, COVER),
    ])

    name = record.id.hex
    assert (record.width, record.height) == (300, 150)
    assert (record.max_width, record.max_height) == (300, 300)
    assert record.type == "jpeg"
    assert record.uploaded_size == len(buf)
    assert record.size == os.path.getsize(storage.path_for(record.shard_id, f"{name}.jpg"))
    assert record.is_deleted is False and record.deleted_at is None
    # JPEG artifacts shift the channels slightly
    assert record.average_color.r >= 250 and record.average_color.g <= 5 and record.average_color.b <= 5

    assert [(c.width, c.height, c.max_width, c.max_height, c.fit) for c in record.copies] == [
        (100, 50, 100, 100, CONTAIN),
        (64, 64, 64, 64, COVER),
    ]
    assert _files(storage, record.shard_id) == sorted([
        f"{name}.jpg",
        f"{name}_100_100_contain.jpg",
        f"{name}_64_64_cover.jpg",
    ])
    for c in record.copies:
        assert c.size == os.path.getsize(storage.path_for(record.shard_id, c.filename(name)))

    assert record.url == f"/images/{record.shard_id}/{name}.jpg"
    assert record.urls == [
        record.url,
        f"{record.url}?size=100&fit=contain",
        f"{record.url}?size=64&fit=cover",
    ]


def test_save_updates_shard_counters(make_service, session):
    service = make_service()
    first = service.save(make_image(50, 50), [RenditionSpec(50, 50, is_default=True)])
    second = service.save(make_image(60, 60), [RenditionSpec(60, 60, is_default=True)])
    assert first.shard_id == second.shard_id

    shard = session.get(Shard, first.shard_id)
    assert shard.image_count == 2
    assert shard.total_size == first.size + second.size


def test_large_source_example(make_service, storage):
    codec = FakeCodec(4000, 3000)
    record = make_service(codec=codec).save(b"raw upload", [
        RenditionSpec(1080, 720, CONTAIN),
        RenditionSpec(5000, 5000, CONTAIN, is_default=True),
    ])
    assert (record.width, record.height) == (4000, 3000)
    assert len(record.copies) == 1
    copy = record.copies[0]
    assert (copy.width, copy.height) == contain_fit(4000, 3000, 1080, 720)
    assert (copy.max_width, copy.max_height) == (1080, 720)
    assert len(_files(storage, record.shard_id)) == 2
    assert record.average_color == RGB(0, 63, 191)


def test_duplicate_contain_specs_store_one_file(make_service, storage):
    codec = FakeCodec(800, 600)
    record = make_service(codec=codec).save(b"raw upload", [
        RenditionSpec(1000, 1000, CONTAIN, is_default=True),
        RenditionSpec(800, 600, CONTAIN),
        RenditionSpec(900, 900, CONTAIN),
        RenditionSpec(4000, 600, CONTAIN),
    ])
    assert record.copies == []
    assert _files(storage, record.shard_id) == [f"{record.id.hex}.jpg"]
    assert record.urls == [record.url]


def test_missing_default_has_no_side_effects(make_service, session, storage):
    service = make_service()
    with pytest.raises(NoDefaultRenditionError):
        service.save(make_image(10, 10), [RenditionSpec(10, 10, CONTAIN)])
    assert not os.path.exists(storage.upload_dir)
    assert session.exec(select(Shard)).all() == []
    assert session.exec(select(Image)).all() == []


def test_empty_buffer_is_rejected(make_service, storage):
    with pytest.raises(EmptyImageError):
        make_service().save(b"", [RenditionSpec(10, 10, is_default=True)])
    assert not os.path.exists(storage.upload_dir)


def test_unsupported_format_has_no_side_effects(make_service, session, storage):
    with pytest.raises(UnsupportedFormatError):
        make_service().save(b"this is text", [RenditionSpec(10, 10, is_default=True)])
    assert not os.path.exists(storage.upload_dir)
    assert session.exec(select(Image)).all() == []


def test_capacity_overflow_opens_new_shard(make_service, session):
    service = make_service(capacity=2)
    records = [
        service.save(make_image(20, 20), [RenditionSpec(20, 20, is_default=True)])
        for _ in range(3)
    ]
    shard_ids = [r.shard_id for r in records]
    assert shard_ids[0] == shard_ids[1]
    assert shard_ids[2] != shard_ids[0]

    counts = {s.id: s.image_count for s in session.exec(select(Shard)).all()}
    assert counts == {shard_ids[0]: 2, shard_ids[2]: 1}


class FailingCopyStorage(LocalStorageRepository):
    def stage(self, shard_id, filename, data):
        if "_" in filename:
            raise OSError("disk full")
        return super().stage(shard_id, filename, data)


def test_storage_failure_rolls_back(make_service, session, tmp_path):
    storage = FailingCopyStorage(upload_dir=str(tmp_path / "up"), deleted_dir="")
    service = make_service(storage_repo=storage)
    with pytest.raises(StorageError) as excinfo:
        service.save(make_image(40, 40), [
            RenditionSpec(40, 40, is_default=True),
            RenditionSpec(10, 10, COVER),
        ])
    assert isinstance(excinfo.value.__cause__, OSError)
    assert session.exec(select(Image)).all() == []
    assert session.exec(select(Shard)).all() == []
    # the shard directory outlives the rollback, staged files do not
    shard_dirs = os.listdir(storage.upload_dir)
    assert len(shard_dirs) == 1
    assert os.listdir(os.path.join(storage.upload_dir, shard_dirs[0])) == []


def test_get_unknown(make_service):
    with pytest.raises(NotFoundError):
        make_service().get(Identifier.from_hex("00" * 12))


def test_get_returns_saved_record(make_service):
    service = make_service()
    saved = service.save(make_image(30, 30), [
        RenditionSpec(30, 30, is_default=True),
        RenditionSpec(20, 10, COVER),
    ])
    fetched = service.get(saved.id)
    assert fetched.id == saved.id
    assert fetched.copies == saved.copies
    assert fetched.average_color == saved.average_color
    assert fetched.urls[1].endswith("?size=20x10&fit=cover")


def test_delete_archives_and_removes_files(make_service, storage, tmp_path):
    service = make_service()
    saved = service.save(make_image(30, 30), [
        RenditionSpec(30, 30, is_default=True),
        RenditionSpec(10, 10, COVER),
    ])
    default_bytes = storage.read(saved.shard_id, f"{saved.id.hex}.jpg")

    deleted = service.delete(saved.id)
    assert deleted.is_deleted is True
    assert deleted.deleted_at is not None
    assert _files(storage, saved.shard_id) == []
    assert (tmp_path / "deleted" / f"{saved.id.hex}.jpg").read_bytes() == default_bytes

    # still readable by id
    assert service.get(saved.id).is_deleted is True


def test_delete_is_idempotent(make_service):
    service = make_service()
    saved = service.save(make_image(30, 30), [RenditionSpec(30, 30, is_default=True)])
    first = service.delete(saved.id)
    second = service.delete(saved.id)
    assert (second.is_deleted, second.deleted_at) == (first.is_deleted, first.deleted_at)


def test_delete_unknown(make_service):
    with pytest.raises(NotFoundError):
        make_service().delete(Identifier.from_hex("ab" * 12))


def test_bulk_delete_stops_at_first_failure(make_service):
    service = make_service()
    spec = [RenditionSpec(30, 30, is_default=True)]
    a = service.save(make_image(30, 30), spec)
    b = service.save(make_image(30, 30), spec)
    missing = Identifier.from_hex("cd" * 12)

    with pytest.raises(BulkDeleteError) as excinfo:
        service.bulk_delete([a.id, missing, b.id])
    assert excinfo.value.deleted == [a.id.hex]
    assert excinfo.value.failed_id == missing.hex
    assert isinstance(excinfo.value.cause, NotFoundError)

    assert service.get(a.id).is_deleted is True
    assert service.get(b.id).is_deleted is False


def test_bulk_delete(make_service):
    service = make_service()
    spec = [RenditionSpec(30, 30, is_default=True)]
    ids = [service.save(make_image(30, 30), spec).id for _ in range(2)]
    assert [r.id for r in service.bulk_delete(ids)] == ids


class FailingDeleteStorage(LocalStorageRepository):
    fail = True

    def delete_by_prefix(self, shard_id, prefix):
        if self.fail:
            raise OSError("read-only file system")
        return super().delete_by_prefix(shard_id, prefix)


def test_failed_delete_rolls_back_and_can_be_retried(make_service, tmp_path):
    storage = FailingDeleteStorage(upload_dir=str(tmp_path / "up"), deleted_dir=str(tmp_path / "del"))
    service = make_service(storage_repo=storage)
    saved = service.save(make_image(30, 30), [RenditionSpec(30, 30, is_default=True)])

    with pytest.raises(StorageError) as excinfo:
        service.delete(saved.id)
    assert isinstance(excinfo.value.__cause__, OSError)
    assert service.get(saved.id).is_deleted is False
    assert _files(storage, saved.shard_id) == [f"{saved.id.hex}.jpg"]

    storage.fail = False
    assert service.delete(saved.id).is_deleted is True
    assert _files(storage, saved.shard_id) == []


class FailingPromoteStorage(LocalStorageRepository):
    def promote(self, staged_path):
        raise OSError("rename failed")


def test_unpromoted_files_are_removed_by_delete(make_service, session, tmp_path):
    storage = FailingPromoteStorage(upload_dir=str(tmp_path / "up"), deleted_dir=str(tmp_path / "del"))
    service = make_service(storage_repo=storage)
    with pytest.raises(StorageError):
        service.save(make_image(30, 30), [
            RenditionSpec(30, 30, is_default=True),
            RenditionSpec(10, 10, COVER),
        ])

    # the record is committed, its files are still under staging names
    image_id = Identifier.from_bytes(session.exec(select(Image)).one().id)
    record = service.get(image_id)
    assert len(_files(storage, record.shard_id)) == 2

    assert service.delete(image_id).is_deleted is True
    assert _files(storage, record.shard_id) == []
    assert not (tmp_path / "del").exists()


def test_timestamps_round_trip_as_naive_utc(make_service, session):
    service = make_service()
    saved = service.save(make_image(30, 30), [RenditionSpec(30, 30, is_default=True)])
    assert saved.created_at.tzinfo is None
    assert saved.created_at == ns_to_datetime(saved.id.timestamp_ns)
    assert session.get(Shard, saved.shard_id).created_at.tzinfo is None

    deleted = service.delete(saved.id)
    assert deleted.deleted_at.tzinfo is None
