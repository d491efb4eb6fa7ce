import json
from datetime import date, datetime, timezone

import pytest

from allergylog.backup import (
    backup_filename,
    dumps_backup,
    export_records,
    import_document,
    loads_backup,
    read_backup,
    restore_from_file,
    write_backup,
)
from allergylog.config import APP_VERSION
from allergylog.domains.records import RecordStore
from allergylog.errors import InvalidFormat, StorageUnavailable


@pytest.fixture
def sample(make_record):
    return [
        make_record("banana", date(2024, 3, 2), symptom="rash", severity=6,
                    time="08:30", medication="antihistamine", memo='said "ouch"',
                    photos=["data:image/png;base64,AAA", "data:image/png;base64,BBB"], author="mom"),
        make_record("이유식", date(2024, 3, 1), time="12:00"),
        make_record("milk", date(2023, 12, 31), symptom="hives", severity=10),
    ]


def test_export_then_import_returns_same_records_in_order(sample):
    text = dumps_backup(export_records(sample))
    assert loads_backup(text) == sample


def test_document_shape(sample):
    now = datetime(2024, 3, 5, 9, 15, tzinfo=timezone.utc)
    raw = json.loads(dumps_backup(export_records(sample, now=now)))
    assert set(raw) == {"records", "backupDate", "appVersion", "recordCount"}
    assert raw["recordCount"] == 3
    assert raw["appVersion"] == APP_VERSION
    assert raw["backupDate"] == "2024-03-05T09:15:00+00:00"
    assert raw["records"][0]["date"] == "2024-03-02"


def test_empty_backup_is_a_degenerate_success():
    doc = export_records([])
    assert doc.record_count == 0
    assert loads_backup(dumps_backup(doc)) == []


def test_missing_records_field_is_invalid():
    with pytest.raises(InvalidFormat):
        import_document({"backupDate": "2024-01-01"})


@pytest.mark.parametrize("raw", [{"records": {"a": 1}}, {"records": "x"}, [], None, "records"])
def test_non_list_records_are_invalid(raw):
    with pytest.raises(InvalidFormat):
        import_document(raw)


def test_invalid_json_is_invalid_format():
    with pytest.raises(InvalidFormat):
        loads_backup("{oops")


def test_count_mismatch_is_accepted_with_warning(sample, caplog):
    raw = json.loads(dumps_backup(export_records(sample)))
    raw["recordCount"] = 99
    assert import_document(raw) == sample
    assert "99" in caplog.text


def test_backup_filename():
    assert backup_filename(datetime(2024, 3, 5, 7, 4)) == "allergylog-backup-2024-03-05-0704.json"


def test_write_and_restore_file(tmp_path, sample):
    path = write_backup(sample, tmp_path, now=datetime(2024, 3, 5, 7, 4))
    assert path.name == "allergylog-backup-2024-03-05-0704.json"
    store = RecordStore()
    assert restore_from_file(store, path) == 3
    assert list(store) == sample


def test_failed_restore_leaves_store_unchanged(tmp_path, sample):
    store = RecordStore(sample)
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"appVersion": "1.0.0"}), encoding="utf-8")
    with pytest.raises(InvalidFormat):
        restore_from_file(store, bad)
    assert list(store) == sample


def test_missing_backup_file_is_storage_unavailable(tmp_path):
    with pytest.raises(StorageUnavailable):
        read_backup(tmp_path / "nope.json")


def test_duplicate_ids_are_invalid():
    raw = {"records": [{"id": "1", "date": "2024-03-01"}, {"id": "1", "date": "2024-03-02"}]}
    with pytest.raises(InvalidFormat, match="duplicate"):
        import_document(raw)


def test_restore_with_duplicate_ids_leaves_store_unchanged(tmp_path, sample):
    store = RecordStore(sample)
    dup = tmp_path / "dup.json"
    dup.write_text(json.dumps({"records": [{"id": "1", "date": "2024-03-01"},
                                           {"id": "1", "date": "2024-03-02"}]}), encoding="utf-8")
    with pytest.raises(InvalidFormat):
        restore_from_file(store, dup)
    assert list(store) == sample


def test_default_backup_date_carries_an_offset(tmp_path, sample):
    assert datetime.fromisoformat(export_records(sample).backup_date).utcoffset() is not None
    path = write_backup(sample, tmp_path)
    stamp = json.loads(path.read_text(encoding="utf-8"))["backupDate"]
    assert datetime.fromisoformat(stamp).utcoffset() is not None
