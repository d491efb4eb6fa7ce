from datetime import date

import pytest

from allergylog.errors import StorageUnavailable
from allergylog.export_csv import csv_filename, records_to_csv, write_csv


def test_header_and_quoting(make_record):
    rec = make_record("banana", date(2024, 3, 2), symptom="rash", severity=6, time="08:30",
                      memo='said "ouch", then slept', photos=["p1"], author="mom")
    lines = records_to_csv([rec]).splitlines()
    assert lines[0] == '"date","time","food","symptom","severity","medication","memo","author","photoCount"'
    assert lines[1] == '"2024-03-02","08:30","banana","rash","6","","said ""ouch"", then slept","mom","1"'


def test_missing_severity_is_empty(make_record):
    lines = records_to_csv([make_record("rice", date(2024, 3, 2))]).splitlines()
    assert lines[1].split(",")[4] == '""'


def test_csv_filename():
    assert csv_filename(date(2024, 3, 2)) == "allergylog-2024-03-02.csv"


def test_write_csv(tmp_path, make_record):
    path = write_csv([make_record("rice", date(2024, 3, 2))], tmp_path / "out", today=date(2024, 3, 5))
    assert path.name == "allergylog-2024-03-05.csv"
    assert path.read_text(encoding="utf-8").count("\n") == 2


def test_unwritable_directory_is_storage_unavailable(tmp_path, make_record):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(StorageUnavailable):
        write_csv([make_record()], blocker / "sub")
