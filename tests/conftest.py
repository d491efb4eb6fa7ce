import json
from datetime import date

import pytest

from allergylog.config import settings
from allergylog.models import Record
from allergylog.storage import sync_storage


class MemoryKeyValueStore:
    """Same surface as FileKeyValueStore, kept in a dict (values round-trip through JSON)."""

    def __init__(self):
        self._data = {}

    def get(self, key):
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key, value):
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def keys(self):
        return sorted(self._data)


@pytest.fixture
def memory_kv():
    return MemoryKeyValueStore


@pytest.fixture
def make_record():
    counter = {"n": 0}

    def _make(food="banana", day=date(2024, 3, 10), symptom="none", severity=None, **extra):
        counter["n"] += 1
        return Record(
            id=extra.pop("id", f"r{counter['n']}"),
            date=day,
            food=food,
            symptom=symptom,
            severity=severity,
            **extra,
        )

    return _make


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_root", tmp_path / "data")
    monkeypatch.setattr(settings, "sync_root", tmp_path / "shared")
    monkeypatch.setattr(settings, "backup_dir", tmp_path / "backups")
    sync_storage.reset_local_storage()
    yield settings
    sync_storage.reset_local_storage()
