"""Backup documents: the whole record set plus metadata in one JSON file.

A backup is self-describing (``records``, ``backupDate``, ``appVersion``,
``recordCount``) and restores exactly what was exported, in the same order.
``recordCount`` is informational; a mismatch on load is logged, not rejected.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Optional

from allergylog.config import APP_NAME, APP_VERSION
from allergylog.domains.records import RecordStore, parse_records
from allergylog.errors import InvalidFormat, StorageUnavailable
from allergylog.models import BackupDocument, Record

logger = logging.getLogger(__name__)


def export_records(records: Iterable[Record], now: Optional[datetime] = None) -> BackupDocument:
    records = list(records)
    now = now or datetime.now().astimezone()
    if not records:
        logger.info("backing up an empty record set")
    return BackupDocument(
        records=records,
        backup_date=now.isoformat(),
        app_version=APP_VERSION,
        record_count=len(records),
    )


def dumps_backup(document: BackupDocument) -> str:
    return json.dumps(
        document.model_dump(mode="json", by_alias=True),
        ensure_ascii=False,
        indent=2,
    )


def backup_filename(now: datetime) -> str:
    return f"{APP_NAME}-backup-{now.strftime('%Y-%m-%d-%H%M')}.json"


def write_backup(records: Iterable[Record], directory: Path, now: Optional[datetime] = None) -> Path:
    now = now or datetime.now().astimezone()
    document = export_records(records, now=now)
    path = Path(directory) / backup_filename(now)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dumps_backup(document), encoding="utf-8")
    except OSError as e:
        raise StorageUnavailable(f"cannot write backup {path}: {e}") from e
    return path


def import_document(raw: Any) -> List[Record]:
    if not isinstance(raw, dict) or "records" not in raw:
        raise InvalidFormat("backup has no 'records' field")
    if not isinstance(raw["records"], list):
        raise InvalidFormat("backup 'records' is not a list")
    records = parse_records(raw["records"])
    count = raw.get("recordCount")
    if count is not None and count != len(records):
        logger.warning("backup claims %s records but holds %d", count, len(records))
    return records


def loads_backup(text: str) -> List[Record]:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidFormat(f"backup is not valid JSON: {e}") from e
    return import_document(raw)


def read_backup(path: Path) -> List[Record]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InvalidFormat(f"backup {path} is not UTF-8 text") from e
    except OSError as e:
        raise StorageUnavailable(f"cannot read backup {path}: {e}") from e
    return loads_backup(text)


def restore_from_file(store: RecordStore, path: Path) -> int:
    """Read and validate the file, then swap it in; the store is untouched on failure."""
    records = read_backup(path)
    store.replace_all(records)
    return len(records)
