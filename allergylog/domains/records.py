import time
import logging
from datetime import date
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
from pydantic import ValidationError

from allergylog.errors import InvalidFormat
from allergylog.models import Record

logger = logging.getLogger(__name__)

RECORDS_KEY = "daily_records"
MAX_PHOTOS = 2

_last_id_ms = 0


def new_record_id() -> str:
    """Millisecond creation stamp, bumped so ids stay unique and sort by creation."""
    global _last_id_ms
    ms = int(time.time() * 1000)
    if ms <= _last_id_ms:
        ms = _last_id_ms + 1
    _last_id_ms = ms
    return str(ms)


def validate_record(rec: Record) -> None:
    if not rec.food.strip():
        raise ValueError("food is required")
    if len(rec.photos) > MAX_PHOTOS:
        raise ValueError(f"at most {MAX_PHOTOS} photos per record")
    if rec.is_reaction:
        if rec.severity is None or not 1 <= rec.severity <= 10:
            raise ValueError(f"severity must be 1-10 for symptom {rec.symptom!r}")
    elif rec.severity is not None:
        raise ValueError("severity only applies when a symptom was observed")


def parse_records(raw: Any) -> List[Record]:
    """Build Record objects from decoded JSON, all or nothing."""
    if not isinstance(raw, list):
        raise InvalidFormat(f"expected a list of records, got {type(raw).__name__}")
    try:
        records = [r if isinstance(r, Record) else Record.model_validate(r) for r in raw]
    except ValidationError as e:
        raise InvalidFormat(f"malformed record: {e.errors()[0].get('msg')}") from e
    seen = set()
    for r in records:
        if r.id in seen:
            raise InvalidFormat(f"duplicate record id {r.id!r}")
        seen.add(r.id)
    return records


class RecordStore:
    """Canonical ordered record sequence for one device, newest first."""

    def __init__(self, records: Iterable[Record] = ()):
        self._records: List[Record] = list(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(tuple(self._records))

    def all(self) -> Tuple[Record, ...]:
        return tuple(self._records)

    def get(self, record_id: str) -> Record:
        for r in self._records:
            if r.id == record_id:
                return r
        raise KeyError(f"Record {record_id} not found")

    def add(self, rec: Record) -> Record:
        if not rec.id:
            rec = rec.model_copy(update={"id": new_record_id()})
        validate_record(rec)
        if any(r.id == rec.id for r in self._records):
            raise ValueError(f"Record {rec.id} already exists")
        self._records.insert(0, rec)
        return rec

    def update(self, record_id: str, rec: Record) -> Record:
        replacement = rec.model_copy(update={"id": record_id})
        validate_record(replacement)
        for i, r in enumerate(self._records):
            if r.id == record_id:
                self._records[i] = replacement
                return replacement
        raise KeyError(f"Record {record_id} not found")

    def delete(self, record_id: str) -> None:
        remaining = [r for r in self._records if r.id != record_id]
        if len(remaining) == len(self._records):
            raise KeyError(f"Record {record_id} not found")
        self._records = remaining

    def replace_all(self, records: Iterable[Any]) -> None:
        # parse everything first so a bad payload never leaves a half-swapped store
        incoming = parse_records(list(records))
        logger.info("replacing %d records with %d", len(self._records), len(incoming))
        self._records = incoming

    def dump(self) -> List[Dict[str, Any]]:
        return [r.model_dump(mode="json") for r in self._records]


def filter_records(
    records: Iterable[Record],
    on: Optional[date] = None,
    search: Optional[str] = None,
) -> List[Record]:
    out = []
    needle = search.lower() if search else None
    for r in records:
        if on is not None and r.date != on:
            continue
        if needle:
            haystack = (r.food, r.symptom, r.medication, r.memo, r.author)
            if not any(needle in field.lower() for field in haystack):
                continue
        out.append(r)
    return out


def load_store(sync) -> RecordStore:
    raw = sync.read(RECORDS_KEY)
    if raw is None:
        return RecordStore()
    return RecordStore(parse_records(raw))


def save_store(store: RecordStore, sync):
    return sync.write(RECORDS_KEY, store.dump())
