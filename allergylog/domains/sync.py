import logging
from dataclasses import dataclass
from typing import Optional

from allergylog.domains.records import RECORDS_KEY, RecordStore, parse_records
from allergylog.errors import InvalidFormat
from allergylog.models import SyncSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullResult:
    count: int
    # None when the shared folder holds records but no envelope
    status: Optional[SyncSnapshot]


def push_records(store: RecordStore, shared) -> SyncSnapshot:
    """Publish the whole local sequence to the shared folder, overwriting whatever is there."""
    snapshot = shared.write(RECORDS_KEY, store.dump())
    logger.info("pushed %d records as %s", len(store), snapshot.device_id)
    return snapshot


def pull_records(store: RecordStore, shared) -> Optional[PullResult]:
    """Replace the local sequence with the shared snapshot.

    Last write wins: local edits made since the last push are discarded.
    Returns None when nothing has been pushed yet; the store is untouched then.
    """
    raw = shared.read(RECORDS_KEY)
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise InvalidFormat("shared snapshot does not hold a record list")
    status = shared.get_sync_status()
    records = parse_records(raw)
    store.replace_all(records)
    if status is None:
        logger.warning("pulled %d records without a sync envelope", len(records))
    else:
        logger.info("pulled %d records (last write %s)", len(records), status.timestamp)
    return PullResult(count=len(records), status=status)


def pull_would_change(store: RecordStore, shared) -> bool:
    raw = shared.read(RECORDS_KEY)
    return raw is not None and raw != store.dump()
