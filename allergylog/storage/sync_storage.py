"""Stamped key-value writes for manual device-to-device sync.

Every ``write`` persists the value under its key and overwrites a single
envelope under ``SYNC_KEY`` recording what was written last, when, and by
which device.  There is one envelope for the whole store, not one per key.

Conflict policy is last write wins: pulling a snapshot replaces the local
record sequence wholesale.  Timestamps come from the writing device's clock,
so skew between two devices can reorder writes; nothing here corrects it.
"""
import random
import string
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from allergylog.config import settings
from allergylog.models import SyncSnapshot
from allergylog.storage.kvstore import FileKeyValueStore

logger = logging.getLogger(__name__)

SYNC_KEY = "sync_status"
DEVICE_KEY = "device_id"

_ID_ALPHABET = string.digits + string.ascii_lowercase

Listener = Callable[[SyncSnapshot], None]


def new_device_id() -> str:
    return "device_" + "".join(random.choice(_ID_ALPHABET) for _ in range(9))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SyncStorage:
    def __init__(self, store, device_store=None, clock: Callable[[], str] = utc_now_iso):
        self.store = store
        # device id may live apart from a shared sync folder
        self.device_store = device_store if device_store is not None else store
        self._clock = clock
        self._device_id: Optional[str] = None
        self._listeners: List[Listener] = []

    @property
    def device_id(self) -> str:
        if self._device_id is None:
            device_id = self.device_store.get(DEVICE_KEY)
            if not device_id:
                device_id = new_device_id()
                self.device_store.set(DEVICE_KEY, device_id)
                logger.info("registered new device id %s", device_id)
            self._device_id = device_id
        return self._device_id

    def write(self, key: str, data: Any) -> SyncSnapshot:
        snapshot = SyncSnapshot(
            key=key,
            data=data,
            timestamp=self._clock(),
            device_id=self.device_id,
        )
        self.store.set(key, data)
        self.store.set(SYNC_KEY, snapshot.model_dump(mode="json", by_alias=True))
        logger.debug("wrote %s at %s from %s", key, snapshot.timestamp, snapshot.device_id)
        self._notify(snapshot)
        return snapshot

    def read(self, key: str) -> Optional[Any]:
        return self.store.get(key)

    def get_sync_status(self) -> Optional[SyncSnapshot]:
        raw = self.store.get(SYNC_KEY)
        if raw is None:
            return None
        return SyncSnapshot.model_validate(raw)

    def add_listener(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        self._listeners.remove(callback)

    def _notify(self, snapshot: SyncSnapshot) -> None:
        for callback in list(self._listeners):
            callback(snapshot)


_local: Optional[SyncStorage] = None


def get_local_storage() -> SyncStorage:
    """Process-wide adapter over this device's data folder, created on first use."""
    global _local
    if _local is None:
        _local = SyncStorage(FileKeyValueStore(settings.data_root))
    return _local


def get_shared_storage() -> SyncStorage:
    """Adapter over the folder both devices exchange snapshots through.

    The device id stays in the local data folder so the shared folder never
    decides which device is writing.
    """
    local = get_local_storage()
    return SyncStorage(FileKeyValueStore(settings.sync_root), device_store=local.device_store)


def reset_local_storage() -> None:
    global _local
    _local = None
