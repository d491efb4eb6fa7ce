import os
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from allergylog.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class FileKeyValueStore:
    """One JSON document per key, stored as ``<root>/<key>.json``."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def ensure_dir(self):
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"cannot create {self.root}: {e}") from e

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageUnavailable(f"cannot read {path}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            # refuse to treat a damaged file as empty; a later write would erase it
            raise StorageUnavailable(f"corrupt value under {key!r} in {path}") from e

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        self.ensure_dir()
        tmp = path.with_suffix(".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                f.write(json.dumps(value, ensure_ascii=False, indent=2))
                f.flush()
                os.fsync(f.fileno())             # ensure it's on disk
            tmp.replace(path)
        except OSError as e:
            logger.error("write of %s failed: %s", path, e)
            raise StorageUnavailable(f"cannot write {path}: {e}") from e

    def keys(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.json"))
