from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "allergylog"
APP_VERSION = "1.0.0"


class Settings:
    """Runtime configuration, read from the environment once at import."""

    def __init__(self) -> None:
        self.data_root: Path = Path(
            os.environ.get("ALLERGYLOG_DATA_ROOT") or Path.home() / ".allergylog"
        ).expanduser()
        # Folder both devices can reach (removable drive, shared directory).
        self.sync_root: Path = Path(
            os.environ.get("ALLERGYLOG_SYNC_ROOT") or (self.data_root / "sync")
        ).expanduser()
        self.backup_dir: Path = Path(
            os.environ.get("ALLERGYLOG_BACKUP_DIR") or "."
        ).expanduser()
        self.default_author: str = os.environ.get("ALLERGYLOG_AUTHOR") or "dad"
        self.log_level: str = (os.environ.get("ALLERGYLOG_LOG_LEVEL") or "WARNING").upper()


settings = Settings()
