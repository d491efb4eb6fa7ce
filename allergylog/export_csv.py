import csv
import io
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from allergylog.config import APP_NAME
from allergylog.errors import StorageUnavailable
from allergylog.models import Record

HEADERS = ["date", "time", "food", "symptom", "severity", "medication", "memo", "author", "photoCount"]


def records_to_csv(records: Iterable[Record]) -> str:
    buf = io.StringIO()
    # QUOTE_ALL wraps every field and doubles embedded quotes
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADERS)
    for r in records:
        writer.writerow([
            r.date.isoformat(),
            r.time,
            r.food,
            r.symptom,
            "" if r.severity is None else str(r.severity),
            r.medication,
            r.memo,
            r.author,
            str(len(r.photos)),
        ])
    return buf.getvalue()


def csv_filename(today: date) -> str:
    return f"{APP_NAME}-{today.isoformat()}.csv"


def write_csv(records: Iterable[Record], directory: Path, today: Optional[date] = None) -> Path:
    path = Path(directory) / csv_filename(today or date.today())
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(records_to_csv(records), encoding="utf-8")
    except OSError as e:
        raise StorageUnavailable(f"cannot write CSV {path}: {e}") from e
    return path
