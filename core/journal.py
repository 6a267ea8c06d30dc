"""JSON lines journal for session data capture.

One file per family and UTC day: logs/{family}_{YYYY-MM-DD}.jsonl.
Trades are written with fsync so a crash right after a fill still leaves
the record on disk. The journal is write-only; nothing reads it back.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from core.logging_utils import get_logger

logger = get_logger(__name__)

FAMILIES = ("bars", "decisions", "trades")


def utc_date_str(ts: Optional[datetime] = None) -> str:
    """Return YYYY-MM-DD in UTC."""
    if ts is None:
        ts = datetime.now(timezone.utc)
    elif ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%d")


def append_jsonl(path: Path, record: dict, critical: bool = False):
    """Append a JSON record as a single line."""
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(record, separators=(",", ":"), default=str) + "\n"

    if critical:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
        try:
            os.write(fd, line.encode("utf-8"))
            os.fsync(fd)
        finally:
            os.close(fd)
    else:
        with open(path, "a") as f:
            f.write(line)


class SessionJournal:
    """Appends bar, decision and trade records under `base_dir`."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        self.records_written = 0

    def path_for(self, family: str, ts: Optional[datetime] = None) -> Path:
        return self.base_dir / f"{family}_{utc_date_str(ts)}.jsonl"

    def _write(self, family: str, record: dict, critical: bool = False):
        try:
            append_jsonl(self.path_for(family), record, critical=critical)
            self.records_written += 1
        except OSError as e:
            # Capture is best effort; trading continues without it
            logger.warning("[JOURNAL] Failed to write %s record: %s", family, e)

    def log_bar(self, record: dict):
        self._write("bars", record)

    def log_decision(self, record: dict):
        self._write("decisions", record)

    def log_trade(self, record: dict):
        self._write("trades", record, critical=True)
