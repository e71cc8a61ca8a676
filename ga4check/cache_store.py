"""Analysis log used to short-circuit repeat lookups.

Rows hold five ordered fields: timestamp, origin, score, message and the
details as JSON. Older logs were written with extra leading columns, so
rows are read through ``parse_row`` which detects the shape of each row.
"""
import csv
import json
import logging
import math
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from .urls import strip_trailing_slash

# Asia/Tokyo, which has no DST
LOG_TIMEZONE = timezone(timedelta(hours=9), 'JST')
TIMESTAMP_FORMAT = '%Y/%m/%d %H:%M:%S'

logger = logging.getLogger(__name__)


def now_timestamp() -> str:
    return datetime.now(LOG_TIMEZONE).strftime(TIMESTAMP_FORMAT)


@dataclass
class CacheRecord:
    timestamp: str
    origin: str
    score: int
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> List[Any]:
        return [self.timestamp, self.origin, self.score, self.message,
                json.dumps(self.details, ensure_ascii=False)]


def _is_numeric(value: str) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def column_indices(row: List[str]):
    """(score, message, details) positions for a row of any known layout"""
    if len(row) > 7 and _is_numeric(row[6]):
        return 6, 7, 8
    if len(row) > 5 and _is_numeric(row[4]):
        return 4, 5, 6
    return 2, 3, 4


def _field(row: List[str], index: int, default: str = '') -> str:
    return row[index] if index < len(row) and row[index] is not None else default


def parse_row(row: List[str]) -> Optional[CacheRecord]:
    """Read a stored row, tolerating column drift. Returns None for rows without a score."""
    if len(row) < 3:
        return None
    score_idx, msg_idx, det_idx = column_indices(row)

    raw_score = _field(row, score_idx)
    if not _is_numeric(raw_score):
        return None

    try:
        details = json.loads(_field(row, det_idx) or '{}')
    except ValueError as e:
        logger.error(f"Failed to parse cached details for {row[1]}: {e}")
        details = {}
    if not isinstance(details, dict):
        details = {}

    return CacheRecord(
        timestamp=row[0],
        origin=row[1],
        score=int(float(raw_score)),
        message=_field(row, msg_idx),
        details=details,
    )


class CacheStore(ABC):
    @abstractmethod
    def lookup(self, origin: str) -> Optional[CacheRecord]:
        """Most recent record for ``origin``, or None"""

    @abstractmethod
    def append(self, record: CacheRecord) -> None:
        pass


class CsvCacheStore(CacheStore):
    """Append-only CSV log. The last matching row wins on lookup."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _rows(self) -> List[List[str]]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, 'r', encoding='utf-8', newline='') as csvfile:
            return [row for row in csv.reader(csvfile) if row]

    def lookup(self, origin: str) -> Optional[CacheRecord]:
        with self._lock:
            rows = self._rows()

        for row in reversed(rows):
            if len(row) < 2 or strip_trailing_slash(row[1]) != origin:
                continue
            record = parse_row(row)
            if record is not None:
                return record
        return None

    def append(self, record: CacheRecord) -> None:
        with self._lock:
            with open(self.path, 'a', encoding='utf-8', newline='') as csvfile:
                csv.writer(csvfile).writerow(record.to_row())
