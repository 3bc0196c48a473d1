"""
Scan history: newest-first, unique by code, capped (50 by default).

Persisted as a small CSV file that is rewritten on every record; a store
without a path lives in memory only.
"""

from __future__ import annotations

import csv
import logging
import threading
from pathlib import Path
from typing import List, Optional, Union

from .models import HistoryEntry, Status

FIELDNAMES = ["code", "brand", "name", "status", "timestamp"]


class HistoryStore:
    DEFAULT_LIMIT = 50

    def __init__(self, path: Optional[Union[str, Path]] = None, limit: int = DEFAULT_LIMIT):
        self.path = Path(path) if path else None
        self.limit = max(1, int(limit))
        self.log = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._entries: List[HistoryEntry] = []
        self.load()

    def load(self) -> List[HistoryEntry]:
        """(Re)read the CSV file; rows that cannot be parsed are skipped."""
        entries: List[HistoryEntry] = []
        if self.path and self.path.exists():
            try:
                entries = self._read()
            except (OSError, UnicodeDecodeError, csv.Error) as exc:
                self.log.warning("Ignoring unreadable history file %s: %s", self.path, exc)
                entries = []
        with self._lock:
            self._entries = self._normalize(entries)
        return self.entries()

    def entries(self) -> List[HistoryEntry]:
        with self._lock:
            return list(self._entries)

    def record(self, entry: HistoryEntry) -> List[HistoryEntry]:
        """Put ``entry`` first, dropping any older entry with the same code."""
        with self._lock:
            self._entries = self._normalize([entry] + self._entries)
            snapshot = list(self._entries)
        self._write(snapshot)
        return snapshot

    def clear(self) -> None:
        with self._lock:
            self._entries = []
        self._write([])

    def _normalize(self, entries: List[HistoryEntry]) -> List[HistoryEntry]:
        seen = set()
        unique: List[HistoryEntry] = []
        for entry in entries:
            if entry.code in seen:
                continue
            seen.add(entry.code)
            unique.append(entry)
        return unique[: self.limit]

    def _read(self) -> List[HistoryEntry]:
        entries: List[HistoryEntry] = []
        with self.path.open("r", newline="", encoding="utf-8") as fh:
            for row in csv.DictReader(fh):
                entry = self._row_to_entry(row)
                if entry is None:
                    self.log.warning("Skipping unreadable history row: %s", row)
                    continue
                entries.append(entry)
        return entries

    def _write(self, entries: List[HistoryEntry]) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.DictWriter(fh, fieldnames=FIELDNAMES)
            writer.writeheader()
            for entry in entries:
                writer.writerow(entry.to_dict())

    @staticmethod
    def _row_to_entry(row: dict) -> Optional[HistoryEntry]:
        code = (row.get("code") or "").strip()
        status = Status.parse(row.get("status"))
        if not code or status is None:
            return None
        try:
            timestamp = float(row.get("timestamp") or 0)
        except ValueError:
            return None
        return HistoryEntry(
            code=code,
            brand=row.get("brand") or "",
            name=row.get("name") or "",
            status=status,
            timestamp=timestamp,
        )
