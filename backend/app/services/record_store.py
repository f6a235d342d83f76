"""JSON-file record store: one collection per record kind."""
from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from threading import Lock, RLock
from typing import Any, Dict, Iterator, List, Optional

from app.core.config import get_settings
from app.core.logging import logger


TENANTS = "tenants"
CONTRACTORS = "contractors"
KNOWLEDGE = "knowledge"
WORK_ORDERS = "work_orders"

RECORD_KINDS = (TENANTS, CONTRACTORS, KNOWLEDGE, WORK_ORDERS)


class RecordTransaction:
    """Read-modify-write handle over one collection, held under its lock."""

    def __init__(self, records: Optional[List[Dict[str, Any]]]) -> None:
        self.records: List[Dict[str, Any]] = list(records or [])
        self.dirty = False

    def replace(self, records: List[Dict[str, Any]]) -> None:
        self.records = list(records)
        self.dirty = True


class JsonRecordStore:
    """
    Collections are read whole and replaced whole.

    Writes go to a temp file that is moved over the original, so readers
    never observe a partial collection. A shared lock per file serializes
    read-modify-write cycles made through ``transaction`` inside this
    process; separate processes are not coordinated.
    """

    _lock_registry: dict[str, RLock] = {}
    _lock_registry_guard = Lock()

    def __init__(self, data_dir: str | Path | None = None) -> None:
        if data_dir is None:
            data_dir = get_settings().data_dir
        self._data_dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @classmethod
    def _get_shared_lock(cls, key: str) -> RLock:
        with cls._lock_registry_guard:
            lock = cls._lock_registry.get(key)
            if lock is None:
                lock = RLock()
                cls._lock_registry[key] = lock
            return lock

    def path_for(self, kind: str) -> Path:
        if kind not in RECORD_KINDS:
            raise ValueError(f"Unknown record kind '{kind}'")
        return self._data_dir / f"{kind}.json"

    def _lock_for(self, kind: str) -> RLock:
        return self._get_shared_lock(str(self.path_for(kind).resolve()))

    def _load(self, kind: str) -> Optional[List[Dict[str, Any]]]:
        """None when the file does not exist; OSError when it exists but cannot be used."""
        path = self.path_for(kind)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.error("Failed to read record collection", kind=kind, path=str(path), error=str(exc))
            raise OSError(f"{kind} collection unreadable") from exc
        if not isinstance(payload, list):
            logger.error("Record collection is not a list", kind=kind, path=str(path))
            raise OSError(f"{kind} collection unreadable")
        return [row for row in payload if isinstance(row, dict)]

    def read_all(self, kind: str) -> Optional[List[Dict[str, Any]]]:
        """Return every record of ``kind``, or None when the collection is missing or unreadable."""
        with self._lock_for(kind):
            try:
                return self._load(kind)
            except OSError:
                return None

    def replace_all(self, kind: str, records: List[Dict[str, Any]]) -> bool:
        """Atomically replace the full collection of ``kind``."""
        path = self.path_for(kind)
        with self._lock_for(kind):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = path.with_suffix(".tmp")
                with tmp_path.open("w", encoding="utf-8") as handle:
                    json.dump(records, handle, indent=2, ensure_ascii=True)
                tmp_path.replace(path)
            except OSError as exc:
                logger.error("Failed to write record collection", kind=kind, path=str(path), error=str(exc))
                return False
        return True

    @contextmanager
    def transaction(self, kind: str) -> Iterator[RecordTransaction]:
        """
        Hold the collection lock for a whole read-modify-write cycle.

        The collection is written back only when ``replace`` was called and
        the block exits without raising. A missing collection starts empty;
        an unreadable one raises OSError so it is never overwritten.
        """
        with self._lock_for(kind):
            tx = RecordTransaction(self._load(kind))
            yield tx
            if tx.dirty and not self.replace_all(kind, tx.records):
                raise OSError(f"Failed to persist {kind} collection")


record_store = JsonRecordStore()
