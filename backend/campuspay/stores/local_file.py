"""
local_file.py — Local JSON-file document store.

Purpose:
- System of record when no cloud store is configured; offline mirror otherwise.
- One JSON document holding every collection:

    {
      "payments": [], "events": [], "organizations": [],
      "officerProfiles": {}, "users": {}
    }

Behavior:
- Every operation is a whole-file read-modify-write. There is no locking:
  concurrent writers race and the last write wins.
- Writes go to a sibling temp file which is then `os.replace`d over the
  target, so a crash never leaves a half-written document behind.
- An unparseable file (or a non-object root) is treated as an empty store
  and logged; the next write persists a valid document.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from campuspay.core.logging import get_logger
from campuspay.stores.base import (
    KEYED_COLLECTIONS,
    LIST_COLLECTIONS,
    Record,
    Repository,
    check_collection,
    matches,
)

logger = get_logger(__name__)


def empty_store() -> Dict[str, Any]:
    return {
        "payments": [],
        "events": [],
        "organizations": [],
        "officerProfiles": {},
        "users": {},
    }


class LocalFileRepository(Repository):
    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    # ------------------------------------------------------------------ #
    # Whole-document access
    def load(self) -> Dict[str, Any]:
        """Read the document, backfilling missing collections."""
        if not self.path.exists():
            return empty_store()
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Local store %s is unreadable (%s); starting from an empty store", self.path, e)
            return empty_store()

        if not isinstance(data, dict):
            logger.warning("Local store %s has a non-object root; starting from an empty store", self.path)
            return empty_store()

        for name in LIST_COLLECTIONS:
            if not isinstance(data.get(name), list):
                data[name] = []
        for name in KEYED_COLLECTIONS:
            if not isinstance(data.get(name), dict):
                data[name] = {}
        return data

    def save(self, data: Dict[str, Any]) -> None:
        """Atomically replace the document on disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # ------------------------------------------------------------------ #
    # Repository interface
    def read(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        check_collection(collection)
        data = self.load()
        return [r for r in _records(data, collection) if matches(r, filters)]

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        check_collection(collection)
        data = self.load()
        if collection in KEYED_COLLECTIONS:
            found = data[collection].get(record_id)
            return _keyed(record_id, found) if isinstance(found, dict) else None
        for record in data[collection]:
            if isinstance(record, dict) and record.get("id") == record_id:
                return record
        return None

    def upsert(self, collection: str, record: Record) -> Record:
        check_collection(collection)
        record_id = record.get("id")
        if not record_id:
            raise ValueError(f"Record for {collection} has no id")

        data = self.load()
        stored = copy.deepcopy(record)
        if collection in KEYED_COLLECTIONS:
            data[collection][record_id] = stored
        else:
            items = data[collection]
            for idx, existing in enumerate(items):
                if isinstance(existing, dict) and existing.get("id") == record_id:
                    items[idx] = stored
                    break
            else:
                items.insert(0, stored)
        self.save(data)
        return stored

    def delete(self, collection: str, record_id: str) -> bool:
        check_collection(collection)
        data = self.load()
        if collection in KEYED_COLLECTIONS:
            removed = data[collection].pop(record_id, None) is not None
        else:
            before = len(data[collection])
            data[collection] = [
                r for r in data[collection]
                if not (isinstance(r, dict) and r.get("id") == record_id)
            ]
            removed = len(data[collection]) != before
        if removed:
            self.save(data)
        return removed

    def replace_all(self, collection: str, records: Iterable[Record]) -> None:
        check_collection(collection)
        data = self.load()
        records = [copy.deepcopy(r) for r in records]
        if collection in KEYED_COLLECTIONS:
            data[collection] = {r["id"]: r for r in records}
        else:
            data[collection] = records
        self.save(data)


def _keyed(key: str, record: Dict[str, Any]) -> Record:
    if record.get("id"):
        return record
    return {**record, "id": key}


def _records(data: Dict[str, Any], collection: str) -> List[Record]:
    if collection in KEYED_COLLECTIONS:
        return [_keyed(k, v) for k, v in data[collection].items() if isinstance(v, dict)]
    return [r for r in data[collection] if isinstance(r, dict)]
