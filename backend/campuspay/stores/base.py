"""
base.py — Repository interface shared by every document store backend.

Collections:
- List collections (`payments`, `events`, `organizations`) hold records with
  an `id` key; new records are prepended (newest first).
- Keyed collections (`officerProfiles`, `users`) are objects keyed by the
  org key / uid; each record also carries its key under `id`.

Filters are plain equality matches on top-level fields, e.g.
`repo.read(EVENTS, {"orgId": "O1"})`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

PAYMENTS = "payments"
EVENTS = "events"
ORGANIZATIONS = "organizations"
OFFICER_PROFILES = "officerProfiles"
USERS = "users"

LIST_COLLECTIONS = (PAYMENTS, EVENTS, ORGANIZATIONS)
KEYED_COLLECTIONS = (OFFICER_PROFILES, USERS)
COLLECTIONS = LIST_COLLECTIONS + KEYED_COLLECTIONS

Record = Dict[str, Any]


def matches(record: Record, filters: Optional[Dict[str, Any]]) -> bool:
    """True when every filter field equals the record's value."""
    if not filters:
        return True
    return all(record.get(field) == value for field, value in filters.items())


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection}")


class Repository(ABC):
    """Uniform read/write interface over one document store."""

    @abstractmethod
    def read(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        ...

    @abstractmethod
    def get(self, collection: str, record_id: str) -> Optional[Record]:
        ...

    @abstractmethod
    def upsert(self, collection: str, record: Record) -> Record:
        """Insert or replace the record with the same `id`; returns the stored record."""

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> bool:
        """Remove a record; returns False when nothing matched."""

    @abstractmethod
    def replace_all(self, collection: str, records: Iterable[Record]) -> None:
        """Bulk-write a collection (migration, client mirror refresh)."""
