"""
supabase_store.py — Cloud document store on Supabase tables.

Layout:
- One table per collection, named `<SUPABASE_TABLE_PREFIX><collection>`:

    create table "payments" (id text primary key, doc jsonb not null);

- `doc` holds the full camelCase record; equality filters are pushed down as
  `doc->>field`.

Every client exception is re-raised as UpstreamUnavailable so callers can
tell "store unreachable" apart from "no matching records".
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from supabase import Client, create_client

from campuspay.core.config import Settings
from campuspay.core.errors import UpstreamUnavailable
from campuspay.core.logging import get_logger
from campuspay.stores.base import Record, Repository, check_collection

logger = get_logger(__name__)

_UPSERT_BATCH = 500


def create_supabase_client(settings: Settings) -> Client:
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def _filter_value(value: Any) -> str:
    # `doc->>field` yields text; booleans come back as "true"/"false"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SupabaseRepository(Repository):
    """
    Thin wrapper mapping the Repository interface onto Supabase tables.
    """

    def __init__(self, client: Client, table_prefix: str = ""):
        self._client = client
        self._prefix = table_prefix or ""

    def _table(self, collection: str):
        check_collection(collection)
        return self._client.table(f"{self._prefix}{collection}")

    def read(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        table = self._table(collection)
        try:
            query = table.select("id, doc")
            for field, value in (filters or {}).items():
                if value is None:
                    query = query.is_(f"doc->>{field}", "null")
                else:
                    query = query.eq(f"doc->>{field}", _filter_value(value))
            response = query.execute()
        except Exception as e:
            raise UpstreamUnavailable(f"read {collection} failed: {e}") from e
        return [_to_record(row) for row in (response.data or [])]

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        table = self._table(collection)
        try:
            response = table.select("id, doc").eq("id", record_id).limit(1).execute()
        except Exception as e:
            raise UpstreamUnavailable(f"get {collection}/{record_id} failed: {e}") from e
        data = response.data or []
        return _to_record(data[0]) if data else None

    def upsert(self, collection: str, record: Record) -> Record:
        table = self._table(collection)
        record_id = record.get("id")
        if not record_id:
            raise ValueError(f"Record for {collection} has no id")
        try:
            table.upsert({"id": record_id, "doc": record}).execute()
        except Exception as e:
            raise UpstreamUnavailable(f"upsert {collection}/{record_id} failed: {e}") from e
        return record

    def delete(self, collection: str, record_id: str) -> bool:
        table = self._table(collection)
        try:
            response = table.delete().eq("id", record_id).execute()
        except Exception as e:
            raise UpstreamUnavailable(f"delete {collection}/{record_id} failed: {e}") from e
        return bool(response.data)

    def replace_all(self, collection: str, records: Iterable[Record]) -> None:
        """
        Upsert every record in batches.

        Rows absent from `records` are left in place; removals go through
        `delete` explicitly.
        """
        table = self._table(collection)
        rows = [{"id": r["id"], "doc": r} for r in records]
        for start in range(0, len(rows), _UPSERT_BATCH):
            batch = rows[start:start + _UPSERT_BATCH]
            try:
                table.upsert(batch).execute()
            except Exception as e:
                raise UpstreamUnavailable(f"bulk upsert {collection} failed: {e}") from e
        logger.info("Upserted %d %s rows", len(rows), collection)


def _to_record(row: Dict[str, Any]) -> Record:
    doc = dict(row.get("doc") or {})
    doc.setdefault("id", row.get("id"))
    return doc
