"""
mirrored.py — Cloud-authoritative repository with a local-file mirror.

Reads:
- Served by the cloud store. Only UpstreamUnavailable falls back to the
  local file; an empty cloud result is authoritative.

Writes:
- Local file first (errors propagate), then the cloud store best-effort.
  A failed mirror write is logged with operation, collection and id and is
  never raised or rolled back. `scripts/migrate_local_store.py` reconciles.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from campuspay.core.config import Settings
from campuspay.core.errors import UpstreamUnavailable
from campuspay.core.logging import get_logger
from campuspay.stores.base import Record, Repository
from campuspay.stores.local_file import LocalFileRepository
from campuspay.stores.supabase_store import SupabaseRepository, create_supabase_client

logger = get_logger(__name__)


class MirroredRepository(Repository):
    def __init__(self, authoritative: Repository, local: Repository):
        self.authoritative = authoritative
        self.local = local

    def read(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        try:
            return self.authoritative.read(collection, filters)
        except UpstreamUnavailable as e:
            logger.warning("Cloud read of %s failed, serving local mirror: %s", collection, e.message)
            return self.local.read(collection, filters)

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        try:
            return self.authoritative.get(collection, record_id)
        except UpstreamUnavailable as e:
            logger.warning("Cloud get of %s/%s failed, serving local mirror: %s", collection, record_id, e.message)
            return self.local.get(collection, record_id)

    def upsert(self, collection: str, record: Record) -> Record:
        stored = self.local.upsert(collection, record)
        self._mirror("upsert", collection, record.get("id"), lambda: self.authoritative.upsert(collection, stored))
        return stored

    def delete(self, collection: str, record_id: str) -> bool:
        removed = self.local.delete(collection, record_id)
        cloud_removed = self._mirror(
            "delete", collection, record_id, lambda: self.authoritative.delete(collection, record_id)
        )
        return bool(removed or cloud_removed)

    def replace_all(self, collection: str, records: Iterable[Record]) -> None:
        records = list(records)
        self.local.replace_all(collection, records)
        self._mirror("replace_all", collection, "*", lambda: self.authoritative.replace_all(collection, records))

    def _mirror(self, operation: str, collection: str, record_id: Any, call):
        try:
            return call()
        except UpstreamUnavailable as e:
            logger.error(
                "Mirror %s failed for %s/%s (local write kept): %s",
                operation, collection, record_id, e.message,
            )
            return None


def build_repository(settings: Settings, supabase_client=None) -> Repository:
    """
    Local file alone when Supabase is not configured; the mirrored composite
    otherwise. `supabase_client` lets tests inject a fake client.
    """
    local = LocalFileRepository(settings.LOCAL_STORE_PATH)
    if supabase_client is None and not settings.supabase_enabled:
        logger.info("Supabase not configured; using local store %s", settings.LOCAL_STORE_PATH)
        return local

    client = supabase_client or create_supabase_client(settings)
    cloud = SupabaseRepository(client, settings.SUPABASE_TABLE_PREFIX)
    logger.info("Using Supabase document store mirrored to %s", settings.LOCAL_STORE_PATH)
    return MirroredRepository(cloud, local)
