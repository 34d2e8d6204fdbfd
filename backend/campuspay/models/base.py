"""
base.py — Shared base for stored documents.

Stored records are JSON documents with camelCase keys. Models describe the
known fields but keep unknown keys (`extra="allow"`) so legacy records survive
a read/modify/write cycle untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string ("2025-01-31T09:15:00.123456+00:00")."""
    return datetime.now(timezone.utc).isoformat()


class Document(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        """Plain JSON-ready dict, as written to the stores."""
        return self.model_dump(mode="json")
