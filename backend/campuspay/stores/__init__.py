"""
Document and blob storage backends.
"""

from campuspay.stores.base import (
    EVENTS,
    OFFICER_PROFILES,
    ORGANIZATIONS,
    PAYMENTS,
    USERS,
    Repository,
)
from campuspay.stores.local_file import LocalFileRepository
from campuspay.stores.mirrored import MirroredRepository, build_repository
from campuspay.stores.objects import (
    FallbackObjectStorage,
    LocalDiskStorage,
    ResolvedUrl,
    StoredObject,
    SupabaseObjectStorage,
    Upload,
    build_object_storage,
)
from campuspay.stores.supabase_store import SupabaseRepository

__all__ = [
    "EVENTS",
    "OFFICER_PROFILES",
    "ORGANIZATIONS",
    "PAYMENTS",
    "USERS",
    "Repository",
    "LocalFileRepository",
    "MirroredRepository",
    "SupabaseRepository",
    "build_repository",
    "FallbackObjectStorage",
    "LocalDiskStorage",
    "SupabaseObjectStorage",
    "ResolvedUrl",
    "StoredObject",
    "Upload",
    "build_object_storage",
]
