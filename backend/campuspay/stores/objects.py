"""
objects.py — Blob storage for proof images and event QR codes.

Backends:
- LocalDiskStorage: files under UPLOADS_DIR, served same-origin at
  `/uploads/<file>`; URLs never expire.
- SupabaseObjectStorage: private bucket objects; URLs are signed per request
  (public URL when signing fails, which only works for public buckets).
- FallbackObjectStorage: cloud when configured and reachable, local disk
  otherwise. The returned StoredObject says which one took the blob.

Only object *paths* are persisted on records; URLs are minted on demand.
"""

from __future__ import annotations

import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional

from supabase import Client

from campuspay.core.config import Settings
from campuspay.core.errors import StorageMisconfigured, UpstreamUnavailable
from campuspay.core.logging import get_logger
from campuspay.stores.supabase_store import create_supabase_client

logger = get_logger(__name__)

DEFAULT_URL_TTL = 3600


@dataclass
class Upload:
    """An uploaded file as received by the API."""

    data: bytes
    filename: str = ""
    content_type: Optional[str] = None


@dataclass
class StoredObject:
    path: str
    is_local: bool


@dataclass
class ResolvedUrl:
    url: str
    expires_in: Optional[int]
    local: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "expiresIn": self.expires_in, "local": self.local}


def extension_for(suggested_path: str, content_type: Optional[str] = None) -> str:
    """File extension of the suggested path, else one guessed from the content type."""
    suffix = PurePosixPath(suggested_path or "").suffix
    if suffix:
        return suffix.lower()
    if content_type:
        return mimetypes.guess_extension(content_type.split(";")[0].strip()) or ""
    return ""


class LocalDiskStorage:
    def __init__(self, uploads_dir: str, url_prefix: str = "/uploads"):
        self.uploads_dir = Path(uploads_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def store(
        self,
        data: bytes,
        suggested_path: str,
        content_type: Optional[str] = None,
        overwrite: bool = False,
    ) -> StoredObject:
        """
        Write under a fresh `<uuid4 hex><ext>` name, or under the suggested
        path's basename when `overwrite` pins a fixed slot.
        """
        if overwrite:
            filename = PurePosixPath(suggested_path).name
        else:
            filename = f"{uuid.uuid4().hex}{extension_for(suggested_path, content_type)}"
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        (self.uploads_dir / filename).write_bytes(data)
        logger.info("Stored %d bytes locally as %s", len(data), filename)
        return StoredObject(path=filename, is_local=True)

    def resolve_url(self, path: str, is_local: bool = True, ttl: int = DEFAULT_URL_TTL) -> ResolvedUrl:
        filename = PurePosixPath(path).name
        return ResolvedUrl(url=f"{self.url_prefix}/{filename}", expires_in=None, local=True)


class SupabaseObjectStorage:
    def __init__(self, client: Client, bucket: str):
        self._client = client
        self.bucket = bucket

    def _bucket(self):
        return self._client.storage.from_(self.bucket)

    def store(
        self,
        data: bytes,
        suggested_path: str,
        content_type: Optional[str] = None,
        overwrite: bool = False,
    ) -> StoredObject:
        options = {
            "content-type": content_type or "application/octet-stream",
            "upsert": "true" if overwrite else "false",
        }
        try:
            self._bucket().upload(suggested_path, data, file_options=options)
        except Exception as e:
            raise UpstreamUnavailable(f"upload {self.bucket}/{suggested_path} failed: {e}") from e
        logger.info("Uploaded %d bytes to %s/%s", len(data), self.bucket, suggested_path)
        return StoredObject(path=suggested_path, is_local=False)

    def resolve_url(self, path: str, is_local: bool = False, ttl: int = DEFAULT_URL_TTL) -> ResolvedUrl:
        try:
            signed = self._bucket().create_signed_url(path, ttl)
            url = signed.get("signedURL") or signed.get("signedUrl")
            if url:
                return ResolvedUrl(url=url, expires_in=ttl, local=False)
            logger.warning("Signing %s/%s returned no URL; trying public URL", self.bucket, path)
        except Exception as e:
            logger.warning("Signing %s/%s failed (%s); trying public URL", self.bucket, path, e)

        try:
            public_url = self._bucket().get_public_url(path)
        except Exception as e:
            raise UpstreamUnavailable(f"no URL for {self.bucket}/{path}: {e}") from e
        return ResolvedUrl(url=public_url, expires_in=None, local=False)


class FallbackObjectStorage:
    """
    Cloud first, local disk on failure or when no cloud backend exists.
    """

    def __init__(self, cloud: Optional[SupabaseObjectStorage], local: LocalDiskStorage):
        self.cloud = cloud
        self.local = local

    def store(
        self,
        data: bytes,
        suggested_path: str,
        content_type: Optional[str] = None,
        overwrite: bool = False,
    ) -> StoredObject:
        if self.cloud is not None:
            try:
                return self.cloud.store(data, suggested_path, content_type, overwrite)
            except UpstreamUnavailable as e:
                logger.warning("Cloud upload failed, writing %s to local disk: %s", suggested_path, e.message)
        return self.local.store(data, suggested_path, content_type, overwrite)

    def resolve_url(self, path: str, is_local: bool, ttl: int = DEFAULT_URL_TTL) -> ResolvedUrl:
        if is_local:
            return self.local.resolve_url(path, True, ttl)
        if self.cloud is None:
            raise StorageMisconfigured()
        return self.cloud.resolve_url(path, False, ttl)


def build_object_storage(settings: Settings, supabase_client: Optional[Client] = None) -> FallbackObjectStorage:
    local = LocalDiskStorage(settings.UPLOADS_DIR, settings.UPLOADS_URL_PREFIX)
    cloud = None
    if supabase_client is not None or settings.supabase_enabled:
        client = supabase_client or create_supabase_client(settings)
        cloud = SupabaseObjectStorage(client, settings.SUPABASE_BUCKET)
    return FallbackObjectStorage(cloud, local)
