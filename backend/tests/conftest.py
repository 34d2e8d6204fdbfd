"""
Shared fixtures: isolated Settings on tmp paths, an in-memory stand-in for
the Supabase client (tables + storage bucket), token minting, and a
TestClient over a freshly built app.
"""

from __future__ import annotations

import copy
import time
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from campuspay.core.config import Settings
from campuspay.core.database import build_services
from campuspay.main import create_app
from campuspay.stores.local_file import LocalFileRepository

JWT_SECRET = "test-signing-secret"
JWT_AUDIENCE = "authenticated"


# -----------------------------------------------------------------------------
# Fake Supabase client
# -----------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, data):
        self.data = data


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.op = "select"
        self.filters: List[tuple] = []
        self.payload = None
        self._limit: Optional[int] = None

    def select(self, columns="*"):
        self.op = "select"
        return self

    def eq(self, column, value):
        self.filters.append((column, _as_text(value)))
        return self

    def is_(self, column, value):
        self.filters.append((column, None))
        return self

    def limit(self, n):
        self._limit = n
        return self

    def upsert(self, payload):
        self.op = "upsert"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def _column(self, row: Dict[str, Any], column: str) -> Optional[str]:
        if column.startswith("doc->>"):
            return _as_text((row.get("doc") or {}).get(column[len("doc->>"):]))
        return _as_text(row.get(column))

    def execute(self):
        self.client.calls.append((self.op, self.table))
        if self.client.db_down:
            raise ConnectionError("supabase unreachable")
        rows = self.client.tables.setdefault(self.table, {})

        if self.op == "upsert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            for row in payload:
                rows[row["id"]] = copy.deepcopy(row)
            return FakeResponse(copy.deepcopy(payload))

        matched = [r for r in rows.values() if all(self._column(r, c) == v for c, v in self.filters)]
        if self.op == "delete":
            for r in matched:
                del rows[r["id"]]
            return FakeResponse(matched)
        if self._limit is not None:
            matched = matched[: self._limit]
        return FakeResponse(copy.deepcopy(matched))


class FakeBucket:
    def __init__(self, client: "FakeSupabase", name: str):
        self.client = client
        self.name = name

    def upload(self, path, data, file_options=None):
        if self.client.storage_down:
            raise ConnectionError("storage unreachable")
        upsert = (file_options or {}).get("upsert") == "true"
        if path in self.client.objects and not upsert:
            raise RuntimeError("The resource already exists")
        self.client.objects[path] = data
        return {"path": path}

    def create_signed_url(self, path, expires_in):
        if self.client.signing_down:
            raise RuntimeError("signing failed")
        return {"signedURL": f"https://fake.supabase.co/storage/v1/object/sign/{self.name}/{path}?ttl={expires_in}"}

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self, client: "FakeSupabase"):
        self.client = client

    def from_(self, bucket):
        return FakeBucket(self.client, bucket)


class FakeSupabase:
    """Enough of supabase.Client for the document tables and one bucket."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.objects: Dict[str, bytes] = {}
        self.calls: List[tuple] = []
        self.db_down = False
        self.storage_down = False
        self.signing_down = False
        self.storage = FakeStorage(self)

    def table(self, name):
        return FakeQuery(self, name)

    def docs(self, table: str) -> List[Dict[str, Any]]:
        return [row["doc"] for row in self.tables.get(table, {}).values()]


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        LOCAL_STORE_PATH=str(tmp_path / "data.json"),
        UPLOADS_DIR=str(tmp_path / "uploads"),
        SUPABASE_URL="",
        SUPABASE_SERVICE_ROLE_KEY="",
        AUTH_JWT_SECRET=JWT_SECRET,
        AUTH_JWT_AUDIENCE=JWT_AUDIENCE,
    )


@pytest.fixture
def local_repo(settings) -> LocalFileRepository:
    return LocalFileRepository(settings.LOCAL_STORE_PATH)


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def services(settings):
    return build_services(settings)


@pytest.fixture
def cloud_services(settings, fake_supabase):
    return build_services(settings, supabase_client=fake_supabase)


@pytest.fixture
def client(settings) -> TestClient:
    return TestClient(create_app(settings))


def make_token(
    uid: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    role: Optional[str] = None,
    org: Optional[str] = None,
    secret: str = JWT_SECRET,
    expires_in: int = 3600,
) -> str:
    claims: Dict[str, Any] = {
        "sub": uid,
        "aud": JWT_AUDIENCE,
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
        "app_metadata": {},
        "user_metadata": {},
    }
    if email:
        claims["email"] = email
    if name:
        claims["user_metadata"]["full_name"] = name
    if role:
        claims["app_metadata"]["role"] = role
    if org:
        claims["app_metadata"]["org"] = org
    return jwt.encode(claims, secret, algorithm="HS256")


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers() -> Dict[str, str]:
    return bearer(make_token("student-1", email="ana@campus.edu", name="Ana Cruz"))


@pytest.fixture
def officer_headers() -> Dict[str, str]:
    return bearer(make_token("officer-1", email="lead@campus.edu", name="Org Lead", role="officer"))


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def as_headers():
    return bearer
