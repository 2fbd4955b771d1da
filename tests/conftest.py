"""Shared fixtures: an in-memory Supabase-like client and an app wired to it."""

from __future__ import annotations

from pathlib import Path
import re
import sys
from typing import Any, Callable
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from postgrest.exceptions import APIError  # noqa: E402

from Database.deps import get_db, get_storage  # noqa: E402
from Database.storage import AvatarStorage  # noqa: E402
from settings import Settings, get_settings  # noqa: E402
from Users.auth import TokenService, hash_password  # noqa: E402
from Users.user import User  # noqa: E402
from api.auth_routes import auth_router  # noqa: E402
from api.favorite_routes import favorite_router  # noqa: E402
from api.user_routes import user_router  # noqa: E402

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"
TEST_PASSWORD = "correct-horse"

_EMBED = re.compile(r"(\w+):(\w+)\(([^)]*)\)")


class FakeSupabaseResponse:
    """Minimal Supabase-like response wrapper."""

    def __init__(self, data: list[dict[str, Any]]) -> None:
        self.data = data


class FakeTable:
    """In-memory table with a Supabase-like query builder."""

    def __init__(self, db: "FakeDB", table_name: str) -> None:
        self._db = db
        self._table_name = table_name
        self._store = db.tables.setdefault(table_name, [])
        self._action: str | None = None
        self._columns = "*"
        self._filters: list[Callable[[dict[str, Any]], bool]] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None
        self._payload: dict[str, Any] | list[dict[str, Any]] | None = None

    def select(self, columns: str = "*") -> "FakeTable":
        self._action = "select"
        self._columns = columns
        return self

    def insert(self, payload: dict[str, Any] | list[dict[str, Any]]) -> "FakeTable":
        self._action = "insert"
        self._payload = payload
        return self

    def update(self, payload: dict[str, Any]) -> "FakeTable":
        self._action = "update"
        self._payload = payload
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeTable":
        self._filters.append(lambda row: str(row.get(column)) == str(value))
        return self

    def in_(self, column: str, values: list[Any]) -> "FakeTable":
        wanted = {str(value) for value in values}
        self._filters.append(lambda row: str(row.get(column)) in wanted)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeTable":
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeTable":
        self._limit = count
        return self

    def _filter_rows(self) -> list[dict[str, Any]]:
        return [row for row in self._store if all(check(row) for check in self._filters)]

    def _embed(self, row: dict[str, Any]) -> dict[str, Any]:
        shaped = dict(row)
        for alias, table, columns in _EMBED.findall(self._columns):
            wanted = [column.strip() for column in columns.split(",")]
            foreign_key = row.get(f"{alias}_id")
            related = next(
                (r for r in self._db.tables.get(table, []) if str(r.get("id")) == str(foreign_key)),
                None,
            )
            shaped[alias] = {c: related.get(c) for c in wanted} if related else None
        return shaped

    def _check_unique_email(self, row: dict[str, Any], others: list[dict[str, Any]]) -> None:
        """Mirror the UNIQUE constraint on users.email."""
        if self._table_name != "users" or "email" not in row:
            return
        if any(existing.get("email") == row["email"] for existing in others):
            raise APIError(
                {
                    "message": "duplicate key value violates unique constraint",
                    "code": "23505",
                    "hint": None,
                    "details": None,
                }
            )

    def execute(self) -> FakeSupabaseResponse:
        if self._table_name in self._db.failing_tables:
            raise RuntimeError(f"{self._table_name} is unavailable")

        if self._action == "select":
            rows = self._filter_rows()
            if self._order:
                column, desc = self._order
                rows = sorted(rows, key=lambda r: str(r.get(column)), reverse=desc)
            if self._limit is not None:
                rows = rows[: self._limit]
            data = [self._embed(row) for row in rows]
        elif self._action == "insert":
            rows = self._payload if isinstance(self._payload, list) else [self._payload]  # type: ignore[list-item]
            for row in rows:
                self._check_unique_email(row, others=self._store)  # type: ignore[arg-type]
            self._store.extend(dict(row) for row in rows)  # type: ignore[arg-type]
            data = [dict(row) for row in rows]  # type: ignore[arg-type]
        elif self._action == "update":
            data = self._filter_rows()
            targets = {id(row) for row in data}
            others = [row for row in self._store if id(row) not in targets]
            self._check_unique_email(self._payload or {}, others=others)  # type: ignore[arg-type]
            for row in data:
                row.update(self._payload or {})  # type: ignore[arg-type]
            data = [dict(row) for row in data]
        elif self._action == "delete":
            data = self._filter_rows()
            for row in data:
                self._store.remove(row)
        else:
            raise ValueError("Unsupported action for FakeTable.")

        return FakeSupabaseResponse(data)


class FakeBucket:
    """Storage bucket keeping uploaded objects in a dict."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.objects: dict[str, bytes] = {}
        self.removed: list[str] = []
        self.fail_remove = False

    def upload(self, path: str, file: bytes, file_options: dict[str, str] | None = None) -> dict:
        self.objects[path] = file
        return {"Key": f"{self.name}/{path}"}

    def remove(self, paths: list[str]) -> list[dict]:
        if self.fail_remove:
            raise RuntimeError("storage unavailable")
        for path in paths:
            self.objects.pop(path, None)
            self.removed.append(path)
        return [{"name": path} for path in paths]

    def get_public_url(self, path: str) -> str:
        return f"https://storage.example.com/{self.name}/{path}"


class FakeStorageClient:

    def __init__(self) -> None:
        self.buckets: dict[str, FakeBucket] = {}

    def from_(self, bucket: str) -> FakeBucket:
        return self.buckets.setdefault(bucket, FakeBucket(bucket))


class FakeDB:
    """Simplified Supabase client exposing table(...) and storage."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.storage = FakeStorageClient()
        self.failing_tables: set[str] = set()

    def table(self, name: str) -> FakeTable:
        return FakeTable(self, name)

    def rows(self, name: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(name, [])


@pytest.fixture()
def settings() -> Settings:
    return Settings(jwt_secret=TEST_SECRET, socket_auth_timeout=5)


@pytest.fixture()
def fake_db() -> FakeDB:
    return FakeDB()


@pytest.fixture()
def storage(fake_db: FakeDB, settings: Settings) -> AvatarStorage:
    return AvatarStorage(fake_db, settings.avatar_bucket)


@pytest.fixture()
def tokens(settings: Settings) -> TokenService:
    return TokenService(settings.jwt_secret, settings.jwt_expire_days)


@pytest.fixture()
def make_user(fake_db: FakeDB) -> Callable[..., dict[str, Any]]:
    """Insert a user row (with a hashed TEST_PASSWORD) and return it."""

    def _make_user(**overrides: Any) -> dict[str, Any]:
        fields = {"name": "Ada", "email": f"ada-{uuid4().hex[:6]}@example.com"}
        fields.update(overrides)
        row = User(**fields).to_dict()
        row["password"] = hash_password(TEST_PASSWORD)
        fake_db.rows("users").append(row)
        return row

    return _make_user


@pytest.fixture()
def user(make_user: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    return make_user(name="Ada", email="ada@example.com")


@pytest.fixture()
def auth_headers(user: dict[str, Any], tokens: TokenService) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens.issue(user['id'])}"}


@pytest.fixture()
def client(fake_db: FakeDB, storage: AvatarStorage, settings: Settings) -> TestClient:
    """Create a TestClient with fake store dependencies overridden."""

    app = FastAPI()
    app.dependency_overrides[get_db] = lambda: fake_db  # type: ignore[assignment]
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_settings] = lambda: settings
    app.include_router(auth_router, prefix="/api/auth")
    app.include_router(favorite_router, prefix="/api/users/favorites")
    app.include_router(user_router, prefix="/api/users")
    return TestClient(app)


@pytest.fixture()
def password() -> str:
    """Plain-text password of every user created with make_user."""
    return TEST_PASSWORD
