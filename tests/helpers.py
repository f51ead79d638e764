from __future__ import annotations

import asyncio
import io
import json
import tempfile
import unittest
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from PIL import Image
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from flexbase.db.session import create_tables, get_db
from flexbase.services.notification_service import NotificationService
from main import app


def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), "red").save(buf, format="PNG")
    return buf.getvalue()


def enable_foreign_keys(dbapi_connection, _record) -> None:
    # SQLite leaves FK enforcement off unless asked on every connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@dataclass
class Account:
    id: str
    username: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class ApiTestCase(unittest.TestCase):
    """Runs the app against a throwaway SQLite database per test."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        db_path = Path(self._tmp.name) / "flexbase.sqlite"

        self.engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
        event.listen(self.engine.sync_engine, "connect", enable_foreign_keys)
        asyncio.run(create_tables(self.engine))

        sessions = async_sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False, class_=AsyncSession
        )

        async def override_get_db():
            async with sessions() as session:
                yield session

        app.dependency_overrides[get_db] = override_get_db
        self.notifier = NotificationService()
        app.state.notifier = self.notifier
        self.client = TestClient(app)

    def tearDown(self) -> None:
        self.client.close()
        app.dependency_overrides.clear()
        asyncio.run(self.engine.dispose())
        self._tmp.cleanup()

    def register(self, username: str, password: str = "secret123") -> Account:
        r = self.client.post(
            "/api/auth/register",
            json={"username": username, "email": f"{username}@example.com", "password": password},
        )
        self.assertEqual(r.status_code, 201, r.text)

        r = self.client.post("/api/auth/login", json={"username": username, "password": password})
        self.assertEqual(r.status_code, 200, r.text)
        # Requests are authenticated explicitly through headers.
        self.client.cookies.clear()

        body = r.json()
        return Account(id=body["user"]["id"], username=username, token=body["accessToken"])

    def create_post(
        self,
        account: Account,
        caption: str = "My grail",
        visibility: str = "public",
        tags: list[dict[str, Any]] | None = None,
        collection_id: str | None = None,
        expected_status: int = 201,
    ) -> dict[str, Any]:
        data = {"caption": caption, "visibility": visibility}
        if tags is not None:
            data["tags"] = json.dumps(tags)
        if collection_id is not None:
            data["userCollection"] = collection_id

        r = self.client.post(
            "/api/posts",
            data=data,
            files={"media": ("grail.png", png_bytes(), "image/png")},
            headers=account.headers,
        )
        self.assertEqual(r.status_code, expected_status, r.text)
        return r.json()

    def create_collection(self, account: Account, name: str = "Kicks", **fields: Any) -> dict[str, Any]:
        payload = {"name": name, "category": "sneakers", **fields}
        r = self.client.post("/api/collections", json=payload, headers=account.headers)
        self.assertEqual(r.status_code, 201, r.text)
        return r.json()["collection"]

    def follow(self, follower: Account, followee: Account) -> dict[str, Any]:
        r = self.client.post(f"/api/users/{followee.id}/follow", headers=follower.headers)
        self.assertEqual(r.status_code, 200, r.text)
        return r.json()
