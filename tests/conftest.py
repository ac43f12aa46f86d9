"""
tests/conftest.py -- Shared test fixtures for the Fabric QR server.

This module provides:
  - make_stores(): mongomock-backed UserStore + MaterialStore with indexes
  - _patch_lifespan(): wires test stores into app.state, bypassing the real
    MongoClient startup
  - harness: TestClient plus seeded admin and member accounts
  - make_client: factory for apps with custom settings or stand-in stores

Design: mongomock gives every test its own in-memory database, including the
unique/sparse index behaviour the stores depend on. Tests hit the real route
handlers, dependencies and exception handlers -- only the database is fake.

Settings are built explicitly with _env_file=None so a developer's local .env
never leaks into the test run.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import mongomock
import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import PasswordAccount, User
from auth.store import UserStore
from auth.tokens import TokenIssuer, hash_password
from core.config import Settings
from materials.store import MaterialStore

TEST_SECRET = "test-secret-" + "0123456789abcdef" * 4
ADMIN_PASSWORD = "admin-pass-123"
MEMBER_PASSWORD = "member-pass-123"


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {"jwt_secret": TEST_SECRET, "mongo_uri": "", "debug": False}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_stores() -> tuple[UserStore, MaterialStore]:
    """Create an isolated in-memory database and both stores on top of it."""
    database = mongomock.MongoClient(tz_aware=True)["fabric_qr_test"]
    user_store = UserStore(database)
    material_store = MaterialStore(database)
    user_store.ensure_indexes()
    material_store.ensure_indexes()
    return user_store, material_store


def _patch_lifespan(user_store: Any, material_store: Any):
    """Return a lifespan that installs the given stores instead of connecting to MongoDB."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.mongo_client = None
        app.state.user_store = user_store
        app.state.material_store = material_store
        yield

    return test_lifespan


@dataclass
class Harness:
    client: TestClient
    issuer: TokenIssuer
    user_store: UserStore
    material_store: MaterialStore
    admin: User
    member: User


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_client() -> Generator[Callable[..., TestClient], None, None]:
    """Factory: make_client(settings=None, user_store=None, material_store=None) -> started TestClient."""
    opened: list[TestClient] = []

    def _make(settings: Settings | None = None, user_store: Any = None, material_store: Any = None) -> TestClient:
        app = create_app(settings or make_settings())
        app.router.lifespan_context = _patch_lifespan(user_store, material_store)
        client = TestClient(app, raise_server_exceptions=True)
        client.__enter__()
        opened.append(client)
        return client

    yield _make

    for client in opened:
        client.__exit__(None, None, None)


@pytest.fixture
def harness(make_client: Callable[..., TestClient]) -> Harness:
    """TestClient over fresh stores, seeded with one admin and one regular member.

    admin:  username "admin",  password ADMIN_PASSWORD,  isAdmin, canScanQr
    member: username "member", password MEMBER_PASSWORD, no capabilities
    """
    user_store, material_store = make_stores()

    admin = User(
        username="admin",
        email="admin@example.com",
        credentials=PasswordAccount(password_hash=hash_password(ADMIN_PASSWORD)),
        is_admin=True,
        can_scan_qr=True,
    )
    member = User(
        username="member",
        email="member@example.com",
        credentials=PasswordAccount(password_hash=hash_password(MEMBER_PASSWORD)),
    )
    user_store.create_user(admin)
    user_store.create_user(member)

    client = make_client(user_store=user_store, material_store=material_store)
    return Harness(
        client=client,
        issuer=client.app.state.token_issuer,
        user_store=user_store,
        material_store=material_store,
        admin=admin,
        member=member,
    )
