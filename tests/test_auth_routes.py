"""
tests/test_auth_routes.py -- Integration tests for POST /auth/login and POST /auth/google-login.

These tests exercise the full stack: FastAPI routing -> request validation ->
UserStore (mongomock) -> TokenIssuer -> response serialization.

Coverage:
  - Password login: 200 with token + public user, token claims match the account
  - Unknown username and wrong password give the identical 401 body
  - Google-only accounts cannot log in with a password
  - Google login: creates an account on first use, refreshes email on the next
    one without duplicating it, derives and disambiguates usernames
  - Google login with an email owned by another account: 409
  - Long-lived token profile for Google login, short-lived for password login
  - Store failures on either login: 500 with the generic message
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

from conftest import ADMIN_PASSWORD, MEMBER_PASSWORD, Harness
from pymongo.errors import ServerSelectionTimeoutError

from auth.models import FederatedAccount, User


class TestPasswordLogin:
    def test_valid_credentials_return_token_and_user(self, harness: Harness) -> None:
        resp = harness.client.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["user"]["username"] == "admin"
        assert data["user"]["isAdmin"] is True
        assert data["user"]["canScanQr"] is True

        claims = harness.issuer.verify(data["token"])
        assert claims.user_id == harness.admin.id
        assert claims.is_admin is True
        assert claims.can_scan_qr is True

    def test_login_token_is_short_lived(self, harness: Harness) -> None:
        resp = harness.client.post("/auth/login", json={"username": "member", "password": MEMBER_PASSWORD})
        claims = harness.issuer.verify(resp.json()["token"])
        assert claims.expires_at - claims.issued_at == timedelta(hours=1)

    def test_response_never_contains_password_hash(self, harness: Harness) -> None:
        resp = harness.client.post("/auth/login", json={"username": "member", "password": MEMBER_PASSWORD})
        user = resp.json()["user"]
        assert "password" not in user
        assert "passwordHash" not in user
        assert MEMBER_PASSWORD not in resp.text

    def test_login_responses_are_not_cached(self, harness: Harness) -> None:
        resp = harness.client.post("/auth/login", json={"username": "member", "password": MEMBER_PASSWORD})
        assert resp.headers["Cache-Control"] == "no-store"

    def test_unknown_username_and_wrong_password_look_identical(self, harness: Harness) -> None:
        unknown = harness.client.post("/auth/login", json={"username": "nobody", "password": MEMBER_PASSWORD})
        wrong = harness.client.post("/auth/login", json={"username": "member", "password": "not-the-password"})
        assert unknown.status_code == 401
        assert wrong.status_code == 401
        assert unknown.json() == wrong.json() == {"message": "Invalid credentials."}

    def test_federated_only_account_cannot_use_password_login(self, harness: Harness) -> None:
        harness.user_store.create_user(
            User(username="gonly", email="gonly@example.com", credentials=FederatedAccount(federated_id="g-1"))
        )
        resp = harness.client.post("/auth/login", json={"username": "gonly", "password": "anything"})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Invalid credentials."}

    def test_missing_fields_are_a_validation_failure(self, harness: Harness) -> None:
        resp = harness.client.post("/auth/login", json={"username": "member"})
        assert resp.status_code == 422
        assert resp.json()["message"] == "Request validation failed."


class TestGoogleLogin:
    def test_first_login_creates_account_without_capabilities(self, harness: Harness) -> None:
        resp = harness.client.post(
            "/auth/google-login",
            json={"googleId": "google-100", "email": "carol@example.com", "name": "Carol"},
        )
        assert resp.status_code == 200, resp.text
        user = resp.json()["user"]
        assert user["googleId"] == "google-100"
        assert user["email"] == "carol@example.com"
        assert user["username"] == "carol"
        assert user["isAdmin"] is False
        assert user["canScanQr"] is False

        stored = harness.user_store.get_by_federated_id("google-100")
        assert stored is not None
        assert stored.password_hash is None

    def test_google_token_is_long_lived(self, harness: Harness) -> None:
        resp = harness.client.post("/auth/google-login", json={"googleId": "google-101", "email": "dan@example.com"})
        claims = harness.issuer.verify(resp.json()["token"])
        assert claims.user_id == resp.json()["user"]["id"]
        assert claims.expires_at - claims.issued_at == timedelta(days=7)

    def test_second_login_updates_email_without_duplicating(self, harness: Harness) -> None:
        first = harness.client.post("/auth/google-login", json={"googleId": "google-102", "email": "erin@example.com"})
        second = harness.client.post(
            "/auth/google-login", json={"googleId": "google-102", "email": "erin.new@example.com"}
        )
        assert second.status_code == 200
        assert second.json()["user"]["id"] == first.json()["user"]["id"]
        assert second.json()["user"]["email"] == "erin.new@example.com"
        # Username was already set on the first login and must not change
        assert second.json()["user"]["username"] == "erin"

        matches = [u for u in harness.user_store.list_users() if u.federated_id == "google-102"]
        assert len(matches) == 1
        assert matches[0].email == "erin.new@example.com"

    def test_derived_username_collision_gets_a_suffix(self, harness: Harness) -> None:
        # "member" is already taken by the seeded password account
        resp = harness.client.post(
            "/auth/google-login", json={"googleId": "google-103", "email": "member@other.example.com"}
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["user"]["username"] == "member1"

    def test_email_owned_by_another_account_is_a_conflict(self, harness: Harness) -> None:
        resp = harness.client.post(
            "/auth/google-login", json={"googleId": "google-104", "email": "member@example.com"}
        )
        assert resp.status_code == 409
        assert resp.json() == {"message": "An account with that email already exists."}
        assert harness.user_store.get_by_federated_id("google-104") is None

    def test_existing_admin_flags_are_carried_into_the_token(self, harness: Harness) -> None:
        harness.client.post("/auth/google-login", json={"googleId": "google-105", "email": "fay@example.com"})
        harness.user_store._users.update_one({"googleId": "google-105"}, {"$set": {"isAdmin": True}})
        resp = harness.client.post("/auth/google-login", json={"googleId": "google-105", "email": "fay@example.com"})
        claims = harness.issuer.verify(resp.json()["token"])
        assert claims.is_admin is True

    def test_malformed_email_is_rejected(self, harness: Harness) -> None:
        resp = harness.client.post("/auth/google-login", json={"googleId": "google-106", "email": "not-an-email"})
        assert resp.status_code == 422

    def test_refusals_are_not_cached_either(self, harness: Harness) -> None:
        wrong = harness.client.post("/auth/login", json={"username": "member", "password": "not-the-password"})
        conflict = harness.client.post(
            "/auth/google-login", json={"googleId": "google-107", "email": "admin@example.com"}
        )
        assert wrong.status_code == 401
        assert conflict.status_code == 409
        assert wrong.headers["Cache-Control"] == "no-store"
        assert conflict.headers["Cache-Control"] == "no-store"


class TestStoreFailures:
    def _failing_store(self) -> MagicMock:
        store = MagicMock()
        store.get_by_username.side_effect = ServerSelectionTimeoutError("db-host:27017 unreachable")
        store.upsert_federated.side_effect = ServerSelectionTimeoutError("db-host:27017 unreachable")
        return store

    def test_password_login_store_error(self, make_client) -> None:
        client = make_client(user_store=self._failing_store())
        resp = client.post("/auth/login", json={"username": "member", "password": MEMBER_PASSWORD})
        assert resp.status_code == 500
        assert resp.json() == {"message": "Server error."}

    def test_google_login_store_error(self, make_client) -> None:
        client = make_client(user_store=self._failing_store())
        resp = client.post("/auth/google-login", json={"googleId": "google-200", "email": "x@example.com"})
        assert resp.status_code == 500
        assert resp.json() == {"message": "Server error."}
