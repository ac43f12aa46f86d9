"""
auth/store.py -- MongoDB persistence layer for user accounts.

Pattern: Repository + Data Mapper (same as materials/store.py).
UserStore is the repository; _doc_to_user / _user_to_doc are the mappers.
Route and dependency code never touches pymongo directly.

Document shape (collection "users") keeps the field names of the legacy
Express/Mongoose service so existing data keeps working:

    {_id, username, password, googleId, email, canScanQr, isAdmin, createdAt, updatedAt}

"password" holds the bcrypt hash, never plaintext. Optional fields are
omitted rather than stored as null so the sparse unique indexes skip them.

Uniqueness of username, email and googleId is enforced by the indexes created
in ensure_indexes(). Concurrent writers rely on those indexes and on Mongo's
single-document atomicity -- there is no in-process locking.

Layer rule: no imports from api/ or materials/.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth.models import FederatedAccount, HybridAccount, PasswordAccount, User, build_credentials
from auth.tokens import hash_password

logger = logging.getLogger("fabricqr.auth.store")

_FEDERATED_UPSERT_ATTEMPTS = 5


class EmailTakenError(Exception):
    """Raised when a federated login presents an email owned by another account."""

    def __init__(self, email: str) -> None:
        super().__init__(f"Email {email!r} already belongs to another account.")
        self.email = email


def _now() -> datetime:
    return datetime.now(timezone.utc)


def default_username(email: str) -> str:
    """Derive a username from the local part of an email address."""
    local = (email or "").split("@", 1)[0].strip()
    return local or "user"


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(client["fabric_qr"])
        store.ensure_indexes()
        user_id = store.create_user(User(username="admin", email="a@x.io",
                                         credentials=PasswordAccount(hash_password("secret"))))
        user = store.get_by_username("admin")
    """

    def __init__(self, database: Database, collection_name: str = "users") -> None:
        self._users: Collection = database.get_collection(collection_name)

    def ensure_indexes(self) -> None:
        """Create the uniqueness indexes. Idempotent -- safe on every startup."""
        self._users.create_index([("username", ASCENDING)], unique=True, sparse=True, name="uniq_username")
        self._users.create_index([("email", ASCENDING)], unique=True, name="uniq_email")
        self._users.create_index([("googleId", ASCENDING)], unique=True, sparse=True, name="uniq_google_id")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by id. Returns None for unknown or malformed ids."""
        if not ObjectId.is_valid(user_id):
            return None
        doc = self._users.find_one({"_id": ObjectId(user_id)})
        return _doc_to_user(doc) if doc is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        doc = self._users.find_one({"username": username})
        return _doc_to_user(doc) if doc is not None else None

    def get_by_email(self, email: str) -> User | None:
        doc = self._users.find_one({"email": email})
        return _doc_to_user(doc) if doc is not None else None

    def get_by_federated_id(self, federated_id: str) -> User | None:
        doc = self._users.find_one({"googleId": federated_id})
        return _doc_to_user(doc) if doc is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by username. Admin-only operation."""
        return [_doc_to_user(doc) for doc in self._users.find().sort("username", ASCENDING)]

    def count(self) -> int:
        return self._users.count_documents({})

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its assigned id.

        The credentials must already carry a hash -- this method never hashes.
        Raises pymongo.errors.DuplicateKeyError if username, email or googleId
        is already taken.
        """
        now = _now()
        user.created_at = user.created_at or now
        user.updated_at = now
        result = self._users.insert_one(_user_to_doc(user))
        user.id = str(result.inserted_id)
        return user.id

    def set_password(self, user_id: str, plain: str) -> User | None:
        """Hash plain once and store it as the account's password.

        A federated-only account becomes a hybrid account. Returns the updated
        user, or None if user_id is unknown.
        """
        if not ObjectId.is_valid(user_id):
            return None
        doc = self._users.find_one_and_update(
            {"_id": ObjectId(user_id)},
            {"$set": {"password": hash_password(plain), "updatedAt": _now()}},
            return_document=ReturnDocument.AFTER,
        )
        return _doc_to_user(doc) if doc is not None else None

    def upsert_federated(self, federated_id: str, email: str) -> User:
        """Create or refresh the account linked to a federated identity.

        Existing account: email is refreshed; username is filled in only when
        it was never set. New account: no password, canScanQr/isAdmin false,
        username derived from the email local part.

        Derived usernames that are already taken get the lowest free numeric
        suffix (alice, alice1, alice2, ...). Losing a uniqueness race to a
        concurrent login is retried against the fresh store state.

        Raises EmailTakenError if email belongs to a different account.
        """
        last_error: DuplicateKeyError | None = None
        for _ in range(_FEDERATED_UPSERT_ATTEMPTS):
            try:
                existing = self.get_by_federated_id(federated_id)
                if existing is not None:
                    refreshed = self._refresh_federated(existing, email)
                    if refreshed is not None:
                        return refreshed
                    continue
                user = User(
                    email=email,
                    credentials=FederatedAccount(federated_id=federated_id),
                    username=self.free_username(default_username(email)),
                )
                self.create_user(user)
                logger.info("Created federated account %s", user.id)
                return user
            except DuplicateKeyError as exc:
                owner = self.get_by_email(email)
                if owner is not None and owner.federated_id != federated_id:
                    raise EmailTakenError(email) from exc
                logger.info("Federated upsert lost a uniqueness race; retrying")
                last_error = exc
        raise RuntimeError(
            f"Federated upsert did not settle after {_FEDERATED_UPSERT_ATTEMPTS} attempts"
        ) from last_error

    def _refresh_federated(self, user: User, email: str) -> User | None:
        """Apply the login-time refresh. Returns None if the record disappeared mid-update."""
        updates: dict[str, Any] = {"email": email, "updatedAt": _now()}
        if not user.username:
            updates["username"] = self.free_username(default_username(email))
        doc = self._users.find_one_and_update(
            {"_id": ObjectId(user.id)},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        return _doc_to_user(doc) if doc is not None else None

    def free_username(self, base: str) -> str:
        """Return base, or base followed by the lowest numeric suffix not in use."""
        pattern = f"^{re.escape(base)}\\d*$"
        taken = {doc["username"] for doc in self._users.find({"username": {"$regex": pattern}}, {"username": 1})}
        if base not in taken:
            return base
        n = 1
        while f"{base}{n}" in taken:
            n += 1
        return f"{base}{n}"


# ---------------------------------------------------------------------------
# Document mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _doc_to_user(doc: dict) -> User:
    return User(
        id=str(doc["_id"]),
        username=doc.get("username"),
        email=doc.get("email", ""),
        credentials=build_credentials(doc.get("password"), doc.get("googleId")),
        can_scan_qr=bool(doc.get("canScanQr", False)),
        is_admin=bool(doc.get("isAdmin", False)),
        created_at=doc.get("createdAt"),
        updated_at=doc.get("updatedAt"),
    )


def _user_to_doc(user: User) -> dict:
    doc: dict[str, Any] = {
        "email": user.email,
        "canScanQr": user.can_scan_qr,
        "isAdmin": user.is_admin,
        "createdAt": user.created_at,
        "updatedAt": user.updated_at,
    }
    if user.username:
        doc["username"] = user.username
    if isinstance(user.credentials, (PasswordAccount, HybridAccount)):
        doc["password"] = user.credentials.password_hash
    if isinstance(user.credentials, (FederatedAccount, HybridAccount)):
        doc["googleId"] = user.credentials.federated_id
    return doc
