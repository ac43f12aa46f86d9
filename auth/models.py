"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and routes
do the work; these classes own the domain shape.

Credentials are a tagged union rather than two optional fields: an account is
reachable by password, by federated identity, or by both. A user record that
has neither cannot be represented -- the store mapper rejects it.

Layer rule: no imports from api/, materials/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass(frozen=True)
class PasswordAccount:
    password_hash: str


@dataclass(frozen=True)
class FederatedAccount:
    federated_id: str  # Google account id


@dataclass(frozen=True)
class HybridAccount:
    password_hash: str
    federated_id: str


Credentials = Union[PasswordAccount, FederatedAccount, HybridAccount]


@dataclass
class User:
    """A persisted account.

    id is None before the record is written to the store. username may be None
    only for federated accounts created before a username was derived; the
    federated login flow fills it in on the next login.
    """

    email: str
    credentials: Credentials
    username: str | None = None
    id: str | None = None
    can_scan_qr: bool = False
    is_admin: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def password_hash(self) -> str | None:
        if isinstance(self.credentials, (PasswordAccount, HybridAccount)):
            return self.credentials.password_hash
        return None

    @property
    def federated_id(self) -> str | None:
        if isinstance(self.credentials, (FederatedAccount, HybridAccount)):
            return self.credentials.federated_id
        return None


def build_credentials(password_hash: str | None, federated_id: str | None) -> Credentials:
    """Pick the credential variant for the given pair of optional fields.

    Raises ValueError when both are missing -- an account must be reachable by
    at least one login method.
    """
    if password_hash and federated_id:
        return HybridAccount(password_hash=password_hash, federated_id=federated_id)
    if password_hash:
        return PasswordAccount(password_hash=password_hash)
    if federated_id:
        return FederatedAccount(federated_id=federated_id)
    raise ValueError("A user needs a password hash, a federated id, or both.")


@dataclass(frozen=True)
class TokenClaims:
    """Decoded bearer-token payload. Derived, never persisted.

    Wire names: userId, isAdmin, canScanQr, iat, exp.
    """

    user_id: str
    is_admin: bool
    can_scan_qr: bool
    issued_at: datetime
    expires_at: datetime
