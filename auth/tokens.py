"""
auth/tokens.py -- Password hashing and bearer-token issue/verify.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry userId, isAdmin, canScanQr, iat
       and exp. They are stateless -- there is no revocation list, so claims
       stay valid until exp even if the account changes afterwards.
       TokenIssuer.verify() raises InvalidToken on any failure; the auth
       dependency turns that into a 401.

  Two issuance profiles share one claim shape:
       LOGIN     -- password login, short-lived (default 1 hour)
       FEDERATED -- Google login, long-lived (default 7 days)

  Passwords: bcrypt with a fixed cost of 10 rounds. Hashing happens once,
       when a password is set -- never on an unrelated save. checkpw compares
       in constant time. The _DUMMY_HASH constant enables timing equalization
       in authenticate_user() so response time does not reveal whether a
       username exists.

  Secret: taken from the Settings instance handed to TokenIssuer. Nothing in
       this module reads configuration on its own.

Layer rule: no imports from api/ or materials/. Import from core/ is allowed.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenClaims

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("fabricqr.auth")

_ALGORITHM = "HS256"

BCRYPT_ROUNDS = 10

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes; longer inputs are truncated here
    so bcrypt 4.x does not reject them.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A missing hash (federated-only account) fails closed.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("fabricqr_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt whether or not the user exists or has a password:
    - Unknown username / federated-only account: bcrypt runs against _DUMMY_HASH
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any failure.
    """
    user = store.get_by_username(username)
    if user is None or user.password_hash is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


class InvalidToken(Exception):
    """Raised when a bearer token has a bad signature, is expired, or is malformed."""


class TokenProfile(enum.Enum):
    LOGIN = "login"
    FEDERATED = "federated"


class TokenIssuer:
    """Signs and verifies bearer tokens with the configured secret.

    Usage:
        issuer = TokenIssuer(settings)
        token = issuer.issue(user, TokenProfile.LOGIN)
        claims = issuer.verify(token)   # raises InvalidToken
    """

    def __init__(self, settings: Settings) -> None:
        self._secret = settings.jwt_secret
        self._lifetimes = {
            TokenProfile.LOGIN: timedelta(seconds=settings.login_token_expire_seconds),
            TokenProfile.FEDERATED: timedelta(seconds=settings.federated_token_expire_seconds),
        }

    def lifetime(self, profile: TokenProfile) -> timedelta:
        return self._lifetimes[profile]

    def issue(self, user: User, profile: TokenProfile, now: datetime | None = None) -> str:
        """Encode a signed token for user with the expiry of the given profile.

        now overrides the issuance time; it exists for callers that need a
        deterministic clock (tests, backfills).
        """
        if user.id is None:
            raise ValueError("Cannot issue a token for an unsaved user.")
        issued_at = now or datetime.now(timezone.utc)
        payload = {
            "userId": user.id,
            "isAdmin": user.is_admin,
            "canScanQr": user.can_scan_qr,
            "iat": issued_at,
            "exp": issued_at + self._lifetimes[profile],
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a token. Returns TokenClaims or raises InvalidToken."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc

        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidToken("Token is missing the userId claim.")
        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("Token is missing its timestamps.") from exc

        return TokenClaims(
            user_id=user_id,
            is_admin=payload.get("isAdmin") is True,
            can_scan_qr=payload.get("canScanQr") is True,
            issued_at=issued_at,
            expires_at=expires_at,
        )
