"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two layers, composed through FastAPI's dependency graph:

  get_auth_context()  -- the auth middleware. Reads "Authorization: Bearer <token>",
                         verifies it with app.state.token_issuer and returns an
                         AuthContext. Raises HTTP 401 on a missing/malformed
                         header or an unverifiable token.

  require_admin()     -- the role gate. Its only input is the AuthContext that
                         get_auth_context() produced, so registering a route
                         with Depends(require_admin) always runs the middleware
                         first. Returns an AdminContext; raises HTTP 403 if the
                         isAdmin claim is false.

Tokens are stateless: the claims are trusted as issued and the user record is
not re-read per request.

Layer rule: no imports from api/ or materials/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from auth.models import TokenClaims
from auth.tokens import InvalidToken, TokenIssuer

logger = logging.getLogger("fabricqr.auth")

_BEARER_PREFIX = "Bearer "

MSG_TOKEN_REQUIRED = "Authentication token required."
MSG_INVALID_TOKEN = "Invalid token."
MSG_ADMIN_REQUIRED = "Administrator privilege required."


@dataclass(frozen=True)
class AuthContext:
    """Identity established by a verified bearer token."""

    claims: TokenClaims


@dataclass(frozen=True)
class AdminContext:
    """An AuthContext whose claims passed the admin gate."""

    claims: TokenClaims


def get_auth_context(request: Request) -> AuthContext:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AuthContext = Depends(get_auth_context)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(_BEARER_PREFIX):
        logger.info("Rejected %s %s: no bearer token", request.method, request.url.path)
        raise HTTPException(status_code=401, detail={"message": MSG_TOKEN_REQUIRED})

    token = auth_header[len(_BEARER_PREFIX) :].strip()
    issuer: TokenIssuer = request.app.state.token_issuer
    try:
        claims = issuer.verify(token)
    except InvalidToken as exc:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        raise HTTPException(status_code=401, detail={"message": MSG_INVALID_TOKEN}) from exc

    request.state.claims = claims
    logger.debug("Token verified for user %s (isAdmin=%s)", claims.user_id, claims.is_admin)
    return AuthContext(claims=claims)


def require_admin(ctx: AuthContext = Depends(get_auth_context)) -> AdminContext:
    """Require the isAdmin claim. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(admin: AdminContext = Depends(require_admin)): ...
    """
    if not ctx.claims.is_admin:
        logger.warning("Admin route refused for user %s", ctx.claims.user_id)
        raise HTTPException(status_code=403, detail={"message": MSG_ADMIN_REQUIRED})
    return AdminContext(claims=ctx.claims)
