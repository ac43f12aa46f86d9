"""
api/routes/auth.py -- Login endpoints.

Routes:
  POST /auth/login         -- username/password login; short-lived token
  POST /auth/google-login  -- federated (Google) login with upsert; long-lived token

Both respond 200 with {token, user}, where user is the public projection
(no password hash). Tokens are returned in the body only; clients send them
back as "Authorization: Bearer <token>".

Security:
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_username() + verify_password().
  Wrong username and wrong password produce the same 401 body.
  Cache-Control: no-store on every login response.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from api.deps import get_user_store, store_failure
from api.models import GoogleLoginRequest, LoginRequest, LoginResponse, MessageResponse, UserResponse
from auth.models import User
from auth.store import EmailTakenError, UserStore
from auth.tokens import TokenIssuer, TokenProfile, authenticate_user

logger = logging.getLogger("fabricqr.api.auth")

MSG_INVALID_CREDENTIALS = "Invalid credentials."
MSG_EMAIL_TAKEN = "An account with that email already exists."

# Auth policy:
# - POST /auth/login:         public -- login endpoint must be unauthenticated
# - POST /auth/google-login:  public -- the client has already signed in with Google
router = APIRouter()


def _token_response(status_code: int, content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _login_refused(status_code: int, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=MessageResponse(message=message).model_dump(exclude_none=True),
        headers={"Cache-Control": "no-store"},
    )


def _login_payload(token: str, user: User) -> dict:
    return LoginResponse(token=token, user=UserResponse.from_user(user)).model_dump(mode="json", by_alias=True)


@router.post("/auth/login", response_model=LoginResponse)
def login(
    request: Request,
    body: LoginRequest,
    user_store: UserStore = Depends(get_user_store),
) -> JSONResponse:
    """Authenticate with username and password; return a short-lived bearer token."""
    try:
        user = authenticate_user(user_store, body.username, body.password)
    except PyMongoError as exc:
        raise store_failure(request, exc) from exc

    if user is None:
        logger.info("Password login failed for username %r", body.username)
        raise _login_refused(401, MSG_INVALID_CREDENTIALS)

    issuer: TokenIssuer = request.app.state.token_issuer
    token = issuer.issue(user, TokenProfile.LOGIN)
    logger.info("Password login succeeded for user %s", user.id)
    return _token_response(200, _login_payload(token, user))


@router.post("/auth/google-login", response_model=LoginResponse)
def google_login(
    request: Request,
    body: GoogleLoginRequest,
    user_store: UserStore = Depends(get_user_store),
) -> JSONResponse:
    """Create or refresh the account linked to a Google id; return a long-lived bearer token.

    An existing account gets its email refreshed (and a username if it never
    had one). A new account starts without QR-scan or admin capability.
    """
    try:
        user = user_store.upsert_federated(body.google_id, body.email)
    except EmailTakenError as exc:
        logger.warning("Google login refused: email already belongs to another account")
        raise _login_refused(409, MSG_EMAIL_TAKEN) from exc
    except PyMongoError as exc:
        raise store_failure(request, exc) from exc

    issuer: TokenIssuer = request.app.state.token_issuer
    token = issuer.issue(user, TokenProfile.FEDERATED)
    logger.info("Google login succeeded for user %s", user.id)
    return _token_response(200, _login_payload(token, user))
