"""
api/routes/users.py -- Administrative user listing.

Routes:
  GET /users -- every account, public projection only (admin only)

The route depends on require_admin, which itself depends on the bearer-token
check, so an unauthenticated request gets 401 before the admin gate is
consulted and a non-admin token gets 403.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pymongo.errors import PyMongoError

from api.deps import get_user_store, store_failure
from api.models import UserResponse
from auth.dependencies import AdminContext, require_admin
from auth.store import UserStore

router = APIRouter()


@router.get("/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    admin: AdminContext = Depends(require_admin),
    user_store: UserStore = Depends(get_user_store),
) -> list[UserResponse]:
    """List all user accounts. No pagination, no filtering."""
    try:
        users = user_store.list_users()
    except PyMongoError as exc:
        raise store_failure(request, exc) from exc
    return [UserResponse.from_user(u) for u in users]
