"""
api/deps.py -- Store lookup dependencies and the store-failure translation.

The stores live on app.state (wired by the lifespan). When MONGO_URI is not
configured the server still starts and the stores are None; every
store-backed route then fails at call time with a 500, never at startup.

store_failure() turns a pymongo error into the HTTPException a route raises.
The driver's error text is included in the body only in DEBUG mode -- it can
reveal hostnames and collection layout.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from pymongo.errors import PyMongoError

from api.models import MessageResponse
from auth.store import UserStore
from materials.store import MaterialStore

logger = logging.getLogger("fabricqr.api")

MSG_SERVER_ERROR = "Server error."
MSG_DATABASE_NOT_CONFIGURED = "Database is not configured."


def _not_configured() -> HTTPException:
    body = MessageResponse(message=MSG_DATABASE_NOT_CONFIGURED)
    return HTTPException(status_code=500, detail=body.model_dump(exclude_none=True))


def get_user_store(request: Request) -> UserStore:
    store = getattr(request.app.state, "user_store", None)
    if store is None:
        raise _not_configured()
    return store


def get_material_store(request: Request) -> MaterialStore:
    store = getattr(request.app.state, "material_store", None)
    if store is None:
        raise _not_configured()
    return store


def store_failure(request: Request, exc: PyMongoError) -> HTTPException:
    """Log a store error and build the 500 response for it."""
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    expose = request.app.state.settings.debug
    body = MessageResponse(message=MSG_SERVER_ERROR, error=str(exc) if expose else None)
    return HTTPException(status_code=500, detail=body.model_dump(exclude_none=True))
