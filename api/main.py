"""
api/main.py -- FastAPI application entry point for the Fabric QR server.

Run with:      uvicorn asgi:app --reload
               python main.py serve

create_app(settings) builds the application around one explicit Settings
object: the token issuer and the stores are constructed from it and hung on
app.state, nothing reads configuration on its own afterwards.

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for the configured origins
  2. log_requests      -- one log line per request with latency

Lifespan opens the MongoDB client and builds the stores on startup and closes
the client on shutdown. A missing MONGO_URI is logged, not fatal: the server
starts and store-backed routes answer 500 until it is configured.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import MongoClient
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.deps import MSG_SERVER_ERROR
from api.models import InfoResponse, MessageResponse
from api.routes.auth import router as auth_router
from api.routes.materials import router as materials_router
from api.routes.users import router as users_router
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import Settings, get_settings
from materials.store import MaterialStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("fabricqr.api")

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the MongoDB client and build the stores; close the client on shutdown."""
    settings: Settings = app.state.settings
    logger.info("Fabric QR API starting up")

    app.state.mongo_client = None
    app.state.user_store = None
    app.state.material_store = None

    if not settings.database_configured:
        logger.error("MONGO_URI is not defined. Store-backed routes will fail until it is set.")
    else:
        client: MongoClient = MongoClient(settings.mongo_uri, tz_aware=True)
        database = client[settings.mongo_database]
        app.state.mongo_client = client
        app.state.user_store = UserStore(database)
        app.state.material_store = MaterialStore(database)
        try:
            app.state.user_store.ensure_indexes()
            app.state.material_store.ensure_indexes()
            logger.info("MongoDB connected (database=%s)", settings.mongo_database)
        except PyMongoError as exc:
            logger.error("MongoDB connection error: %s", exc)

    yield

    if app.state.mongo_client is not None:
        app.state.mongo_client.close()
    logger.info("Fabric QR API shutdown complete")


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. The user id is only known after the auth dependency ran, so it is
# read from request.state on the way out.
# ---------------------------------------------------------------------------


async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    claims = getattr(request.state, "claims", None)
    logger.info(
        "%s %s %d %.1fms %s user=%s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
        claims.user_id if claims is not None else "-",
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body has the same shape: {"message": ..., ["error": ...]}.
# Route handlers raise HTTPException with detail=MessageResponse(...).model_dump().
# ---------------------------------------------------------------------------


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException detail as the response body.

    A dict detail is already a MessageResponse dump; anything else (e.g.
    Starlette's own 404/405) is wrapped into one.
    """
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = MessageResponse(message=str(exc.detail)).model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the request body or path fails validation."""
    return JSONResponse(
        status_code=422,
        content=MessageResponse(message="Request validation failed.", error=str(exc.errors())).model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception is logged with its traceback; the client only gets a
    generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=MessageResponse(message=MSG_SERVER_ERROR).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Root info
# ---------------------------------------------------------------------------


async def root() -> InfoResponse:
    """Liveness check and a map of the public routes."""
    return InfoResponse(
        message="Fabric QR Server API is running!",
        routes={
            "getMaterialById": "/materials/:qrCodeId",
            "login": "/auth/login",
            "googleLogin": "/auth/google-login",
            "listUsers": "/users",
        },
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the ASGI application around a single Settings instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Fabric QR Server API",
        description="Fabric material lookup by QR code, with password and Google login.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_issuer = TokenIssuer(settings)

    app.middleware("http")(log_requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.add_api_route("/", root, methods=["GET"], response_model=InfoResponse, tags=["Info"])
    app.include_router(materials_router, tags=["Materials"])
    app.include_router(auth_router, tags=["Auth"])
    app.include_router(users_router, tags=["Users"])
    return app


app = create_app()
