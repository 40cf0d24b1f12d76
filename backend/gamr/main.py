from __future__ import annotations

import time
import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gamr.api.router import api_router
from gamr.api.ws import router as ws_router
from gamr.core.settings import settings
from gamr.core.logging import setup_logging
from gamr.core.errors import AppHTTPException, core_error_status, error_payload
from gamr.core.request_id import set_request_id, get_request_id, ensure_request_id
from gamr.core.rate_limit import rate_limiter
from gamr.core.realtime import ConnectionManager
from gamr.db.session import AsyncSessionLocal
from gamr.engine.errors import CoreError
from gamr.services.review_scheduler import ReviewScheduler

"""
Application FastAPI (entrypoint).

Rôle (fonctionnel) :
- Configure l’application (settings, CORS, middlewares, routers).
- Cycle de vie (lifespan) :
  - crée le manager WebSocket (app.state.events)
  - démarre / arrête le planificateur de revues (app.state.review_scheduler)
- Centralise l’observabilité :
  - request_id propagé (X-Request-Id)
  - logs structurés JSON (timing, status, client_ip)
  - seuil de “slow request”
- Applique un rate-limit simple (optionnel) sur les écritures.
- Uniformise les erreurs côté client (format error_payload), y compris les erreurs du moteur.

Ce fichier ne contient pas de logique métier :
- Le moteur pur est dans gamr.engine
- Les cas d’usage sont dans gamr.services
- Les routes sont dans gamr.api
"""


class UTF8JSONResponse(JSONResponse):
    """Réponse JSON avec charset UTF-8 explicite (cohérent sur tous les endpoints)."""
    media_type = "application/json; charset=utf-8"


setup_logging(settings.LOG_LEVEL)

log = logging.getLogger("gamr")

# logger dédié observabilité HTTP (séparé du métier)
http_log = logging.getLogger("gamr.http")

SLOW_MS = int(settings.SLOW_REQUEST_MS)

RATE_LIMITED_PREFIXES = ("/risk-sheets", "/correlations")


def _split_origins(value: str) -> list[str]:
    """Parse une liste d’origines CORS depuis une string 'a,b,c'."""
    if not value:
        return []
    return [o.strip() for o in value.split(",") if o.strip()]


def _rid(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.events = ConnectionManager()
    app.state.review_scheduler = None

    if settings.REVIEW_SCAN_ENABLED:
        scheduler = ReviewScheduler(
            AsyncSessionLocal,
            app.state.events,
            interval_seconds=settings.REVIEW_SCAN_INTERVAL_SECONDS,
        )
        await scheduler.start()
        app.state.review_scheduler = scheduler

    log.info("startup (env=%s)", settings.ENV)
    try:
        yield
    finally:
        if app.state.review_scheduler is not None:
            await app.state.review_scheduler.stop()
        await app.state.events.close_all()
        log.info("shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    default_response_class=UTF8JSONResponse,
    lifespan=lifespan,
)

# --- CORS ---
origins = _split_origins(settings.CORS_ORIGINS)

# Origines par défaut en dev (Vite)
default_dev_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or default_dev_origins,
    allow_credentials=False,  # pas de cookies (API stateless)
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-API-Key",
        "X-Actor",
        "X-Request-Id",
        "X-Tenant-Id",
    ],
)

# --- Routers ---
app.include_router(api_router)
app.include_router(ws_router)


# --- Middleware observabilité : request_id + timing + logs structurés ---
@app.middleware("http")
async def request_observability(request: Request, call_next):
    rid = ensure_request_id(request.headers.get("X-Request-Id"))
    request.state.request_id = rid

    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)

        if response is not None:
            response.headers["X-Request-Id"] = rid

        level = logging.WARNING if duration_ms >= SLOW_MS else logging.INFO
        http_log.log(
            level,
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": getattr(response, "status_code", None),
                "duration_ms": duration_ms,
                "client_ip": request.client.host if request.client else None,
                "tenant_id": request.headers.get("X-Tenant-Id"),
            },
        )

        set_request_id(None)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """
    Rate-limit (optionnel) :
    - Ne bloque jamais les préflights CORS (OPTIONS) ni les lectures.
    - S’applique uniquement aux fiches et corrélations.
    """
    if request.method == "OPTIONS":
        return await call_next(request)

    if request.url.path.startswith(RATE_LIMITED_PREFIXES):
        try:
            rate_limiter.check(request)
        except AppHTTPException as exc:
            detail = exc.detail if isinstance(exc.detail, dict) else {}
            return UTF8JSONResponse(
                status_code=exc.status_code,
                content=error_payload(
                    code=str(detail.get("code", "RATE_LIMITED")),
                    message=str(detail.get("message", "Trop de requêtes")),
                    status=exc.status_code,
                    request_id=_rid(request),
                    details=detail.get("details", None),
                ),
            )

    return await call_next(request)


# --- Error handlers : format standard, pas de stacktrace côté client ---
@app.exception_handler(AppHTTPException)
async def app_http_exception_handler(request: Request, exc: AppHTTPException):
    """Erreurs applicatives (AppHTTPException) -> payload standard."""
    detail = exc.detail if isinstance(exc.detail, dict) else {}

    code = str(detail.get("code", "HTTP_ERROR"))
    message = str(detail.get("message", "Erreur HTTP"))
    details = detail.get("details", None)

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=_rid(request), details=details),
    )


@app.exception_handler(CoreError)
async def core_error_handler(request: Request, exc: CoreError):
    """Erreurs du moteur (scoring / graphe) -> statut dédié + code stable."""
    status = core_error_status(exc)
    log.info(
        "core_error",
        extra={"status_code": status, "method": request.method, "path": request.url.path},
    )
    return UTF8JSONResponse(
        status_code=status,
        content=error_payload(
            code=exc.code,
            message=exc.message,
            status=status,
            request_id=_rid(request),
            details=exc.details,
        ),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Erreurs HTTP natives (404, 405, etc.) -> payload standard."""
    if isinstance(exc.detail, dict):
        code = str(exc.detail.get("code", "HTTP_ERROR"))
        message = str(exc.detail.get("message", "Erreur HTTP"))
        details = exc.detail.get("details", None)
    else:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        message = str(exc.detail)
        details = None

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=_rid(request), details=details),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Erreurs de validation Pydantic -> 422 + details=exc.errors()."""
    return UTF8JSONResponse(
        status_code=422,
        content=error_payload(
            code="REQUEST_VALIDATION_ERROR",
            message="Requête invalide",
            status=422,
            request_id=_rid(request),
            details=jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Fallback : toute exception non gérée -> 500 + log serveur."""
    log.exception("Unhandled error: %s", exc)

    return UTF8JSONResponse(
        status_code=500,
        content=error_payload(
            code="INTERNAL_ERROR",
            message="Erreur interne du serveur",
            status=500,
            request_id=_rid(request),
        ),
    )
