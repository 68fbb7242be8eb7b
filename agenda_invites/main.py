from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from .config import settings
from .database import init_db
from .errors import InfrastructureError, InvitationError

from .api.invitations import router as invitations_router
from .api.agendas import router as agendas_router

logger = logging.getLogger(__name__)


def _error_response(exc: InvitationError) -> JSONResponse:
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind},
        headers=headers,
    )


def create_app(*, create_tables: bool = True) -> FastAPI:
    app = FastAPI(
        title="Agenda Invitations API",
        version=settings.app_version,
        docs_url=None if settings.is_prod else "/docs",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Startup ---
    @app.on_event("startup")
    def _startup() -> None:
        init_db(create_tables=create_tables)

    # --- Error envelope: {"detail": ..., "error": <stable kind>} ---
    @app.exception_handler(InvitationError)
    async def invitation_error_handler(request: Request, exc: InvitationError) -> JSONResponse:
        if exc.retryable:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
        return _error_response(exc)

    @app.exception_handler(OperationalError)
    async def store_unavailable_handler(request: Request, exc: OperationalError) -> JSONResponse:
        logger.exception("%s %s: data store unavailable", request.method, request.url.path)
        return _error_response(InfrastructureError())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # --- Health / meta ---
    @app.get("/health", tags=["meta"])
    def health() -> Dict[str, Any]:
        return {"ok": True, "service": settings.app_name, "env": settings.env}

    @app.get("/version", tags=["meta"])
    def version() -> Dict[str, Any]:
        return {"version": settings.app_version}

    # --- API routers ---
    app.include_router(invitations_router)
    app.include_router(agendas_router)

    return app


app = create_app()


def run() -> None:
    logging.basicConfig(
        level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    import uvicorn

    uvicorn.run(
        "agenda_invites.main:app",
        host=settings.host,
        port=int(settings.port),
        reload=bool(settings.reload),
    )
