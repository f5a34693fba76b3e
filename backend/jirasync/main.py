
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jirasync.bootstrap import SyncContainer, build_container
from jirasync.core.config import settings
from jirasync.core.exceptions import JiraSyncException
from jirasync.core.logging import setup_logging
from jirasync.db.session import SessionLocal
from jirasync.routers import sync


def create_app(container: SyncContainer | None = None) -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME)
    app.state.sync = container or build_container(settings, session_factory=SessionLocal)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sync.router, prefix="/api/sync", tags=["sync"])

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.exception_handler(JiraSyncException)
    async def handle_sync_exception(_: Request, exc: JiraSyncException) -> JSONResponse:
        headers = exc.headers if getattr(exc, "headers", None) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    return app


app = create_app()
