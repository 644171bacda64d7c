"""FastAPI application for the Kyndra household service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kyndra.deps import settings
from kyndra.domain.errors import (
    AuthError,
    KyndraError,
    NotFound,
    StoreFailure,
    ValidationFailed,
)
from kyndra.log import configure_logging
from kyndra.routes import auth, events, home, people, spaces

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.version)

app.include_router(auth.router)
app.include_router(spaces.router)
app.include_router(people.router)
app.include_router(events.router)
app.include_router(home.router)

_STATUS_BY_ERROR: dict[type[KyndraError], int] = {
    AuthError: 401,
    ValidationFailed: 400,
    NotFound: 404,
    StoreFailure: 502,
}


@app.exception_handler(KyndraError)
async def handle_kyndra_error(request: Request, exc: KyndraError) -> JSONResponse:
    """Surface the error message as-is; the view keeps its last good state."""
    status = next(
        (code for kind, code in _STATUS_BY_ERROR.items() if isinstance(exc, kind)),
        400,
    )
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content={"detail": exc.message})


@app.get("/health")
def healthcheck() -> dict[str, str]:
    """Simple readiness probe used by deployment tooling."""
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    uvicorn.run("kyndra.main:app", host=settings.host, port=settings.port)
