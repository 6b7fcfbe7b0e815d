"""HTTP middleware: CORS and request logging."""

from __future__ import annotations

from time import perf_counter

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger


async def request_logging_middleware(request: Request, call_next):
    """Log one line per request with status and elapsed time."""
    started_at = perf_counter()
    response = await call_next(request)
    elapsed_ms = (perf_counter() - started_at) * 1000
    response.headers["X-Process-Time-Ms"] = str(round(elapsed_ms, 2))
    logger.info(
        "{} {} {} ({:.1f} ms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


def register_middlewares(app: FastAPI, *, frontend_url: str) -> None:
    """Install CORS for the frontend origin and the request logger."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_logging_middleware)
