from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from leave_ledger.exceptions import ErrorResponse

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI, Request, Response

    from leave_ledger.config import Settings

logger = logging.getLogger(__name__)


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware."""
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_deadline(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        """Bound every request by ``request_timeout_seconds``; overruns are retryable 503s."""
        try:
            async with asyncio.timeout(settings.request_timeout_seconds):
                return await call_next(request)
        except TimeoutError:
            logger.warning("Request deadline exceeded: %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=503,
                content=ErrorResponse(
                    error="DeadlineExceeded",
                    code="DEADLINE_EXCEEDED",
                    detail="Request took too long, retry shortly",
                    status_code=503,
                    retryable=True,
                ).model_dump(),
            )
