"""Exception handlers for FastAPI integration."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from sqla_rebac.exceptions import (
    AuthorizationError,
    AuthzError,
    EvaluatorUnavailable,
    InvalidBatchError,
)

__all__ = ["install_error_handlers"]

logger = logging.getLogger("sqla_rebac")


def install_error_handlers(app: FastAPI) -> None:
    """Install exception handlers for sqla-rebac errors on a FastAPI app.

    Converts authorization exceptions into HTTP responses:

    - ``AuthorizationError`` -> 403 Forbidden, naming action and resource type
    - ``InvalidBatchError`` -> 400 Bad Request
    - ``EvaluatorUnavailable`` -> 503 Service Unavailable
    - any other ``AuthzError`` -> 500 with a generic body; detail is logged

    Args:
        app: The FastAPI application instance.

    Example::

        from fastapi import FastAPI
        from sqla_rebac.integrations.fastapi import install_error_handlers

        app = FastAPI()
        install_error_handlers(app)
    """

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: AuthorizationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"detail": str(exc)},
        )

    @app.exception_handler(InvalidBatchError)
    async def invalid_batch_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: InvalidBatchError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc)},
        )

    @app.exception_handler(EvaluatorUnavailable)
    async def evaluator_unavailable_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: EvaluatorUnavailable
    ) -> JSONResponse:
        logger.error("Policy evaluator unavailable: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Authorization service unavailable"},
        )

    @app.exception_handler(AuthzError)
    async def authz_error_handler(  # pyright: ignore[reportUnusedFunction]
        request: object, exc: AuthzError
    ) -> JSONResponse:
        logger.error("Unhandled %s: %s", type(exc).__name__, exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
