"""Global error handling middleware."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stream_engine.exceptions import PreconditionError, StreamEngineError, StreamNotFoundError

logger = logging.getLogger(__name__)


def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup global exception handlers for the app.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        logger.warning(f"Validation error: {exc.errors()}")
        return _failure(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            detail=jsonable_errors(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Render HTTP errors in the same shape as service results."""
        return _failure(exc.status_code, str(exc.detail))

    @app.exception_handler(StreamNotFoundError)
    async def not_found_handler(request: Request, exc: StreamNotFoundError):
        return _failure(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(PreconditionError)
    async def precondition_handler(request: Request, exc: PreconditionError):
        """Handle rejected requests."""
        logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
        return _failure(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(StreamEngineError)
    async def engine_exception_handler(request: Request, exc: StreamEngineError):
        """Handle engine failures."""
        logger.error(f"Stream engine error: {exc}", exc_info=True)
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _failure(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(exc) if app.debug else "An error occurred",
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the raw input values."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
