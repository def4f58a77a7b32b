"""Standard error handler — consistent error responses across all routes."""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import CmsError, LayoutSaveError
from ..utils.logging import get_logger

logger = get_logger("middleware.error_handler")


def _error_body(request: Request, status_code: int, detail, **extra) -> dict:
    return {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        **extra,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": getattr(request.state, "request_id", None),
    }


def register_error_handlers(app: FastAPI) -> None:
    """Register standard error handlers on the app."""

    @app.exception_handler(CmsError)
    async def cms_error_handler(request: Request, exc: CmsError):
        extra = {}
        if isinstance(exc, LayoutSaveError):
            extra["rolledBack"] = exc.rolled_back
        if exc.status_code >= 500:
            logger.error("cms_error", error=exc.detail, kind=type(exc).__name__, path=str(request.url.path))
        else:
            logger.info("cms_client_error", error=exc.detail, kind=type(exc).__name__, status=exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail, **extra),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_body(
                request, 422, "Validation error", errors=jsonable_encoder(exc.errors())
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            request_id=getattr(request.state, "request_id", None),
            path=str(request.url.path),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(request, 500, "Internal server error"),
        )
