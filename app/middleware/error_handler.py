"""
Error handling for the API.

Domain errors become ``{"success": false, "message": ...}`` responses with
their own status code. Anything unexpected is logged with its traceback and
answered with a generic 500 so internals never reach the client.
"""
import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.responses import error_response
from app.core.exceptions import CollegeConnectError

logger = logging.getLogger(__name__)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Last-resort handler for exceptions no exception handler claimed.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Unhandled {type(e).__name__} on {request.method} {request.url.path}",
                exc_info=True
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_response("Server error")
            )


async def domain_error_handler(request: Request, exc: CollegeConnectError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_response(exc.message))


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(str(exc.detail)),
        headers=getattr(exc, "headers", None)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Log 422 validation errors and return pydantic's error list.
    """
    errors = jsonable_encoder(exc.errors())
    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        + "; ".join(f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in errors)
    )
    return JSONResponse(
        status_code=422,
        content=error_response("Validation failed", errors=errors)
    )


def setup_error_middleware(app):
    """
    Add error handling middleware and exception handlers to the FastAPI app.
    """
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_exception_handler(CollegeConnectError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
