import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .errors import ServiceError, ValidationError
from .models import ErrorResponse

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, code: str, exc: Exception, debug: bool) -> JSONResponse:
    body = ErrorResponse(
        message=message,
        error=code,
        traceback="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)) if debug else None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_error_handlers(app: FastAPI, debug: bool = False) -> None:
    """Map every failure onto the {success, message, error} envelope."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return _error_response(exc.status_code, exc.message, exc.code, exc, debug)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        return _error_response(status.HTTP_400_BAD_REQUEST, message, ValidationError.code, exc, debug)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error_response(exc.status_code, str(exc.detail), "HTTPError", exc, debug)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "InternalError", exc, debug
        )
