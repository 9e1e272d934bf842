"""Maps the exception hierarchy onto HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from docgate.shared.exceptions import DocGateException, RequestException
from docgate.core.logger import get_logger

logger = get_logger(__name__)


def error_body(error_code: str, message: str) -> dict:
    return {"error": error_code, "message": message}


async def handle_gateway_exception(request: Request, exc: DocGateException) -> JSONResponse:
    if isinstance(exc, RequestException):
        logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")
    else:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.error_code, exc.message))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing multipart fields and malformed query parameters are plain bad requests."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', 'invalid')}"
        for error in exc.errors()
    )
    logger.warning(f"BAD_REQUEST on {request.url.path}: {problems}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("BAD_REQUEST", problems or "Invalid request"),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", "An unexpected error occurred"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DocGateException, handle_gateway_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
