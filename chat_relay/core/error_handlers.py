from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

from .config import settings
from .exceptions import ChatRelayException, ValidationError

logger = logging.getLogger(__name__)

async def chat_relay_exception_handler(request: Request, exc: ChatRelayException):
    """Handle chat relay exceptions"""
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__}: {exc.message} - Path: {request.url.path}")
    else:
        logger.warning(f"{exc.__class__.__name__}: {exc.message} - Path: {request.url.path}")

    content = {"success": False, "message": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)

async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request schema violations as client errors"""
    errors = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    logger.warning(f"Validation error: {errors} - Path: {request.url.path}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation Error", "errors": errors}
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.exception(f"Unexpected error: {str(exc)} - Path: {request.url.path}")
    content = {"success": False, "message": "An internal server error occurred"}
    if settings.environment == "development":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)
