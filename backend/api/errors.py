"""
Error envelope
==============

Every failure leaves the API as {"error": str, "details": dict}:

- CredenceError          -> its status_code (400 validation, 500 otherwise)
- RequestValidationError -> 400
- HTTPException          -> its status_code
- anything else          -> 500
"""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from credence import CredenceError

logger = logging.getLogger(__name__)


def error_response(status_code: int, error: str, details: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "details": jsonable_encoder(details or {})},
    )


async def credence_error_handler(request: Request, exc: CredenceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc.status_code, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, "Invalid request", {"errors": exc.errors()})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal server error", {"reason": str(exc)})


def install_error_handlers(app: FastAPI):
    app.add_exception_handler(CredenceError, credence_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
