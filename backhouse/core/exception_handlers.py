import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from backhouse.core.errors import BackhouseError, TransientPersistenceFailure
from backhouse.schemas.response import ErrorDetail, ErrorResponse

log = logging.getLogger(__name__)


def _error_body(code: str, message, details=None):
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return body.model_dump(exclude_none=True)


# ----------- Exception Handlers (called by FastAPI) -----------

def http_exception_handler(request: Request, exc: HTTPException):
    """Handles exceptions raised by HTTPException (e.g., 404, 400)."""
    return JSONResponse(status_code=exc.status_code, content=_error_body("http_error", exc.detail))


def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handles Pydantic validation errors (422 Unprocessable Entity)."""
    body = _error_body("validation_error", "Invalid input data", details=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=422, content=body)


def backhouse_exception_handler(request: Request, exc: BackhouseError):
    """Handles engine errors: NotFound, ValidationFailure, ConflictError, TransientPersistenceFailure."""
    if isinstance(exc, TransientPersistenceFailure):
        log.warning(f"Transient persistence failure on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, exc.message))


def generic_exception_handler(request: Request, exc: Exception):
    """Handles all unhandled exceptions (500 Internal Server Error)."""
    log.error(f"Unhandled exception on path: {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content=_error_body("server_error", "Internal Server Error"))


# ----------- Registration Function -----------

def setup_exception_handlers(app: FastAPI):
    """Registers all custom exception handlers with the FastAPI application."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(BackhouseError, backhouse_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    return app
