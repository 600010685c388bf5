from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import traceback
import logging
import sys
import json
from typing import Dict, Any, Optional
import hashlib
import time

from geodispatch.config.logging_setup import redact
from geodispatch.exceptions import DispatchError

logger = logging.getLogger("geodispatch.middleware.error_handler")


class ErrorDetail:
    """Standardized error payload."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_type: str,
        error_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.error_id = error_id
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error into a dictionary."""
        error_dict = {
            "status_code": self.status_code,
            "message": self.message,
            "error_type": self.error_type
        }

        if self.error_id:
            error_dict["error_id"] = self.error_id

        if self.details:
            error_dict["details"] = self.details

        return error_dict


def format_stack_trace(stack_trace: str) -> str:
    """Indent a stack trace so it reads as one block in the log."""
    lines = stack_trace.split('\n')
    formatted_lines = []
    for line in lines:
        if line.strip():
            formatted_lines.append(f"  │ {line}")

    return "\n".join(formatted_lines)


def _error_id(request: Request) -> str:
    return hashlib.md5(f"{time.time()}-{request.url.path}".encode()).hexdigest()[:8]


def setup_error_handlers(app):
    """
    Configure error handling for the FastAPI application.
    """
    @app.exception_handler(DispatchError)
    async def dispatch_exception_handler(request, exc: DispatchError):
        """Handler for dispatch errors (entitlement, strategy, provider failures)."""
        error_id = _error_id(request)

        if exc.status_code >= 500:
            logger.error(f"❌ DISPATCH#{error_id}: {request.method} {request.url.path} - {exc.error_type}: {exc.message}")
        else:
            logger.warning(f"⚠️ DISPATCH#{error_id}: {exc.status_code} - {exc.error_type}: {exc.message}")

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                status_code=exc.status_code,
                message=exc.message,
                error_type=exc.error_type,
                error_id=error_id,
                details=exc.details
            ).to_dict()
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        """Handler for HTTP exceptions."""
        error_id = _error_id(request)

        if exc.status_code >= 500:
            logger.error(f"❌ HTTP#{error_id}: {request.method} {request.url.path} - {exc.status_code} - {exc.detail}")
        else:
            logger.warning(f"⚠️ HTTP#{error_id}: {exc.status_code} - {exc.detail}")

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorDetail(
                status_code=exc.status_code,
                message=str(exc.detail),
                error_type="http_exception",
                error_id=error_id
            ).to_dict()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        """Handler for request validation errors."""
        error_id = _error_id(request)

        validation_errors = json.loads(json.dumps(exc.errors(), default=str))
        error_details_str = json.dumps(validation_errors, indent=2)

        logger.warning(f"⚠️ VALID#{error_id}: Validation error on {request.method} {request.url.path}\n╭─ Validation Errors ──────────────────╮\n  │ {error_details_str}\n╰───────────────────────────────────────╯")

        return JSONResponse(
            status_code=422,
            content=ErrorDetail(
                status_code=422,
                message="Request validation failed",
                error_type="validation_error",
                error_id=error_id,
                details={"errors": validation_errors}
            ).to_dict()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request, exc):
        """Handler for unhandled exceptions; the stack trace stays in the log."""
        error_id = _error_id(request)

        exc_type, exc_value, exc_traceback = sys.exc_info()
        stack_trace = "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))
        formatted_trace = format_stack_trace(redact(stack_trace))

        error_msg = f"❌ EXC#{error_id}: {request.method} {request.url.path} - {exc.__class__.__name__}: {redact(str(exc))}"
        logger.error(f"{error_msg}\n╭─ Stack Trace ─────────────────────────╮\n{formatted_trace}\n╰───────────────────────────────────────╯")

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                message="Internal server error",
                error_type=exc.__class__.__name__,
                error_id=error_id
            ).to_dict()
        )
