"""
API errors and the response envelope.

Every response is wrapped as:
    {"response": {"ok": bool, "data"?: ..., "error"?: {...}},
     "failsafe": {"active": bool, "explanation": str}}
"""

import logging
import secrets
from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..clock import rfc3339, utcnow
from ..errors import SmartDisplayError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"
    UPSTREAM_ERROR = "upstream_error"
    SERVICE_UNAVAILABLE = "service_unavailable"


HTTP_STATUS = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.METHOD_NOT_ALLOWED: 405,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.UPSTREAM_ERROR: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
}

# Domain error code -> API error code
DOMAIN_CODES = {
    "invalid_transition": ErrorCode.BAD_REQUEST,
    "invalid_settings": ErrorCode.BAD_REQUEST,
    "already_pending": ErrorCode.CONFLICT,
    "not_found": ErrorCode.NOT_FOUND,
    "not_pending": ErrorCode.CONFLICT,
    "failsafe_active": ErrorCode.SERVICE_UNAVAILABLE,
    "upstream_error": ErrorCode.UPSTREAM_ERROR,
}

_STATUS_CODES = {status: code for code, status in HTTP_STATUS.items()}


class ApiError(Exception):
    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.code]


def new_request_id() -> str:
    return f"req-{secrets.token_hex(8)}"


def request_id_of(request: Request) -> str:
    return getattr(request.state, "request_id", None) or new_request_id()


# =============================================================================
# Envelope
# =============================================================================

def _failsafe_block() -> dict:
    from .deps import current_coordinator

    coordinator = current_coordinator()
    if coordinator is None:
        return {"active": False, "explanation": ""}
    state = coordinator.failsafe_state()
    return {"active": state.active, "explanation": state.explanation}


def ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    response = {"ok": True}
    if data is not None:
        response["data"] = jsonable_encoder(data, exclude_none=True)
    return JSONResponse(
        status_code=status_code,
        content={"response": response, "failsafe": _failsafe_block()},
    )


def error_response(request: Request, code: ErrorCode, message: str) -> JSONResponse:
    error = {
        "code": code.value,
        "message": message,
        "request_id": request_id_of(request),
        "timestamp": rfc3339(utcnow()),
    }
    return JSONResponse(
        status_code=HTTP_STATUS[code],
        content={"response": {"ok": False, "error": error}, "failsafe": _failsafe_block()},
    )


def api_error_from(error: SmartDisplayError, message: Optional[str] = None) -> ApiError:
    return ApiError(DOMAIN_CODES.get(error.code, ErrorCode.INTERNAL_ERROR), message or error.message)


# =============================================================================
# Handlers
# =============================================================================

def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return error_response(request, exc.code, exc.message)

    @app.exception_handler(SmartDisplayError)
    async def handle_domain_error(request: Request, exc: SmartDisplayError):
        api_error = api_error_from(exc)
        if api_error.code == ErrorCode.INTERNAL_ERROR:
            logger.error("[API] %s unhandled domain error: %s", request_id_of(request), exc)
        return error_response(request, api_error.code, api_error.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _STATUS_CODES.get(exc.status_code, ErrorCode.BAD_REQUEST)
        return error_response(request, code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "invalid request"
        return error_response(request, ErrorCode.BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("[API] %s internal error", request_id_of(request))
        return error_response(request, ErrorCode.INTERNAL_ERROR, "internal error")
