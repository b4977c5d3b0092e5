"""
Newsdesk API Response Utilities
Standardized response envelope and error handling
"""
import math
import traceback
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .logging_config import api_logger

settings = get_settings()


# ============================================================
# SUCCESS RESPONSES
# ============================================================

def success(data: Any = None, message: str = None, **extra) -> Dict:
    """Create success response"""
    response = {"success": True}

    if message:
        response["message"] = message

    if data is not None:
        response["data"] = data

    response.update(extra)
    return response


def paginated(items: List, total: int, page: int = 1, limit: int = 20, message: str = None) -> Dict:
    """Paginated list response"""
    return success(
        items,
        message,
        count=len(items),
        total=total,
        total_pages=math.ceil(total / limit) if limit else 0,
        current_page=page,
    )


def page_window(page: int, limit: int) -> int:
    """Offset for a 1-based page."""
    return (max(page, 1) - 1) * limit


# ============================================================
# ERROR RESPONSES
# ============================================================

class ApiException(HTTPException):
    """Custom API exception with error codes"""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str = None,
        details: Dict = None,
    ):
        self.error_code = error_code or f"ERR_{status_code}"
        self.details = details
        super().__init__(status_code=status_code, detail=message)


# Common exceptions
def bad_request(message: str, code: str = "BAD_REQUEST", details: Dict = None):
    raise ApiException(400, message, code, details)

def unauthorized(message: str = "Authentication required"):
    raise ApiException(401, message, "UNAUTHORIZED")

def forbidden(message: str = "Access denied"):
    raise ApiException(403, message, "FORBIDDEN")

def not_found(resource: str = "Resource", id: Any = None):
    message = f"{resource} not found" if id is None else f"{resource} '{id}' not found"
    raise ApiException(404, message, "NOT_FOUND")

def conflict(message: str = "Resource conflict"):
    raise ApiException(409, message, "CONFLICT")

def validation_error(message: str, details: Dict = None):
    raise ApiException(400, message, "VALIDATION_ERROR", details)


def require_text(value: Optional[str], field_name: str) -> str:
    """Require a non-blank string field"""
    if value is None or not value.strip():
        validation_error(f"{field_name} is required", {"field": field_name})
    return value.strip()


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

def _error_body(message: str, code: str, details: Any = None) -> Dict:
    body = {"success": False, "message": message, "error": code}
    if details is not None:
        body["details"] = details
    return body


async def api_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for API errors"""

    if isinstance(exc, ApiException):
        api_logger.warning(
            f"API Error: {exc.detail}",
            status_code=exc.status_code,
            error_code=exc.error_code,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.detail, exc.error_code, exc.details),
        )

    if isinstance(exc, StarletteHTTPException):
        api_logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
            headers=getattr(exc, "headers", None),
        )

    api_logger.error(
        f"Unexpected error: {exc}",
        error=exc,
        path=request.url.path,
    )
    body = _error_body("An unexpected error occurred", "INTERNAL_ERROR")
    if settings.environment != "production":
        body["debug"] = {
            "exception": str(exc),
            "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
        }
    return JSONResponse(status_code=500, content=body)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as 400 with field details"""
    errors = jsonable_encoder([{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()])
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", []) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    api_logger.warning(f"Validation error: {message}", path=request.url.path)
    return JSONResponse(
        status_code=400,
        content=_error_body(message, "VALIDATION_ERROR", errors),
    )
