"""
Centralized error handling for the users API

Every request gets a short trace id, echoed in X-Trace-ID and in the JSON
body of any error response. Errors are logged once, as a JSON document,
with credential-looking fields redacted.
"""

import json
import logging
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
endpoint_context_var: ContextVar[str] = ContextVar('endpoint_context', default='')

logger = logging.getLogger(__name__)

SENSITIVE_FIELD_PATTERNS = ('password', 'token', 'secret', 'authorization', 'cookie', 'api_key')
REDACTED = "***REDACTED***"
MAX_LOGGED_TEXT = 5000

# Bodies are only worth keeping for the methods that carry a user record
BODY_METHODS = ("POST", "PUT")


def sanitize(data: Any) -> Any:
    """Redact sensitive keys and truncate long strings, recursively"""
    if isinstance(data, dict):
        return {
            key: REDACTED if any(p in str(key).lower() for p in SENSITIVE_FIELD_PATTERNS) else sanitize(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize(item) for item in data]
    if isinstance(data, str) and len(data) > MAX_LOGGED_TEXT:
        return data[:MAX_LOGGED_TEXT] + "...[TRUNCATED]"
    return data


def current_trace_id() -> str:
    return request_id_var.get('') or str(uuid.uuid4())[:8]


def log_error(
    error_type: str,
    message: str,
    request: Request,
    exception: Exception,
    extra_context: Optional[Dict] = None,
    include_traceback: bool = True
) -> str:
    """Write one structured error entry and return the trace id it was filed under"""
    trace_id = current_trace_id()

    log_entry = {
        "timestamp": datetime.utcnow().isoformat(),
        "trace_id": trace_id,
        "error_type": error_type,
        "message": message,
        "request": {
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "headers": sanitize(dict(request.headers)),
            "client_ip": request.client.host if request.client else None,
        },
        "exception": {
            "type": type(exception).__name__,
            "details": str(exception),
        },
    }
    if include_traceback:
        log_entry["exception"]["traceback"] = traceback.format_exc()

    context = dict(extra_context or {})
    body = _captured_body(request)
    if body is not None:
        context["request_body"] = body
    if context:
        log_entry["context"] = sanitize(context)

    endpoint_context = endpoint_context_var.get('')
    if endpoint_context:
        log_entry["endpoint_context"] = endpoint_context

    logger.error(json.dumps(log_entry, indent=2, default=str))
    return trace_id


def _captured_body(request: Request) -> Optional[Any]:
    """Decode the body captured by RequestContextMiddleware, if any"""
    body = getattr(request.state, 'captured_body', None)
    if not body:
        return None
    try:
        body_str = body.decode('utf-8')
    except UnicodeDecodeError:
        return "DECODE_ERROR"
    try:
        return json.loads(body_str)
    except ValueError:
        return body_str


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign the trace id and keep the request body for error logs"""

    async def dispatch(self, request: Request, call_next):
        trace_id = str(uuid.uuid4())[:8]
        request_id_var.set(trace_id)
        endpoint_context_var.set('')

        request.state.captured_body = await request.body() if request.method in BODY_METHODS else None

        response = await call_next(request)
        response.headers["X-Trace-ID"] = trace_id
        return response


def error_body(error: str, message: Any, trace_id: str) -> Dict[str, Any]:
    return {
        "error": error,
        "message": message,
        "trace_id": trace_id,
        "timestamp": datetime.utcnow().isoformat(),
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    trace_id = log_error(
        f"http_{exc.status_code}",
        f"HTTP {exc.status_code}: {exc.detail}",
        request,
        exc,
        extra_context={"status_code": exc.status_code},
        include_traceback=exc.status_code >= 500
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(f"HTTP {exc.status_code}", exc.detail, trace_id),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies (HTTP 422)"""
    details = [
        {
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "unknown"),
        }
        for error in exc.errors()
    ]

    trace_id = log_error(
        "validation_error_422",
        f"Request validation failed: {len(details)} validation errors",
        request,
        exc,
        extra_context={"validation_errors": details},
        include_traceback=False
    )

    content = error_body("Validation Error", "Request validation failed", trace_id)
    content["detail"] = details
    content["error_count"] = len(details)
    return JSONResponse(status_code=422, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    trace_id = log_error("internal_server_error", f"Unhandled exception: {exc}", request, exc)
    # Internal details stay in the log
    return JSONResponse(
        status_code=500,
        content=error_body("Internal Server Error", "An unexpected error occurred", trace_id)
    )


def setup_error_handling(app):
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Centralized error handling system initialized")


def set_endpoint_context(context: str):
    """Label the current request in error logs (call at the start of an endpoint)"""
    endpoint_context_var.set(context)
