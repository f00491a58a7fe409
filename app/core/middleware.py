"""
FastAPI Middleware

Provides request/response middleware for:
- Correlation ID injection
- Request logging (with phone number and credential masking)
- Global error handling
- Security headers (HSTS, CSP upgrade-insecure-requests)
- Rate limiting for the signup endpoint
"""
import re
import time
from collections import defaultdict
from typing import Callable
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import (
    get_logger,
    set_correlation_id,
    get_correlation_id
)
from app.core.exceptions import AppException, ErrorCode

logger = get_logger(__name__)

# Nigerian / international phone numbers in paths and query strings
_PHONE_RE = re.compile(r"(\+?\d{3})\d{4}(\d{3,4})")

# query parameters that are never logged in clear
_SENSITIVE_PARAMS = {"token", "access_token", "refresh_token", "password", "apikey", "api_key"}

SIGNUP_PATH = "/signup"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID to requests"""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        # Get correlation ID from header or generate new one
        correlation_id = request.headers.get("X-Correlation-ID")
        correlation_id = set_correlation_id(correlation_id)

        # Add to request state for access in handlers
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id

        return response


def _mask_pii(value: str) -> str:
    """Mask the middle digits of phone numbers (0801****678)"""
    return _PHONE_RE.sub(r"\1****\2", value)


def _safe_query_params(request: Request) -> dict[str, str]:
    return {
        key: "****" if key.lower() in _SENSITIVE_PARAMS else _mask_pii(value)
        for key, value in request.query_params.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log requests and responses (with PII masking)

    Headers are never logged, so bearer tokens stay out of the logs.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable
    ) -> Response:
        start_time = time.time()
        safe_path = _mask_pii(request.url.path)

        logger.info(
            f"Request started: {request.method} {safe_path}",
            extra_data={
                "method": request.method,
                "path": safe_path,
                "query_params": _safe_query_params(request),
                "client_host": request.client.host if request.client else None,
                "authenticated": "authorization" in request.headers,
            }
        )

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            log_level = "info" if response.status_code < 400 else "warning"
            getattr(logger, log_level)(
                f"Request completed: {request.method} {safe_path}",
                extra_data={
                    "method": request.method,
                    "path": safe_path,
                    "status_code": response.status_code,
                    "duration_seconds": round(duration, 4),
                }
            )

            return response
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {request.method} {safe_path}",
                extra_data={
                    "method": request.method,
                    "path": safe_path,
                    "duration_seconds": round(duration, 4),
                    "error": str(e),
                },
                exc_info=True
            )
            raise


async def app_exception_handler(
    request: Request,
    exc: AppException
) -> JSONResponse:
    """Handle application exceptions"""
    logger.warning(
        f"Application exception: {exc.error_code.value}",
        extra_data={
            "error_code": exc.error_code.value,
            "message": exc.message,
            "details": exc.details,
            "path": _mask_pii(request.url.path),
        }
    )

    headers = {"X-Correlation-ID": get_correlation_id()}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    retry_after = exc.details.get("retry_after_seconds")
    if retry_after is not None:
        headers["Retry-After"] = str(int(retry_after) + 1)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=headers,
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra_data={
            "exception_type": type(exc).__name__,
            "message": str(exc),
            "path": _mask_pii(request.url.path),
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": ErrorCode.INTERNAL_ERROR.value,
                "message": "An unexpected error occurred",
                "details": {}
            }
        },
        headers={"X-Correlation-ID": get_correlation_id()}
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every response.

    - Content-Security-Policy: upgrade-insecure-requests
    - Strict-Transport-Security (HSTS)
    - X-Content-Type-Options: nosniff
    - Cache-Control: no-store (balances and history must not be cached)

    CSP and HSTS are skipped in DEBUG so local HTTP development keeps working.
    """

    def __init__(self, app: FastAPI, *, debug: bool = False) -> None:
        super().__init__(app)
        self._debug = debug

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers.setdefault("Cache-Control", "no-store")

        if not self._debug:
            response.headers["Content-Security-Policy"] = "upgrade-insecure-requests"
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


class SignupRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting for POST /signup - sliding window per IP.

    Limits the number of signups per time window (default: 10 / 60 seconds).
    Returns 429 Too Many Requests when exceeded.

    Sits inside CorrelationIdMiddleware in the stack, so a 429 still carries
    a correlation ID.
    """

    def __init__(
        self,
        app: FastAPI,
        *,
        max_requests: int = 10,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        # IP -> request timestamps
        self._requests: dict[str, list[float]] = defaultdict(list)

    def _cleanup_window(self, ip: str, now: float) -> None:
        """Drop timestamps outside the window and forget idle IPs"""
        cutoff = now - self._window_seconds
        timestamps = self._requests[ip]
        idx = 0
        for idx, ts in enumerate(timestamps):
            if ts >= cutoff:
                break
        else:
            idx = len(timestamps)
        if idx > 0:
            self._requests[ip] = timestamps[idx:]
        if not self._requests[ip]:
            del self._requests[ip]

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        if request.method != "POST" or request.url.path.rstrip("/") != SIGNUP_PATH:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()

        self._cleanup_window(client_ip, now)

        if len(self._requests.get(client_ip, [])) >= self._max_requests:
            logger.warning(
                "Rate limit exceeded for signup",
                extra_data={
                    "client_ip": client_ip,
                    "limit": self._max_requests,
                    "window_seconds": self._window_seconds,
                },
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": {
                        "code": ErrorCode.RATE_LIMITED.value,
                        "message": "Too many requests. Please try again later.",
                        "details": {"window_seconds": self._window_seconds},
                    }
                },
                headers={
                    "Retry-After": str(self._window_seconds),
                    "X-Correlation-ID": get_correlation_id(),
                },
            )

        self._requests[client_ip].append(now)
        return await call_next(request)


def setup_middleware(app: FastAPI) -> None:
    """Setup all middleware for the application"""
    from app.core.config import settings

    # In Starlette the last middleware added is the outermost.
    # Request order: SecurityHeaders -> CorrelationId -> RequestLogging -> RateLimit -> app
    app.add_middleware(
        SignupRateLimitMiddleware,
        max_requests=settings.SIGNUP_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.SIGNUP_RATE_LIMIT_WINDOW_SECONDS,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, debug=settings.DEBUG)


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup exception handlers"""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
