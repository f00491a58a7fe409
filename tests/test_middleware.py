"""
Tests for middleware: app/core/middleware.py

Covers:
- CorrelationIdMiddleware: correlation ID propagation
- RequestLoggingMiddleware: request logging with PII masking
- SignupRateLimitMiddleware: signup rate limit
- Exception handlers: AppException and generic Exception
- _mask_pii / _safe_query_params: phone numbers and credentials in URLs
- setup_middleware: the full middleware stack
"""
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.applications import Starlette
from starlette.datastructures import QueryParams
from starlette.requests import Request
from starlette.responses import PlainTextResponse, JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from app.core.middleware import (
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    SignupRateLimitMiddleware,
    _mask_pii,
    _safe_query_params,
    app_exception_handler,
    generic_exception_handler,
)
from app.core.exceptions import (
    AppException,
    CircuitBreakerOpenError,
    ErrorCode,
    MissingCredentialError,
    ValidationException,
)


# ============================================================================
# Helpers
# ============================================================================


def _hello(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")


def _signup(request: Request) -> PlainTextResponse:
    return PlainTextResponse("created", status_code=201)


def _error(request: Request) -> PlainTextResponse:
    raise ValueError("test failure")


def _build_app(
    *,
    routes: list[Route] | None = None,
    middlewares: list[tuple] | None = None,
) -> Starlette:
    """Minimal Starlette app with the given middleware"""
    default_routes = [
        Route("/test", _hello),
        Route("/signup", _signup, methods=["GET", "POST"]),
        Route("/error", _error),
    ]
    app = Starlette(routes=routes or default_routes)
    if middlewares:
        for mw_class, kwargs in middlewares:
            app.add_middleware(mw_class, **kwargs)
    return app


# ============================================================================
# _mask_pii / _safe_query_params
# ============================================================================


class TestMaskPii:
    """Phone numbers in paths and query strings"""

    @pytest.mark.unit
    def test_masks_local_phone(self) -> None:
        masked = _mask_pii("/lookup/08012345678")
        assert "1234" not in masked
        assert "****" in masked

    @pytest.mark.unit
    def test_masks_international_phone(self) -> None:
        masked = _mask_pii("/lookup/+2348012345678")
        assert "****" in masked
        assert "+234" in masked

    @pytest.mark.unit
    def test_no_phone_no_change(self) -> None:
        assert _mask_pii("/wallet/fund") == "/wallet/fund"

    @pytest.mark.unit
    def test_short_number_not_masked(self) -> None:
        assert "****" not in _mask_pii("/cards/12345")

    @pytest.mark.unit
    def test_credentials_in_query_hidden(self) -> None:
        request = MagicMock(spec=Request)
        request.query_params = QueryParams("access_token=abc.def&apikey=k&phone=08012345678&page=2")

        params = _safe_query_params(request)

        assert params["access_token"] == "****"
        assert params["apikey"] == "****"
        assert "****" in params["phone"]
        assert params["page"] == "2"


# ============================================================================
# CorrelationIdMiddleware
# ============================================================================


class TestCorrelationIdMiddleware:

    @pytest.mark.unit
    def test_generates_correlation_id_when_missing(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.status_code == 200
            assert len(response.headers["x-correlation-id"]) > 0

    @pytest.mark.unit
    def test_preserves_existing_correlation_id(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            response = client.get("/test", headers={"X-Correlation-ID": "my-correlation-id"})
            assert response.headers["x-correlation-id"] == "my-correlation-id"

    @pytest.mark.unit
    def test_correlation_id_unique_per_request(self) -> None:
        app = _build_app(middlewares=[(CorrelationIdMiddleware, {})])
        with TestClient(app) as client:
            r1 = client.get("/test")
            r2 = client.get("/test")
            assert r1.headers["x-correlation-id"] != r2.headers["x-correlation-id"]


# ============================================================================
# RequestLoggingMiddleware
# ============================================================================


class TestRequestLoggingMiddleware:

    @pytest.mark.unit
    def test_successful_request_logged(self) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.status_code == 200

    @pytest.mark.unit
    def test_exception_in_handler_reraised(self) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/error")
            assert response.status_code == 500

    @pytest.mark.unit
    def test_bearer_token_not_logged(self, caplog) -> None:
        app = _build_app(middlewares=[(RequestLoggingMiddleware, {})])
        with TestClient(app) as client:
            client.get("/test", headers={"Authorization": "Bearer very-secret-token"})

        assert "very-secret-token" not in caplog.text


# ============================================================================
# SignupRateLimitMiddleware
# ============================================================================


class TestSignupRateLimitMiddleware:

    @pytest.mark.unit
    def test_allows_requests_under_limit(self) -> None:
        app = _build_app(middlewares=[(SignupRateLimitMiddleware, {"max_requests": 5, "window_seconds": 60})])
        with TestClient(app) as client:
            for _ in range(5):
                assert client.post("/signup").status_code == 201

    @pytest.mark.unit
    def test_blocks_requests_over_limit(self) -> None:
        app = _build_app(middlewares=[(SignupRateLimitMiddleware, {"max_requests": 3, "window_seconds": 60})])
        with TestClient(app) as client:
            for _ in range(3):
                assert client.post("/signup").status_code == 201

            response = client.post("/signup")
            assert response.status_code == 429
            assert response.headers["Retry-After"] == "60"
            assert response.json()["error"]["code"] == ErrorCode.RATE_LIMITED.value

    @pytest.mark.unit
    def test_only_signup_posts_are_limited(self) -> None:
        app = _build_app(middlewares=[(SignupRateLimitMiddleware, {"max_requests": 1, "window_seconds": 60})])
        with TestClient(app) as client:
            assert client.post("/signup").status_code == 201
            assert client.post("/signup").status_code == 429

            assert client.get("/signup").status_code == 201
            assert client.get("/test").status_code == 200
            assert client.get("/test").status_code == 200

    @pytest.mark.unit
    def test_cleanup_removes_old_entries(self) -> None:
        mw = SignupRateLimitMiddleware(_build_app(), max_requests=100, window_seconds=60)
        now = time.time()
        mw._requests["1.2.3.4"] = [now - 120, now - 90, now - 30, now]

        mw._cleanup_window("1.2.3.4", now)

        assert len(mw._requests["1.2.3.4"]) == 2

    @pytest.mark.unit
    def test_cleanup_deletes_empty_ip(self) -> None:
        mw = SignupRateLimitMiddleware(_build_app(), max_requests=100, window_seconds=60)
        now = time.time()
        mw._requests["1.2.3.4"] = [now - 120]

        mw._cleanup_window("1.2.3.4", now)

        assert "1.2.3.4" not in mw._requests

    @pytest.mark.unit
    def test_429_response_includes_correlation_id(self) -> None:
        app = _build_app(
            middlewares=[
                (SignupRateLimitMiddleware, {"max_requests": 1, "window_seconds": 60}),
                (CorrelationIdMiddleware, {}),
            ]
        )
        with TestClient(app) as client:
            client.post("/signup")
            response = client.post("/signup")

            assert response.status_code == 429
            assert "x-correlation-id" in response.headers


# ============================================================================
# Exception handlers
# ============================================================================


def _mock_request(path: str) -> AsyncMock:
    request = AsyncMock(spec=Request)
    request.url.path = path
    return request


class TestAppExceptionHandler:

    @pytest.mark.unit
    async def test_handles_app_exception(self) -> None:
        exc = AppException(
            message="Profile not found",
            error_code=ErrorCode.PROFILE_NOT_FOUND,
            status_code=404,
            details={"user_id": "u1"},
        )

        response = await app_exception_handler(_mock_request("/profile"), exc)

        assert isinstance(response, JSONResponse)
        assert response.status_code == 404
        assert "x-correlation-id" in response.headers
        assert b'"ERR_3001"' in response.body

    @pytest.mark.unit
    async def test_handles_validation_exception(self) -> None:
        exc = ValidationException(message="Invalid phone number", field="phoneNumber")

        response = await app_exception_handler(_mock_request("/payments"), exc)

        assert response.status_code == 400

    @pytest.mark.unit
    async def test_unauthorized_carries_www_authenticate(self) -> None:
        response = await app_exception_handler(_mock_request("/wallet"), MissingCredentialError())

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.unit
    async def test_open_circuit_carries_retry_after(self) -> None:
        exc = CircuitBreakerOpenError("identity_provider", retry_after_seconds=12.4)

        response = await app_exception_handler(_mock_request("/signup"), exc)

        assert response.status_code == 503
        assert response.headers["retry-after"] == "13"


class TestGenericExceptionHandler:

    @pytest.mark.unit
    async def test_handles_unexpected_exception(self) -> None:
        response = await generic_exception_handler(_mock_request("/wallet"), RuntimeError("boom"))

        assert isinstance(response, JSONResponse)
        assert response.status_code == 500
        assert "x-correlation-id" in response.headers

    @pytest.mark.unit
    async def test_does_not_leak_internal_details(self) -> None:
        exc = RuntimeError("redis connection failed on host 10.0.0.1")

        response = await generic_exception_handler(_mock_request("/wallet"), exc)

        body = response.body.decode()
        assert "10.0.0.1" not in body
        assert "redis connection" not in body
        assert "ERR_1000" in body


# ============================================================================
# SecurityHeadersMiddleware
# ============================================================================


class TestSecurityHeadersMiddlewareUnit:

    @pytest.mark.unit
    def test_nosniff_and_no_store_on_all_responses(self) -> None:
        app = _build_app(middlewares=[(SecurityHeadersMiddleware, {"debug": False})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert response.headers["x-content-type-options"] == "nosniff"
            assert response.headers["cache-control"] == "no-store"

    @pytest.mark.unit
    def test_no_csp_in_debug_mode(self) -> None:
        app = _build_app(middlewares=[(SecurityHeadersMiddleware, {"debug": True})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert "content-security-policy" not in response.headers
            assert "strict-transport-security" not in response.headers

    @pytest.mark.unit
    def test_hsts_includes_subdomains(self) -> None:
        app = _build_app(middlewares=[(SecurityHeadersMiddleware, {"debug": False})])
        with TestClient(app) as client:
            response = client.get("/test")
            assert "includeSubDomains" in response.headers.get("strict-transport-security", "")


# ============================================================================
# setup_middleware
# ============================================================================


class TestSetupMiddleware:

    @pytest.mark.integration
    async def test_full_middleware_stack(self, test_client) -> None:
        response = await test_client.get("/health")
        assert response.status_code == 200
        assert "x-correlation-id" in response.headers
        assert response.headers.get("x-content-type-options") == "nosniff"

    @pytest.mark.integration
    async def test_error_responses_go_through_the_stack(self, test_client) -> None:
        response = await test_client.get("/wallet")
        assert response.status_code == 401
        assert "x-correlation-id" in response.headers
        assert response.headers.get("x-content-type-options") == "nosniff"
