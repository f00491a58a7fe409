"""
BillPay Wallet - Main FastAPI Application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import setup_logging, get_logger
from app.core.middleware import setup_middleware, setup_exception_handlers
from app.core.redis_client import close_redis, mask_redis_url
from app.api.routes import router as api_router

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.APP_NAME
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


_OPENAPI_TAGS = [
    {"name": "Account", "description": "Signup and profile."},
    {"name": "Wallet", "description": "Wallet balance and top-ups."},
    {"name": "Payments", "description": "Bill payments (airtime, data, electricity, TV, internet, water)."},
    {"name": "Transactions", "description": "Transaction history, most recent first."},
    {"name": "Cards", "description": "Saved cards (last four digits and holder name only)."},
    {"name": "Catalog", "description": "Static catalog of services, providers and packages."},
    {"name": "Health", "description": "Liveness and readiness probes."},
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description=(
        "Prepaid wallet for paying recurring bills. Every endpoint except signup, "
        "catalog and health requires an `Authorization: Bearer <token>` header "
        "issued by the identity provider."
    ),
    openapi_tags=_OPENAPI_TAGS,
    openapi_url="/openapi.json",
)

# Setup middleware (correlation ID, request logging, security headers, signup rate limit)
setup_middleware(app)
setup_exception_handlers(app)

allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)

# Safe dev default to support local frontend development without opening CORS in production.
if not allowed_origins and settings.DEBUG:
    allowed_origins = [
        "http://localhost",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Correlation-ID", "Idempotency-Key"],
    )

app.include_router(api_router)


@app.on_event("startup")
async def startup() -> None:
    logger.info(
        "Starting application",
        extra_data={
            "app_name": settings.APP_NAME,
            "redis_url": mask_redis_url(settings.REDIS_URL),
            "starting_balance": settings.STARTING_BALANCE,
        },
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    """Cleanup on shutdown"""
    logger.info("Shutting down application")
    await close_redis()


@app.get(
    "/health",
    summary="Liveness probe",
    description="The process is up. Does not check dependencies.",
    tags=["Health"],
)
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@app.get(
    "/health/ready",
    summary="Readiness probe",
    description=(
        "Checks Redis and the identity provider. Returns status=healthy when both "
        "answer, or status=degraded (503) with the failing dependency."
    ),
    responses={
        200: {
            "description": "All dependencies answer",
            "content": {
                "application/json": {
                    "example": {"status": "healthy", "redis": "ok", "identity_provider": "ok"}
                }
            },
        },
        503: {
            "description": "At least one dependency is unavailable",
            "content": {
                "application/json": {
                    "example": {
                        "status": "degraded",
                        "redis": "error: redis_unavailable",
                        "identity_provider": "ok",
                    }
                }
            },
        },
    },
    tags=["Health"],
)
async def readiness_check() -> JSONResponse:
    from app.domain.services.health_service import check_readiness

    result = await check_readiness()
    status_code = 200 if result["status"] == "healthy" else 503
    return JSONResponse(content=result, status_code=status_code)
