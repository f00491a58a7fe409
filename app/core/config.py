"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator

# algorithms accepted for identity provider access tokens
VALID_JWT_ALGORITHMS = {"HS256", "HS384", "HS512"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    APP_NAME: str = "BillPay Wallet"
    DEBUG: bool = False

    # CORS
    # Comma-separated list of allowed origins (e.g. "https://app.example.com")
    ALLOWED_ORIGINS: str = ""

    # Redis: the key-value store holding user:{id}:* records
    REDIS_URL: str = "redis://localhost:6379/0"

    # Identity provider (external auth service)
    AUTH_PROVIDER_URL: str = "http://localhost:9999"
    AUTH_SERVICE_ROLE_KEY: str = ""  # admin key for user creation at signup
    AUTH_JWT_SECRET: str = ""  # shared secret the provider signs access tokens with
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str = "authenticated"
    IDENTITY_PROVIDER_TIMEOUT_SECONDS: float = 10.0

    @field_validator("AUTH_PROVIDER_URL", mode="before")
    @classmethod
    def normalize_provider_url(cls, v: str) -> str:
        """Strip trailing slash so paths can be joined with a leading one"""
        if v and not v.startswith("http"):
            v = f"http://{v}"
        return v.rstrip("/")

    @field_validator("AUTH_JWT_ALGORITHM", mode="before")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in VALID_JWT_ALGORITHMS:
            raise ValueError(
                f"AUTH_JWT_ALGORITHM='{v}' is not supported. "
                f"Allowed: {', '.join(sorted(VALID_JWT_ALGORITHMS))}"
            )
        return v

    # Wallet
    STARTING_BALANCE: int = 25430  # granted on signup / lazy wallet creation
    LEDGER_MAX_RETRIES: int = 5  # optimistic-lock retries for balance updates

    # Simulated settlement (models payment-gateway latency)
    SETTLEMENT_DELAY_SECONDS: float = 2.0
    SETTLEMENT_TIMEOUT_SECONDS: float = 10.0

    @field_validator("LEDGER_MAX_RETRIES", mode="after")
    @classmethod
    def validate_ledger_retries(cls, v: int) -> int:
        """At least one attempt, otherwise every payment fails with a conflict"""
        if v < 1:
            raise ValueError("LEDGER_MAX_RETRIES must be at least 1")
        return v

    @field_validator("SETTLEMENT_DELAY_SECONDS", "SETTLEMENT_TIMEOUT_SECONDS", mode="after")
    @classmethod
    def validate_non_negative_seconds(cls, v: float) -> float:
        if v < 0:
            raise ValueError("settlement timings must not be negative")
        return v

    # Rate limiting (signup)
    SIGNUP_RATE_LIMIT_MAX_REQUESTS: int = 10  # requests per IP
    SIGNUP_RATE_LIMIT_WINDOW_SECONDS: int = 60

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Cross-field checks for production.

        1. Empty AUTH_JWT_SECRET outside DEBUG stops startup.
        2. Settlement delay longer than its timeout means every payment times out.
        3. Empty AUTH_SERVICE_ROLE_KEY: warning (signup will fail at the provider).
        """
        import warnings

        if not self.AUTH_JWT_SECRET:
            if not self.DEBUG:
                raise ValueError(
                    "AUTH_JWT_SECRET is empty in production (DEBUG=False); "
                    "access tokens cannot be verified. "
                    "Set it to the identity provider's JWT secret."
                )
            warnings.warn(
                "AUTH_JWT_SECRET is empty, every authenticated request will get 401.",
                stacklevel=2,
            )

        if self.SETTLEMENT_DELAY_SECONDS >= self.SETTLEMENT_TIMEOUT_SECONDS:
            raise ValueError(
                "SETTLEMENT_DELAY_SECONDS must be lower than SETTLEMENT_TIMEOUT_SECONDS"
            )

        if not self.AUTH_SERVICE_ROLE_KEY:
            warnings.warn(
                "AUTH_SERVICE_ROLE_KEY is empty, /signup cannot create users at the provider.",
                stacklevel=2,
            )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
