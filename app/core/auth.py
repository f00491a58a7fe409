"""
Access token verification

Tokens are issued by the external identity provider: HS256 JWTs signed with
the provider's JWT secret, audience "authenticated", with the user id in
``sub``. Verification is local (no call to the provider) and read-only.
"""
import jwt as pyjwt
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.core.exceptions import InvalidCredentialError, MissingCredentialError
from app.core.logging import get_logger

logger = get_logger(__name__)


class TokenPayload(BaseModel):
    """Claims the service relies on"""
    sub: str
    exp: int
    email: str | None = None
    role: str | None = None


def decode_access_token(token: str) -> TokenPayload:
    """
    Decode and validate a provider access token.

    Raises:
        InvalidCredentialError: bad signature, expired, wrong audience or no subject
    """
    if not settings.AUTH_JWT_SECRET:
        logger.error("AUTH_JWT_SECRET is empty, tokens cannot be verified")
        raise InvalidCredentialError("verification_disabled")
    try:
        payload = pyjwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={"require": ["exp", "sub"]},
        )
    except pyjwt.ExpiredSignatureError as e:
        logger.warning("Access token expired")
        raise InvalidCredentialError("expired") from e
    except pyjwt.InvalidTokenError as e:
        logger.warning("Access token invalid", extra_data={"error": type(e).__name__})
        raise InvalidCredentialError("invalid") from e

    try:
        claims = TokenPayload.model_validate(payload)
    except ValidationError as e:
        logger.warning("Access token payload malformed", extra_data={"error": str(e)})
        raise InvalidCredentialError("malformed") from e
    if not claims.sub:
        raise InvalidCredentialError("malformed")
    return claims


def verify_access_token(token: str | None) -> str:
    """
    Resolve a bearer token to the authenticated user's id.

    Raises:
        MissingCredentialError: no token
        InvalidCredentialError: token present but not valid
    """
    if not token:
        raise MissingCredentialError()
    return decode_access_token(token).sub
