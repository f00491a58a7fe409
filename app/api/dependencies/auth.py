"""
FastAPI dependency for authenticating user requests

Usage:
    @router.get("/wallet")
    async def get_wallet(
        user_id: str = Depends(get_current_user_id),
        store: KVStore = Depends(get_kv_store),
    ):
        ...
"""
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.auth import verify_access_token

# auto_error=False so a missing header raises MissingCredentialError (401)
# instead of FastAPI's default 403
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Verify the bearer token and return the user id.

    Raises 401 (MissingCredentialError / InvalidCredentialError) before any
    state is touched.
    """
    token = credentials.credentials if credentials else None
    return verify_access_token(token)
