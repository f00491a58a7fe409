"""
Signup API Route
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.db.kv_store import KVStore, get_kv_store
from app.domain.services.account_service import AccountService

router = APIRouter()


class SignupRequest(BaseModel):
    # all optional so a missing field is a 400 from the service, not a 422
    email: str | None = None
    password: str | None = None
    name: str | None = None
    phone: str | None = None


@router.post(
    "",
    summary="Register a new user",
    description=(
        "Creates the user at the identity provider and initializes the profile, "
        "a wallet with the starting balance, and empty transaction and card lists."
    ),
)
async def signup(
    body: SignupRequest,
    store: KVStore = Depends(get_kv_store),
):
    service = AccountService(store)
    user = await service.signup(
        email=body.email or "",
        password=body.password or "",
        name=body.name or "",
        phone=body.phone or "",
    )
    return {
        "user": user.model_dump(),
        "message": "User created successfully",
    }
