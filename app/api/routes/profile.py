"""
Profile API Routes
"""
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator

from app.api.dependencies.auth import get_current_user_id
from app.core.validation import name_validator, phone_validator
from app.db.kv_store import KVStore, get_kv_store
from app.domain.services.account_service import AccountService

router = APIRouter()


class ProfileUpdateRequest(BaseModel):
    """Known fields are validated; anything else is stored as sent"""

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    phone: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return name_validator(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return phone_validator(v)


@router.get("", summary="Get the current user's profile")
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    profile = await AccountService(store).get_profile(user_id)
    return {"profile": profile.to_response()}


@router.put(
    "",
    summary="Update the current user's profile",
    description="Merges the payload into the stored profile. id, email and createdAt never change.",
)
async def update_profile(
    body: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    updates = body.model_dump(exclude_unset=True)
    profile = await AccountService(store).update_profile(user_id, updates)
    return {"profile": profile.to_response()}
