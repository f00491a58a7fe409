"""
Account Service - signup and profile management

Signup creates the user at the identity provider and then writes the
user's initial records (profile, wallet with the starting balance, empty
transaction history, empty card list). If the store write fails, whatever
was written under ``user:{id}:`` is removed again so a retry starts clean.
"""
from typing import Any

from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import ProfileNotFoundError, StorageError, ValidationException
from app.core.logging import get_logger
from app.core.validation import PhoneNumberValidator, email_validator, name_validator, phone_validator
from app.db.kv_store import CARDS, PROFILE, TRANSACTIONS, WALLET, KVStore, user_key, user_prefix
from app.db.models.base import utcnow
from app.db.models.profile import PROTECTED_PROFILE_FIELDS, UserProfile
from app.db.models.wallet import WalletAccount
from app.domain.services import identity_provider
from app.domain.services.identity_provider import ProviderUser

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


class AccountService:
    """Service for user accounts"""

    def __init__(self, store: KVStore):
        self.store = store

    async def signup(
        self,
        email: str,
        password: str,
        name: str,
        phone: str = "",
    ) -> ProviderUser:
        """
        Register a user and initialize their wallet.

        Raises:
            ValidationException: missing field or short password
            IdentityProviderError: provider rejected the user (e.g. email taken)
            StorageError: initial records could not be written
        """
        for field, value in (("email", email), ("password", password), ("name", name)):
            if not value:
                raise ValidationException("Missing required fields", field=field)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationException(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )
        try:
            email = email_validator(email)
            name = name_validator(name)
            phone = phone_validator(phone or "")
        except ValueError as e:
            raise ValidationException(str(e)) from e

        user = await identity_provider.create_user(email, password, name, phone)

        profile = UserProfile(id=user.id, email=email, name=name, phone=phone or "")
        wallet = WalletAccount.opening(user.id, settings.STARTING_BALANCE)
        try:
            await self.store.set_many({
                user_key(user.id, PROFILE): profile.to_store(),
                user_key(user.id, WALLET): wallet.to_store(),
                user_key(user.id, TRANSACTIONS): [],
                user_key(user.id, CARDS): [],
            })
        except StorageError:
            logger.error(
                "Signup storage initialization failed, rolling back",
                extra_data={"user_id": user.id},
                exc_info=True,
            )
            await self._rollback(user.id)
            raise

        logger.info(
            "User signed up",
            extra_data={
                "user_id": user.id,
                "phone": PhoneNumberValidator.mask(phone) if phone else None,
                "starting_balance": settings.STARTING_BALANCE,
            },
        )
        return user

    async def _rollback(self, user_id: str) -> None:
        try:
            await self.store.delete_prefix(user_prefix(user_id))
        except StorageError:
            # the original failure is what the caller sees
            logger.error(
                "Signup rollback failed, partial records may remain",
                extra_data={"user_id": user_id},
                exc_info=True,
            )

    async def get_profile(self, user_id: str) -> UserProfile:
        raw = await self.store.get(user_key(user_id, PROFILE))
        if raw is None:
            raise ProfileNotFoundError(user_id)
        return UserProfile.model_validate(raw)

    async def update_profile(self, user_id: str, updates: dict[str, Any]) -> UserProfile:
        """
        Merge ``updates`` (camelCase keys) into the stored profile.

        id, email and createdAt are kept from the stored record whatever the
        payload says; updatedAt is set to now.
        """
        key = user_key(user_id, PROFILE)
        changes = {k: v for k, v in updates.items() if k not in PROTECTED_PROFILE_FIELDS}
        outcome: dict[str, UserProfile] = {}

        def merge(current: dict[str, Any]) -> dict[str, Any]:
            stored = current[key]
            if stored is None:
                raise ProfileNotFoundError(user_id)
            merged = {**stored, **changes, "id": stored.get("id", user_id), "updatedAt": utcnow()}
            try:
                profile = UserProfile.model_validate(merged)
            except ValidationError as e:
                raise ValidationException(
                    "Invalid profile update",
                    details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
                ) from e
            outcome["profile"] = profile
            return {key: profile.to_store()}

        await self.store.update([key], merge, owner=user_id)
        logger.info(
            "Profile updated",
            extra_data={"user_id": user_id, "fields": sorted(changes)},
        )
        return outcome["profile"]
