"""
Saved Card Model - display-only record of a card used for a top-up

Only the last four digits and the holder name are ever stored. Card number,
expiry and CVV may arrive in a top-up request but are dropped at validation.
"""
from datetime import datetime
from typing import Any

from pydantic import ConfigDict, Field, field_validator, model_validator

from app.core.validation import sanitized_text_validator
from app.db.models.base import StoredModel, utcnow

LAST_FOUR_PATTERN = r"^\d{4}$"


class SavedCard(StoredModel):
    """One entry of user:{id}:cards"""

    id: str
    last_four: str = Field(pattern=LAST_FOUR_PATTERN)
    card_holder: str
    added_at: datetime = Field(default_factory=utcnow)


class CardInput(StoredModel):
    """Card as presented by the client; reduced to lastFour + cardHolder"""

    model_config = ConfigDict(extra="ignore")

    last_four: str = Field(pattern=LAST_FOUR_PATTERN)
    card_holder: str = Field(min_length=1, max_length=100)

    @model_validator(mode="before")
    @classmethod
    def _derive_last_four(cls, data: Any) -> Any:
        """Accept a full card number in place of lastFour, keeping only its tail"""
        if not isinstance(data, dict):
            return data
        if data.get("lastFour") or data.get("last_four"):
            return data
        number = data.get("cardNumber") or data.get("card_number")
        if isinstance(number, str):
            digits = "".join(ch for ch in number if ch.isdigit())
            if len(digits) >= 4:
                return {**data, "lastFour": digits[-4:]}
        return data

    @field_validator("card_holder")
    @classmethod
    def clean_card_holder(cls, v: str) -> str:
        return sanitized_text_validator(v, max_length=100)
