"""
Wallet Account Model - Balance Tracking
"""
from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator

from app.db.models.base import Money, StoredModel, quantize_money, utcnow


class WalletAccount(StoredModel):
    """Current balance of one user; stored at user:{id}:wallet"""

    user_id: str | None = None  # absent on records written before it was tracked
    balance: Money = Field(ge=0)
    last_updated: datetime = Field(default_factory=utcnow)

    @field_validator("balance", mode="after")
    @classmethod
    def round_balance(cls, v: Decimal) -> Decimal:
        return quantize_money(v)

    @classmethod
    def opening(cls, user_id: str, balance: int | Decimal) -> "WalletAccount":
        """New wallet with the signup grant"""
        return cls(user_id=user_id, balance=Decimal(balance))

    def with_balance(self, balance: Decimal) -> "WalletAccount":
        """Copy with a new balance and a fresh lastUpdated"""
        return WalletAccount(
            user_id=self.user_id,
            balance=balance,
            last_updated=utcnow(),
        )
