"""
Stored Models
"""
from app.db.models.wallet import WalletAccount
from app.db.models.transaction import (
    ServiceType,
    Transaction,
    TransactionDetails,
    TransactionStatus,
    build_details,
)
from app.db.models.card import CardInput, SavedCard
from app.db.models.profile import UserProfile

__all__ = [
    "WalletAccount",
    "ServiceType",
    "Transaction",
    "TransactionDetails",
    "TransactionStatus",
    "build_details",
    "CardInput",
    "SavedCard",
    "UserProfile",
]
