"""
Wallet API Routes
"""
from decimal import Decimal, InvalidOperation
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies.auth import get_current_user_id
from app.core.exceptions import InvalidAmountError
from app.db.kv_store import KVStore, get_kv_store
from app.db.models.card import CardInput
from app.domain.services.payment_service import PaymentService
from app.domain.services.wallet_service import WalletService

router = APIRouter()


class BalanceUpdateRequest(BaseModel):
    # checked by the service so a bad value is a 400 with INVALID_AMOUNT
    balance: Any = None


class FundWalletRequest(BaseModel):
    amount: Any = None
    card: CardInput | None = None


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise InvalidAmountError("Please enter a valid amount", value=value)
    try:
        return Decimal(str(value).replace(",", "").strip())
    except InvalidOperation as e:
        raise InvalidAmountError("Please enter a valid amount", value=value) from e


@router.get(
    "",
    summary="Get the current user's wallet",
    description="Returns the wallet, creating it with the starting balance if it does not exist yet.",
)
async def get_wallet(
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    wallet = await WalletService(store).get_wallet(user_id)
    return {"wallet": wallet.to_response()}


@router.put(
    "",
    summary="Overwrite the wallet balance",
    description="Blind overwrite; balance must be a number >= 0.",
)
async def set_balance(
    body: BalanceUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    wallet = await WalletService(store).set_balance(user_id, body.balance)
    return {"wallet": wallet.to_response()}


@router.post(
    "/fund",
    summary="Top up the wallet",
    description="Credits the wallet and saves the card used (last four digits and holder name only).",
)
async def fund_wallet(
    body: FundWalletRequest,
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    service = PaymentService(WalletService(store))
    wallet, card = await service.add_funds(user_id, _to_decimal(body.amount), body.card)
    return {
        "wallet": wallet.to_response(),
        "card": card.to_response() if card else None,
    }
