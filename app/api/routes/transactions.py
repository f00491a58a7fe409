"""
Transaction History API Routes
"""
from typing import Any

from fastapi import APIRouter, Depends

from app.api.dependencies.auth import get_current_user_id
from app.db.kv_store import KVStore, get_kv_store
from app.db.models.transaction import Transaction
from app.domain.services.wallet_service import WalletService

router = APIRouter()


@router.get("", summary="Get the transaction history (most recent first)")
async def get_transactions(
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    transactions = await WalletService(store).get_transactions(user_id)
    return {"transactions": [t.to_response() for t in transactions]}


@router.post(
    "",
    summary="Record a transaction",
    description=(
        "Prepends the transaction to the history as sent. The balance is not "
        "touched and ids are not de-duplicated; use POST /payments to pay a bill."
    ),
)
async def add_transaction(
    transaction: Transaction,
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    transactions = await WalletService(store).append_transaction(user_id, transaction)
    return {
        "transaction": transaction.to_response(),
        "transactions": [t.to_response() for t in transactions],
    }
