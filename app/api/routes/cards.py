"""
Saved Cards API Routes
"""
from typing import Any

from fastapi import APIRouter, Depends

from app.api.dependencies.auth import get_current_user_id
from app.db.kv_store import KVStore, get_kv_store
from app.db.models.card import CardInput
from app.domain.services.wallet_service import WalletService

router = APIRouter()


@router.get("", summary="List saved cards")
async def get_cards(
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    cards = await WalletService(store).get_saved_cards(user_id)
    return {"cards": [c.to_response() for c in cards]}


@router.post(
    "",
    summary="Save a card",
    description="Stores lastFour and cardHolder only; id and addedAt are assigned by the server.",
)
async def add_card(
    card: CardInput,
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    saved, cards = await WalletService(store).add_saved_card(user_id, card)
    return {"card": saved.to_response(), "cards": [c.to_response() for c in cards]}


@router.delete(
    "/{card_id}",
    summary="Delete a saved card",
    description="Unknown ids are ignored; the remaining cards are returned either way.",
)
async def delete_card(
    card_id: str,
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    cards = await WalletService(store).delete_saved_card(user_id, card_id)
    return {"cards": [c.to_response() for c in cards]}
