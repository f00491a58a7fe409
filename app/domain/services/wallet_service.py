"""
Wallet Service - Handles user wallet balance, transaction history and saved cards

Every operation is scoped to one user id. Balance changes made by the
payment flows go through ``debit_and_record`` / ``credit``, which run as a
single optimistic transaction in the key-value store, so the sufficiency
check and the write can never interleave with another request for the same
user. ``set_balance`` stays a blind overwrite for explicit balance edits.
"""
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import InsufficientFundsError, InvalidAmountError
from app.core.logging import get_logger
from app.db.kv_store import CARDS, TRANSACTIONS, WALLET, KVStore, user_key
from app.db.models.base import utcnow
from app.db.models.card import CardInput, SavedCard
from app.db.models.transaction import Transaction
from app.db.models.wallet import WalletAccount

logger = get_logger(__name__)


@dataclass(frozen=True)
class LedgerPosting:
    """Outcome of an atomic debit: the recorded transaction and the wallet after it"""
    transaction: Transaction
    wallet: WalletAccount
    replayed: bool = False  # True when the transaction id was already in the ledger


class WalletService:
    """Service for managing user wallets"""

    def __init__(self, store: KVStore):
        self.store = store

    def _opening_wallet(self, user_id: str) -> WalletAccount:
        return WalletAccount.opening(user_id, settings.STARTING_BALANCE)

    def _load_wallet(self, user_id: str, raw: Any) -> WalletAccount:
        if raw is None:
            return self._opening_wallet(user_id)
        wallet = WalletAccount.model_validate(raw)
        if wallet.user_id is None:
            wallet = wallet.model_copy(update={"user_id": user_id})
        return wallet

    async def get_wallet(self, user_id: str) -> WalletAccount:
        """
        Get the user's wallet, creating it with the starting balance if absent.

        Creation uses set-if-absent, so two concurrent first reads end up
        with the same stored record.
        """
        key = user_key(user_id, WALLET)
        raw = await self.store.get(key)
        if raw is not None:
            return self._load_wallet(user_id, raw)

        wallet = self._opening_wallet(user_id)
        if await self.store.set_if_absent(key, wallet.to_store()):
            logger.info(
                "Wallet initialized lazily",
                extra_data={"user_id": user_id, "balance": settings.STARTING_BALANCE},
            )
            return wallet

        # another request created it between our read and write
        return self._load_wallet(user_id, await self.store.get(key))

    async def set_balance(self, user_id: str, new_balance: Any) -> WalletAccount:
        """Overwrite the balance. Rejects non-numbers, booleans and negatives."""
        if isinstance(new_balance, bool) or not isinstance(new_balance, (int, float, Decimal)):
            raise InvalidAmountError(value=new_balance)
        try:
            amount = Decimal(str(new_balance))
            if not amount.is_finite() or amount < 0:
                raise InvalidAmountError(value=new_balance)
            wallet = WalletAccount(user_id=user_id, balance=amount)
        except (InvalidOperation, ValidationError) as e:
            raise InvalidAmountError(value=new_balance) from e

        await self.store.set(user_key(user_id, WALLET), wallet.to_store())
        logger.info(
            "Wallet balance overwritten",
            extra_data={"user_id": user_id, "balance": str(wallet.balance)},
        )
        return wallet

    async def get_transactions(self, user_id: str) -> list[Transaction]:
        """Transaction history, most recent first"""
        raw = await self.store.get(user_key(user_id, TRANSACTIONS))
        return [Transaction.model_validate(entry) for entry in raw or []]

    async def find_transaction(self, user_id: str, transaction_id: str) -> Transaction | None:
        for transaction in await self.get_transactions(user_id):
            if transaction.id == transaction_id:
                return transaction
        return None

    async def append_transaction(self, user_id: str, transaction: Transaction) -> list[Transaction]:
        """
        Prepend ``transaction`` to the history.

        No business validation and no de-duplication by id: appending the
        same transaction twice yields two entries.
        """
        key = user_key(user_id, TRANSACTIONS)

        def prepend(current: dict[str, Any]) -> dict[str, Any]:
            return {key: [transaction.to_store(), *(current[key] or [])]}

        writes = await self.store.update([key], prepend, owner=user_id)
        return [Transaction.model_validate(entry) for entry in writes[key]]

    async def debit_and_record(self, user_id: str, transaction: Transaction) -> LedgerPosting:
        """
        Debit ``transaction.amount`` and prepend the transaction, atomically.

        The balance is re-read inside the store transaction, so a payment
        that passed an earlier sufficiency check still fails here if another
        payment spent the money in the meantime. A transaction id already
        present in the ledger is treated as a replay: nothing is written and
        the stored transaction is returned.

        Raises:
            InsufficientFundsError: amount exceeds the current balance
            LedgerConflictError: too many concurrent writers
        """
        wallet_key = user_key(user_id, WALLET)
        ledger_key = user_key(user_id, TRANSACTIONS)
        outcome: dict[str, LedgerPosting] = {}

        def debit(current: dict[str, Any]) -> dict[str, Any]:
            ledger = current[ledger_key] or []
            wallet = self._load_wallet(user_id, current[wallet_key])

            for entry in ledger:
                if entry.get("id") == transaction.id:
                    outcome["posting"] = LedgerPosting(
                        Transaction.model_validate(entry), wallet, replayed=True
                    )
                    return {}

            if transaction.amount > wallet.balance:
                raise InsufficientFundsError(
                    user_id,
                    current_balance=float(wallet.balance),
                    required_amount=float(transaction.amount),
                )

            debited = wallet.with_balance(wallet.balance - transaction.amount)
            outcome["posting"] = LedgerPosting(transaction, debited)
            return {
                wallet_key: debited.to_store(),
                ledger_key: [transaction.to_store(), *ledger],
            }

        await self.store.update([wallet_key, ledger_key], debit, owner=user_id)
        posting = outcome["posting"]

        if posting.replayed:
            logger.info(
                "Duplicate transaction id, ledger unchanged",
                extra_data={"user_id": user_id, "transaction_id": transaction.id},
            )
        else:
            logger.info(
                "Wallet debited",
                extra_data={
                    "user_id": user_id,
                    "transaction_id": transaction.id,
                    "amount": str(transaction.amount),
                    "balance_after": str(posting.wallet.balance),
                },
            )
        return posting

    async def credit(self, user_id: str, amount: Decimal) -> WalletAccount:
        """Add ``amount`` to the balance atomically (no upper bound)"""
        if amount <= 0:
            raise InvalidAmountError("Amount must be greater than zero", value=amount)

        key = user_key(user_id, WALLET)
        outcome: dict[str, WalletAccount] = {}

        def add(current: dict[str, Any]) -> dict[str, Any]:
            wallet = self._load_wallet(user_id, current[key])
            try:
                outcome["wallet"] = wallet.with_balance(wallet.balance + amount)
            except InvalidOperation as e:
                # the new balance no longer fits kobo precision
                raise InvalidAmountError("Amount is too large", value=amount) from e
            return {key: outcome["wallet"].to_store()}

        await self.store.update([key], add, owner=user_id)
        wallet = outcome["wallet"]
        logger.info(
            "Wallet credited",
            extra_data={"user_id": user_id, "amount": str(amount), "balance_after": str(wallet.balance)},
        )
        return wallet

    # ==================== Saved cards ====================

    async def get_saved_cards(self, user_id: str) -> list[SavedCard]:
        raw = await self.store.get(user_key(user_id, CARDS))
        return [SavedCard.model_validate(entry) for entry in raw or []]

    async def add_saved_card(self, user_id: str, card: CardInput) -> tuple[SavedCard, list[SavedCard]]:
        """Append a card with a server-assigned id and addedAt"""
        key = user_key(user_id, CARDS)
        saved = SavedCard(
            id=str(uuid.uuid4()),
            last_four=card.last_four,
            card_holder=card.card_holder,
            added_at=utcnow(),
        )

        def append(current: dict[str, Any]) -> dict[str, Any]:
            return {key: [*(current[key] or []), saved.to_store()]}

        writes = await self.store.update([key], append, owner=user_id)
        logger.info("Card saved", extra_data={"user_id": user_id, "card_id": saved.id})
        return saved, [SavedCard.model_validate(entry) for entry in writes[key]]

    async def delete_saved_card(self, user_id: str, card_id: str) -> list[SavedCard]:
        """Remove a card by id; an unknown id leaves the sequence unchanged"""
        key = user_key(user_id, CARDS)
        remaining: list[Any] = []

        def remove(current: dict[str, Any]) -> dict[str, Any]:
            cards = current[key] or []
            remaining[:] = [c for c in cards if c.get("id") != card_id]
            if len(remaining) == len(cards):
                return {}
            return {key: remaining}

        await self.store.update([key], remove, owner=user_id)
        return [SavedCard.model_validate(entry) for entry in remaining]
