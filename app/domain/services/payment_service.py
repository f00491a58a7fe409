"""
Payment Service - bill payment orchestration

Coordinates one bill payment:
1. Validate amount and catalog selection (provider, package, details fields)
2. Read the wallet and reject if the balance does not cover the amount
3. Simulate settlement latency (bounded by a timeout)
4. Build the Transaction
5. Debit and record it in a single atomic store update

Nothing is written before step 5, so a rejected, timed-out or cancelled
payment leaves balance and history untouched. ``pay_bill`` returns a
PaymentResult holding either the transaction or the typed failure.
"""
import asyncio
import secrets
import string
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import (
    AppException,
    InsufficientFundsError,
    InvalidAmountError,
    SettlementTimeoutError,
    ValidationException,
)
from app.core.logging import get_logger, log_async_operation
from app.core.validation import AmountValidator, BillAccountValidator, PhoneNumberValidator
from app.db.models.card import CardInput, SavedCard
from app.db.models.transaction import ServiceType, Transaction, build_details
from app.db.models.wallet import WalletAccount
from app.domain.catalog import get_service
from app.domain.services.pricing_service import amount_from_package, format_naira
from app.domain.services.wallet_service import WalletService

logger = get_logger(__name__)

_REFERENCE_PREFIX = "REF"
_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
_REFERENCE_LENGTH = 8
MAX_TRANSACTION_ID_LENGTH = 64


def generate_transaction_id() -> str:
    return secrets.token_hex(8).upper()


def generate_reference() -> str:
    """Human-readable reference, e.g. REF7K2Q9XZA (low collision odds, not enforced unique)"""
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(_REFERENCE_LENGTH))
    return f"{_REFERENCE_PREFIX}{suffix}"


@dataclass(frozen=True)
class PaymentResult:
    """Either ``transaction`` (with the wallet after the debit) or ``error``"""
    transaction: Transaction | None = None
    wallet: WalletAccount | None = None
    error: AppException | None = None
    replayed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def insufficient_funds(self) -> bool:
        return isinstance(self.error, InsufficientFundsError)

    @classmethod
    def failure(cls, error: AppException) -> "PaymentResult":
        return cls(error=error)


class PaymentService:
    """Service for paying bills from the wallet"""

    def __init__(self, wallet_service: WalletService):
        self.wallet_service = wallet_service

    def _validate_details(
        self,
        service: ServiceType,
        provider: str,
        details: dict[str, Any],
        amount: Decimal,
    ) -> Any:
        """Check the selection against the catalog and build the tagged details"""
        entry = get_service(service)
        if provider not in entry.providers:
            raise ValidationException(
                f"Unknown provider for {entry.name}: {provider}",
                field="provider",
            )

        payload = {k: v for k, v in details.items() if v not in (None, "")}
        package = payload.get("package")
        if package:
            if package not in entry.packages_for(provider):
                raise ValidationException(f"Unknown package for {provider}: {package}", field="package")
            if amount != amount_from_package(package):
                raise ValidationException("Amount does not match the selected package", field="amount")
        elif amount < entry.min_amount:
            raise ValidationException(
                f"Minimum amount for {entry.name} is {format_naira(entry.min_amount)}",
                field="amount",
            )

        phone = payload.get("phoneNumber")
        if phone is not None:
            if not PhoneNumberValidator.validate(phone):
                raise ValidationException("Invalid phone number", field="phoneNumber")
            payload["phoneNumber"] = PhoneNumberValidator.normalize(phone)
        if "meterNumber" in payload:
            is_valid, error = BillAccountValidator.validate_meter_number(payload["meterNumber"])
            if not is_valid:
                raise ValidationException(error, field="meterNumber")
        if "accountNumber" in payload:
            is_valid, error = BillAccountValidator.validate_account_number(payload["accountNumber"])
            if not is_valid:
                raise ValidationException(error, field="accountNumber")

        try:
            return build_details(service, {**payload, "provider": provider})
        except ValidationError as e:
            raise ValidationException(
                f"Invalid details for {entry.name}",
                field="details",
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

    async def _settle(self) -> None:
        """Stand-in for the payment gateway round trip"""
        await asyncio.sleep(settings.SETTLEMENT_DELAY_SECONDS)

    async def _pay(
        self,
        user_id: str,
        service: str,
        provider: str,
        details: dict[str, Any],
        resolved_amount: Decimal,
        transaction_id: str | None,
    ) -> PaymentResult:
        if isinstance(resolved_amount, (int, float)) and not isinstance(resolved_amount, bool):
            resolved_amount = Decimal(str(resolved_amount))
        if not isinstance(resolved_amount, Decimal) or not resolved_amount.is_finite() or resolved_amount <= 0:
            raise ValidationException("Please enter a valid amount", field="amount")
        try:
            service_type = ServiceType(service)
        except ValueError as e:
            raise ValidationException(f"Unknown service: {service}", field="service") from e
        if transaction_id is not None and not 0 < len(transaction_id) <= MAX_TRANSACTION_ID_LENGTH:
            raise ValidationException(
                f"Idempotency key must be 1-{MAX_TRANSACTION_ID_LENGTH} characters",
                field="transaction_id",
            )

        typed_details = self._validate_details(service_type, provider, details, resolved_amount)

        if transaction_id is not None:
            existing = await self.wallet_service.find_transaction(user_id, transaction_id)
            if existing is not None:
                logger.info(
                    "Payment replayed by idempotency key",
                    extra_data={"user_id": user_id, "transaction_id": transaction_id},
                )
                wallet = await self.wallet_service.get_wallet(user_id)
                return PaymentResult(transaction=existing, wallet=wallet, replayed=True)

        wallet = await self.wallet_service.get_wallet(user_id)
        if resolved_amount > wallet.balance:
            raise InsufficientFundsError(
                user_id,
                current_balance=float(wallet.balance),
                required_amount=float(resolved_amount),
            )

        timeout = settings.SETTLEMENT_TIMEOUT_SECONDS
        try:
            await asyncio.wait_for(self._settle(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SettlementTimeoutError(timeout) from e

        transaction = Transaction(
            id=transaction_id or generate_transaction_id(),
            service=service_type,
            amount=resolved_amount,
            reference=generate_reference(),
            details=typed_details,
        )
        # balance is checked again inside the atomic update
        posting = await self.wallet_service.debit_and_record(user_id, transaction)
        return PaymentResult(
            transaction=posting.transaction,
            wallet=posting.wallet,
            replayed=posting.replayed,
        )

    @log_async_operation("pay_bill")
    async def pay_bill(
        self,
        user_id: str,
        service: str,
        provider: str,
        details: dict[str, Any],
        resolved_amount: Decimal,
        transaction_id: str | None = None,
    ) -> PaymentResult:
        """
        Pay a bill from the user's wallet.

        Args:
            details: service fields in camelCase (phoneNumber, meterNumber,
                accountNumber, package); fields that do not apply may be empty
            resolved_amount: amount from the pricing service
            transaction_id: optional idempotency key; a payment already
                recorded under this id is returned instead of charging again

        Returns:
            PaymentResult with the transaction, or with one of
            ValidationException / InsufficientFundsError /
            SettlementTimeoutError / StorageError / LedgerConflictError
        """
        try:
            result = await self._pay(user_id, service, provider, details, resolved_amount, transaction_id)
        except AppException as e:
            logger.warning(
                "Payment rejected",
                extra_data={
                    "user_id": user_id,
                    "service": service,
                    "amount": str(resolved_amount),
                    "error_code": e.error_code.value,
                },
            )
            return PaymentResult.failure(e)

        if not result.replayed:
            logger.info(
                "Payment completed",
                extra_data={
                    "user_id": user_id,
                    "service": service,
                    "transaction_id": result.transaction.id,
                    "reference": result.transaction.reference,
                    "amount": str(result.transaction.amount),
                },
            )
        return result

    @log_async_operation("add_funds")
    async def add_funds(
        self,
        user_id: str,
        amount: Decimal,
        card: CardInput | None = None,
    ) -> tuple[WalletAccount, SavedCard | None]:
        """
        Top up the wallet and remember the presented card.

        The credit and the card record are separate writes; the card holds
        only lastFour and cardHolder.

        Raises:
            InvalidAmountError: amount not a positive number with at most 2 decimals
        """
        is_valid, error = AmountValidator.validate(amount, min_value=Decimal("0.01"))
        if not is_valid:
            raise InvalidAmountError(error, value=amount)

        wallet = await self.wallet_service.credit(user_id, amount)
        saved_card = None
        if card is not None:
            saved_card, _ = await self.wallet_service.add_saved_card(user_id, card)
        return wallet, saved_card
