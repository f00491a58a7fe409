"""
Bill Payment API Route
"""
from typing import Any

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from app.api.dependencies.auth import get_current_user_id
from app.db.kv_store import KVStore, get_kv_store
from app.domain.services.payment_service import PaymentService
from app.domain.services.pricing_service import format_naira, resolve_amount
from app.domain.services.wallet_service import WalletService

router = APIRouter()


class PaymentRequest(BaseModel):
    """Bill payment form; fields that do not apply to the service stay empty"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    service: str
    provider: str
    amount: str | None = None  # free-text amount as typed
    package: str | None = None  # catalog label, e.g. "5GB - ₦2,000"
    phone_number: str | None = None
    meter_number: str | None = None
    account_number: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    def details(self) -> dict[str, Any]:
        return {
            "phoneNumber": self.phone_number,
            "meterNumber": self.meter_number,
            "accountNumber": self.account_number,
            "package": self.package,
        }


@router.post(
    "",
    summary="Pay a bill from the wallet",
    description=(
        "Resolves the amount (package price or free text), checks the balance, "
        "waits for settlement, then debits the wallet and records the transaction "
        "atomically. Send an Idempotency-Key header to make retries safe."
    ),
    responses={
        402: {"description": "Insufficient wallet balance"},
        504: {"description": "Settlement timed out; nothing was charged"},
    },
)
async def pay_bill(
    body: PaymentRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    user_id: str = Depends(get_current_user_id),
    store: KVStore = Depends(get_kv_store),
) -> dict[str, Any]:
    service = PaymentService(WalletService(store))
    result = await service.pay_bill(
        user_id,
        service=body.service,
        provider=body.provider,
        details=body.details(),
        resolved_amount=resolve_amount(body.amount, body.package),
        transaction_id=idempotency_key,
    )
    if not result.ok:
        raise result.error

    return {
        "transaction": result.transaction.to_response(),
        "wallet": result.wallet.to_response(),
        "replayed": result.replayed,
        "message": f"Payment of {format_naira(result.transaction.amount)} successful!",
    }
