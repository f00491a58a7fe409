"""
Stored Model Base - JSON documents kept in the key-value store
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, PlainSerializer, SerializationInfo
from pydantic.alias_generators import to_camel

CENTS = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def quantize_money(value: Decimal) -> Decimal:
    """Round to kobo precision"""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def money_to_number(value: Decimal) -> int | float:
    """JSON number for a money amount, integer when there are no kobo"""
    value = quantize_money(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# serialization context flag for API payloads
MONEY_AS_NUMBER = "money_as_number"


def serialize_money(value: Decimal, info: SerializationInfo) -> Any:
    """Exact decimal string in storage, JSON number in API payloads"""
    if info.context and info.context.get(MONEY_AS_NUMBER):
        return money_to_number(value)
    return str(quantize_money(value))


# Decimal in Python; stored as "25430.00", returned to clients as 25430
Money = Annotated[Decimal, PlainSerializer(serialize_money, return_type=Any)]


class StoredModel(BaseModel):
    """Base for documents persisted under user:{id}:{entity}.

    Field names are snake_case in Python and camelCase in storage / API
    payloads, which keeps records written by older clients readable.
    Money written as plain JSON numbers by older clients is read too.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            context={MONEY_AS_NUMBER: True},
        )
