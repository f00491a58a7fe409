"""
Transaction Model - Immutable Bill Payment Record

Details are a tagged union keyed by ``service``: each service has its own
details model and extra fields are rejected, so an electricity meter number
can never end up on a TV subscription.
"""
import enum
from datetime import datetime
from typing import Any, Union

from pydantic import ConfigDict, Field, ValidationError, model_validator

from app.db.models.base import Money, StoredModel, utcnow


class ServiceType(str, enum.Enum):
    AIRTIME = "airtime"
    DATA = "data"
    ELECTRICITY = "electricity"
    TV = "tv"
    INTERNET = "internet"
    WATER = "water"


class TransactionStatus(str, enum.Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class _Details(StoredModel):
    model_config = ConfigDict(extra="forbid")

    provider: str = Field(min_length=1)


class AirtimeDetails(_Details):
    phone_number: str


class DataDetails(_Details):
    phone_number: str
    package: str | None = None


class ElectricityDetails(_Details):
    meter_number: str


class TvDetails(_Details):
    account_number: str
    package: str | None = None


class InternetDetails(_Details):
    account_number: str


class WaterDetails(_Details):
    account_number: str


TransactionDetails = Union[
    AirtimeDetails,
    DataDetails,
    ElectricityDetails,
    TvDetails,
    InternetDetails,
    WaterDetails,
]

_SERVICE_VALUES = {s.value for s in ServiceType}

DETAILS_BY_SERVICE: dict[ServiceType, type[_Details]] = {
    ServiceType.AIRTIME: AirtimeDetails,
    ServiceType.DATA: DataDetails,
    ServiceType.ELECTRICITY: ElectricityDetails,
    ServiceType.TV: TvDetails,
    ServiceType.INTERNET: InternetDetails,
    ServiceType.WATER: WaterDetails,
}


def build_details(service: ServiceType | str, payload: dict[str, Any]) -> _Details:
    """Validate a raw details payload against the model of ``service``"""
    details_cls = DETAILS_BY_SERVICE[ServiceType(service)]
    # clients send empty strings / nulls for fields that do not apply
    cleaned = {k: v for k, v in payload.items() if v not in (None, "")}
    return details_cls.model_validate(cleaned)


class Transaction(StoredModel):
    """One entry of user:{id}:transactions (most recent first)"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, max_length=64)
    service: ServiceType
    amount: Money = Field(gt=0)
    reference: str = Field(min_length=1)
    date: datetime = Field(default_factory=utcnow)
    status: TransactionStatus = TransactionStatus.COMPLETED
    details: TransactionDetails

    @model_validator(mode="before")
    @classmethod
    def _select_details_model(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        service = data.get("service")
        details = data.get("details")
        if isinstance(details, dict) and service in _SERVICE_VALUES:
            try:
                data = {**data, "details": build_details(service, details)}
            except ValidationError as e:
                fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
                raise ValueError(f"details do not match service {service!r}: {', '.join(fields)}") from e
        return data
