"""
Service Catalog - static bill-payment configuration

Providers per service, fixed-price packages for data and TV, and the
minimum free-text amount each service accepts. Package labels carry their
price as "<description> - ₦<amount>"; the pricing service reads it from there.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from app.db.models.transaction import ServiceType


@dataclass(frozen=True)
class ServiceEntry:
    """Catalog configuration of one bill type"""
    name: str
    providers: tuple[str, ...]
    min_amount: Decimal
    packages: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @property
    def has_packages(self) -> bool:
        return bool(self.packages)

    def packages_for(self, provider: str) -> tuple[str, ...]:
        return self.packages.get(provider, ())


# quick top-up amounts for the wallet
QUICK_AMOUNTS: tuple[int, ...] = (1000, 2000, 5000, 10000, 20000, 50000)

_MOBILE_NETWORKS = ("MTN", "Airtel", "Glo", "9mobile")

CATALOG: dict[ServiceType, ServiceEntry] = {
    ServiceType.AIRTIME: ServiceEntry(
        name="Airtime",
        providers=_MOBILE_NETWORKS,
        min_amount=Decimal("100"),
    ),
    ServiceType.DATA: ServiceEntry(
        name="Data",
        providers=_MOBILE_NETWORKS,
        min_amount=Decimal("100"),
        packages={
            "MTN": ("1GB - ₦500", "2GB - ₦1,000", "5GB - ₦2,000", "10GB - ₦3,500"),
            "Airtel": ("1.5GB - ₦500", "3GB - ₦1,000", "6GB - ₦2,000", "12GB - ₦3,500"),
            "Glo": ("1.25GB - ₦500", "2.5GB - ₦1,000", "5.8GB - ₦2,000", "10GB - ₦3,000"),
            "9mobile": ("1GB - ₦500", "2.5GB - ₦1,000", "5GB - ₦2,000", "11.5GB - ₦3,500"),
        },
    ),
    ServiceType.ELECTRICITY: ServiceEntry(
        name="Electricity",
        providers=("EKEDC", "IKEDC", "AEDC", "PHEDC", "KAEDC"),
        min_amount=Decimal("100"),
    ),
    ServiceType.TV: ServiceEntry(
        name="Cable TV",
        providers=("DSTV", "GOTV", "Startimes", "Showmax"),
        min_amount=Decimal("100"),
        packages={
            "DSTV": ("DStv Padi - ₦2,500", "DStv Yanga - ₦3,500", "DStv Confam - ₦6,200", "DStv Compact - ₦10,500"),
            "GOTV": ("GOtv Lite - ₦1,300", "GOtv Value - ₦2,250", "GOtv Plus - ₦3,600", "GOtv Max - ₦5,700"),
            "Startimes": ("Nova - ₦1,300", "Basic - ₦2,100", "Smart - ₦3,200", "Classic - ₦4,200"),
            "Showmax": ("Mobile - ₦1,450", "Standard - ₦2,900", "Pro - ₦6,300"),
        },
    ),
    ServiceType.INTERNET: ServiceEntry(
        name="Internet",
        providers=("Spectranet", "Smile", "Swift", "Coollink"),
        min_amount=Decimal("100"),
    ),
    ServiceType.WATER: ServiceEntry(
        name="Water",
        providers=("Lagos Water Corporation", "Abuja Water Board", "Rivers Water", "Kaduna Water"),
        min_amount=Decimal("100"),
    ),
}


def get_service(service: ServiceType | str) -> ServiceEntry:
    """Catalog entry for ``service``; ValueError for an unknown service"""
    return CATALOG[ServiceType(service)]


def catalog_as_dict() -> dict[str, Any]:
    """Catalog in the shape returned by GET /catalog"""
    return {
        "services": {
            service.value: {
                "name": entry.name,
                "providers": list(entry.providers),
                "minAmount": int(entry.min_amount),
                "packages": {p: list(labels) for p, labels in entry.packages.items()},
            }
            for service, entry in CATALOG.items()
        },
        "quickAmounts": list(QUICK_AMOUNTS),
    }
