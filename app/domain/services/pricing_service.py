"""
Pricing Service - resolves the amount to charge for a bill payment

Two sources feed the amount: a fixed-price package label picked from the
catalog ("5GB - ₦2,000") or a free-text amount typed by the user. Both are
parsed leniently: anything that does not yield a positive number resolves
to 0, and the payment flow rejects 0 as a validation failure.
"""
from decimal import Decimal, InvalidOperation

from app.db.models.base import quantize_money

CURRENCY_SYMBOL = "₦"
THOUSANDS_SEPARATOR = ","

ZERO = Decimal("0")


def _parse_positive(text: str | None) -> Decimal:
    if not text:
        return ZERO
    cleaned = text.strip().replace(THOUSANDS_SEPARATOR, "")
    if not cleaned:
        return ZERO
    try:
        value = Decimal(cleaned)
        if not value.is_finite() or value <= 0:
            return ZERO
        # quantize raises for values beyond the context precision
        value = quantize_money(value)
    except InvalidOperation:
        return ZERO
    return value if value > 0 else ZERO


def amount_from_package(package_label: str | None) -> Decimal:
    """Price in a label of the form "<description> - ₦<formatted-number>", or 0"""
    if not package_label or CURRENCY_SYMBOL not in package_label:
        return ZERO
    _, _, price = package_label.rpartition(CURRENCY_SYMBOL)
    return _parse_positive(price)


def resolve_amount(
    free_text_amount: str | None = None,
    selected_package_label: str | None = None,
) -> Decimal:
    """
    Resolve the amount to charge.

    A package label that carries a valid price wins over the free-text
    amount; otherwise the free text is parsed as a decimal. Returns 0 when
    neither source yields a positive number. Never raises.
    """
    from_package = amount_from_package(selected_package_label)
    if from_package > 0:
        return from_package
    return _parse_positive(free_text_amount)


def format_naira(amount: Decimal | int | float) -> str:
    """₦25,430 / ₦1,000.50"""
    value = quantize_money(Decimal(str(amount)))
    if value == value.to_integral_value():
        return f"{CURRENCY_SYMBOL}{int(value):,}"
    return f"{CURRENCY_SYMBOL}{value:,.2f}"
