"""
Tests for the pricing service (amount resolution and naira formatting)
"""
from decimal import Decimal

import pytest

from app.domain.services.pricing_service import (
    amount_from_package,
    format_naira,
    resolve_amount,
)


class TestResolveAmount:
    """Package label vs free-text amount"""

    @pytest.mark.unit
    def test_package_label_with_thousands_separator(self):
        assert resolve_amount(None, "5GB - ₦2,000") == Decimal("2000")

    @pytest.mark.unit
    def test_free_text_amount(self):
        assert resolve_amount("750", None) == Decimal("750")

    @pytest.mark.unit
    def test_nothing_resolves_to_zero(self):
        assert resolve_amount(None, None) == 0

    @pytest.mark.unit
    def test_package_wins_over_free_text(self):
        assert resolve_amount("100", "DStv Compact - ₦10,500") == Decimal("10500")

    @pytest.mark.unit
    def test_malformed_package_falls_back_to_free_text(self):
        assert resolve_amount("300", "Broken package - ₦abc") == Decimal("300")

    @pytest.mark.unit
    @pytest.mark.parametrize("label", [
        "No currency marker 2,000",
        "Trailing marker - ₦",
        "Garbage - ₦1,2x0",
        "",
    ])
    def test_malformed_package_alone_is_zero(self, label):
        assert resolve_amount(None, label) == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("text", ["abc", "-50", "0", "  ", "NaN", "Infinity", "1e40"])
    def test_invalid_free_text_is_zero(self, text):
        assert resolve_amount(text, None) == 0

    @pytest.mark.unit
    def test_free_text_keeps_kobo(self):
        assert resolve_amount(" 1,000.50 ", None) == Decimal("1000.50")

    @pytest.mark.unit
    def test_free_text_rounds_to_kobo(self):
        assert resolve_amount("99.999", None) == Decimal("100.00")

    @pytest.mark.unit
    def test_package_with_multiple_separators(self):
        assert amount_from_package("Family - ₦1,250,000") == Decimal("1250000")


class TestFormatNaira:

    @pytest.mark.unit
    def test_whole_amount(self):
        assert format_naira(25430) == "₦25,430"

    @pytest.mark.unit
    def test_amount_with_kobo(self):
        assert format_naira(Decimal("1000.5")) == "₦1,000.50"

    @pytest.mark.unit
    def test_small_amount(self):
        assert format_naira(Decimal("50")) == "₦50"
