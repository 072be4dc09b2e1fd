"""
Tests para el cálculo de impuestos y totales
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace

from billing.common.exceptions import InvalidArgumentError
from billing.modules.taxes.calculator import TaxCalculator


def line(quantity, unit_price, tax_exempt=False):
    return SimpleNamespace(quantity=quantity, unit_price=Decimal(unit_price), tax_exempt=tax_exempt)


# ===== TESTS DE LÍNEAS =====

class TestCalculateLine:

    def test_taxed_line(self):
        result = TaxCalculator(Decimal("0.16")).calculate_line(3, Decimal("10.00"))
        assert result.line_subtotal == Decimal("30.00")
        assert result.line_tax == Decimal("4.80")
        assert result.line_total == Decimal("34.80")

    def test_exempt_line_has_no_tax(self):
        result = TaxCalculator(Decimal("0.16")).calculate_line(2, Decimal("5.50"), tax_exempt=True)
        assert result.line_tax == Decimal("0.00")
        assert result.line_total == Decimal("11.00")

    def test_rounding_half_up(self):
        # 0.125 * 1 -> 0.13
        result = TaxCalculator(Decimal("0.25")).calculate_line(1, Decimal("0.50"))
        assert result.line_tax == Decimal("0.13")

    def test_negative_price_rejected(self):
        with pytest.raises(InvalidArgumentError):
            TaxCalculator().calculate_line(1, Decimal("-1"))


# ===== TESTS DE TOTALES =====

class TestCalculateTotals:

    def test_totals_mix_exempt_and_taxed(self):
        totals = TaxCalculator(Decimal("0.16")).calculate_totals([
            line(3, "10.00"),
            line(1, "11.00", tax_exempt=True),
        ])

        assert totals.subtotal == Decimal("41.00")
        assert totals.tax == Decimal("4.80")
        assert totals.total == Decimal("45.80")
        assert len(totals.lines) == 2

    def test_empty_items(self):
        totals = TaxCalculator().calculate_totals([])
        assert totals.total == Decimal("0.00")

    def test_default_rate_from_settings(self):
        assert TaxCalculator().tax_rate == Decimal("0.16")

    @pytest.mark.parametrize("rate", [Decimal("-0.01"), Decimal("1"), Decimal("1.5")])
    def test_invalid_rate(self, rate):
        with pytest.raises(InvalidArgumentError):
            TaxCalculator(rate)
