"""
Helper para cálculo de impuestos y totales de documentos de venta
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from billing.common.exceptions import InvalidArgumentError
from billing.core.config import settings

CENT = Decimal('0.01')


@dataclass
class LineCalculation:
    quantity: int
    unit_price: Decimal
    tax_exempt: bool
    line_subtotal: Decimal
    line_tax: Decimal
    line_total: Decimal


@dataclass
class DocumentTotals:
    tax_rate: Decimal
    subtotal: Decimal = Decimal('0.00')
    tax: Decimal = Decimal('0.00')
    total: Decimal = Decimal('0.00')
    lines: List[LineCalculation] = field(default_factory=list)


class TaxCalculator:
    """Calcula subtotales, IVA por línea no exenta y totales redondeados a centavos"""

    def __init__(self, tax_rate: Optional[Decimal] = None):
        rate = settings.DEFAULT_TAX_RATE if tax_rate is None else Decimal(str(tax_rate))
        if rate < 0 or rate >= 1:
            raise InvalidArgumentError(f"Tasa de impuesto inválida: {rate}", field="tax_rate")
        self.tax_rate = rate

    @staticmethod
    def _round(amount: Decimal) -> Decimal:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)

    def calculate_line(self, quantity: int, unit_price, tax_exempt: bool = False) -> LineCalculation:
        unit_price = Decimal(str(unit_price))
        if unit_price < 0:
            raise InvalidArgumentError('El precio unitario no puede ser negativo', field="unit_price")
        line_subtotal = self._round(unit_price * quantity)
        line_tax = Decimal('0.00') if tax_exempt else self._round(line_subtotal * self.tax_rate)
        return LineCalculation(
            quantity=quantity,
            unit_price=self._round(unit_price),
            tax_exempt=tax_exempt,
            line_subtotal=line_subtotal,
            line_tax=line_tax,
            line_total=line_subtotal + line_tax
        )

    def calculate_totals(self, items: Iterable) -> DocumentTotals:
        """
        Args:
            items: objetos con quantity, unit_price y tax_exempt

        Returns:
            DocumentTotals con el detalle por línea en el mismo orden
        """
        totals = DocumentTotals(tax_rate=self.tax_rate)
        for item in items:
            line = self.calculate_line(item.quantity, item.unit_price, getattr(item, "tax_exempt", False))
            totals.lines.append(line)
            totals.subtotal += line.line_subtotal
            totals.tax += line.line_tax
        totals.total = totals.subtotal + totals.tax
        return totals
