"""Line and order pricing under the three tax regimes.

Gross-first convention: a line's stored total is ``quantity * unit_price``
rounded to cents, and that figure is authoritative. Net and tax are derived
afterwards by reversing the applicable rate, so changing only the tax class
changes the net/tax split but never the gross line total.

Setting ``tax_additive`` switches to the stricter behaviour where the rate
is added on top of the unit price when the gross total is computed.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

_CENT = Decimal("0.01")


class TaxClass(Enum):
    STANDARD_16 = "16%"
    ZERO_RATED = "zero_rated"
    EXEMPTED = "exempted"


TAX_RATES = {
    TaxClass.STANDARD_16: Decimal("0.16"),
    TaxClass.ZERO_RATED: Decimal("0"),
    TaxClass.EXEMPTED: Decimal("0"),
}


@dataclass(frozen=True)
class LineBreakdown:
    net: Decimal
    tax: Decimal
    gross: Decimal


@dataclass(frozen=True)
class OrderTotals:
    net_subtotal: Decimal
    tax_total: Decimal
    gross_total: Decimal

    def as_dict(self) -> dict:
        return {
            "net_subtotal": float(self.net_subtotal),
            "tax_total": float(self.tax_total),
            "gross_total": float(self.gross_total),
        }


def round2(value) -> Decimal:
    """Round to cents, half away from zero."""
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def tax_rate(tax_class) -> Decimal:
    return TAX_RATES[TaxClass(tax_class)]


def line_total(quantity, unit_price, tax_class=TaxClass.STANDARD_16, tax_additive=False) -> Decimal:
    """Gross total for one line.

    ``tax_class`` only matters when ``tax_additive`` is on.
    """
    gross = Decimal(int(quantity)) * Decimal(str(unit_price))
    if tax_additive:
        gross = gross * (1 + tax_rate(tax_class))
    return round2(gross)


def decompose(gross, tax_class) -> LineBreakdown:
    """Split a stored gross line total into net and tax by reversing the rate."""
    gross = round2(gross)
    rate = tax_rate(tax_class)
    if rate == 0:
        return LineBreakdown(net=gross, tax=Decimal("0.00"), gross=gross)

    net = round2(gross / (1 + rate))
    return LineBreakdown(net=net, tax=round2(gross - net), gross=gross)


def summarize(items) -> OrderTotals:
    """Order-level subtotals over anything exposing ``line_total`` and ``tax_class``."""
    net_subtotal = Decimal("0.00")
    tax_total = Decimal("0.00")
    gross_total = Decimal("0.00")
    for item in items:
        breakdown = decompose(item.line_total, item.tax_class)
        net_subtotal += breakdown.net
        tax_total += breakdown.tax
        gross_total += breakdown.gross
    return OrderTotals(net_subtotal=net_subtotal, tax_total=tax_total, gross_total=gross_total)
