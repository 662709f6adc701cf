"""Money helpers: line totals, subtotal, tax and grand total."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Protocol

from .models import OrderTotals

TAX_RATE = Decimal("0.20")
TWOPLACES = Decimal("0.01")


class PricedLine(Protocol):
    unit_price: Decimal
    quantity: int


def to_money(value: Any) -> Decimal:
    """Convert a price-like value to Decimal. None and "" count as zero."""
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 10.1 from turning into 10.0999...
    return Decimal(str(value))


def quantize(value: Decimal) -> Decimal:
    """Round to cents."""
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def line_total(unit_price: Any, quantity: int) -> Decimal:
    return to_money(unit_price) * quantity


def subtotal(items: Iterable[PricedLine]) -> Decimal:
    """Sum of unit price times quantity over all lines."""
    return sum((line_total(item.unit_price, item.quantity) for item in items), Decimal("0"))


def tax_amount(amount: Decimal, rate: Decimal = TAX_RATE) -> Decimal:
    return quantize(to_money(amount) * rate)


def grand_total(amount: Decimal, rate: Decimal = TAX_RATE) -> Decimal:
    """Tax-inclusive total for a pre-tax subtotal."""
    return quantize(to_money(amount) * (1 + rate))


def compute_totals(items: Iterable[PricedLine], rate: Decimal = TAX_RATE) -> OrderTotals:
    """Totals shown on the cart summary and persisted on the order."""
    pre_tax = subtotal(items)
    total = grand_total(pre_tax, rate)
    return OrderTotals(subtotal=quantize(pre_tax), tax=total - quantize(pre_tax), total=total)


def split_total(total: Any, rate: Decimal = TAX_RATE) -> OrderTotals:
    """
    Recover subtotal and tax from a persisted tax-inclusive total.

    Tax is computed as the difference so the parts always add up to the total.
    """
    amount = quantize(to_money(total))
    pre_tax = quantize(amount / (1 + rate))
    return OrderTotals(subtotal=pre_tax, tax=amount - pre_tax, total=amount)
