from decimal import Decimal

from cafe_order_server.models import CartLineItem
from cafe_order_server.pricing import (
    compute_totals,
    grand_total,
    line_total,
    split_total,
    tax_amount,
    to_money,
)


def line(price, quantity, final=None):
    return CartLineItem(
        id="x",
        product_id="p",
        product_name="P",
        base_price=Decimal(price),
        final_price=Decimal(final) if final else None,
        quantity=quantity,
    )


def test_to_money_handles_empty_and_floats():
    assert to_money(None) == Decimal("0.00")
    assert to_money("") == Decimal("0.00")
    assert to_money(10.1) == Decimal("10.1")
    assert to_money("3.50") == Decimal("3.50")


def test_line_total():
    assert line_total("2.50", 3) == Decimal("7.50")


def test_totals_with_fixed_vat():
    totals = compute_totals([line("10.00", 1), line("5.00", 2)])

    assert totals.subtotal == Decimal("20.00")
    assert totals.tax == Decimal("4.00")
    assert totals.total == Decimal("24.00")


def test_totals_use_final_price_when_present():
    totals = compute_totals([line("10.00", 1, final="13.50")])

    assert totals.subtotal == Decimal("13.50")
    assert totals.total == Decimal("16.20")


def test_tax_and_grand_total_round_to_cents():
    assert tax_amount(Decimal("0.99")) == Decimal("0.20")
    assert grand_total(Decimal("0.99")) == Decimal("1.19")


def test_split_total_recovers_subtotal():
    totals = split_total("24.00")

    assert totals.subtotal == Decimal("20.00")
    assert totals.tax == Decimal("4.00")
    assert totals.subtotal + totals.tax == totals.total
