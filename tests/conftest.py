"""Shared fixtures: an in-memory store and sample menu data."""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import pytest

from cafe_order_server.cart import CartStore
from cafe_order_server.errors import (
    OrderNotFoundError,
    PersistenceError,
    TicketNumberGenerationError,
)
from cafe_order_server.models import CartItemDraft, Category, Order, OrderLine, Product

LATTE_OPTIONS = [
    {
        "title": "Size",
        "type": "radio",
        "required": True,
        "values": [
            {"label": "Small", "price_extra": 0},
            {"label": "Large", "price_extra": 0.8},
        ],
    },
    {
        "title": "Extras",
        "type": "checkbox",
        "values": [
            {"label": "A", "price_extra": 1.5},
            {"label": "B", "price_extra": 2.0},
        ],
    },
]


class FakeStore:
    """In-memory stand-in for SupabaseClient."""

    def __init__(
        self,
        max_ticket: Optional[int] = None,
        products: Optional[list[Product]] = None,
        fail_ticket: bool = False,
        fail_line_at: Optional[int] = None,
        fail_delete: bool = False,
    ) -> None:
        self.max_ticket = max_ticket
        self.products = {p.id: p for p in products or []}
        self.categories = [Category(id="1", name="Coffee", sort_order=1)]
        self.fail_ticket = fail_ticket
        self.fail_line_at = fail_line_at
        self.fail_delete = fail_delete
        self.orders: dict[str, Order] = {}
        self.lines: list[OrderLine] = []
        self.calls: list[str] = []
        self.closed = False

    async def get_max_issued_ticket_number(self) -> Optional[int]:
        self.calls.append("get_max_issued_ticket_number")
        if self.fail_ticket:
            raise TicketNumberGenerationError("get_max_issued_ticket_number", "connection refused")
        tickets = [order.ticket_number for order in self.orders.values()]
        if self.max_ticket is not None:
            tickets.append(self.max_ticket)
        return max(tickets) if tickets else None

    async def create_order(self, fields: dict[str, Any]) -> Order:
        self.calls.append("create_order")
        order = Order(
            id=f"order-{len(self.orders) + 1}",
            created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            **fields,
        )
        self.orders[order.id] = order
        return order

    async def create_order_line(self, fields: dict[str, Any]) -> OrderLine:
        self.calls.append("create_order_line")
        if self.fail_line_at is not None and len(self.lines) == self.fail_line_at:
            raise PersistenceError("create_order_line", "HTTP 500", 500)
        line = OrderLine(id=str(len(self.lines) + 1), **fields)
        self.lines.append(line)
        return line

    async def delete_order(self, order_id: str) -> None:
        self.calls.append("delete_order")
        if self.fail_delete:
            raise PersistenceError("delete_order", "HTTP 503", 503)
        self.orders.pop(order_id, None)
        self.lines = [line for line in self.lines if line.order_id != order_id]

    async def get_order_with_lines(self, order_id: str) -> Order:
        self.calls.append("get_order_with_lines")
        if order_id not in self.orders:
            raise OrderNotFoundError(order_id)
        lines = [line for line in self.lines if line.order_id == order_id]
        return self.orders[order_id].model_copy(update={"lines": lines})

    async def update_order_status(self, order_id: str, status: str) -> Order:
        self.calls.append("update_order_status")
        if order_id not in self.orders:
            raise OrderNotFoundError(order_id, operation="update_order_status")
        self.orders[order_id] = self.orders[order_id].model_copy(update={"status": status})
        return self.orders[order_id]

    async def get_product(self, product_id: str) -> Optional[Product]:
        return self.products.get(product_id)

    async def list_categories(self) -> list[Category]:
        return list(self.categories)

    async def list_products_by_category(self, category_id: str) -> list[Product]:
        return [p for p in self.products.values() if p.category_id == category_id and p.is_available]

    async def search_products(self, term: str) -> list[Product]:
        return [p for p in self.products.values() if term.lower() in p.name.lower()]

    async def close(self) -> None:
        self.closed = True


def make_draft(price: str, product_id: str = "p1", name: str = "Espresso") -> CartItemDraft:
    return CartItemDraft(
        product_id=product_id,
        product_name=name,
        base_price=Decimal(price),
        final_price=Decimal(price),
    )


@pytest.fixture
def latte() -> Product:
    return Product(
        id="42",
        category_id="1",
        name="Latte",
        price=Decimal("10.00"),
        options_config=json.dumps(LATTE_OPTIONS),
    )


@pytest.fixture
def espresso() -> Product:
    return Product(id="7", category_id="1", name="Espresso", price=Decimal("2.50"))


@pytest.fixture
def store(latte: Product, espresso: Product) -> FakeStore:
    return FakeStore(products=[latte, espresso])


@pytest.fixture
def two_line_cart() -> CartStore:
    """One line at 10.00 x1 and one at 5.00 x2."""
    cart = CartStore()
    cart.add_item(make_draft("10.00", "p1", "Sandwich"))
    cookie = cart.add_item(make_draft("5.00", "p2", "Cookie"))
    cart.update_quantity(cookie.id, 2)
    return cart
