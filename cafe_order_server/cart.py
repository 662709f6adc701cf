"""Cart store: a reducer over cart actions plus a small store object around it."""

import logging
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from .models import CartItemDraft, CartLineItem, CartState, OrderTotals
from .pricing import compute_totals, subtotal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddItem:
    item: CartItemDraft


@dataclass(frozen=True)
class RemoveItem:
    item_id: str


@dataclass(frozen=True)
class UpdateQuantity:
    item_id: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


CartAction = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart]


def generate_cart_item_id() -> str:
    """Time-based id with a random suffix, unique within a session."""
    return f"cart_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def _with_items(items: list[CartLineItem]) -> CartState:
    # item_count is always derived from the lines, never adjusted by deltas
    return CartState(items=items, item_count=sum(item.quantity for item in items))


def cart_reducer(state: CartState, action: CartAction) -> CartState:
    """Return the state that results from applying action to state."""
    if isinstance(action, AddItem):
        line = CartLineItem(
            **action.item.model_dump(exclude={"id", "quantity"}),
            id=generate_cart_item_id(),
            quantity=1,
        )
        return _with_items([*state.items, line])

    elif isinstance(action, RemoveItem):
        remaining = [item for item in state.items if item.id != action.item_id]
        if len(remaining) == len(state.items):
            return state
        return _with_items(remaining)

    elif isinstance(action, UpdateQuantity):
        if not any(item.id == action.item_id for item in state.items):
            return state
        quantity = max(1, action.quantity)
        return _with_items(
            [
                item.model_copy(update={"quantity": quantity}) if item.id == action.item_id else item
                for item in state.items
            ]
        )

    elif isinstance(action, ClearCart):
        return CartState()

    return state


class CartStore:
    """Holds the cart of one session. Create one per session, never share globally."""

    def __init__(self, state: Optional[CartState] = None) -> None:
        self.state = state if state is not None else CartState()

    def dispatch(self, action: CartAction) -> CartState:
        self.state = cart_reducer(self.state, action)
        return self.state

    @property
    def items(self) -> list[CartLineItem]:
        return self.state.items

    @property
    def item_count(self) -> int:
        return self.state.item_count

    @property
    def is_empty(self) -> bool:
        return not self.state.items

    def get_item(self, item_id: str) -> Optional[CartLineItem]:
        for item in self.state.items:
            if item.id == item_id:
                return item
        return None

    def add_item(self, item: CartItemDraft) -> CartLineItem:
        """Append a new line with quantity 1 and return it."""
        self.dispatch(AddItem(item))
        line = self.state.items[-1]
        logger.info(f"Added {line.product_name} to cart as {line.id}")
        return line

    def remove_item(self, item_id: str) -> None:
        before = len(self.state.items)
        self.dispatch(RemoveItem(item_id))
        if len(self.state.items) == before:
            logger.debug(f"Cart item {item_id} not found, nothing removed")

    def update_quantity(self, item_id: str, quantity: int) -> None:
        self.dispatch(UpdateQuantity(item_id, quantity))

    def clear(self) -> None:
        self.dispatch(ClearCart())

    def get_total_price(self) -> Decimal:
        """Pre-tax total of all lines."""
        return subtotal(self.state.items)

    def totals(self) -> OrderTotals:
        return compute_totals(self.state.items)

    def snapshot(self) -> CartState:
        """Deep copy of the current state, safe to hand to checkout."""
        return self.state.model_copy(deep=True)
