import random
from decimal import Decimal

import pydantic
import pytest

from cafe_order_server.cart import (
    AddItem,
    CartStore,
    ClearCart,
    RemoveItem,
    UpdateQuantity,
    cart_reducer,
)
from cafe_order_server.models import CartItemDraft, CartState

from .conftest import make_draft


def assert_count_matches(state: CartState) -> None:
    assert state.item_count == sum(item.quantity for item in state.items)


def test_add_item_assigns_id_and_quantity_one():
    cart = CartStore()

    line = cart.add_item(make_draft("3.00"))

    assert line.id.startswith("cart_")
    assert line.quantity == 1
    assert cart.item_count == 1
    assert cart.items == [line]


def test_same_product_twice_gives_two_lines():
    cart = CartStore()

    first = cart.add_item(make_draft("3.00"))
    second = cart.add_item(make_draft("3.00"))

    assert first.id != second.id
    assert len(cart.items) == 2
    assert cart.item_count == 2


def test_insertion_order_is_kept():
    cart = CartStore()
    for name in ["A", "B", "C"]:
        cart.add_item(make_draft("1.00", name=name))

    assert [item.product_name for item in cart.items] == ["A", "B", "C"]


def test_remove_item_subtracts_its_quantity():
    cart = CartStore()
    keep = cart.add_item(make_draft("1.00"))
    drop = cart.add_item(make_draft("2.00"))
    cart.update_quantity(drop.id, 4)

    cart.remove_item(drop.id)

    assert cart.items == [keep]
    assert cart.item_count == 1


def test_remove_unknown_id_leaves_state_unchanged():
    cart = CartStore()
    cart.add_item(make_draft("1.00"))
    before = cart.state

    cart.remove_item("cart_missing")

    assert cart.state is before
    assert cart.item_count == 1


@pytest.mark.parametrize("quantity", [0, -1, -50])
def test_update_quantity_clamps_to_one(quantity):
    cart = CartStore()
    line = cart.add_item(make_draft("1.00"))
    cart.update_quantity(line.id, 5)

    cart.update_quantity(line.id, quantity)

    assert cart.get_item(line.id).quantity == 1
    assert cart.item_count == 1


def test_update_quantity_recomputes_count_from_lines():
    cart = CartStore(CartState(items=[], item_count=7))
    line = cart.add_item(make_draft("1.00"))

    cart.update_quantity(line.id, 3)

    assert cart.item_count == 3


def test_clear_empties_cart():
    cart = CartStore()
    cart.add_item(make_draft("1.00"))

    cart.clear()

    assert cart.items == []
    assert cart.item_count == 0
    assert cart.is_empty


def test_total_price_falls_back_to_base_price():
    cart = CartStore()
    cart.add_item(CartItemDraft(product_id="p", product_name="Tea", base_price=Decimal("2.00")))
    line = cart.add_item(make_draft("3.50"))
    cart.update_quantity(line.id, 2)

    assert cart.get_total_price() == Decimal("9.00")


def test_final_price_below_base_price_is_rejected():
    with pytest.raises(pydantic.ValidationError):
        CartItemDraft(
            product_id="p",
            product_name="Tea",
            base_price=Decimal("2.00"),
            final_price=Decimal("1.00"),
        )


def test_reducer_is_pure():
    state = CartState()

    new_state = cart_reducer(state, AddItem(make_draft("1.00")))

    assert state.items == []
    assert new_state.item_count == 1


def test_reducer_ignores_unknown_actions():
    state = CartState()

    assert cart_reducer(state, object()) is state


def test_item_count_invariant_over_random_operations():
    rng = random.Random(1234)
    state = CartState()

    for _ in range(500):
        roll = rng.random()
        ids = [item.id for item in state.items] + ["cart_unknown"]
        if roll < 0.4:
            action = AddItem(make_draft(f"{rng.randint(1, 9)}.00"))
        elif roll < 0.6:
            action = RemoveItem(rng.choice(ids))
        elif roll < 0.95:
            action = UpdateQuantity(rng.choice(ids), rng.randint(-3, 10))
        else:
            action = ClearCart()

        state = cart_reducer(state, action)

        assert_count_matches(state)
        assert all(item.quantity >= 1 for item in state.items)


def test_snapshot_is_independent_of_later_changes():
    cart = CartStore()
    line = cart.add_item(make_draft("1.00"))

    snapshot = cart.snapshot()
    cart.update_quantity(line.id, 4)

    assert snapshot.items[0].quantity == 1
    assert snapshot.item_count == 1


def test_stores_do_not_share_state():
    first, second = CartStore(), CartStore()

    first.add_item(make_draft("1.00"))

    assert second.is_empty
