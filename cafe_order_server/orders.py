"""Guest checkout: validate a cart, issue a ticket number and persist the order."""

import logging
import random
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import BaseModel

from .cart import CartStore
from .errors import (
    CheckoutInProgressError,
    EmptyCartError,
    InvalidPhoneError,
    MissingGuestInfoError,
    PartialOrderError,
    PersistenceError,
)
from .models import CartLineItem, Customization, GuestInfo, Order, OrderLine, OrderStatus
from .pricing import TAX_RATE, compute_totals

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^[0-9+\-\s()]{10,}$")
FALLBACK_TICKET_RANGE = (1, 1000)


class OrderStore(Protocol):
    """Store operations used by checkout and tracking."""

    async def get_max_issued_ticket_number(self) -> Optional[int]: ...

    async def create_order(self, fields: dict[str, Any]) -> Order: ...

    async def create_order_line(self, fields: dict[str, Any]) -> OrderLine: ...

    async def delete_order(self, order_id: str) -> None: ...

    async def get_order_with_lines(self, order_id: str) -> Order: ...


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class NewOrder(BaseModel):
    """Row written to the orders table."""

    guest_name: str
    guest_phone: str
    customer_id: Optional[str] = None
    status: str = OrderStatus.PAID.value
    total_price: Decimal
    payment_method: str
    ticket_number: int


class NewOrderLine(BaseModel):
    """Row written to the order_items table."""

    order_id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    selected_options: Optional[Customization] = None


def validate_guest_info(name: Optional[str], phone: Optional[str]) -> GuestInfo:
    """
    Check guest contact details and return them stripped.

    The phone pattern is checked on the phone as typed, surrounding spaces
    included, and the stripped phone is returned.

    Raises:
        MissingGuestInfoError: If name or phone is blank
        InvalidPhoneError: If phone has fewer than 10 digits/+/-/space/parenthesis characters
    """
    raw_phone = phone or ""
    name = (name or "").strip()
    phone = raw_phone.strip()
    if not name:
        raise MissingGuestInfoError("name")
    if not phone:
        raise MissingGuestInfoError("phone")
    if not PHONE_PATTERN.match(raw_phone):
        raise InvalidPhoneError(raw_phone)
    return GuestInfo(name=name, phone=phone)


async def generate_ticket_number(store: OrderStore, rng: Optional[random.Random] = None) -> int:
    """
    Next ticket number: highest issued number plus one, starting at 1.

    When the store cannot be read a random number in [1, 1000] is issued
    instead. Such numbers are not guaranteed to be unique, and neither are
    numbers issued by two checkouts racing on the same maximum.
    """
    try:
        current = await store.get_max_issued_ticket_number()
    except PersistenceError as e:
        number = (rng or random).randint(*FALLBACK_TICKET_RANGE)
        logger.warning(f"Could not read last ticket number ({e}); using random ticket #{number}")
        return number
    return current + 1 if current else 1


class OrderSubmission:
    """
    One checkout attempt for a cart.

    idle -> validating -> submitting -> succeeded | failed. A failed attempt
    may be submitted again; a running or succeeded one may not.
    """

    def __init__(
        self,
        store: OrderStore,
        cart: CartStore,
        payment_method: str = "credit_card",
        tax_rate: Decimal = TAX_RATE,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.cart = cart
        self.payment_method = payment_method
        self.tax_rate = tax_rate
        self.rng = rng
        self.state = CheckoutState.IDLE
        self.order: Optional[Order] = None
        self.error: Optional[Exception] = None

    def validate(self, guest_name: Optional[str], guest_phone: Optional[str]) -> GuestInfo:
        """Raise a ValidationError if the cart or the guest details are not acceptable."""
        if self.cart.is_empty:
            raise EmptyCartError()
        return validate_guest_info(guest_name, guest_phone)

    async def submit(self, guest_name: Optional[str], guest_phone: Optional[str]) -> Order:
        """
        Persist the cart as an order and clear the cart.

        Returns:
            The created order with its lines

        Raises:
            ValidationError: Nothing was sent to the store
            PersistenceError: The order could not be created; nothing is left behind
            PartialOrderError: A line failed and the order header could not be removed
            CheckoutInProgressError: The attempt is running or already succeeded
        """
        if self.state in (CheckoutState.VALIDATING, CheckoutState.SUBMITTING):
            raise CheckoutInProgressError("Checkout is already in progress")
        if self.state == CheckoutState.SUCCEEDED:
            raise CheckoutInProgressError(f"Order {self.order.id} was already submitted")

        self.error = None
        self.state = CheckoutState.VALIDATING
        try:
            guest = self.validate(guest_name, guest_phone)
        except Exception as e:
            self._fail(e)
            raise

        self.state = CheckoutState.SUBMITTING
        snapshot = self.cart.snapshot()
        try:
            order = await self._persist(guest, snapshot.items)
        except Exception as e:
            self._fail(e)
            raise

        self.cart.clear()
        self.order = order
        self.state = CheckoutState.SUCCEEDED
        logger.info(f"Order {order.id} submitted as ticket #{order.ticket_number}, total {order.total_price}")
        return order

    def _fail(self, error: Exception) -> None:
        self.error = error
        self.state = CheckoutState.FAILED
        logger.warning(f"Checkout failed: {error}")

    async def _persist(self, guest: GuestInfo, items: list[CartLineItem]) -> Order:
        totals = compute_totals(items, self.tax_rate)
        ticket_number = await generate_ticket_number(self.store, self.rng)

        order = await self.store.create_order(
            NewOrder(
                guest_name=guest.name,
                guest_phone=guest.phone,
                total_price=totals.total,
                payment_method=self.payment_method,
                ticket_number=ticket_number,
            ).model_dump(mode="json")
        )

        lines: list[OrderLine] = []
        for item in items:
            fields = NewOrderLine(
                order_id=order.id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                selected_options=item.customization or None,
            ).model_dump(mode="json")
            try:
                lines.append(await self.store.create_order_line(fields))
            except PersistenceError as e:
                await self._roll_back(order, len(lines), e)
                raise

        return order.model_copy(update={"lines": lines})

    async def _roll_back(self, order: Order, lines_created: int, cause: PersistenceError) -> None:
        """Remove a half-written order. Raises PartialOrderError if that fails too."""
        logger.warning(
            f"Line {lines_created + 1} of order {order.id} failed ({cause}); removing the order"
        )
        try:
            await self.store.delete_order(order.id)
        except PersistenceError as e:
            logger.error(f"Could not remove order {order.id}: {e}")
            raise PartialOrderError(order.id, lines_created, str(cause)) from cause
