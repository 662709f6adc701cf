"""Ordering operations shared by the MCP and HTTP servers."""

import logging
from typing import Any, Optional, Union

from .cart import CartStore
from .config import Settings
from .customization import CustomizationResolver
from .errors import CheckoutInProgressError, ProductNotFoundError
from .models import CartLineItem, Order, TrackingSnapshot
from .orders import OrderSubmission
from .session import DEFAULT_SESSION_ID, SessionManager
from .tracking import describe

logger = logging.getLogger(__name__)


class OrderingService:
    """Glue between the store, the session carts and checkout."""

    def __init__(self, store: Any, sessions: SessionManager, settings: Settings) -> None:
        self.store = store
        self.sessions = sessions
        self.settings = settings
        self._checkouts: dict[str, OrderSubmission] = {}

    async def customize(self, product_id: str) -> CustomizationResolver:
        """Resolver for a product, with default selections applied."""
        product = await self.store.get_product(product_id)
        if product is None or not product.is_available:
            raise ProductNotFoundError(product_id)
        return CustomizationResolver(product, enforce_required=self.settings.enforce_required_options)

    async def add_to_cart(
        self,
        product_id: str,
        options: Optional[dict[str, Union[str, list[str]]]] = None,
        session_id: str = DEFAULT_SESSION_ID,
    ) -> CartLineItem:
        resolver = await self.customize(product_id)
        resolver.apply_selections(options)
        return self.sessions.cart(session_id).add_item(resolver.to_cart_item())

    async def checkout(
        self,
        guest_name: Optional[str] = None,
        guest_phone: Optional[str] = None,
        payment_method: Optional[str] = None,
        session_id: str = DEFAULT_SESSION_ID,
        use_profile: bool = False,
    ) -> Order:
        """
        Submit the session's cart as a guest order.

        Args:
            use_profile: Fill missing guest details from the remembered profile
                and remember this guest afterwards. Only for the single-user
                stdio session; the profile is shared by the whole process.
        """
        if session_id in self._checkouts:
            raise CheckoutInProgressError("Checkout is already in progress for this session")

        submission = OrderSubmission(
            self.store,
            # A session without a cart gets a throwaway one that fails as empty
            self.sessions.find_cart(session_id) or CartStore(),
            payment_method=payment_method or self.settings.default_payment_method,
        )
        if use_profile:
            profile = self.sessions.profile
            guest_name = guest_name or profile.name
            guest_phone = guest_phone or profile.phone

        self._checkouts[session_id] = submission
        try:
            order = await submission.submit(guest_name, guest_phone)
        finally:
            del self._checkouts[session_id]

        # The cart is empty now; the next add creates a fresh one
        self.sessions.drop(session_id)
        if use_profile:
            self.sessions.remember_guest(order.guest_name, order.guest_phone)
            self.sessions.record_order(order.id)
        return order

    async def get_order(self, order_id: str) -> Order:
        return await self.store.get_order_with_lines(order_id)

    async def track(self, order_id: str) -> TrackingSnapshot:
        """One-off tracking snapshot of an order."""
        return describe(await self.store.get_order_with_lines(order_id))
