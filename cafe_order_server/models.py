"""Data models for the cafe ordering core."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

# {group title: selected label} for radio groups, {group title: [labels]} for checkbox groups
Customization = dict[str, Union[str, list[str]]]


class OrderStatus(str, Enum):
    """Order lifecycle as written by the fulfillment side."""

    PAID = "paid"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"


class Category(BaseModel):
    """Menu category."""

    id: str
    name: str
    sort_order: int = 0
    description: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if value is not None else value


class OptionValue(BaseModel):
    """One choice inside an option group."""

    label: str
    price_extra: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("price_extra", mode="before")
    @classmethod
    def _default_price_extra(cls, value: Any) -> Any:
        return Decimal("0") if value is None else value


class OptionGroup(BaseModel):
    """Option group from a product's options_config."""

    title: str
    type: Literal["radio", "checkbox"]
    values: list[OptionValue] = Field(default_factory=list)
    required: bool = False


class Product(BaseModel):
    """Menu product."""

    id: str
    category_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: Decimal = Decimal("0")
    image_url: Optional[str] = None
    is_available: bool = True
    options_config: Any = None

    @field_validator("id", "category_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if value is not None else value


class CartItemDraft(BaseModel):
    """A customized product ready to be added to the cart."""

    product_id: str
    product_name: str
    base_price: Decimal
    final_price: Optional[Decimal] = None
    customization: Customization = Field(default_factory=dict)
    image_url: Optional[str] = None

    @model_validator(mode="after")
    def _check_final_price(self) -> "CartItemDraft":
        if self.final_price is not None and self.final_price < self.base_price:
            raise ValueError("final_price cannot be lower than base_price")
        return self

    @property
    def unit_price(self) -> Decimal:
        """Price of one unit, customization included."""
        return self.final_price if self.final_price is not None else self.base_price


class CartLineItem(CartItemDraft):
    """One line of the cart with its own quantity."""

    id: str
    quantity: int = Field(default=1, ge=1)


class CartState(BaseModel):
    """Cart contents. item_count always equals the sum of line quantities."""

    items: list[CartLineItem] = Field(default_factory=list)
    item_count: int = 0


class OrderLine(BaseModel):
    """Persisted order line."""

    id: Optional[str] = None
    order_id: str
    product_id: str
    quantity: int
    unit_price: Decimal
    selected_options: Optional[Customization] = None

    @field_validator("id", "order_id", "product_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if value is not None else value


class Order(BaseModel):
    """Persisted order header, with its lines when they were fetched."""

    id: str
    ticket_number: int
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    customer_id: Optional[str] = None
    # Kept as text: the fulfillment side may write statuses this client does not know.
    status: str = OrderStatus.PAID.value
    total_price: Decimal
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
    lines: list[OrderLine] = Field(
        default_factory=list, validation_alias=AliasChoices("lines", "order_items")
    )

    @field_validator("id", "customer_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        return str(value) if value is not None else value


class OrderTotals(BaseModel):
    """Subtotal, tax and tax-inclusive total."""

    subtotal: Decimal
    tax: Decimal
    total: Decimal


class GuestInfo(BaseModel):
    """Contact details for a guest checkout."""

    name: str
    phone: str


class GuestProfile(BaseModel):
    """Guest details remembered between sessions."""

    name: Optional[str] = None
    phone: Optional[str] = None
    recent_order_ids: list[str] = Field(default_factory=list)


class TrackingSnapshot(BaseModel):
    """Display state derived from a persisted order."""

    order_id: str
    ticket_number: int
    status: str
    status_text: str
    step_index: int
    progress_percent: int
    estimated_ready_at: Optional[datetime] = None
    ready_now: bool = False
    fetched_at: datetime
