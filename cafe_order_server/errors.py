"""Exception hierarchy for the ordering core."""

from typing import Optional


class OrderingError(Exception):
    """Base class for all ordering errors."""


class ConfigurationError(OrderingError):
    """Required configuration is missing or invalid."""


class ValidationError(OrderingError):
    """Input rejected before anything is sent to the store."""


class EmptyCartError(ValidationError):
    """Checkout attempted with an empty cart."""

    def __init__(self, message: str = "Cart is empty. Add items before ordering.") -> None:
        super().__init__(message)


class MissingGuestInfoError(ValidationError):
    """Guest name or phone is blank."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Missing guest {field}")


class InvalidPhoneError(ValidationError):
    """Guest phone does not look like a phone number."""

    def __init__(self, phone: str) -> None:
        self.phone = phone
        super().__init__(f"Invalid phone number: {phone!r}")


class MissingRequiredOptionError(ValidationError):
    """Required option groups were left without a selection."""

    def __init__(self, groups: list[str]) -> None:
        self.groups = groups
        super().__init__(f"Missing selection for required option(s): {', '.join(groups)}")


class OptionSelectionError(OrderingError, ValueError):
    """Selection refers to an unknown option group or value."""


class CheckoutInProgressError(OrderingError):
    """A checkout attempt was reused while running or after it succeeded."""


class PersistenceError(OrderingError):
    """The backing store failed to serve a request."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None) -> None:
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class OrderNotFoundError(PersistenceError):
    """No order row matched the requested id."""

    def __init__(self, order_id: str, operation: str = "get_order_with_lines") -> None:
        self.order_id = order_id
        super().__init__(operation, f"order {order_id} not found", status_code=404)


class TicketNumberGenerationError(PersistenceError):
    """Reading the highest issued ticket number failed."""


class PartialOrderError(PersistenceError):
    """An order header exists in the store without all of its lines."""

    def __init__(self, order_id: str, lines_created: int, message: str) -> None:
        self.order_id = order_id
        self.lines_created = lines_created
        super().__init__("create_order", f"order {order_id} left partially written: {message}")


class ProductNotFoundError(OrderingError):
    """No available product matched the requested id."""

    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")
