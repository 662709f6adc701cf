"""Supabase (PostgREST) client for menu and order tables."""

import logging
from typing import Any, Optional, TypeVar

import httpx
import pydantic

from .errors import OrderNotFoundError, PersistenceError, TicketNumberGenerationError
from .models import Category, Order, OrderLine, Product

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


class SupabaseClient:
    """Async client for the cafe's hosted tables."""

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Supabase project URL (https://<project>.supabase.co)
            api_key: Anon or service key of the project
            timeout: Timeout in seconds applied to every request
            transport: Optional transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}{self.REST_PATH}",
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        error_cls: type[PersistenceError] = PersistenceError,
        **kwargs: Any,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty)."""
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = e.response.text[:200]
            logger.error(f"{operation}: HTTP {e.response.status_code} from {path}: {body}")
            raise error_cls(operation, f"HTTP {e.response.status_code}: {body}", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"{operation}: request to {path} failed: {e!r}")
            raise error_cls(operation, str(e) or type(e).__name__) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{operation}: invalid JSON from {path}")
            raise error_cls(operation, "invalid JSON in response") from e

    async def _insert(self, operation: str, table: str, fields: dict[str, Any]) -> dict[str, Any]:
        rows = await self._request(
            operation,
            "POST",
            f"/{table}",
            json=fields,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise PersistenceError(operation, f"insert into {table} returned no row")
        return rows[0]

    def _parse(self, operation: str, model: type[ModelT], rows: Any) -> list[ModelT]:
        """Validate rows into models; a malformed row is a store failure, not a crash."""
        try:
            return [model.model_validate(row) for row in rows or []]
        except pydantic.ValidationError as e:
            logger.error(f"{operation}: unexpected {model.__name__} row: {e}")
            raise PersistenceError(operation, f"malformed {model.__name__} row: {e.errors()[0]['msg']}") from e

    async def list_categories(self) -> list[Category]:
        """All categories ordered by sort_order."""
        rows = await self._request(
            "list_categories",
            "GET",
            "/categories",
            params={"select": "*", "order": "sort_order.asc"},
        )
        return self._parse("list_categories", Category, rows)

    async def get_category(self, category_id: str) -> Optional[Category]:
        rows = await self._request(
            "get_category",
            "GET",
            "/categories",
            params={"select": "*", "id": f"eq.{category_id}", "limit": "1"},
        )
        return self._parse("get_category", Category, rows[:1])[0] if rows else None

    async def list_products_by_category(self, category_id: str) -> list[Product]:
        """Available products of a category ordered by name."""
        rows = await self._request(
            "list_products_by_category",
            "GET",
            "/products",
            params={
                "select": "*",
                "category_id": f"eq.{category_id}",
                "is_available": "eq.true",
                "order": "name.asc",
            },
        )
        return self._parse("list_products_by_category", Product, rows)

    async def list_available_products(self) -> list[Product]:
        rows = await self._request(
            "list_available_products",
            "GET",
            "/products",
            params={"select": "*", "is_available": "eq.true", "order": "name.asc"},
        )
        return self._parse("list_available_products", Product, rows)

    async def search_products(self, term: str) -> list[Product]:
        """Available products whose name contains term (case-insensitive)."""
        # PostgREST uses * as the LIKE wildcard in query strings
        pattern = term.replace("*", "").strip()
        rows = await self._request(
            "search_products",
            "GET",
            "/products",
            params={
                "select": "*",
                "is_available": "eq.true",
                "name": f"ilike.*{pattern}*",
                "order": "name.asc",
            },
        )
        return self._parse("search_products", Product, rows)

    async def get_product(self, product_id: str) -> Optional[Product]:
        rows = await self._request(
            "get_product",
            "GET",
            "/products",
            params={"select": "*", "id": f"eq.{product_id}", "limit": "1"},
        )
        return self._parse("get_product", Product, rows[:1])[0] if rows else None

    async def get_max_issued_ticket_number(self) -> Optional[int]:
        """
        Highest ticket number issued so far, None when there are no orders.

        Raises:
            TicketNumberGenerationError: If the store cannot be queried or returns
                an unreadable ticket number
        """
        rows = await self._request(
            "get_max_issued_ticket_number",
            "GET",
            "/orders",
            error_cls=TicketNumberGenerationError,
            params={
                "select": "ticket_number",
                "ticket_number": "not.is.null",
                "order": "ticket_number.desc",
                "limit": "1",
            },
        )
        if not rows:
            return None
        try:
            return int(rows[0]["ticket_number"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"get_max_issued_ticket_number: unexpected row {rows[0]!r}")
            raise TicketNumberGenerationError(
                "get_max_issued_ticket_number", f"malformed ticket row: {e!r}"
            ) from e

    async def create_order(self, fields: dict[str, Any]) -> Order:
        row = await self._insert("create_order", "orders", fields)
        order = self._parse("create_order", Order, [row])[0]
        logger.info(f"Created order {order.id} (ticket #{order.ticket_number})")
        return order

    async def create_order_line(self, fields: dict[str, Any]) -> OrderLine:
        row = await self._insert("create_order_line", "order_items", fields)
        return self._parse("create_order_line", OrderLine, [row])[0]

    async def delete_order(self, order_id: str) -> None:
        """Delete an order header and its lines."""
        await self._request(
            "delete_order", "DELETE", "/order_items", params={"order_id": f"eq.{order_id}"}
        )
        await self._request("delete_order", "DELETE", "/orders", params={"id": f"eq.{order_id}"})
        logger.info(f"Deleted order {order_id}")

    async def get_order_with_lines(self, order_id: str) -> Order:
        """
        Fetch an order with its lines.

        Raises:
            OrderNotFoundError: If no order has this id
        """
        rows = await self._request(
            "get_order_with_lines",
            "GET",
            "/orders",
            params={"select": "*,order_items(*)", "id": f"eq.{order_id}", "limit": "1"},
        )
        if not rows:
            raise OrderNotFoundError(order_id)
        return self._parse("get_order_with_lines", Order, rows[:1])[0]

    async def list_customer_orders(self, customer_id: str) -> list[Order]:
        """Orders of a registered customer, newest first."""
        rows = await self._request(
            "list_customer_orders",
            "GET",
            "/orders",
            params={
                "select": "*,order_items(*)",
                "customer_id": f"eq.{customer_id}",
                "order": "created_at.desc",
            },
        )
        return self._parse("list_customer_orders", Order, rows)

    async def update_order_status(self, order_id: str, status: str) -> Order:
        rows = await self._request(
            "update_order_status",
            "PATCH",
            "/orders",
            params={"id": f"eq.{order_id}"},
            json={"status": status},
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise OrderNotFoundError(order_id, operation="update_order_status")
        logger.info(f"Order {order_id} status set to {status}")
        return self._parse("update_order_status", Order, rows[:1])[0]

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
