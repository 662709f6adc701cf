"""HTTP server for cafe ordering with SSE order tracking."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, Union

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .cart import CartStore
from .config import Settings
from .errors import (
    CheckoutInProgressError,
    OptionSelectionError,
    OrderingError,
    OrderNotFoundError,
    PersistenceError,
    ProductNotFoundError,
    ValidationError,
)
from .models import OrderStatus, TrackingSnapshot
from .pricing import split_total
from .service import OrderingService
from .session import DEFAULT_SESSION_ID, SessionManager
from .supabase_client import SupabaseClient
from .tracking import OrderTracker

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cafe-order-http-server")

# Global state
settings: Settings
store: SupabaseClient
sessions: SessionManager
service: OrderingService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global settings, store, sessions, service

    # Startup
    logger.info("Starting Cafe Order HTTP Server...")
    settings = Settings.from_env()
    store = SupabaseClient(settings.supabase_url, settings.supabase_key, timeout=settings.request_timeout)
    sessions = SessionManager(settings.session_file)
    service = OrderingService(store, sessions, settings)

    yield

    # Shutdown
    logger.info("Shutting down Cafe Order HTTP Server...")
    await store.close()


app = FastAPI(
    title="Cafe Order Server",
    description="HTTP API for browsing the menu, building a cart and placing guest orders",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/Response Models
class AddToCartRequest(BaseModel):
    product_id: str
    options: dict[str, Union[str, list[str]]] = Field(default_factory=dict)


class UpdateQuantityRequest(BaseModel):
    quantity: int


class CheckoutRequest(BaseModel):
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    payment_method: Optional[str] = None


class StatusRequest(BaseModel):
    status: OrderStatus


def to_http_error(e: Exception) -> HTTPException:
    """Map ordering errors to HTTP status codes."""
    if isinstance(e, (OrderNotFoundError, ProductNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (ValidationError, OptionSelectionError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, CheckoutInProgressError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PersistenceError):
        return HTTPException(status_code=502, detail="The order service is unavailable, please retry")
    return HTTPException(status_code=500, detail=str(e))


def cart_payload(session_id: str) -> dict:
    # Reading a cart never creates one
    cart = sessions.find_cart(session_id) or CartStore()
    return {
        "items": [item.model_dump(mode="json") for item in cart.items],
        "item_count": cart.item_count,
        "totals": cart.totals().model_dump(mode="json"),
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Cafe Order Server",
        "version": "0.1.0",
        "mcp_compatible": True,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "menu": {
                "categories": "GET /categories",
                "products": "GET /categories/{category_id}/products",
                "search": "GET /products/search?q=",
                "options": "GET /products/{product_id}/options",
            },
            "cart": {
                "get": "GET /cart",
                "add": "POST /cart/items",
                "update": "PATCH /cart/items/{item_id}",
                "remove": "DELETE /cart/items/{item_id}",
                "clear": "DELETE /cart",
            },
            "orders": {
                "checkout": "POST /checkout",
                "get": "GET /orders/{order_id}",
                "tracking": "GET /orders/{order_id}/tracking",
                "events": "GET /orders/{order_id}/events (SSE)",
                "status": "PATCH /orders/{order_id}/status",
            },
        },
        "session_header": "X-Session-ID",
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "sessions": len(sessions.carts)}


# Menu endpoints
@app.get("/categories")
async def list_categories():
    """List menu categories."""
    try:
        categories = await store.list_categories()
        return {
            "count": len(categories),
            "categories": [category.model_dump(mode="json") for category in categories],
        }
    except OrderingError as e:
        raise to_http_error(e)


@app.get("/categories/{category_id}/products")
async def list_products(category_id: str):
    """List the available products of a category."""
    try:
        products = await store.list_products_by_category(category_id)
        return {
            "count": len(products),
            "products": [product.model_dump(mode="json") for product in products],
        }
    except OrderingError as e:
        raise to_http_error(e)


@app.get("/products/search")
async def search_products(q: str):
    """Search available products by name."""
    if not q.strip():
        raise HTTPException(status_code=400, detail="Query must not be empty")
    try:
        products = await store.search_products(q)
        return {
            "count": len(products),
            "products": [product.model_dump(mode="json") for product in products],
        }
    except OrderingError as e:
        raise to_http_error(e)


@app.get("/products/{product_id}/options")
async def product_options(product_id: str):
    """Option groups of a product and its price with the default selections."""
    try:
        resolver = await service.customize(product_id)
        return {
            "product": resolver.product.model_dump(mode="json", exclude={"options_config"}),
            "groups": [group.model_dump(mode="json") for group in resolver.groups],
            "default_selections": resolver.selections,
            "price": str(resolver.total_price),
        }
    except OrderingError as e:
        raise to_http_error(e)


# Cart endpoints
@app.get("/cart")
async def get_cart(x_session_id: str = Header(default=DEFAULT_SESSION_ID)):
    """Get the session's cart."""
    return cart_payload(x_session_id)


@app.post("/cart/items", status_code=201)
async def add_to_cart(request: AddToCartRequest, x_session_id: str = Header(default=DEFAULT_SESSION_ID)):
    """Add a customized product to the cart."""
    try:
        line = await service.add_to_cart(request.product_id, request.options, session_id=x_session_id)
        return {"item": line.model_dump(mode="json"), "cart": cart_payload(x_session_id)}
    except OrderingError as e:
        raise to_http_error(e)


@app.patch("/cart/items/{item_id}")
async def update_quantity(
    item_id: str, request: UpdateQuantityRequest, x_session_id: str = Header(default=DEFAULT_SESSION_ID)
):
    """Set the quantity of a cart item; values below 1 become 1."""
    cart = sessions.find_cart(x_session_id)
    if cart is None or cart.get_item(item_id) is None:
        raise HTTPException(status_code=404, detail=f"Item {item_id} is not in the cart")
    cart.update_quantity(item_id, request.quantity)
    return cart_payload(x_session_id)


@app.delete("/cart/items/{item_id}")
async def remove_from_cart(item_id: str, x_session_id: str = Header(default=DEFAULT_SESSION_ID)):
    """Remove an item; unknown ids leave the cart unchanged."""
    cart = sessions.find_cart(x_session_id)
    if cart is not None:
        cart.remove_item(item_id)
    return cart_payload(x_session_id)


@app.delete("/cart")
async def clear_cart(x_session_id: str = Header(default=DEFAULT_SESSION_ID)):
    """Empty the cart."""
    sessions.drop(x_session_id)
    return cart_payload(x_session_id)


# Order endpoints
@app.post("/checkout", status_code=201)
async def checkout(request: CheckoutRequest, x_session_id: str = Header(default=DEFAULT_SESSION_ID)):
    """Place the session's cart as a guest order."""
    try:
        order = await service.checkout(
            guest_name=request.guest_name,
            guest_phone=request.guest_phone,
            payment_method=request.payment_method,
            session_id=x_session_id,
        )
        return {"order": order.model_dump(mode="json"), "totals": split_total(order.total_price).model_dump(mode="json")}
    except OrderingError as e:
        if not isinstance(e, ValidationError):
            logger.error(f"Checkout error: {e}", exc_info=True)
        raise to_http_error(e)


@app.get("/orders/{order_id}")
async def get_order(order_id: str):
    """Get an order with its items."""
    try:
        order = await service.get_order(order_id)
        return {"order": order.model_dump(mode="json"), "totals": split_total(order.total_price).model_dump(mode="json")}
    except OrderingError as e:
        raise to_http_error(e)


@app.get("/orders/{order_id}/tracking", response_model=TrackingSnapshot)
async def track_order(order_id: str):
    """Progress and estimated pickup time of an order."""
    try:
        return await service.track(order_id)
    except OrderingError as e:
        raise to_http_error(e)


@app.patch("/orders/{order_id}/status")
async def update_order_status(order_id: str, request: StatusRequest):
    """Staff only: change the preparation status of an order."""
    try:
        order = await store.update_order_status(order_id, request.status.value)
        return {"order": order.model_dump(mode="json")}
    except OrderingError as e:
        raise to_http_error(e)


async def tracking_events(
    order_id: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    interval: float,
    ping_after: float = 30,
) -> AsyncIterator[str]:
    """
    Server-Sent Events for one order.

    An OrderTracker polls the order every interval seconds and each snapshot
    becomes a "status" event. Polling stops once the client disconnects.
    """
    queue: asyncio.Queue = asyncio.Queue()
    tracker = OrderTracker(store, order_id, interval=interval, on_update=queue.put)
    try:
        logger.info(f"SSE client connected for order {order_id}")
        async with tracker:
            while True:
                if await is_disconnected():
                    logger.info("SSE client disconnected")
                    break
                try:
                    snapshot = await asyncio.wait_for(queue.get(), timeout=ping_after)
                except asyncio.TimeoutError:
                    # Keepalive ping
                    yield ": ping\n\n"
                    continue
                yield f"event: status\ndata: {snapshot.model_dump_json()}\n\n"

    except asyncio.CancelledError:
        logger.info("SSE stream cancelled")
    except Exception as e:
        logger.error(f"SSE error: {e}", exc_info=True)


@app.get("/orders/{order_id}/events")
async def order_events(order_id: str, request: Request):
    """
    Server-Sent Events stream of tracking snapshots.

    The order is polled every CAFE_POLL_INTERVAL seconds while the client
    stays connected.
    """
    return StreamingResponse(
        tracking_events(order_id, request.is_disconnected, settings.poll_interval),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


def run_http_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the HTTP server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
