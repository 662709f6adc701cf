"""MCP Server for cafe ordering."""

import asyncio
import json
import logging
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from .config import Settings
from .customization import CustomizationResolver
from .errors import OrderingError
from .models import CartLineItem, Order, OrderStatus, TrackingSnapshot
from .pricing import split_total
from .service import OrderingService
from .session import SessionManager
from .supabase_client import SupabaseClient

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cafe-order-mcp-server")

# Initialize server
app = Server("cafe-order-mcp-server")

# Global state
store: SupabaseClient
sessions: SessionManager
service: OrderingService


def format_customization(customization: dict[str, Any]) -> str:
    parts = []
    for title, chosen in customization.items():
        if isinstance(chosen, list):
            if chosen:
                parts.append(f"{title}: {', '.join(chosen)}")
        else:
            parts.append(f"{title}: {chosen}")
    return "; ".join(parts)


def format_cart_line(index: int, item: CartLineItem) -> list[str]:
    lines = [f"\n{index}. {item.product_name}"]
    lines.append(f"   Item ID: {item.id}")
    options = format_customization(item.customization)
    if options:
        lines.append(f"   Options: {options}")
    lines.append(f"   Price: €{item.unit_price}")
    lines.append(f"   Quantity: {item.quantity}")
    lines.append(f"   Subtotal: €{item.unit_price * item.quantity}")
    return lines


def format_options(resolver: CustomizationResolver) -> str:
    product = resolver.product
    result_lines = [f"{product.name} (ID: {product.id})", f"Base price: €{resolver.base_price}"]
    if not resolver.groups:
        result_lines.append("\nThis product has no options.")
    for group in resolver.groups:
        kind = "choose one" if group.type == "radio" else "choose any"
        required = ", required" if group.required else ""
        result_lines.append(f"\n{group.title} ({kind}{required}):")
        for value in group.values:
            extra = f" (+€{value.price_extra})" if value.price_extra else ""
            result_lines.append(f"   - {value.label}{extra}")
    result_lines.append(f"\nPrice with default options: €{resolver.total_price}")
    return "\n".join(result_lines)


def format_order(order: Order) -> str:
    totals = split_total(order.total_price)
    result_lines = [f"Order #{order.ticket_number}"]
    result_lines.append(f"Order ID: {order.id}")
    result_lines.append(f"Status: {order.status}")
    if order.created_at:
        result_lines.append(f"Date: {order.created_at.strftime('%Y-%m-%d %H:%M')}")
    if order.guest_name:
        result_lines.append(f"Guest: {order.guest_name} ({order.guest_phone})")
    if order.payment_method:
        result_lines.append(f"Payment: {order.payment_method}")

    if order.lines:
        result_lines.append(f"\nItems ({len(order.lines)}):")
        for i, line in enumerate(order.lines, 1):
            result_lines.append(f"\n{i}. Product {line.product_id} x{line.quantity} (€{line.unit_price} each)")
            if line.selected_options:
                result_lines.append(f"   Options: {format_customization(line.selected_options)}")

    result_lines.append(f"\nSubtotal: €{totals.subtotal}")
    result_lines.append(f"VAT (20%): €{totals.tax}")
    result_lines.append(f"Total: €{totals.total}")
    return "\n".join(result_lines)


def format_tracking(snapshot: TrackingSnapshot) -> str:
    result_lines = [f"Order #{snapshot.ticket_number}: {snapshot.status_text}"]
    result_lines.append(f"Status: {snapshot.status} (step {snapshot.step_index + 1}/4, {snapshot.progress_percent}%)")
    if snapshot.ready_now:
        result_lines.append("Estimated ready: NOW")
    elif snapshot.estimated_ready_at:
        result_lines.append(f"Estimated ready: {snapshot.estimated_ready_at.strftime('%H:%M')}")
    else:
        result_lines.append("Estimated ready: --:--")
    return "\n".join(result_lines)


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri=AnyUrl("cafe://menu"),
            name="Menu",
            mimeType="application/json",
            description="Menu categories",
        ),
        Resource(
            uri=AnyUrl("cafe://cart"),
            name="Cart",
            mimeType="application/json",
            description="Current cart contents",
        ),
    ]


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "cafe://cart":
        return sessions.cart().state.model_dump_json(indent=2)

    elif uri_str == "cafe://menu":
        categories = await store.list_categories()
        return json.dumps([category.model_dump() for category in categories], indent=2, default=str)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="cafe_list_categories",
            description="List menu categories",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="cafe_list_products",
            description="List available products of a menu category",
            inputSchema={
                "type": "object",
                "properties": {
                    "category_id": {"type": "string", "description": "Category ID from cafe_list_categories"},
                },
                "required": ["category_id"],
            },
        ),
        Tool(
            name="cafe_search_products",
            description="Search available products by name",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Part of the product name"},
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="cafe_get_product_options",
            description="Show the customization options of a product and their extra prices",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID"},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="cafe_add_to_cart",
            description="Add a customized product to the cart. Options not given keep their defaults.",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID"},
                    "options": {
                        "type": "object",
                        "description": "Option group title -> chosen label (single choice) or list of labels (multiple choice)",
                        "additionalProperties": {
                            "anyOf": [
                                {"type": "string"},
                                {"type": "array", "items": {"type": "string"}},
                            ]
                        },
                    },
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="cafe_get_cart",
            description="Show the cart with subtotal, VAT and total",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="cafe_update_cart_quantity",
            description="Set the quantity of a cart item (minimum 1)",
            inputSchema={
                "type": "object",
                "properties": {
                    "item_id": {"type": "string", "description": "Cart item ID from cafe_get_cart"},
                    "quantity": {"type": "integer", "description": "New quantity"},
                },
                "required": ["item_id", "quantity"],
            },
        ),
        Tool(
            name="cafe_remove_from_cart",
            description="Remove an item from the cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "item_id": {"type": "string", "description": "Cart item ID from cafe_get_cart"},
                },
                "required": ["item_id"],
            },
        ),
        Tool(
            name="cafe_clear_cart",
            description="Remove every item from the cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="cafe_checkout",
            description="Place the cart as a guest order. Name and phone default to the last ones used here.",
            inputSchema={
                "type": "object",
                "properties": {
                    "guest_name": {"type": "string", "description": "Guest name"},
                    "guest_phone": {"type": "string", "description": "Guest phone number (at least 10 characters)"},
                    "payment_method": {
                        "type": "string",
                        "description": "Payment method (credit_card or mobile)",
                        "enum": ["credit_card", "mobile"],
                    },
                },
            },
        ),
        Tool(
            name="cafe_get_order",
            description="Show an order with its items",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "string", "description": "Order ID"},
                },
                "required": ["order_id"],
            },
        ),
        Tool(
            name="cafe_track_order",
            description="Show preparation progress and estimated pickup time of an order",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "string", "description": "Order ID (defaults to the last order placed)"},
                },
            },
        ),
        Tool(
            name="cafe_update_order_status",
            description="Staff only: move an order to another preparation status",
            inputSchema={
                "type": "object",
                "properties": {
                    "order_id": {"type": "string", "description": "Order ID"},
                    "status": {
                        "type": "string",
                        "enum": [status.value for status in OrderStatus],
                    },
                },
                "required": ["order_id", "status"],
            },
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "cafe_list_categories":
            categories = await store.list_categories()

            if not categories:
                return [TextContent(type="text", text="No categories found")]

            result_lines = [f"Found {len(categories)} category(ies):\n"]
            for i, category in enumerate(categories, 1):
                result_lines.append(f"\n{i}. {category.name}")
                result_lines.append(f"   ID: {category.id}")
                if category.description:
                    result_lines.append(f"   {category.description}")

            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name in ("cafe_list_products", "cafe_search_products"):
            if name == "cafe_list_products":
                products = await store.list_products_by_category(arguments["category_id"])
                empty_text = f"No available products in category {arguments['category_id']}"
            else:
                products = await store.search_products(arguments["query"])
                empty_text = f"No products found for: {arguments['query']}"

            if not products:
                return [TextContent(type="text", text=empty_text)]

            result_lines = [f"Found {len(products)} product(s):\n"]
            for i, product in enumerate(products, 1):
                result_lines.append(f"\n{i}. {product.name}")
                result_lines.append(f"   ID: {product.id}")
                result_lines.append(f"   Price: €{product.price}")
                if product.description:
                    result_lines.append(f"   {product.description}")

            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "cafe_get_product_options":
            resolver = await service.customize(arguments["product_id"])
            return [TextContent(type="text", text=format_options(resolver))]

        elif name == "cafe_add_to_cart":
            line = await service.add_to_cart(arguments["product_id"], arguments.get("options"))
            cart = sessions.cart()
            return [
                TextContent(
                    type="text",
                    text=f"Added {line.product_name} (€{line.unit_price}) to cart as item {line.id}\n"
                    f"Cart now has {cart.item_count} item(s)",
                )
            ]

        elif name == "cafe_get_cart":
            cart = sessions.cart()

            if cart.is_empty:
                return [TextContent(type="text", text="Your cart is empty")]

            result_lines = [f"Cart ({cart.item_count} items):"]
            for i, item in enumerate(cart.items, 1):
                result_lines.extend(format_cart_line(i, item))

            totals = cart.totals()
            result_lines.append(f"\n{'='*50}")
            result_lines.append(f"Subtotal: €{totals.subtotal}")
            result_lines.append(f"VAT (20%): €{totals.tax}")
            result_lines.append(f"Total: €{totals.total}")

            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "cafe_update_cart_quantity":
            cart = sessions.cart()
            item_id = arguments["item_id"]
            if cart.get_item(item_id) is None:
                return [TextContent(type="text", text=f"Item {item_id} is not in the cart")]

            cart.update_quantity(item_id, int(arguments["quantity"]))
            item = cart.get_item(item_id)
            return [
                TextContent(
                    type="text",
                    text=f"Updated {item.product_name} to quantity {item.quantity}",
                )
            ]

        elif name == "cafe_remove_from_cart":
            cart = sessions.cart()
            item_id = arguments["item_id"]
            item = cart.get_item(item_id)
            if item is None:
                return [TextContent(type="text", text=f"Item {item_id} is not in the cart")]

            cart.remove_item(item_id)
            return [TextContent(type="text", text=f"Removed {item.product_name} from cart")]

        elif name == "cafe_clear_cart":
            sessions.cart().clear()
            return [TextContent(type="text", text="Cart cleared")]

        elif name == "cafe_checkout":
            order = await service.checkout(
                guest_name=arguments.get("guest_name"),
                guest_phone=arguments.get("guest_phone"),
                payment_method=arguments.get("payment_method"),
                use_profile=True,
            )
            return [
                TextContent(
                    type="text",
                    text=f"✅ Order #{order.ticket_number} confirmed!\n"
                    f"Order ID: {order.id}\n"
                    f"Total: €{order.total_price}",
                )
            ]

        elif name == "cafe_get_order":
            order = await service.get_order(arguments["order_id"])
            return [TextContent(type="text", text=format_order(order))]

        elif name == "cafe_track_order":
            order_id = arguments.get("order_id")
            if not order_id:
                recent = sessions.profile.recent_order_ids
                if not recent:
                    return [TextContent(type="text", text="No order to track. Provide an order_id.")]
                order_id = recent[0]

            snapshot = await service.track(order_id)
            return [TextContent(type="text", text=format_tracking(snapshot))]

        elif name == "cafe_update_order_status":
            status = OrderStatus(arguments["status"])
            order = await store.update_order_status(arguments["order_id"], status.value)
            return [
                TextContent(
                    type="text",
                    text=f"Order #{order.ticket_number} is now {order.status}",
                )
            ]

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except OrderingError as e:
        logger.warning(f"Tool {name} rejected: {e}")
        return [TextContent(type="text", text=f"Error: {e}")]
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return [
            TextContent(
                type="text",
                text=f"Error: {str(e)}",
            )
        ]


async def main() -> None:
    """Main entry point for the MCP server."""
    global store, sessions, service

    settings = Settings.from_env()
    store = SupabaseClient(settings.supabase_url, settings.supabase_key, timeout=settings.request_timeout)
    sessions = SessionManager(settings.session_file)
    service = OrderingService(store, sessions, settings)

    if sessions.profile.name:
        logger.info(f"Remembered guest: {sessions.profile.name}")

    logger.info("Starting Cafe Order MCP Server...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
