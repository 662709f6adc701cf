"""Order status tracking: progress, ETA and a polling loop."""

import asyncio
import inspect
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from .errors import PersistenceError
from .models import Order, OrderStatus, TrackingSnapshot

logger = logging.getLogger(__name__)

ORDER_PROGRESSION = [
    OrderStatus.PAID.value,
    OrderStatus.PREPARING.value,
    OrderStatus.READY.value,
    OrderStatus.COMPLETED.value,
]

# Minutes after creation
ETA_MINUTES = {
    OrderStatus.PAID.value: 25,
    OrderStatus.PREPARING.value: 15,
}

STATUS_TEXT = {
    OrderStatus.PAID.value: "Your order is confirmed.",
    OrderStatus.PREPARING.value: "Your order is being prepared.",
    OrderStatus.READY.value: "Your order is ready for pickup.",
    OrderStatus.COMPLETED.value: "Your order has been picked up.",
}

DEFAULT_POLL_INTERVAL = 10.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def step_index(status: Optional[str]) -> int:
    """Position of status in the progression, 0 when unknown."""
    try:
        return ORDER_PROGRESSION.index(status)
    except ValueError:
        return 0


def progress_percent(status: Optional[str]) -> int:
    return round(step_index(status) / (len(ORDER_PROGRESSION) - 1) * 100)


def status_text(status: Optional[str]) -> str:
    return STATUS_TEXT.get(status, "Unknown status.")


def estimate_ready_time(
    status: Optional[str], created_at: Optional[datetime], now: Optional[datetime] = None
) -> Optional[datetime]:
    """
    Estimated pickup time.

    paid: created + 25 min, preparing: created + 15 min, ready: now,
    anything else: None.
    """
    if status == OrderStatus.READY.value:
        return now or _utcnow()
    minutes = ETA_MINUTES.get(status)
    if minutes is None or created_at is None:
        return None
    return created_at + timedelta(minutes=minutes)


def describe(order: Order, now: Optional[datetime] = None) -> TrackingSnapshot:
    """Derive the tracking view of an order."""
    now = now or _utcnow()
    return TrackingSnapshot(
        order_id=order.id,
        ticket_number=order.ticket_number,
        status=order.status,
        status_text=status_text(order.status),
        step_index=step_index(order.status),
        progress_percent=progress_percent(order.status),
        estimated_ready_at=estimate_ready_time(order.status, order.created_at, now),
        ready_now=order.status == OrderStatus.READY.value,
        fetched_at=now,
    )


class OrderTracker:
    """Polls one order while tracking is active. Never writes to the store."""

    def __init__(
        self,
        store: Any,
        order_id: str,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_update: Optional[Callable[[TrackingSnapshot], Any]] = None,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            store: Object providing get_order_with_lines(order_id)
            order_id: Order to follow
            interval: Seconds between polls
            on_update: Called (or awaited) with every fresh snapshot
        """
        self.store = store
        self.order_id = order_id
        self.interval = interval
        self.on_update = on_update
        self.latest: Optional[TrackingSnapshot] = None
        self.order: Optional[Order] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> Optional[TrackingSnapshot]:
        """
        Fetch the order once and update the snapshot.

        A failed poll is logged and the previous snapshot is kept.
        """
        try:
            order = await self.store.get_order_with_lines(self.order_id)
        except PersistenceError as e:
            logger.error(f"Error loading order {self.order_id}: {e}")
            return self.latest

        self.order = order
        self.latest = describe(order)
        if self.on_update is not None:
            result = self.on_update(self.latest)
            if inspect.isawaitable(result):
                await result
        return self.latest

    async def _poll(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as e:
                # Keep polling; the next round may succeed
                logger.error(f"Tracking order {self.order_id} failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start polling in the background. Requires a running event loop."""
        if self.running:
            return
        logger.info(f"Tracking order {self.order_id} every {self.interval}s")
        self._task = asyncio.create_task(self._poll())

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Stopped tracking order {self.order_id}")

    async def __aenter__(self) -> "OrderTracker":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()
