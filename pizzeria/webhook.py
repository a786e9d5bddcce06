"""
Delivery-status webhook: the external trigger for order status changes.

Deliveries are at-least-once, so re-submitting the status an order already has is acknowledged
(only status_updated_at moves) instead of being treated as an illegal self-transition.
"""
import logging
from datetime import datetime, timezone

from pizzeria.errors import InvalidTransitionError, NotFoundError
from pizzeria.metrics import webhook_events_total
from pizzeria.models.order import OrderRepository
from pizzeria.order_state import OrderStatus
from pizzeria.schemas import DeliveryUpdateBody

logger = logging.getLogger(__name__)


def _as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


async def apply_delivery_update(orders: OrderRepository, event: DeliveryUpdateBody) -> dict:
    logger.info("Incoming webhook: order_id=%s status=%s timestamp=%s", event.order_id, event.status.value, event.timestamp)
    order = await orders.find_by_id(event.order_id)
    if order is None:
        webhook_events_total.labels(outcome="not_found").inc()
        raise NotFoundError("Order not found")

    at = _as_utc(event.timestamp)
    if order.status == event.status:
        return await _already_set(orders, order, at)

    try:
        await orders.update_status(order, event.status, at)
    except InvalidTransitionError as e:
        if e.current_status == event.status.value:
            # A concurrent delivery of the same event won the row lock.
            order.status = OrderStatus(e.current_status)
            return await _already_set(orders, order, at)
        webhook_events_total.labels(outcome="invalid_transition").inc()
        logger.warning("Webhook rejected for order %s: %s", order.id, e.message)
        raise

    webhook_events_total.labels(outcome="updated").inc()
    return {
        "message": "Webhook processed successfully",
        "orderId": order.id,
        "newStatus": order.status.value,
    }


async def _already_set(orders: OrderRepository, order, at: datetime) -> dict:
    await orders.touch_status(order, at)
    webhook_events_total.labels(outcome="already_set").inc()
    logger.info("Order %s already %s; refreshed status_updated_at", order.id, order.status.value)
    return {
        "message": "Order status already set",
        "orderId": order.id,
        "status": order.status.value,
    }
