import logging

from fastapi import APIRouter, Depends, Path, Query

from pizzeria.deps import get_current_user, get_delivery_simulator, get_order_repository
from pizzeria.delivery import DeliverySimulator
from pizzeria.errors import ConflictError, ForbiddenError, NotFoundError
from pizzeria.metrics import orders_created_total
from pizzeria.models.order import NewOrder, Order, OrderFilter, OrderRepository
from pizzeria.models.user import User
from pizzeria.order_state import OrderStatus
from pizzeria.schemas import MAX_INT4, OrderCreateBody, OrderUpdateBody

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


async def _owned_order(order_id: int, user: User, orders: OrderRepository) -> Order:
    order = await orders.find_by_id(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Access denied")
    return order


@router.post("", status_code=201)
async def create_order(
    body: OrderCreateBody,
    user: User = Depends(get_current_user),
    orders: OrderRepository = Depends(get_order_repository),
    simulator: DeliverySimulator | None = Depends(get_delivery_simulator),
) -> Order:
    order = await orders.create(
        NewOrder(
            user_id=user.id,
            items=body.items,
            delivery_address=body.delivery_address,
            total_amount=body.total_amount,
            customer_name=user.name,
            customer_email=user.email,
            customer_phone=body.customer_phone,
            payment_method=body.payment_method,
            notes=body.notes,
        )
    )
    orders_created_total.inc()
    if simulator is not None:
        simulator.schedule(order.id)
    return order


@router.get("/mine")
async def my_orders(
    page: int = Query(default=1, ge=1, le=MAX_INT4),
    limit: int = Query(default=50, ge=1, le=100),
    user: User = Depends(get_current_user),
    orders: OrderRepository = Depends(get_order_repository),
) -> list[Order]:
    return await orders.find(OrderFilter(user_id=user.id), page=page, limit=limit, sort="-created_at")


@router.get("/{order_id}")
async def get_order(
    order_id: int = Path(gt=0, le=MAX_INT4),
    user: User = Depends(get_current_user),
    orders: OrderRepository = Depends(get_order_repository),
) -> Order:
    return await _owned_order(order_id, user, orders)


@router.patch("/{order_id}")
async def update_order(
    body: OrderUpdateBody,
    order_id: int = Path(gt=0, le=MAX_INT4),
    user: User = Depends(get_current_user),
    orders: OrderRepository = Depends(get_order_repository),
) -> Order:
    """Change delivery/payment details while the order is still pending or confirmed."""
    order = await _owned_order(order_id, user, orders)
    if not order.can_modify():
        raise ConflictError(f"Order can no longer be modified (status: {order.status.value})")
    for name, value in body.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(order, name, value)
    return await orders.save(order)


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: int = Path(gt=0, le=MAX_INT4),
    user: User = Depends(get_current_user),
    orders: OrderRepository = Depends(get_order_repository),
) -> Order:
    order = await _owned_order(order_id, user, orders)
    if not order.can_modify():
        raise ConflictError(f"Order can no longer be cancelled (status: {order.status.value})")
    order = await orders.update_status(order, OrderStatus.CANCELLED)
    logger.info("Order %s cancelled by user %s", order.id, user.id)
    return order
