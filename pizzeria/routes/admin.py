import logging

from fastapi import APIRouter, Depends, Path, Query

from pizzeria.deps import get_admin_user, get_order_repository, get_user_repository
from pizzeria.errors import NotFoundError
from pizzeria.models.order import Order, OrderFilter, OrderRepository
from pizzeria.models.user import User, UserRepository
from pizzeria.order_state import OrderStatus
from pizzeria.schemas import MAX_INT4, StatusUpdateBody

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/orders")
async def all_orders(
    status: OrderStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1, le=MAX_INT4),
    limit: int = Query(default=100, ge=1, le=500),
    _admin: User = Depends(get_admin_user),
    orders: OrderRepository = Depends(get_order_repository),
    users: UserRepository = Depends(get_user_repository),
) -> list[Order]:
    """
    Every order with its owning user populated, grouped by status and newest first within a status.
    """
    rows = await orders.find(OrderFilter(status=status), page=page, limit=limit, sort="status,-created_at")
    return await orders.populate_users(rows, users)


@router.patch("/orders/{order_id}/status")
async def set_order_status(
    body: StatusUpdateBody,
    order_id: int = Path(gt=0, le=MAX_INT4),
    admin: User = Depends(get_admin_user),
    orders: OrderRepository = Depends(get_order_repository),
) -> Order:
    """Move an order along the status table; illegal transitions -> 409 and nothing changes."""
    order = await orders.find_by_id(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    order = await orders.update_status(order, body.status)
    logger.info("Admin %s set order %s to %s", admin.id, order.id, order.status.value)
    return order
