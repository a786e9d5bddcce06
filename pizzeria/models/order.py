"""
Order entity and its Postgres persistence adapter.

An order is written header-first then line items, in one transaction on a dedicated connection, so readers
never observe a header without its items. Status changes go through OrderRepository.update_status, which
locks the row and checks the transition against the stored status. save() writes the other header fields and
refuses to apply if the stored status moved since the order was loaded.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

import asyncpg
from pydantic import BaseModel, Field, computed_field

from pizzeria.db import Database
from pizzeria.errors import InvalidTransitionError, NotFoundError, OrderCreationError, StaleOrderError, ValidationError
from pizzeria.models.user import User, UserRepository
from pizzeria.order_state import OrderStatus, can_modify, is_valid_transition
from pizzeria.schemas import LineItem, Money, to_money

logger = logging.getLogger(__name__)

BASE_DELIVERY_MINUTES = 20
PER_PIZZA_MINUTES = 5

SORTABLE_FIELDS = frozenset({"id", "created_at", "updated_at", "status", "total_amount", "payment_status"})

HEADER_FIELDS = (
    "id",
    "user_id",
    "customer_name",
    "customer_email",
    "customer_phone",
    "delivery_address",
    "total_amount",
    "status",
    "payment_method",
    "payment_status",
    "notes",
    "status_updated_at",
    "created_at",
    "updated_at",
)


class Order(BaseModel):
    id: int
    user_id: int | None = None
    items: list[LineItem] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    delivery_address: str
    total_amount: Money
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    payment_method: str | None = None
    payment_status: str | None = "pending"
    notes: str | None = None
    status_updated_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user: User | None = None

    @classmethod
    def from_record(cls, row: asyncpg.Record, items: list[LineItem] | None = None) -> "Order":
        data = {name: row[name] for name in HEADER_FIELDS}
        return cls(items=items or [], **data)

    def apply_record(self, row: asyncpg.Record) -> None:
        """Refresh header fields from a RETURNING * row; items are immutable after creation."""
        fresh = Order.from_record(row, self.items)
        for name in HEADER_FIELDS:
            setattr(self, name, getattr(fresh, name))

    def can_modify(self) -> bool:
        return can_modify(self.status)

    @computed_field
    @property
    def estimated_delivery_at(self) -> datetime | None:
        if self.created_at is None:
            return None
        pizzas = sum(item.quantity for item in self.items)
        return self.created_at + timedelta(minutes=BASE_DELIVERY_MINUTES + PER_PIZZA_MINUTES * pizzas)


@dataclass
class NewOrder:
    user_id: int | None
    items: list[LineItem]
    delivery_address: str
    total_amount: Decimal | None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    payment_method: str | None = None
    notes: str | None = None


@dataclass
class OrderFilter:
    user_id: int | None = None
    status: str | None = None
    payment_status: str | None = None

    def where(self) -> tuple[str, list]:
        conditions: list[str] = []
        params: list = []
        for column in ("user_id", "status", "payment_status"):
            value = getattr(self, column)
            if value is None:
                continue
            if isinstance(value, OrderStatus):
                value = value.value
            params.append(value)
            conditions.append(f"{column} = ${len(params)}")
        clause = " WHERE " + " AND ".join(conditions) if conditions else ""
        return clause, params


def parse_sort(sort: str) -> list[tuple[str, str]]:
    """'-created_at' or 'status,created_at DESC' -> [(column, direction), ...] over whitelisted columns."""
    keys: list[tuple[str, str]] = []
    for token in (t.strip() for t in sort.split(",")):
        if not token:
            continue
        direction = "ASC"
        if token.startswith("-"):
            token, direction = token[1:], "DESC"
        parts = token.split()
        if len(parts) == 2 and parts[1].upper() in ("ASC", "DESC"):
            token, direction = parts[0], parts[1].upper()
        if token not in SORTABLE_FIELDS:
            raise ValidationError(f"Unsupported sort field: {token}")
        keys.append((token, direction))
    if not keys:
        keys.append(("created_at", "DESC"))
    if all(column != "id" for column, _ in keys):
        keys.append(("id", keys[-1][1]))
    return keys


def validate_new_order(data: NewOrder) -> None:
    missing = []
    if not data.items:
        missing.append("items")
    if not (data.delivery_address or "").strip():
        missing.append("deliveryAddress")
    if data.total_amount is None:
        missing.append("totalAmount")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    expected = sum((item.total_price for item in data.items), Decimal("0"))
    total = to_money(data.total_amount)
    if total != expected:
        raise ValidationError(f"totalAmount {total} does not match sum of items {expected}")


class OrderRepository:
    def __init__(self, db: Database):
        self.db = db

    async def create(self, data: NewOrder) -> Order:
        validate_new_order(data)
        try:
            async with self.db.transaction() as conn:
                order_id = await conn.fetchval(
                    """
                    INSERT INTO orders (
                        user_id, status, delivery_address, total_amount,
                        customer_name, customer_email, customer_phone,
                        payment_method, payment_status, notes, status_updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, 'pending', $9, NOW())
                    RETURNING id;
                    """,
                    data.user_id,
                    OrderStatus.PENDING.value,
                    data.delivery_address.strip(),
                    to_money(data.total_amount),
                    data.customer_name,
                    data.customer_email,
                    data.customer_phone,
                    data.payment_method,
                    data.notes,
                )
                for item in data.items:
                    await conn.execute(
                        """
                        INSERT INTO order_items (
                            order_id, pizza_id, pizza_name, quantity,
                            unit_price, total_price, special_instructions
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7);
                        """,
                        order_id,
                        item.pizza_id,
                        item.name,
                        item.quantity,
                        item.unit_price,
                        item.total_price,
                        item.special_instructions,
                    )
        except asyncpg.PostgresError as e:
            logger.exception("Create order rolled back for user_id=%s: %s", data.user_id, e)
            raise OrderCreationError() from e

        logger.info("Created order id=%s user_id=%s items=%d", order_id, data.user_id, len(data.items))
        order = await self.find_by_id(order_id)
        if order is None:
            raise OrderCreationError()
        return order

    async def find_by_id(self, order_id: int) -> Order | None:
        row = await self.db.fetchrow("SELECT * FROM orders WHERE id = $1;", order_id)
        if row is None:
            return None
        items = await self._load_items([order_id])
        return Order.from_record(row, items.get(order_id, []))

    async def find(
        self,
        filter: OrderFilter | None = None,
        page: int = 1,
        limit: int = 10,
        sort: str = "-created_at",
    ) -> list[Order]:
        clause, params = (filter or OrderFilter()).where()
        order_by = ", ".join(f"{column} {direction}" for column, direction in parse_sort(sort))
        page = max(page, 1)
        params.extend([limit, (page - 1) * limit])
        rows = await self.db.fetch(
            f"SELECT * FROM orders{clause} ORDER BY {order_by} "
            f"LIMIT ${len(params) - 1} OFFSET ${len(params)};",
            *params,
        )
        items = await self._load_items([row["id"] for row in rows])
        return [Order.from_record(row, items.get(row["id"], [])) for row in rows]

    async def count_documents(self, filter: OrderFilter | None = None) -> int:
        clause, params = (filter or OrderFilter()).where()
        return await self.db.fetchval(f"SELECT COUNT(*) FROM orders{clause};", *params)

    async def update_status(self, order: Order, new_status: str | OrderStatus, at: datetime | None = None) -> Order:
        new_status = OrderStatus(new_status)
        if not is_valid_transition(order.status, new_status):
            raise InvalidTransitionError(OrderStatus(order.status).value, new_status.value)

        async with self.db.transaction() as conn:
            current = await conn.fetchval("SELECT status FROM orders WHERE id = $1 FOR UPDATE;", order.id)
            if current is None:
                raise NotFoundError("Order not found")
            if not is_valid_transition(current, new_status):
                raise InvalidTransitionError(current, new_status.value)
            row = await conn.fetchrow(
                """
                UPDATE orders
                SET status = $1, status_updated_at = COALESCE($2, NOW()), updated_at = NOW()
                WHERE id = $3
                RETURNING *;
                """,
                new_status.value,
                at,
                order.id,
            )
        order.apply_record(row)
        logger.info("Order id=%s status %s -> %s", order.id, current, new_status.value)
        return order

    async def touch_status(self, order: Order, at: datetime | None = None) -> Order:
        """Re-confirm the current status: only status_updated_at changes."""
        row = await self.db.fetchrow(
            "UPDATE orders SET status_updated_at = COALESCE($2, NOW()) WHERE id = $1 RETURNING *;",
            order.id,
            at,
        )
        if row is None:
            raise NotFoundError("Order not found")
        order.apply_record(row)
        return order

    async def save(self, order: Order) -> Order:
        """
        Write the mutable header fields back. Status is not written here; the update only applies while the
        stored status still equals order.status, so a transition made since the order was loaded is never undone.
        """
        row = await self.db.fetchrow(
            """
            UPDATE orders
            SET delivery_address = $1, total_amount = $2,
                customer_name = $3, customer_email = $4, customer_phone = $5,
                payment_method = $6, payment_status = $7, notes = $8,
                updated_at = NOW()
            WHERE id = $9 AND status = $10
            RETURNING *;
            """,
            order.delivery_address,
            to_money(order.total_amount),
            order.customer_name,
            order.customer_email,
            order.customer_phone,
            order.payment_method,
            order.payment_status,
            order.notes,
            order.id,
            OrderStatus(order.status).value,
        )
        if row is None:
            current = await self.db.fetchval("SELECT status FROM orders WHERE id = $1;", order.id)
            if current is None:
                raise NotFoundError("Order not found")
            raise StaleOrderError(OrderStatus(order.status).value, current)
        order.apply_record(row)
        return order

    async def populate_users(self, orders: list[Order], users: UserRepository) -> list[Order]:
        """Attach the owning user to each order (one query for the whole page)."""
        users_by_id = await users.find_by_ids(o.user_id for o in orders if o.user_id is not None)
        for order in orders:
            order.user = users_by_id.get(order.user_id)
        return orders

    async def _load_items(self, order_ids: list[int]) -> dict[int, list[LineItem]]:
        if not order_ids:
            return {}
        rows = await self.db.fetch(
            "SELECT * FROM order_items WHERE order_id = ANY($1::int[]) ORDER BY order_id, id;",
            order_ids,
        )
        items: dict[int, list[LineItem]] = {}
        for row in rows:
            items.setdefault(row["order_id"], []).append(
                LineItem(
                    pizza_id=row["pizza_id"],
                    name=row["pizza_name"],
                    quantity=row["quantity"],
                    unit_price=row["unit_price"],
                    special_instructions=row["special_instructions"],
                )
            )
        return items
