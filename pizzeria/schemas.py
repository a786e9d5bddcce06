"""
Request bodies and shared value types. Inbound payloads are normalized here, once, at the API boundary.
"""
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
)

from pizzeria.order_state import OrderStatus

CENT = Decimal("0.01")
# NUMERIC(10, 2)
MAX_MONEY = Decimal("99999999.99")

# orders.id, pizzas.id and quantities are int4 columns
MAX_INT4 = 2**31 - 1


def to_money(value) -> Decimal:
    """Decimal at currency precision. Floats go through str() so 12.99 stays 12.99."""
    try:
        if isinstance(value, Decimal):
            dec = value
        elif isinstance(value, float):
            dec = Decimal(str(value))
        else:
            dec = Decimal(value)
    except (TypeError, InvalidOperation):
        raise ValueError("must be a number") from None
    if not dec.is_finite():
        raise ValueError("must be a finite number")
    if abs(dec) > MAX_MONEY:
        raise ValueError(f"must be at most {MAX_MONEY}")
    return dec.quantize(CENT, rounding=ROUND_HALF_UP)


Money = Annotated[
    Decimal,
    BeforeValidator(to_money),
    PlainSerializer(float, return_type=float, when_used="json"),
]

OrderId = Annotated[int, Field(gt=0, le=MAX_INT4)]


class LineItem(BaseModel):
    """One pizza within an order. Name and unit price are snapshots taken when the order is placed."""

    model_config = ConfigDict(populate_by_name=True)

    pizza_id: int | None = Field(default=None, gt=0, le=MAX_INT4, validation_alias=AliasChoices("pizza_id", "id", "pizzaId"))
    name: str = Field(min_length=1, validation_alias=AliasChoices("name", "pizza_name", "pizzaName"))
    quantity: int = Field(default=1, ge=1, le=MAX_INT4)
    unit_price: Money = Field(ge=0, validation_alias=AliasChoices("unit_price", "price", "unitPrice"))
    special_instructions: str | None = Field(
        default=None, validation_alias=AliasChoices("special_instructions", "specialInstructions")
    )

    @computed_field
    @property
    def total_price(self) -> Money:
        return (self.unit_price * self.quantity).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderCreateBody(BaseModel):
    items: list[LineItem] = Field(min_length=1)
    delivery_address: str = Field(
        min_length=1, validation_alias=AliasChoices("deliveryAddress", "delivery_address")
    )
    total_amount: Money = Field(ge=0, validation_alias=AliasChoices("totalAmount", "total_amount"))
    customer_phone: str | None = Field(
        default=None, max_length=20, validation_alias=AliasChoices("customerPhone", "customer_phone")
    )
    payment_method: str | None = Field(
        default=None, max_length=50, validation_alias=AliasChoices("paymentMethod", "payment_method")
    )
    notes: str | None = None


class OrderUpdateBody(BaseModel):
    delivery_address: str | None = Field(
        default=None, min_length=1, validation_alias=AliasChoices("deliveryAddress", "delivery_address")
    )
    customer_phone: str | None = Field(
        default=None, max_length=20, validation_alias=AliasChoices("customerPhone", "customer_phone")
    )
    payment_method: str | None = Field(
        default=None, max_length=50, validation_alias=AliasChoices("paymentMethod", "payment_method")
    )
    notes: str | None = None


class StatusUpdateBody(BaseModel):
    status: OrderStatus


class DeliveryUpdateBody(BaseModel):
    order_id: OrderId = Field(validation_alias=AliasChoices("orderId", "order_id"))
    status: OrderStatus
    timestamp: datetime


class SignupBody(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    address: str | None = Field(default=None, max_length=500)
    password: str = Field(min_length=1)
    role: Literal["user", "admin"] = "user"


class LoginBody(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class PizzaCreateBody(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    ingredients: list[str] = Field(default_factory=list)
    price: Money = Field(ge=0)
    available: bool = True
    image: str | None = None
    veg: bool = False
    category: str | None = None
    description: str | None = None
