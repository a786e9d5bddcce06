"""
FastAPI dependencies: the persistence context and repositories built on it, the delivery simulator,
and the bearer-token / admin guards.
"""
from fastapi import Depends, Header, Request

from pizzeria.db import Database
from pizzeria.delivery import DeliverySimulator
from pizzeria.errors import ForbiddenError, UnauthorizedError
from pizzeria.models.order import OrderRepository
from pizzeria.models.pizza import PizzaRepository
from pizzeria.models.user import User, UserRepository
from pizzeria.security import bearer_token, decode_token


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_order_repository(db: Database = Depends(get_db)) -> OrderRepository:
    return OrderRepository(db)


def get_pizza_repository(db: Database = Depends(get_db)) -> PizzaRepository:
    return PizzaRepository(db)


def get_user_repository(db: Database = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_delivery_simulator(request: Request) -> DeliverySimulator | None:
    return getattr(request.app.state, "delivery_simulator", None)


async def get_current_user(
    authorization: str | None = Header(default=None),
    users: UserRepository = Depends(get_user_repository),
) -> User:
    user_id = decode_token(bearer_token(authorization))
    user = await users.find_by_id(user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return user


async def get_admin_user(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
