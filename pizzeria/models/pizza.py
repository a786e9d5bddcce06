import json
from dataclasses import dataclass
from datetime import datetime

import asyncpg
from pydantic import BaseModel, Field

from pizzeria.db import Database
from pizzeria.schemas import Money, to_money

SORTABLE_FIELDS = ("name", "price")


class Pizza(BaseModel):
    id: int
    name: str
    ingredients: list[str] = Field(default_factory=list)
    price: Money
    available: bool = True
    image: str | None = None
    veg: bool = False
    category: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, row: asyncpg.Record) -> "Pizza":
        data = dict(row)
        data["ingredients"] = json.loads(data.get("ingredients") or "[]")
        return cls(**data)


@dataclass
class PizzaFilter:
    available: bool | None = None
    veg: bool | None = None
    category: str | None = None

    def where(self) -> tuple[str, list]:
        conditions: list[str] = []
        params: list = []
        for column in ("available", "veg", "category"):
            value = getattr(self, column)
            if value is not None:
                params.append(value)
                conditions.append(f"{column} = ${len(params)}")
        clause = " WHERE " + " AND ".join(conditions) if conditions else ""
        return clause, params


class PizzaRepository:
    def __init__(self, db: Database):
        self.db = db

    async def create(
        self,
        name: str,
        price,
        ingredients: list[str] | None = None,
        available: bool = True,
        image: str | None = None,
        veg: bool = False,
        category: str | None = None,
        description: str | None = None,
    ) -> Pizza:
        row = await self.db.fetchrow(
            """
            INSERT INTO pizzas (name, ingredients, price, available, image, veg, category, description)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *;
            """,
            name,
            json.dumps(ingredients or []),
            to_money(price),
            available,
            image,
            veg,
            category,
            description,
        )
        return Pizza.from_record(row)

    async def find_by_id(self, pizza_id: int) -> Pizza | None:
        row = await self.db.fetchrow("SELECT * FROM pizzas WHERE id = $1;", pizza_id)
        return Pizza.from_record(row) if row else None

    async def find(
        self,
        filter: PizzaFilter | None = None,
        sort_by: str = "name",
        sort_order: str = "asc",
        page: int = 1,
        limit: int = 10,
    ) -> list[Pizza]:
        clause, params = (filter or PizzaFilter()).where()
        column = sort_by if sort_by in SORTABLE_FIELDS else "name"
        direction = "DESC" if sort_order.lower() == "desc" else "ASC"
        tiebreak = ", name ASC" if column != "name" else ""
        params.extend([limit, (page - 1) * limit])
        rows = await self.db.fetch(
            f"SELECT * FROM pizzas{clause} ORDER BY {column} {direction}{tiebreak}, id ASC "
            f"LIMIT ${len(params) - 1} OFFSET ${len(params)};",
            *params,
        )
        return [Pizza.from_record(row) for row in rows]

    async def count_documents(self, filter: PizzaFilter | None = None) -> int:
        clause, params = (filter or PizzaFilter()).where()
        return await self.db.fetchval(f"SELECT COUNT(*) FROM pizzas{clause};", *params)

    async def save(self, pizza: Pizza) -> Pizza:
        row = await self.db.fetchrow(
            """
            UPDATE pizzas
            SET name = $1, ingredients = $2, price = $3, available = $4,
                image = $5, veg = $6, category = $7, description = $8,
                updated_at = NOW()
            WHERE id = $9
            RETURNING *;
            """,
            pizza.name,
            json.dumps(pizza.ingredients),
            to_money(pizza.price),
            pizza.available,
            pizza.image,
            pizza.veg,
            pizza.category,
            pizza.description,
            pizza.id,
        )
        return Pizza.from_record(row) if row else pizza
