from datetime import datetime
from typing import Iterable, Literal

import asyncpg
from pydantic import BaseModel, Field

from pizzeria.db import Database
from pizzeria.errors import ValidationError


class User(BaseModel):
    id: int
    name: str
    email: str
    address: str | None = None
    password: str = Field(default="", exclude=True, repr=False)
    role: Literal["user", "admin"] = "user"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_record(cls, row: asyncpg.Record) -> "User":
        return cls(**dict(row))


class UserRepository:
    def __init__(self, db: Database):
        self.db = db

    async def create(self, name: str, email: str, password_hash: str, address: str | None = None, role: str = "user") -> User:
        try:
            row = await self.db.fetchrow(
                """
                INSERT INTO users (name, email, address, password, role)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *;
                """,
                name,
                email,
                address,
                password_hash,
                role,
            )
        except asyncpg.UniqueViolationError:
            raise ValidationError("Email already in use.")
        return User.from_record(row)

    async def find_by_email(self, email: str) -> User | None:
        row = await self.db.fetchrow("SELECT * FROM users WHERE email = $1;", email)
        return User.from_record(row) if row else None

    async def find_by_id(self, user_id: int) -> User | None:
        row = await self.db.fetchrow("SELECT * FROM users WHERE id = $1;", user_id)
        return User.from_record(row) if row else None

    async def find_by_ids(self, user_ids: Iterable[int]) -> dict[int, User]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        rows = await self.db.fetch("SELECT * FROM users WHERE id = ANY($1::int[]);", ids)
        return {row["id"]: User.from_record(row) for row in rows}
