"""
Async Postgres persistence context: one asyncpg pool per process, created on startup and closed on shutdown.
Models receive a Database and acquire a pooled connection per operation (or a dedicated one for a transaction).
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

from pizzeria.config import settings

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        email VARCHAR(255) UNIQUE NOT NULL,
        address VARCHAR(500),
        password VARCHAR(255) NOT NULL,
        role VARCHAR(50) NOT NULL DEFAULT 'user',
        created_at TIMESTAMPTZ DEFAULT NOW(),
        updated_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS pizzas (
        id SERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        ingredients TEXT DEFAULT '[]',
        price NUMERIC(10, 2) NOT NULL,
        available BOOLEAN DEFAULT TRUE,
        image VARCHAR(500),
        veg BOOLEAN DEFAULT FALSE,
        category VARCHAR(100),
        description TEXT,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        updated_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id SERIAL PRIMARY KEY,
        user_id INTEGER REFERENCES users(id) ON DELETE CASCADE,
        customer_name VARCHAR(255),
        customer_email VARCHAR(255),
        customer_phone VARCHAR(20),
        delivery_address TEXT NOT NULL,
        total_amount NUMERIC(10, 2) NOT NULL,
        status VARCHAR(50) NOT NULL DEFAULT 'pending',
        payment_method VARCHAR(50),
        payment_status VARCHAR(50) DEFAULT 'pending',
        notes TEXT,
        status_updated_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        updated_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS order_items (
        id SERIAL PRIMARY KEY,
        order_id INTEGER NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
        pizza_id INTEGER,
        pizza_name VARCHAR(255) NOT NULL,
        quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity >= 1),
        unit_price NUMERIC(10, 2) NOT NULL,
        total_price NUMERIC(10, 2) NOT NULL,
        special_instructions TEXT,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_user_id ON orders(user_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id);",
    "CREATE INDEX IF NOT EXISTS idx_pizzas_category ON pizzas(category);",
    "CREATE INDEX IF NOT EXISTS idx_pizzas_available ON pizzas(available);",
    "CREATE INDEX IF NOT EXISTS idx_pizzas_veg ON pizzas(veg);",
)


class Database:
    """Owns the asyncpg pool. Lifecycle: connect() on process start, close() on shutdown."""

    def __init__(
        self,
        dsn: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: int | None = None,
    ):
        self.dsn = dsn or settings.database_url
        self.min_size = min_size if min_size is not None else settings.db_pool_min_size
        self.max_size = max_size if max_size is not None else settings.db_pool_max_size
        self.command_timeout = command_timeout if command_timeout is not None else settings.db_command_timeout
        self._pool: asyncpg.Pool | None = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database is not connected")
        return self._pool

    async def connect(self) -> "Database":
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
            )
            logger.info("PostgreSQL pool ready (min=%d, max=%d)", self.min_size, self.max_size)
        return self

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("PostgreSQL pool closed")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Dedicated connection + transaction; rolls back if the block raises."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def init_schema(self) -> None:
        async with self.pool.acquire() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
        logger.info("Schema ready")

    async def drop_schema(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("DROP TABLE IF EXISTS order_items, orders, pizzas, users CASCADE;")
