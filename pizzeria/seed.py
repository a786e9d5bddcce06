"""
Create the schema and seed demo data: an admin, a regular user and a pizza catalogue.
Idempotent: existing users are left alone and pizzas are only added to an empty catalogue.
Run: python -m pizzeria.seed
"""
import asyncio
import logging
import random
import sys
from decimal import Decimal

from pizzeria.db import Database
from pizzeria.models.pizza import PizzaRepository
from pizzeria.models.user import UserRepository
from pizzeria.security import hash_password

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"
DEMO_USERS = (
    ("Admin User", "admin@admin.com", "123 Admin Street", "admin"),
    ("Regular User", "user@user.com", "456 User Avenue", "user"),
)
PIZZA_COUNT = 50
PIZZA_NAMES = (
    "Margherita", "Pepperoni", "Hawaiian", "Veggie Delight", "BBQ Chicken",
    "Spicy Paneer", "Cheese Burst", "Mushroom Magic", "Tandoori Chicken", "Farmhouse",
    "Mexican Green Wave", "Double Cheese", "Chicken Sausage", "Peppy Paneer", "Deluxe Veggie",
    "Peri Peri Chicken", "Corn & Cheese", "Italian Supreme", "Classic Tomato", "Smoky BBQ Veg",
)
PIZZA_IMAGES = ("pizza1.jpeg", "pizza2.jpeg", "pizza3.jpeg", "pizza4.jpeg")
VEG_INGREDIENTS = (
    ["Cheese", "Tomato", "Capsicum"],
    ["Paneer", "Onion", "Peppers"],
    ["Mushroom", "Corn", "Olives"],
    ["Spinach", "Tomato", "Cheese"],
    ["Jalapeno", "Cheese", "Onion"],
)
NON_VEG_INGREDIENTS = (
    ["Chicken", "Cheese", "Onion"],
    ["Pepperoni", "Cheese", "Tomato"],
    ["Ham", "Pineapple", "Cheese"],
    ["Chicken Sausage", "Peppers", "Cheese"],
    ["BBQ Chicken", "Onion", "Cheese"],
)
NON_VEG_KEYWORDS = ("chicken", "pepperoni")


def is_veg(name: str) -> bool:
    lower = name.lower()
    return not any(keyword in lower for keyword in NON_VEG_KEYWORDS)


def demo_pizzas(count: int = PIZZA_COUNT, rng: random.Random | None = None) -> list[dict]:
    rng = rng or random.Random()
    pizzas = []
    for i in range(count):
        base = PIZZA_NAMES[i % len(PIZZA_NAMES)]
        veg = is_veg(base)
        ingredients = rng.choice(VEG_INGREDIENTS if veg else NON_VEG_INGREDIENTS)
        pizzas.append({
            "name": f"{base} {rng.randrange(1000)}",
            "ingredients": list(ingredients),
            "price": Decimal(rng.randrange(100, 500)) / 10,  # 10.0 to 49.9
            "image": rng.choice(PIZZA_IMAGES),
            "veg": veg,
            "category": "Vegetarian" if veg else "Non-Vegetarian",
            "description": f"{base} pizza with {', '.join(ingredients)}",
        })
    return pizzas


async def seed(db: Database) -> None:
    await db.init_schema()
    users = UserRepository(db)
    for name, email, address, role in DEMO_USERS:
        if await users.find_by_email(email) is None:
            await users.create(name=name, email=email, address=address, password_hash=hash_password(DEMO_PASSWORD), role=role)
            logger.info("%s user created (%s / %s)", role, email, DEMO_PASSWORD)

    pizzas = PizzaRepository(db)
    if await pizzas.count_documents() == 0:
        for pizza in demo_pizzas():
            await pizzas.create(**pizza)
        logger.info("%d pizzas added", PIZZA_COUNT)


async def run() -> None:
    db = await Database().connect()
    try:
        await seed(db)
        logger.info("Database initialization complete")
    finally:
        await db.close()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
