import math
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from pizzeria.deps import get_admin_user, get_pizza_repository
from pizzeria.models.pizza import SORTABLE_FIELDS, PizzaFilter, PizzaRepository
from pizzeria.models.user import User
from pizzeria.schemas import MAX_INT4, PizzaCreateBody

router = APIRouter(prefix="/pizzas", tags=["pizzas"])

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _page_params(page: int, limit: int) -> tuple[int, int]:
    page = min(max(page, 1), MAX_INT4)
    if limit < 1:
        limit = DEFAULT_LIMIT
    return page, min(limit, MAX_LIMIT)


@router.get("")
async def list_pizzas(
    filter: Literal["veg", "non-veg", "all"] = Query(default="all"),
    veg: bool | None = Query(default=None),
    category: str | None = Query(default=None),
    sort_by: str = Query(default="name", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    page: int = Query(default=1),
    limit: int = Query(default=DEFAULT_LIMIT),
    pizzas: PizzaRepository = Depends(get_pizza_repository),
) -> JSONResponse:
    """Available pizzas only. Out-of-range page/limit are clamped, unknown sortBy falls back to name."""
    if veg is None and filter != "all":
        veg = filter == "veg"
    page, limit = _page_params(page, limit)
    criteria = PizzaFilter(available=True, veg=veg, category=category)
    sort_by = sort_by if sort_by in SORTABLE_FIELDS else "name"

    total = await pizzas.count_documents(criteria)
    rows = await pizzas.find(criteria, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit)
    total_pages = math.ceil(total / limit) if total else 0
    return JSONResponse(
        status_code=200,
        content={
            "pizzas": jsonable_encoder(rows),
            "pagination": {
                "totalCount": total,
                "currentPage": page,
                "totalPages": total_pages,
                "hasNextPage": page < total_pages,
                "hasPreviousPage": page > 1,
                "limit": limit,
            },
        },
    )


@router.post("", status_code=201)
async def create_pizza(
    body: PizzaCreateBody,
    _admin: User = Depends(get_admin_user),
    pizzas: PizzaRepository = Depends(get_pizza_repository),
):
    return await pizzas.create(**body.model_dump())
