from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from pizzeria.deps import get_order_repository
from pizzeria.models.order import OrderRepository
from pizzeria.schemas import DeliveryUpdateBody
from pizzeria.webhook import apply_delivery_update

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/delivery-update")
async def delivery_update(
    body: DeliveryUpdateBody,
    orders: OrderRepository = Depends(get_order_repository),
) -> JSONResponse:
    """
    Courier status callback. Same status as stored -> 200 (already set).
    Unknown order -> 404, illegal transition -> 409 with the stored status left untouched.
    """
    result = await apply_delivery_update(orders, body)
    return JSONResponse(status_code=200, content=result)
