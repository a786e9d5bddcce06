import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from pizzeria.config import settings
from pizzeria.db import Database
from pizzeria.delivery import DeliverySimulator, HttpWebhookSender, LoopScheduler
from pizzeria.errors import AppError, InvalidTransitionError
from pizzeria.metrics import get_metrics_bytes, get_metrics_content_type, order_transitions_rejected_total
from pizzeria.routes import admin, auth, orders, pizzas, webhook

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = Database()
    await db.connect()
    await db.init_schema()
    app.state.db = db

    scheduler = sender = None
    if settings.delivery_simulation_enabled:
        scheduler = LoopScheduler()
        sender = HttpWebhookSender()
        app.state.delivery_simulator = DeliverySimulator(scheduler, sender)
    logger.info("Pizzeria API started (environment=%s)", settings.environment)
    try:
        yield
    finally:
        if scheduler is not None:
            await scheduler.close()
            await sender.aclose()
        await db.close()
        logger.info("Pizzeria API stopped.")


app = FastAPI(title="Pizzeria API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)
for module in (auth, pizzas, orders, webhook, admin):
    app.include_router(module.router, prefix=settings.api_prefix)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, InvalidTransitionError):
        order_transitions_rejected_total.labels(
            current_status=str(exc.current_status),
            attempted_status=str(exc.new_status),
        ).inc()
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc.__cause__)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        fields.append(f"{'.'.join(loc) or 'body'}: {err.get('msg', 'invalid')}")
    return JSONResponse(
        status_code=400,
        content={"message": "Missing or invalid fields: " + "; ".join(fields), "fields": fields},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.get("/health")
async def health() -> dict:
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "environment": settings.environment,
    }


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(
        content=get_metrics_bytes(),
        media_type=get_metrics_content_type(),
    )
