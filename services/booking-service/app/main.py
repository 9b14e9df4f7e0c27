import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import LOG_LEVEL, SERVICE_NAME, SWEEP_INTERVAL_SECONDS
from .errors import HTTP_STATUS, BookingError
from .middleware import RequestLoggingMiddleware
from .routes import router
from .services import publisher, redis_client, sweeper
from .sweeper import sweep_loop

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Booking Service")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)

_stop_event = asyncio.Event()
_sweep_task = None


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(
        status_code=HTTP_STATUS[exc.kind],
        content={"detail": exc.detail, "kind": exc.kind.value},
    )


@app.get("/health")
async def health():
    return {"status": "ok", "service": SERVICE_NAME, "events_enabled": publisher.enabled}


@app.on_event("startup")
async def startup():
    global _sweep_task
    try:
        await publisher.connect()
    except Exception as e:
        logger.warning("RabbitMQ connect failed at startup; continuing: %s", e)

    _stop_event.clear()
    _sweep_task = asyncio.create_task(sweep_loop(_stop_event, sweeper, SWEEP_INTERVAL_SECONDS))


@app.on_event("shutdown")
async def shutdown():
    global _sweep_task
    _stop_event.set()
    if _sweep_task:
        await _sweep_task
        _sweep_task = None
    await publisher.close()
    if redis_client is not None:
        await redis_client.aclose()
