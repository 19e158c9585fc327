# orderflow/main.py
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from orderflow.config import settings
from orderflow.database import db
from orderflow.api.routes import orders as order_routes
from orderflow.api.routes import offers as offer_routes
from orderflow.middleware import configure_cors, add_security_headers
from orderflow.services.expiration import ExpirationWorker, build_worker


logger = logging.getLogger("uvicorn.error")


async def _expiration_loop(worker: ExpirationWorker, interval: float) -> None:
    while True:
        try:
            await asyncio.to_thread(worker.run_pending)
        except Exception:
            # keep polling; the failed jobs are still scheduled and will be retried
            logger.exception("Expiration worker pass failed")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context: make sure the tables exist, and run the expiration worker
    in the background when it is enabled.
    """
    for table in ("orders", "offers", "expiration_jobs"):
        path = db.ensure_table(table)
        logger.info("Using %s table at %s", table, path)

    task = None
    if settings.EXPIRATION_WORKER_ENABLED:
        task = asyncio.create_task(_expiration_loop(build_worker(db), settings.EXPIRATION_POLL_SECONDS))
        logger.info("Expiration worker started (every %ss)", settings.EXPIRATION_POLL_SECONDS)

    yield

    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    logger.info("Shutting down Orderflow API")


app = FastAPI(title="Orderflow API", version="0.1.0", lifespan=lifespan)
configure_cors(app)
add_security_headers(app)

app.include_router(order_routes.router)
app.include_router(offer_routes.router)


@app.get("/", tags=["root"])
async def root():
    return {"status": "ok", "service": "Orderflow API"}
