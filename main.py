import asyncio
import contextlib
import logging

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from qrsync.app_logging import configure_logging
from qrsync.config import config
from qrsync.db.session import SessionLocal, create_tables, engine
from qrsync.dependencies import get_file_mirror
from qrsync.errors import register_exception_handlers
from qrsync.routers import register_routers
from qrsync.services.maintenance import expiry_sweep_job, keepalive_job, run_periodic
from qrsync.services.session_service import SessionService
from qrsync.services.store import SqlSessionStore

logger = logging.getLogger("qrsync.main")


def _session_service() -> SessionService:
    return SessionService(
        SqlSessionStore(SessionLocal),
        get_file_mirror(),
        default_ttl_seconds=config.SESSION_TTL_SECONDS,
    )


@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI):
    if config.DB_CREATE_TABLES:
        await create_tables()

    config.STORAGE_PATH.mkdir(parents=True, exist_ok=True)

    tasks = []
    client = httpx.AsyncClient(timeout=10.0)

    if config.SWEEP_INTERVAL_SECONDS > 0:
        tasks.append(asyncio.create_task(
            run_periodic("expiry-sweep", config.SWEEP_INTERVAL_SECONDS, expiry_sweep_job(_session_service))
        ))

    if config.KEEPALIVE_URL:
        tasks.append(asyncio.create_task(
            run_periodic("keepalive", config.KEEPALIVE_INTERVAL_SECONDS, keepalive_job(client, config.KEEPALIVE_URL))
        ))

    logger.info("qrsync started (storage=%s, background tasks=%d)", config.STORAGE_PATH, len(tasks))
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await client.aclose()
        await engine.dispose()


def create_app() -> FastAPI:
    configure_logging(config.LOG_LEVEL)

    app = FastAPI(title="qrsync", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    register_routers(app)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=config.FASTAPI_HOST, port=config.FASTAPI_PORT)
