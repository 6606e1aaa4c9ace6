# wabridge/main.py

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from loguru import logger

from wabridge.api.v1 import api_router
from wabridge.core.config import Settings, get_settings
from wabridge.core.database import mongo_manager, redis_manager
from wabridge.core.errors import EXCEPTION_HANDLERS
from wabridge.core.logging_config import add_trace_id_middleware, setup_logging
from wabridge.models.api_common import StatusResponse
from wabridge.services.jobs_client import jobs_manager

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.PROJECT_NAME}...")
        await mongo_manager.connect(settings.MONGODB_URI)
        await redis_manager.connect(settings.REDIS_URL)
        jobs_manager.connect(settings.JOBS_SERVICE_BASE_URL, settings.JOBS_SERVICE_TIMEOUT)
        yield
        logger.info("Shutting down...")
        await jobs_manager.disconnect()
        await redis_manager.disconnect()
        await mongo_manager.disconnect()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        exception_handlers={**EXCEPTION_HANDLERS, RateLimitExceeded: _rate_limit_exceeded_handler},
    )

    app.state.limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])
    app.add_middleware(SlowAPIMiddleware)

    app.middleware("http")(add_trace_id_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.get("/", tags=["Health Check"], include_in_schema=False)
    async def read_root():
        return {
            **StatusResponse(status="ok", project=settings.PROJECT_NAME).model_dump(),
            "timestamp": datetime.now(timezone.utc),
        }

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
