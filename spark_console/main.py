from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from spark_console.api.v1.router import v1_router
from spark_console.config import Settings, settings
from spark_console.core.exceptions import SparkError, spark_error_handler
from spark_console.core.middleware import RequestLoggingMiddleware, TokenAuthMiddleware
from spark_console.services.containers import build_container_services
from spark_console.services.model_discovery import ModelDiscovery
from spark_console.services.provider import build_provider

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _NAME_TO_LEVEL.get(settings.spark_log_level.lower(), 20)
    ),
)

logger = structlog.get_logger()


def init_state(app: FastAPI, config: Settings) -> None:
    """Build the collection backends once. Collection modes are fixed from here on."""
    app.state.provider = build_provider(config)
    app.state.container_reader, app.state.container_control = build_container_services(config)
    app.state.model_discovery = ModelDiscovery(config.model_dirs(), max_depth=config.spark_model_scan_depth)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    init_state(app, settings)
    logger.info(
        "spark_console_starting",
        bind=f"{settings.spark_bind_host}:{settings.spark_port}",
        modes=app.state.provider.modes,
        container_mode=settings.mode_for("container"),
        auth_enabled=bool(settings.spark_auth_token),
    )
    yield
    logger.info("spark_console_stopping")


app = FastAPI(
    title="Spark Console",
    description="Monitoring and control API for a single GPU host",
    version="0.1.0",
    lifespan=lifespan,
)

# Exception handler
app.add_exception_handler(SparkError, spark_error_handler)

# Middleware (Starlette: last-added = outermost)
# 1. RequestLogging (outermost): logs all requests including auth rejections
# 2. CORS: handles preflight before auth
# 3. TokenAuth: shared token check, no-op in LAN-only mode
app.add_middleware(TokenAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.spark_cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(v1_router)


@app.get("/")
async def root():
    return {"service": "spark-console", "version": "0.1.0"}
