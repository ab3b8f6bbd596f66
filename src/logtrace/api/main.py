"""
FastAPI application for LogTrace

Usage:
    logtrace serve
    uvicorn logtrace.api.main:create_app --factory --port 3001
"""

import logging
import random
from contextlib import asynccontextmanager
from typing import Optional

from elasticsearch import ApiError, Elasticsearch, TransportError
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings
from ..log_index import LogIndex, setup_elasticsearch
from ..retention import RetentionJob, RetentionManager
from ..simulator import IncidentScheduler, LogGenerator, LogSimulator
from ..utils.console import setup_logging
from ..utils.timers import AsyncioTimers
from .routers import dashboard, logs, retention, services, simulator

logger = logging.getLogger(__name__)


def build_simulator(log_index: LogIndex, settings: Settings, timers=None) -> LogSimulator:
    """Wire a simulator from settings"""
    timers = timers or AsyncioTimers()
    incidents = IncidentScheduler(timers, rng=random.Random(), service=settings.incident_service)
    return LogSimulator(
        log_index,
        timers=timers,
        generator=LogGenerator(rng=random.Random()),
        incidents=incidents,
        index_name=log_index.index_name,
        tick_seconds=settings.tick_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bootstrap the index and background jobs, stop them on shutdown"""
    state = app.state
    settings: Settings = state.settings

    try:
        state.log_index.init()
        logger.info(f"✅ Elasticsearch ready (index '{state.log_index.index_name}')")
        state.retention_job.start()
        if settings.simulator_autostart:
            state.simulator.start()
        else:
            logger.info("[Simulator] Off by default - enable via /api/simulator/enable to generate demo logs")
    except Exception as e:
        logger.error(f"❌ Failed to initialize Elasticsearch: {e}")

    yield

    state.simulator.stop()
    await state.simulator.drain()
    state.retention_job.stop()
    logger.info("LogTrace API shutdown complete")


def create_app(settings: Optional[Settings] = None, es: Optional[Elasticsearch] = None) -> FastAPI:
    """
    Build the LogTrace API

    Args:
        settings: Configuration (defaults to the environment)
        es: Elasticsearch client (defaults to one built from settings)

    Returns:
        FastAPI application
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="LogTrace API",
        description="Log management backend with a synthetic log simulator",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    log_index = LogIndex(es or setup_elasticsearch(settings), settings.index_name)
    app.state.settings = settings
    app.state.log_index = log_index
    app.state.simulator = build_simulator(log_index, settings)
    app.state.retention = RetentionManager(log_index)
    app.state.retention_job = RetentionJob(
        log_index, retention_days=settings.retention_days, hour=settings.retention_hour
    )

    @app.exception_handler(ApiError)
    @app.exception_handler(TransportError)
    async def elasticsearch_error(request: Request, exc: Exception):
        logger.error(f"❌ {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.get("/")
    async def root():
        return {"name": "LogTrace API", "version": __version__, "status": "running"}

    @app.get("/health")
    def health():
        try:
            healthy = bool(log_index.es.ping())
        except Exception:
            return JSONResponse(status_code=503, content={"status": "error", "elasticsearch": False})
        return {"status": "ok", "elasticsearch": healthy}

    for module in (logs, dashboard, services, retention, simulator):
        app.include_router(module.router)

    return app
