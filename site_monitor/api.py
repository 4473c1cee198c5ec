"""
FastAPI application for Site Monitor.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse

from site_monitor import __version__
from site_monitor.config import Config
from site_monitor.logger import get_logger
from site_monitor.metrics import MetricsCollector
from site_monitor.runner import CheckRunner


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan handler that suppresses CancelledError during shutdown."""
    try:
        yield
    except asyncio.CancelledError:
        pass


def create_app(
    runner: CheckRunner,
    metrics: MetricsCollector,
    config: Config,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        runner: Check runner instance
        metrics: Metrics collector instance
        config: Configuration instance

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Site Monitor",
        description="HTTP(S) availability and TLS certificate monitoring",
        version=__version__,
        docs_url="/docs" if not config.dry_run else None,
        redoc_url="/redoc" if not config.dry_run else None,
        lifespan=lifespan,
    )

    logger = get_logger("api")

    @app.get("/metrics", response_class=PlainTextResponse)
    async def get_metrics() -> PlainTextResponse:
        try:
            metrics_data = metrics.get_metrics()
            return PlainTextResponse(content=metrics_data, media_type=metrics.get_content_type())
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            raise HTTPException(status_code=500, detail="Failed to generate metrics") from e

    @app.get("/healthz", response_class=JSONResponse)
    async def get_health() -> JSONResponse:
        try:
            health_status = {
                **(await runner.get_health_status()),
                **metrics.get_registry_status(),
                "status": "healthy",
                "version": __version__,
            }
            return JSONResponse(content=health_status)
        except Exception as e:
            logger.error(f"Failed to get health status: {e}")
            return JSONResponse(content={"status": "error", "error": str(e)}, status_code=500)

    @app.get("/results", response_class=JSONResponse)
    async def get_results() -> JSONResponse:
        return JSONResponse(
            content={
                "last_run": runner.last_run,
                "results": [outcome.to_dict() for outcome in runner.last_outcomes.values()],
                "rejected": runner.rejected,
            }
        )

    @app.post("/check", response_class=JSONResponse)
    async def trigger_check() -> JSONResponse:
        if config.dry_run:
            return JSONResponse(
                content={"message": "Check not performed - dry run mode enabled"}, status_code=200
            )
        try:
            logger.info("Manual check triggered via API")
            outcomes = await runner.run_once()
            return JSONResponse(
                content={
                    "status": "completed",
                    "results": [outcome.to_dict() for outcome in outcomes],
                }
            )
        except Exception as e:
            logger.error(f"Manual check failed: {e}")
            raise HTTPException(status_code=500, detail=f"Check failed: {e}") from e

    return app
