#!/usr/bin/env python3
"""
Site Monitor - Main Application Entry Point
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
import uvicorn
from fastapi import FastAPI

from site_monitor import __version__
from site_monitor.api import create_app
from site_monitor.config import Config, MonitorConfig, load_config
from site_monitor.logger import setup_logging
from site_monitor.metrics import MetricsCollector
from site_monitor.runner import CheckOutcome, CheckRunner


class SiteMonitorApp:
    """Main application class for Site Monitor."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        urls: Tuple[str, ...] = (),
        dry_run: bool = False,
    ):
        self.config: Optional[Config] = None
        self.runner: Optional[CheckRunner] = None
        self.metrics: Optional[MetricsCollector] = None
        self.app: Optional[FastAPI] = None
        self.config_path = config_path
        self.urls = urls
        self.dry_run = dry_run
        self._server: Optional[uvicorn.Server] = None
        self.logger = logging.getLogger(__name__)

    def initialize(self) -> None:
        """Initialize all application components."""
        try:
            config = load_config(self.config_path)
            if self.urls:
                extra_sites = [MonitorConfig(url=url) for url in self.urls]
                config = config.model_copy(update={"sites": list(config.sites) + extra_sites})
            if self.dry_run:
                config = config.model_copy(update={"dry_run": True})
            self.config = config

            setup_logging(self.config)
            self.logger.info("Initializing Site Monitor")

            self.metrics = MetricsCollector()
            self.runner = CheckRunner(config=self.config, metrics=self.metrics)
            self.app = create_app(runner=self.runner, metrics=self.metrics, config=self.config)

            self.logger.info("Site Monitor initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize application: {e}")
            raise

    async def run_once(self) -> List[CheckOutcome]:
        """Check every site once and print each outcome."""
        if not self.runner:
            self.initialize()
        assert self.runner is not None, "Runner should be initialized"

        try:
            outcomes = await self.runner.run_once()
        finally:
            await self.shutdown()

        for outcome in outcomes:
            click.echo(outcome.render())
        return outcomes

    async def run(self) -> None:
        """Run the API server while checking sites on the configured interval."""
        if not self.app:
            self.initialize()

        assert self.config is not None, "Config should be initialized"
        assert self.runner is not None, "Runner should be initialized"

        self.logger.info(f"Starting HTTP server on {self.config.bind_address}:{self.config.port}")

        self._server = uvicorn.Server(
            uvicorn.Config(
                app=self.app,  # type: ignore[arg-type]
                host=self.config.bind_address,
                port=self.config.port,
                log_level=self.config.log_level.lower(),
                access_log=True,
            )
        )

        for sig in [signal.SIGTERM, signal.SIGINT]:
            signal.signal(sig, self._signal_handler)

        await self.runner.start()
        try:
            await self._server.serve()
        except KeyboardInterrupt:
            self.logger.info("Received interrupt signal")
        finally:
            await self.shutdown()

    def _signal_handler(self, signum: int, frame: Optional[object]) -> None:
        """Handle shutdown signals."""
        self.logger.info(f"Received signal {signum}, initiating graceful shutdown")
        if self._server:
            self._server.should_exit = True

    async def shutdown(self) -> None:
        """Gracefully shutdown all components."""
        self.logger.info("Starting graceful shutdown")

        if self.runner:
            await self.runner.aclose()

        self.logger.info("Graceful shutdown completed")


@click.command()
@click.option(
    "--config",
    "-f",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--url", "-u", "urls", multiple=True, help="Additional URL to check with GET")
@click.option("--once", is_flag=True, help="Check every site once, print the results and exit")
@click.option("--version", "-v", is_flag=True, help="Show version information")
def main(config: Optional[Path], urls: Tuple[str, ...], once: bool, version: bool) -> None:
    """Site Monitor - Check HTTP(S) sites for availability and certificate problems."""
    if version:
        click.echo(f"Site Monitor v{__version__}")
        return

    try:
        app = SiteMonitorApp(str(config) if config else None, urls=urls, dry_run=once)
        if once:
            outcomes = asyncio.run(app.run_once())
            rejected = app.runner.rejected if app.runner else {}
            if rejected or not all(outcome.up for outcome in outcomes):
                sys.exit(1)
            return

        asyncio.run(app.run())
    except KeyboardInterrupt:
        click.echo("\nShutdown requested by user")
        sys.exit(0)
    except Exception as e:
        click.echo(f"Application failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
