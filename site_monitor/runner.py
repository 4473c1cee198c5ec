"""
Check runner for Site Monitor.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from site_monitor.certificates import TrustAnchorProvider
from site_monitor.config import Config
from site_monitor.context import CheckContext
from site_monitor.exceptions import CheckError, ConfigurationError
from site_monitor.logger import (
    get_logger,
    log_certificate_problem,
    log_check_complete,
    log_check_error,
)
from site_monitor.metrics import MetricsCollector
from site_monitor.models import CheckResult
from site_monitor.monitor import Monitor, create_monitor
from site_monitor.report import render_error, render_result


@dataclass(frozen=True)
class CheckOutcome:
    """Result or error of one site in a batch."""

    url: str
    up: bool
    result: Optional[CheckResult] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "up": self.up,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }

    def render(self) -> str:
        if self.result is not None:
            return render_result(self.result, up=self.up)
        return render_error(self.url, self.error or "unknown error")


class CheckRunner:
    """
    Runs checks for all configured sites.

    Sites whose configuration is rejected are logged and skipped; every
    other site gets its own monitor. Checks of one batch run concurrently
    and independently: a failing site never affects the others.
    """

    def __init__(
        self,
        config: Config,
        metrics: MetricsCollector,
        trust_anchors: Optional[TrustAnchorProvider] = None,
    ) -> None:
        self.config = config
        self.metrics = metrics
        self.logger = get_logger("runner")

        self.monitors: List[Monitor] = []
        self.rejected: Dict[str, str] = {}
        for site in config.sites:
            try:
                self.monitors.append(create_monitor(site, trust_anchors=trust_anchors))
            except ConfigurationError as e:
                self.logger.error(f"Skipping site {site.url!r}: {e}")
                self.rejected[site.url] = str(e)

        self.last_outcomes: Dict[str, CheckOutcome] = {}
        self.last_run: Optional[float] = None

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._context: Optional[CheckContext] = None
        self._run_lock: Optional[asyncio.Lock] = None  # Initialize lock lazily in async context

        self.logger.info(
            f"Check runner initialized - Sites: {len(self.monitors)}, "
            f"Rejected: {len(self.rejected)}, Workers: {config.workers}"
        )

    async def start(self) -> None:
        """Start periodic checking."""
        if self._running:
            self.logger.warning("Runner is already running")
            return

        self._running = True
        self._context = CheckContext.background()
        self._task = asyncio.create_task(self._run_loop())
        self.logger.info(f"Started site checks - Interval: {self.config.check_interval}")

    async def stop(self) -> None:
        """Stop periodic checking and abort checks in flight."""
        self._running = False

        if self._context:
            self._context.cancel()
            self._context = None

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self.logger.info("Check runner stopped")

    async def aclose(self) -> None:
        """Stop checking and close all monitors."""
        await self.stop()
        await asyncio.gather(*(monitor.aclose() for monitor in self.monitors))

    async def run_once(self, ctx: Optional[CheckContext] = None) -> List[CheckOutcome]:
        """
        Check every site once.

        Args:
            ctx: Context shared by all checks of the batch

        Returns:
            One outcome per monitored site, in configuration order
        """
        if self._run_lock is None:
            self._run_lock = asyncio.Lock()

        async with self._run_lock:
            ctx = ctx or self._context or CheckContext.background()
            semaphore = asyncio.Semaphore(self.config.workers)
            start_time = time.time()

            outcomes = await asyncio.gather(
                *(self._check_site(monitor, ctx, semaphore) for monitor in self.monitors)
            )

            for outcome in outcomes:
                self.last_outcomes[outcome.url] = outcome
            self.last_run = time.time()

            up_count = sum(1 for outcome in outcomes if outcome.up)
            self.logger.info(
                f"Checks completed - Duration: {self.last_run - start_time:.2f}s, "
                f"Up: {up_count}, Down: {len(outcomes) - up_count}"
            )

            return list(outcomes)

    async def _check_site(
        self, monitor: Monitor, ctx: CheckContext, semaphore: asyncio.Semaphore
    ) -> CheckOutcome:
        async with semaphore:
            try:
                result = await monitor.check(ctx)
            except CheckError as e:
                log_check_error(self.logger, monitor.url, e)
                self.metrics.record_error(monitor.url, e)
                return CheckOutcome(url=monitor.url, up=False, error=str(e))

        up = monitor.is_success_status(result.status_code)
        log_check_complete(
            self.logger, result.url, result.status_code, result.duration.total_seconds(), up
        )
        if result.cert_info is not None and not result.cert_info.is_valid:
            log_certificate_problem(self.logger, result.url, result.cert_info.error_msg)

        self.metrics.record_result(result, up)
        return CheckOutcome(url=result.url, up=up, result=result)

    async def _run_loop(self) -> None:
        """Main checking loop."""
        while self._running:
            try:
                await self.run_once()
                await asyncio.sleep(self.config.check_interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Error in check loop: {e}")
                await asyncio.sleep(self.config.check_interval_seconds)

    async def get_health_status(self) -> Dict[str, Any]:
        """Get runner health status."""
        return {
            "check_status": "running" if self._running else "stopped",
            "sites_monitored": len(self.monitors),
            "sites_rejected": len(self.rejected),
            "sites_up": sum(1 for outcome in self.last_outcomes.values() if outcome.up),
            "last_run": self.last_run,
            "worker_pool_size": self.config.workers,
        }
