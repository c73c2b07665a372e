"""
Keep-alive ping.

Free hosting tiers put idle services to sleep. This job requests the
service's own public URL on a cron schedule (every 14 minutes by default)
so it keeps answering promptly.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

import httpx
import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from utilities.config import AppConfig

logger = structlog.get_logger(__name__)

JOB_ID = "keepalive_ping"


class KeepAliveService:
    """Schedules the periodic GET against ``AppConfig.api_url``."""

    def __init__(self, config: AppConfig, scheduler: Optional[AsyncIOScheduler] = None):
        """
        Initialize keep-alive service.

        Args:
            config: Application configuration (target URL, crontab, timeout)
            scheduler: Scheduler to register the job on; a new one by default
        """
        self.url = config.api_url
        self.enabled = config.keepalive_enabled()
        self.cron = config.keepalive_cron
        self.timeout = config.keepalive_timeout
        self.timezone = config.timezone
        self.scheduler = scheduler or AsyncIOScheduler(timezone=config.timezone)
        self.logger = logger.bind(component="keepalive")
        self._setup_scheduler_listeners()

    def _setup_scheduler_listeners(self) -> None:
        def job_executed_listener(event):
            self.logger.debug("Job executed", job_id=event.job_id)

        def job_error_listener(event):
            self.logger.error("Job execution failed", job_id=event.job_id, error=str(event.exception))

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    def start(self) -> None:
        """Register the ping job and start the scheduler."""
        if not self.enabled:
            self.logger.info("Keep-alive disabled, no API_URL configured")
            return

        self.scheduler.add_job(
            func=self.ping,
            trigger=CronTrigger.from_crontab(self.cron, timezone=self.timezone),
            id=JOB_ID,
            name='Keep-alive Ping',
            max_instances=1,
            replace_existing=True
        )
        self.scheduler.start()
        self.logger.info("Keep-alive scheduled", url=self.url, cron=self.cron)

    def stop(self) -> None:
        """Stop the scheduler if it is running."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("Keep-alive stopped")

    async def ping(self) -> Dict:
        """GET the configured URL once. Failures are logged, never raised."""
        start_time = datetime.now(timezone.utc)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.url)

            if response.status_code == 200:
                self.logger.info("Keep-alive ping succeeded", url=self.url)
            else:
                self.logger.warning("Keep-alive ping failed", url=self.url, status_code=response.status_code)

            return {
                'success': response.status_code == 200,
                'status_code': response.status_code,
                'duration': (datetime.now(timezone.utc) - start_time).total_seconds()
            }

        except httpx.HTTPError as e:
            self.logger.error("Error while sending keep-alive ping", url=self.url, error=str(e))
            return {
                'success': False,
                'error': str(e),
                'duration': (datetime.now(timezone.utc) - start_time).total_seconds()
            }
