"""Optional background jobs for Summary Scribe."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from summaryscribe.config import get_settings
from summaryscribe.infrastructure.database import async_session_factory
from summaryscribe.infrastructure.slack_client import SlackClient
from summaryscribe.services.slack_poster import SlackPoster

logger = logging.getLogger(__name__)
settings = get_settings()


class SchedulerService:
    """Optional in-process timer for the Slack retry sweep.

    Retries are normally manual: nothing re-posts a failed row until someone
    calls the HTTP trigger, which sweeps only the caller's rows. With
    ``slack_retry_sweep_interval_minutes`` at 0 (the default) no job is
    registered and that stays true. A positive interval opts out of the
    manual model: the job sweeps every user's failed posts on its own.
    """

    def __init__(self, interval_minutes: int | None = None) -> None:
        """Initialize the scheduler service."""
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = (
            settings.slack_retry_sweep_interval_minutes
            if interval_minutes is None
            else interval_minutes
        )

    async def _run_slack_retry_job(self) -> None:
        """Retry one batch of failed Slack posts across all users."""
        logger.info("Running Slack retry sweep...")
        slack_client = SlackClient()
        try:
            async with async_session_factory() as session:
                poster = SlackPoster(session, slack_client=slack_client)
                sweep = await poster.retry_failed(max_retries=settings.slack_max_retries)
                await session.commit()
                logger.info(
                    f"Slack retry sweep: processed={sweep.processed}, "
                    f"succeeded={sweep.succeeded}, failed={sweep.failed}"
                )
        except Exception as e:
            logger.error(f"Slack retry sweep failed: {e}", exc_info=True)
        finally:
            await slack_client.close()

    @property
    def enabled(self) -> bool:
        return self.interval_minutes > 0

    def start(self) -> None:
        """Start the scheduler if the sweep is enabled."""
        if not self.enabled:
            logger.info("Slack retry sweep not scheduled (interval is 0)")
            return

        self.scheduler.add_job(
            self._run_slack_retry_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="slack_retry_sweep",
            name="Slack Retry Sweep",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(f"Scheduled Slack retry sweep (every {self.interval_minutes}m)")

    def shutdown(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler shut down")
