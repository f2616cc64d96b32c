"""LearnScheduler: periodic learning from configured URLs via APScheduler."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mily.errors import FetchError, PolicyViolation, StorageError
from mily.security import PolicyGuard
from mily.web import fetch_text

if TYPE_CHECKING:
    from mily.agent import Agent
    from mily.config import Settings

logger = logging.getLogger(__name__)

JOB_ID = "learn_urls"


class LearnScheduler:
    """Re-fetches ``learn_urls`` every ``learn_interval_secs`` and feeds them to the agent.

    Args:
        agent: Agent whose ``learn`` receives each page.
        settings: Source of the URL list, interval and fetch policy.
    """

    def __init__(self, agent: Agent, settings: Settings) -> None:
        self._agent = agent
        self._settings = settings
        self._guard = PolicyGuard.from_settings(settings)
        self._urls = settings.get_learn_urls()
        self._interval = settings.learn_interval_secs
        self._scheduler = AsyncIOScheduler(timezone=UTC)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def urls(self) -> list[str]:
        return list(self._urls)

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Schedule the learn job (first run immediately) and start the scheduler.

        Must be called from inside a running event loop.
        """
        self._scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self._interval, timezone=UTC),
            id=JOB_ID,
            next_run_time=datetime.now(UTC),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self._running = True
        logger.info(
            "Learn scheduler started: %d URL(s), every %ds",
            len(self._urls),
            self._interval,
        )

    def stop(self) -> None:
        """Shut down the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Learn scheduler stopped")

    # -- Work ------------------------------------------------------------------

    async def run_once(self) -> int:
        """Fetch and learn from every URL once. Returns how many succeeded.

        A URL whose fetch or summary storage fails is logged and skipped;
        the rest still run.
        """
        learned = 0
        for url in self._urls:
            try:
                text = await fetch_text(self._settings, url, guard=self._guard)
            except (FetchError, PolicyViolation) as exc:
                logger.warning("Fetch failed %s: %s", url, exc)
                continue
            try:
                await self._agent.learn(url, text)
            except StorageError as exc:
                logger.error("Could not store summary for %s: %s", url, exc)
                continue
            learned += 1
            logger.info("Learned from %s", url)
        return learned
