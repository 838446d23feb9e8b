"""
Periodic eviction of inactive conversations from the in-memory index.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from livechat.models.events import CHAT_UPDATED
from livechat.relay.hub import ConnectionHub
from livechat.relay.index import ConversationIndex, utc_now

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "conversation_index_sweep"


class EvictionSweeper:
    """
    Drops conversations idle for longer than ``inactivity_threshold`` from the
    index and rebroadcasts the dashboard snapshot. The durable store and the
    session registry are never touched.
    """

    def __init__(
        self,
        index: ConversationIndex,
        hub: ConnectionHub,
        inactivity_threshold: timedelta,
        interval_seconds: float,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.index = index
        self.hub = hub
        self.inactivity_threshold = inactivity_threshold
        self.interval_seconds = interval_seconds
        self._clock = clock
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._initialized = False

    async def initialize(self):
        """Start the scheduler with the sweep job. Needs a running event loop."""
        if self._initialized:
            logger.warning("Sweeper already initialized")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            func=self.sweep,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name="Evict inactive conversations",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.start()
        self._initialized = True

        logger.info(
            "Sweeper started: every %ss, threshold %s",
            self.interval_seconds,
            self.inactivity_threshold,
        )

    async def shutdown(self):
        """Stop the scheduler, letting a running sweep finish first."""
        if self.scheduler:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            self._initialized = False
            logger.info("Sweeper shut down")

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def next_run_time(self) -> Optional[datetime]:
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(SWEEP_JOB_ID)
        return job.next_run_time if job else None

    async def sweep(self) -> list[str]:
        """
        Run one eviction pass.

        Broadcasts the snapshot even when nothing was evicted so dashboards
        converge on wall-clock staleness.

        Returns:
            Ids of the evicted conversations
        """
        threshold = self._clock() - self.inactivity_threshold
        evicted = self.index.evict_older_than(threshold)
        if evicted:
            logger.debug("Evicted conversations: %s", ", ".join(evicted))
        await self.hub.publish_to_all(CHAT_UPDATED, self.index.to_wire())
        return evicted
