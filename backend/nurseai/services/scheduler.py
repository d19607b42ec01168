"""
Background Insight Scheduler

Two independent daily jobs:
- Insight generation for every active user (02:00 UTC by default)
- Cleanup of expired insights (03:00 UTC by default)

Both run as asyncio background tasks started from the application lifespan
and can also be invoked directly.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, List, Tuple, Callable, Awaitable

from nurseai.config import settings
from nurseai.repositories.records import RecordRepository
from nurseai.services.app_config_service import RuntimeConfigService, runtime_config
from nurseai.services.batch_report import BatchReport
from nurseai.services.insights_service import InsightsService
from nurseai.utils.enums import InsightType, InsightPriority, InsightCategory


logger = logging.getLogger(__name__)


# (type, priority, category) generated for every active user each day
DAILY_INSIGHTS: List[Tuple[InsightType, InsightPriority, InsightCategory]] = [
    (InsightType.medication_adherence, InsightPriority.medium, InsightCategory.medication),
    (InsightType.health_trend, InsightPriority.medium, InsightCategory.vitals),
    (InsightType.recommendation, InsightPriority.low, InsightCategory.general),
]


class InsightScheduler:
    """
    Scheduler for daily insight generation and cleanup.

    Users are processed by a bounded worker pool; a failure for one user is
    logged and counted and never stops the others.
    """

    def __init__(
        self,
        insights_service: Optional[InsightsService] = None,
        records: Optional[RecordRepository] = None,
        config: Optional[RuntimeConfigService] = None,
        generation_hour: Optional[int] = None,
        cleanup_hour: Optional[int] = None,
        max_concurrency: Optional[int] = None
    ):
        self._insights_service = insights_service
        self._records = records
        self.config = config or runtime_config
        self.generation_hour = settings.INSIGHT_GENERATION_HOUR if generation_hour is None else generation_hour
        self.cleanup_hour = settings.INSIGHT_CLEANUP_HOUR if cleanup_hour is None else cleanup_hour
        self.max_concurrency = max(1, max_concurrency or settings.SCHEDULER_MAX_CONCURRENCY)
        self.is_running = False
        self._tasks: List[asyncio.Task] = []

    @property
    def insights_service(self) -> InsightsService:
        """Lazy load insights service."""
        if self._insights_service is None:
            self._insights_service = InsightsService(records=self.records)
        return self._insights_service

    @property
    def records(self) -> RecordRepository:
        if self._records is None:
            self._records = RecordRepository()
        return self._records

    async def start(self):
        """Start both background loops."""
        if self.is_running:
            logger.warning("Insight scheduler already running")
            return

        self.is_running = True
        self._tasks = [
            asyncio.create_task(self._run_daily("generation", self.generation_hour, self.run_daily_generation)),
            asyncio.create_task(self._run_daily("cleanup", self.cleanup_hour, self.run_cleanup)),
        ]
        logger.info(
            f"Insight scheduler started (generation {self.generation_hour:02d}:00 UTC, "
            f"cleanup {self.cleanup_hour:02d}:00 UTC)"
        )

    async def stop(self):
        """Stop the background loops."""
        self.is_running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Insight scheduler stopped")

    async def _run_daily(self, name: str, hour: int, job: Callable[[], Awaitable]):
        """Run ``job`` once a day at ``hour`` UTC until stopped."""
        while self.is_running:
            try:
                next_run = self._get_next_run_time(hour)
                wait_seconds = (next_run - datetime.utcnow()).total_seconds()

                if wait_seconds > 0:
                    logger.info(f"Next insight {name} scheduled at {next_run} ({wait_seconds:.0f}s from now)")
                    await asyncio.sleep(wait_seconds)

                if self.is_running:
                    await job()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Insight {name} job error: {e}")
                # Wait before retrying on error
                await asyncio.sleep(60)

    def _get_next_run_time(self, hour: int, now: Optional[datetime] = None) -> datetime:
        """Next occurrence of ``hour``:00 UTC strictly after ``now``."""
        now = now or datetime.utcnow()
        next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)

        if now >= next_run:
            next_run += timedelta(days=1)

        return next_run

    def _expires_at(self) -> Optional[datetime]:
        if settings.INSIGHT_EXPIRY_DAYS > 0:
            return datetime.utcnow() + timedelta(days=settings.INSIGHT_EXPIRY_DAYS)
        return None

    async def run_daily_generation(self) -> BatchReport:
        """Generate the daily insights for every active user."""
        report = BatchReport(name="daily_insight_generation")

        if not self.config.current.insight_generation_enabled:
            logger.info("Insight generation disabled by configuration; skipping")
            return report

        user_ids = await self.records.get_active_user_ids()
        logger.info(f"Generating daily insights for {len(user_ids)} active users")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process(user_id: uuid.UUID):
            async with semaphore:
                try:
                    await self._generate_daily_for_user(user_id)
                    report.processed += 1
                except Exception as e:
                    logger.error(f"Error generating insights for user {user_id}: {e}")
                    report.record_failure(user_id, e)

        await asyncio.gather(*[process(user_id) for user_id in user_ids])

        logger.info(
            f"Daily insight generation completed: {report.processed} succeeded, "
            f"{report.failed} failed"
        )
        return report

    async def _generate_daily_for_user(self, user_id: uuid.UUID):
        expires_at = self._expires_at()
        for insight_type, priority, category in DAILY_INSIGHTS:
            await self.insights_service.generate_insight(
                insight_type,
                patient_id=user_id,
                requesting_user_id=user_id,
                priority=priority,
                category=category,
                expires_at=expires_at,
            )

    async def run_cleanup(self) -> int:
        """Delete expired insights. Not gated by the generation flag."""
        deleted = await self.insights_service.delete_expired_insights()
        logger.info(f"Insight cleanup completed: {deleted} expired insights removed")
        return deleted

    async def generate_insights_for_user(self, user_id: uuid.UUID, patient_id: uuid.UUID) -> list:
        """
        Manually generate adherence and trend insights for one patient.

        Errors propagate to the caller.
        """
        generated = []
        for insight_type, priority, category in DAILY_INSIGHTS[:2]:
            insight = await self.insights_service.generate_insight(
                insight_type,
                patient_id=patient_id,
                requesting_user_id=user_id,
                priority=priority,
                category=category,
            )
            if insight is not None:
                generated.append(insight)
        return generated


_scheduler: Optional[InsightScheduler] = None


def get_scheduler() -> InsightScheduler:
    """Global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = InsightScheduler()
    return _scheduler
