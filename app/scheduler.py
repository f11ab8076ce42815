"""
Scheduler for continuous platform optimization

Uses APScheduler to run the self-optimization loop on an interval.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
import time

from app.api.deps import get_optimization_service
from app.config import get_settings
from app.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler()


async def run_continuous_optimization():
    """Analyze a metrics snapshot and auto-apply high-confidence items"""
    start = time.time()
    try:
        log.info("Starting continuous optimization run...")
        result = await get_optimization_service().run_continuous_optimization()
        log.info(
            f"Continuous optimization completed: {result['optimizations_applied']} applied, "
            f"{len(result['next_recommendations'])} pending review "
            f"in {time.time() - start:.1f}s"
        )
    except Exception as e:
        log.error(f"Continuous optimization error: {str(e)}")


def setup_scheduler():
    """
    Configure the scheduler.

    - Continuous optimization: every `continuous_optimization_interval_minutes`
      (only when `enable_continuous_optimization` is set)
    """
    if not settings.enable_continuous_optimization:
        log.info("Continuous optimization disabled; no jobs scheduled")
        return

    scheduler.add_job(
        run_continuous_optimization,
        trigger=IntervalTrigger(minutes=settings.continuous_optimization_interval_minutes),
        id='continuous_optimization',
        name='Continuous Platform Optimization',
        replace_existing=True,
        max_instances=1
    )
    log.info(
        f"Scheduled continuous optimization every "
        f"{settings.continuous_optimization_interval_minutes} minutes"
    )


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
    log.info("Scheduler stopped")
