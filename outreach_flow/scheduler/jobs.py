"""APScheduler background jobs for workflow and slot ticks.

Schedule:
  - Workflow tick:  every WORKFLOW_TICK_MINUTES (resume due delays, advance running campaigns)
  - Slot tick:      every SLOT_TICK_MINUTES, for each account in SLOT_ACCOUNTS

Both ticks are idempotent and can also be called directly (tests, API, cron).
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from outreach_flow.config import settings
from outreach_flow.store import EntityStore

logger = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None


def workflow_tick(tenant_id: str | None = None) -> dict:
    """Resume due delays and advance active leads of running campaigns."""
    from outreach_flow.workflow.engine import build_engine

    logger.info("Scheduled job: workflow_tick starting")
    result = build_engine(EntityStore(tenant_id=tenant_id)).run_tick()
    logger.info("Scheduled job: workflow_tick done: %s", result)
    return result


def slot_tick() -> dict:
    """Process due slots for every configured account."""
    from outreach_flow.outreach.slot_processor import process_pending_slots

    logger.info("Scheduled job: slot_tick starting")
    totals = {"processed": 0, "failed": 0}
    for account_id, tenant_id in settings.slot_account_pairs:
        try:
            result = process_pending_slots(account_id, tenant_id)
        except Exception:
            logger.exception("Slot tick failed for account %s", account_id)
            continue
        totals["processed"] += result["processed"]
        totals["failed"] += result["failed"]
    logger.info("Scheduled job: slot_tick done: %s", totals)
    return totals


def start_scheduler() -> BackgroundScheduler:
    """Start the background scheduler with both tick jobs."""
    global _scheduler

    if _scheduler and _scheduler.running:
        logger.warning("Scheduler already running")
        return _scheduler

    _scheduler = BackgroundScheduler(
        job_defaults={"coalesce": True, "max_instances": 1},
    )

    _scheduler.add_job(
        workflow_tick,
        trigger=IntervalTrigger(minutes=settings.workflow_tick_minutes),
        id="workflow_tick",
        name=f"Workflow tick (every {settings.workflow_tick_minutes}m)",
        replace_existing=True,
    )

    if settings.slot_account_pairs:
        _scheduler.add_job(
            slot_tick,
            trigger=IntervalTrigger(minutes=settings.slot_tick_minutes),
            id="slot_tick",
            name=f"Slot tick (every {settings.slot_tick_minutes}m)",
            replace_existing=True,
        )
    else:
        logger.info("No SLOT_ACCOUNTS configured, slot tick disabled")

    _scheduler.start()
    logger.info("Scheduler started with %d jobs", len(_scheduler.get_jobs()))
    for job in _scheduler.get_jobs():
        logger.info("  Job: %s, next run: %s", job.name, job.next_run_time)

    return _scheduler


def stop_scheduler() -> None:
    """Stop the background scheduler gracefully."""
    global _scheduler

    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None
