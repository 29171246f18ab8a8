# ispbill/scheduler.py
import logging
import time
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from .core.config import get_settings

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - [Scheduler] - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("Scheduler")


def job_listener(event):
    """Logs the outcome of every job run."""
    if event.exception:
        logger.error(f"Job {event.job_id} failed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully")


def parse_run_time(value: str, default: tuple[int, int]) -> tuple[int, int]:
    """'HH:MM' -> (hour, minute); falls back to ``default`` on a bad value."""
    try:
        hour, minute = value.split(":")
        hour, minute = int(hour), int(minute)
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(value)
        return hour, minute
    except (ValueError, AttributeError):
        logger.warning(f"Invalid time format: {value}. Using {default[0]:02d}:{default[1]:02d}")
        return default


def build_scheduler(settings=None) -> BackgroundScheduler:
    """Configures the billing jobs without starting them."""
    # Late imports keep the scheduler module importable without a database
    from .services.billing_job import run_invoice_generation, run_overdue_check

    settings = settings or get_settings()

    scheduler = BackgroundScheduler(
        job_defaults={
            'coalesce': True,  # Missed runs are executed only once
            'max_instances': 1,
            'misfire_grace_time': 300
        }
    )
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    # --- Job 1: Invoice generation ---
    hour, minute = parse_run_time(settings.billing_invoice_time, (0, 0))
    logger.info(f"Scheduling invoice generation daily at {hour:02d}:{minute:02d}")
    scheduler.add_job(
        run_invoice_generation,
        trigger=CronTrigger(hour=hour, minute=minute),
        id='invoice_job',
        name='Daily Invoice Generation',
        replace_existing=True
    )

    # --- Job 2: Overdue and isolation check ---
    o_hour, o_minute = parse_run_time(settings.billing_isolation_time, (1, 0))
    logger.info(f"Scheduling overdue check daily at {o_hour:02d}:{o_minute:02d}")
    scheduler.add_job(
        run_overdue_check,
        trigger=CronTrigger(hour=o_hour, minute=o_minute),
        id='overdue_job',
        name='Daily Overdue Check',
        replace_existing=True
    )
    return scheduler


def run_scheduler():
    """Entry point for the scheduler process."""
    logger.info("Initializing BackgroundScheduler...")
    scheduler = build_scheduler()
    scheduler.start()
    logger.info("Scheduler started")

    # Keep the process alive
    try:
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Stopping scheduler...")
        scheduler.shutdown()
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    run_scheduler()
