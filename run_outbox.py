"""
Notification outbox worker: delivers queued emails to the edge functions.

    python run_outbox.py           # run on the scheduler
    python run_outbox.py --once    # single pass (cron)
"""
import argparse
import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dropship.config import settings
from dropship.database import SessionLocal
from dropship.services.outbox import process_outbox
from dropship.utils.edge_functions import get_edge_client

if not settings.DEBUG:
    from dropship.utils.logging_config import root_logger  # noqa: F401
else:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("outbox")


def run_once() -> dict:
    db = SessionLocal()
    try:
        return process_outbox(db, get_edge_client())
    finally:
        db.close()


def outbox_job() -> None:
    """Called by the scheduler every OUTBOX_POLL_INTERVAL seconds"""
    try:
        stats = run_once()
    except Exception as e:
        logger.error(f"Outbox pass failed: {e}", exc_info=True)
        return
    if stats.get("sent") or stats.get("failed"):
        logger.info(f"Outbox pass: {stats}")


def build_scheduler() -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        outbox_job,
        trigger=IntervalTrigger(seconds=settings.OUTBOX_POLL_INTERVAL),
        id="notification_outbox",
        name="Deliver Notification Outbox",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def main():
    parser = argparse.ArgumentParser(description="Deliver queued notification emails")
    parser.add_argument("--once", action="store_true", help="run a single batch and exit")
    args = parser.parse_args()

    if args.once:
        print(run_once())
        return

    logger.info(f"Outbox worker started, polling every {settings.OUTBOX_POLL_INTERVAL}s")
    scheduler = build_scheduler()
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Outbox worker stopped")


if __name__ == "__main__":
    main()
