"""
Delivery of queued edge function calls (emails). Failures are retried with
exponential backoff and never reach the operation that queued them.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from dropship.config import settings
from dropship.models.notification import NotificationOutbox, OutboxStatus
from dropship.utils.edge_functions import EdgeFunctionClient

logger = logging.getLogger(__name__)


def retry_delay(attempts: int, base_seconds: Optional[int] = None) -> timedelta:
    base = settings.OUTBOX_RETRY_BASE_SECONDS if base_seconds is None else base_seconds
    return timedelta(seconds=base * 2 ** (attempts - 1))


def process_outbox(
    db: Session,
    client: EdgeFunctionClient,
    batch_size: Optional[int] = None,
    now: Optional[datetime] = None,
    max_attempts: Optional[int] = None,
) -> Dict[str, int]:
    """Deliver due entries; returns counts of sent, retried and failed rows."""
    now = now or datetime.utcnow()
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
    stats = {"sent": 0, "retried": 0, "failed": 0}

    entries = (
        db.query(NotificationOutbox)
        .filter(NotificationOutbox.status == OutboxStatus.PENDING, NotificationOutbox.next_attempt_at <= now)
        .order_by(NotificationOutbox.created_at.asc())
        .limit(batch_size)
        .all()
    )

    for entry in entries:
        try:
            client.invoke(entry.function_name, entry.payload)
        except Exception as e:
            entry.attempts += 1
            entry.last_error = str(e)
            if entry.attempts >= max_attempts:
                entry.status = OutboxStatus.FAILED
                stats["failed"] += 1
                logger.error(
                    f"Giving up on outbox entry {entry.id} ({entry.function_name}) after {entry.attempts} attempts: "
                    f"{e}"
                )
            else:
                entry.next_attempt_at = now + retry_delay(entry.attempts)
                stats["retried"] += 1
                logger.warning(
                    f"Outbox entry {entry.id} ({entry.function_name}) failed, attempt {entry.attempts}: {e}"
                )
        else:
            entry.attempts += 1
            entry.status = OutboxStatus.SENT
            entry.sent_at = now
            entry.last_error = None
            stats["sent"] += 1
        db.commit()

    if entries:
        logger.info(f"Outbox run: {stats}")
    return stats
