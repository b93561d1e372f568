from datetime import datetime, timedelta

from dropship.exceptions import RemoteError
from dropship.models.notification import NotificationOutbox, OutboxStatus
from dropship.services.outbox import process_outbox, retry_delay
from dropship.utils.notification_helper import enqueue_email

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _queue(db, **fields):
    entry = enqueue_email(db, "payout_approved", userEmail="someone@example.com", **fields)
    entry.next_attempt_at = NOW
    entry.created_at = NOW
    db.commit()
    return entry


def test_enqueue_drops_empty_fields(db):
    entry = _queue(db, adminNotes=None, amount=12.5)

    assert entry.function_name == "send-notification-email"
    assert entry.payload == {"type": "payout_approved", "userEmail": "someone@example.com", "amount": 12.5}
    assert entry.status == OutboxStatus.PENDING


def test_delivered_entries_are_marked_sent(db, edge_client):
    entry = _queue(db)

    stats = process_outbox(db, edge_client, now=NOW)

    assert stats == {"sent": 1, "retried": 0, "failed": 0}
    db.refresh(entry)
    assert entry.status == OutboxStatus.SENT
    assert entry.sent_at == NOW
    edge_client.invoke.assert_called_once_with("send-notification-email", entry.payload)


def test_failure_is_retried_with_backoff(db, edge_client):
    entry = _queue(db)
    edge_client.invoke.side_effect = RemoteError("SMTP down")

    stats = process_outbox(db, edge_client, now=NOW, max_attempts=5)

    assert stats == {"sent": 0, "retried": 1, "failed": 0}
    db.refresh(entry)
    assert entry.attempts == 1
    assert entry.last_error == "SMTP down"
    assert entry.next_attempt_at == NOW + retry_delay(1)

    # not due yet
    assert process_outbox(db, edge_client, now=NOW, max_attempts=5) == {"sent": 0, "retried": 0, "failed": 0}


def test_entry_fails_after_max_attempts(db, edge_client):
    entry = _queue(db)
    edge_client.invoke.side_effect = ConnectionError("unreachable")

    later = NOW
    for _ in range(3):
        process_outbox(db, edge_client, now=later, max_attempts=3)
        later += timedelta(days=1)

    db.refresh(entry)
    assert entry.status == OutboxStatus.FAILED
    assert entry.attempts == 3
    assert process_outbox(db, edge_client, now=later, max_attempts=3)["failed"] == 0


def test_retry_delay_doubles():
    assert retry_delay(1, base_seconds=30) == timedelta(seconds=30)
    assert retry_delay(2, base_seconds=30) == timedelta(seconds=60)
    assert retry_delay(4, base_seconds=30) == timedelta(seconds=240)


def test_one_bad_entry_does_not_block_the_batch(db, edge_client):
    first = _queue(db)
    second = _queue(db)
    edge_client.invoke.side_effect = [RemoteError("bounced"), {}]

    stats = process_outbox(db, edge_client, now=NOW)

    assert stats == {"sent": 1, "retried": 1, "failed": 0}
    statuses = {db.get(NotificationOutbox, e.id).status for e in (first, second)}
    assert statuses == {OutboxStatus.PENDING, OutboxStatus.SENT}


def test_worker_schedules_a_single_interval_job():
    import run_outbox

    scheduler = run_outbox.build_scheduler()
    job = scheduler.get_job("notification_outbox")

    assert job.func is run_outbox.outbox_job
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.trigger.interval == timedelta(seconds=run_outbox.settings.OUTBOX_POLL_INTERVAL)


def test_worker_job_survives_a_failed_pass(monkeypatch):
    import run_outbox

    def broken():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(run_outbox, "run_once", broken)

    run_outbox.outbox_job()
