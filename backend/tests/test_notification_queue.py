"""
Tests for the notification queue store.

Covers:
  - Enqueue validation and captured contact details
  - Eligibility: pending, due, attempts left, earliest first
  - Retry cap: pending -> failed on the third failure
  - Cancellation of pending rows for one appointment
  - Cleanup never deletes pending rows
  - Manual requeue of failed rows
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import pytest

from biabook.models.booking import NotificationQueue
from biabook.services.notification_queue import (
    APPOINTMENT_CANCELLED_ERROR,
    MAX_ATTEMPTS,
    NotificationNotFoundError,
    NotificationValidationError,
    cancel_notifications_for_appointment,
    cleanup_old_notifications,
    enqueue_notification,
    get_notification,
    get_pending_notifications,
    list_notifications_for_appointment,
    mark_as_failed,
    mark_as_processed,
    requeue_failed_notification,
    reschedule_notification,
)
from biabook.utils.timeutil import db_now
from conftest import utc_in


def _enqueue(db, **overrides):
    values = {
        "type": "booking_confirmation",
        "recipient_id": "john@example.com",
        "recipient_type": "customer",
        "recipient_email": "john@example.com",
        "payload": {
            "appointment_id": str(uuid.uuid4()),
            "service_id": str(uuid.uuid4()),
            "business_id": str(uuid.uuid4()),
        },
        "scheduled_for": utc_in(minutes=-1),
    }
    values.update(overrides)
    return enqueue_notification(db, **values)


# ── Enqueue ──────────────────────────────────────────────────────────


def test_enqueue_creates_pending_row_with_zero_attempts(db):
    notification_id = _enqueue(db, recipient_phone="+15550001111")
    db.commit()

    row = get_notification(db, notification_id)
    assert row.status == "pending"
    assert row.attempts == 0
    assert row.error is None
    assert row.last_attempt_at is None
    assert row.recipient_phone == "+15550001111"
    assert row.appointment_id == row.payload["appointment_id"]


def test_enqueue_accepts_iso_string(db):
    notification_id = _enqueue(db, scheduled_for="2030-01-01T10:00:00+00:00")
    row = get_notification(db, notification_id)
    assert row.scheduled_for.year == 2030


def test_enqueue_rejects_invalid_date(db):
    with pytest.raises(NotificationValidationError, match="Invalid scheduled_for"):
        _enqueue(db, scheduled_for="not-a-date")
    assert db.query(NotificationQueue).count() == 0


def test_enqueue_rejects_missing_email(db):
    with pytest.raises(NotificationValidationError):
        _enqueue(db, recipient_email="")


def test_enqueue_rejects_unknown_recipient_type(db):
    with pytest.raises(NotificationValidationError):
        _enqueue(db, recipient_type="staff")


# ── Eligibility ──────────────────────────────────────────────────────


def test_pending_returns_only_due_rows_earliest_first(db):
    later = _enqueue(db, scheduled_for=utc_in(minutes=-5))
    earlier = _enqueue(db, scheduled_for=utc_in(minutes=-30))
    _enqueue(db, scheduled_for=utc_in(hours=1))
    db.commit()

    rows = get_pending_notifications(db, limit=10)
    assert [str(r.id) for r in rows] == [earlier, later]


def test_pending_respects_limit(db):
    for minutes in (10, 20, 30):
        _enqueue(db, scheduled_for=utc_in(minutes=-minutes))
    db.commit()

    assert len(get_pending_notifications(db, limit=2)) == 2


@pytest.mark.parametrize("limit", [0, -5])
def test_pending_with_non_positive_limit_is_empty(db, limit):
    _enqueue(db)
    db.commit()

    assert get_pending_notifications(db, limit=limit) == []


def test_pending_excludes_processed_and_failed(db):
    processed = _enqueue(db)
    failed = _enqueue(db)
    pending = _enqueue(db)
    mark_as_processed(db, processed)
    for _ in range(MAX_ATTEMPTS):
        mark_as_failed(db, failed, "boom")
    db.commit()

    assert [str(r.id) for r in get_pending_notifications(db)] == [pending]


# ── Status transitions ───────────────────────────────────────────────


def test_mark_as_failed_retries_until_cap(db):
    notification_id = _enqueue(db)

    mark_as_failed(db, notification_id, "first")
    row = get_notification(db, notification_id)
    assert (row.status, row.attempts, row.error) == ("pending", 1, "first")
    assert row.last_attempt_at is not None

    mark_as_failed(db, notification_id, "second")
    assert get_notification(db, notification_id).status == "pending"

    mark_as_failed(db, notification_id, "third")
    row = get_notification(db, notification_id)
    assert (row.status, row.attempts, row.error) == ("failed", 3, "third")


def test_failed_row_stays_eligible_without_backoff(db):
    notification_id = _enqueue(db)
    mark_as_failed(db, notification_id, "smtp down")
    db.commit()

    assert [str(r.id) for r in get_pending_notifications(db)] == [notification_id]


def test_mark_as_processed_is_idempotent(db):
    notification_id = _enqueue(db)
    mark_as_processed(db, notification_id)
    first_attempt_at = get_notification(db, notification_id).last_attempt_at

    mark_as_processed(db, notification_id)
    row = get_notification(db, notification_id)
    assert row.status == "processed"
    assert row.attempts == 0
    assert row.last_attempt_at == first_attempt_at


def test_late_failure_does_not_revive_cancelled_row(db):
    appointment_id = str(uuid.uuid4())
    notification_id = _enqueue(db, payload={"appointment_id": appointment_id, "service_id": "s", "business_id": "b"})
    cancel_notifications_for_appointment(db, appointment_id)

    mark_as_failed(db, notification_id, "Failed to send notification")

    row = get_notification(db, notification_id)
    assert (row.status, row.attempts, row.error) == ("failed", 0, APPOINTMENT_CANCELLED_ERROR)
    assert get_pending_notifications(db) == []


def test_late_success_does_not_overwrite_cancelled_row(db):
    appointment_id = str(uuid.uuid4())
    notification_id = _enqueue(db, payload={"appointment_id": appointment_id, "service_id": "s", "business_id": "b"})
    cancel_notifications_for_appointment(db, appointment_id)

    mark_as_processed(db, notification_id)

    row = get_notification(db, notification_id)
    assert (row.status, row.error) == ("failed", APPOINTMENT_CANCELLED_ERROR)


def test_processed_row_ignores_later_failure(db):
    notification_id = _enqueue(db)
    mark_as_processed(db, notification_id)

    mark_as_failed(db, notification_id, "boom")

    row = get_notification(db, notification_id)
    assert (row.status, row.attempts, row.error) == ("processed", 0, None)


def test_unknown_id_raises_not_found(db):
    missing = str(uuid.uuid4())
    with pytest.raises(NotificationNotFoundError, match=f"Notification with ID {missing} not found"):
        mark_as_processed(db, missing)
    with pytest.raises(NotificationNotFoundError):
        mark_as_failed(db, missing, "x")


def test_reschedule_moves_due_time(db):
    notification_id = _enqueue(db)
    reschedule_notification(db, notification_id, utc_in(hours=2))
    db.commit()

    assert get_pending_notifications(db) == []


# ── Cancellation ─────────────────────────────────────────────────────


def test_cancel_fails_only_pending_rows_of_appointment(db):
    appointment_id = str(uuid.uuid4())
    payload = {"appointment_id": appointment_id, "service_id": "s", "business_id": "b"}
    first = _enqueue(db, payload=payload, scheduled_for=utc_in(hours=20))
    second = _enqueue(db, payload=payload, scheduled_for=utc_in(hours=40))
    done = _enqueue(db, payload=payload)
    mark_as_processed(db, done)
    other = _enqueue(db)
    db.commit()

    assert cancel_notifications_for_appointment(db, appointment_id) == 2
    db.commit()

    for notification_id in (first, second):
        row = get_notification(db, notification_id)
        assert row.status == "failed"
        assert row.error == APPOINTMENT_CANCELLED_ERROR
    assert get_notification(db, done).status == "processed"
    assert get_notification(db, other).status == "pending"


def test_cancel_with_nothing_pending_returns_zero(db):
    assert cancel_notifications_for_appointment(db, str(uuid.uuid4())) == 0


def test_list_for_appointment(db):
    appointment_id = str(uuid.uuid4())
    payload = {"appointment_id": appointment_id, "service_id": "s", "business_id": "b"}
    _enqueue(db, payload=payload)
    _enqueue(db, payload=payload, type="business_new_booking", recipient_type="business")
    _enqueue(db)
    db.commit()

    rows = list_notifications_for_appointment(db, appointment_id)
    assert {r.type for r in rows} == {"booking_confirmation", "business_new_booking"}


# ── Cleanup ──────────────────────────────────────────────────────────


def _age(db, notification_id, days):
    row = get_notification(db, notification_id)
    row.updated_at = db_now(db) - timedelta(days=days)
    db.flush()


def test_cleanup_deletes_old_terminal_rows_only(db):
    old_processed = _enqueue(db)
    mark_as_processed(db, old_processed)
    _age(db, old_processed, 20)

    old_failed = _enqueue(db)
    for _ in range(MAX_ATTEMPTS):
        mark_as_failed(db, old_failed)
    _age(db, old_failed, 20)

    old_pending = _enqueue(db, scheduled_for=utc_in(days=-20))
    _age(db, old_pending, 20)

    recent_processed = _enqueue(db)
    mark_as_processed(db, recent_processed)
    db.commit()

    deleted = cleanup_old_notifications(db, utc_in(days=-15))
    db.commit()

    assert deleted == 2
    remaining = {str(r.id) for r in db.query(NotificationQueue).all()}
    assert remaining == {old_pending, recent_processed}


# ── Requeue ──────────────────────────────────────────────────────────


def test_requeue_copies_failed_row(db):
    failed = _enqueue(db, recipient_phone="+15550001111")
    for _ in range(MAX_ATTEMPTS):
        mark_as_failed(db, failed, "boom")
    db.commit()

    new_id = requeue_failed_notification(db, failed)
    db.commit()

    assert new_id != failed
    copy = get_notification(db, new_id)
    original = get_notification(db, failed)
    assert copy.status == "pending"
    assert copy.attempts == 0
    assert copy.payload == original.payload
    assert copy.recipient_phone == original.recipient_phone
    assert original.status == "failed"


def test_requeue_rejects_non_failed_row(db):
    pending = _enqueue(db)
    with pytest.raises(NotificationValidationError):
        requeue_failed_notification(db, pending)
