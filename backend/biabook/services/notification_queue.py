from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from biabook.models.booking import NotificationQueue
from biabook.schemas.notifications import NotificationStatus, NotificationType, RecipientType
from biabook.utils.redaction import log_email
from biabook.utils.timeutil import as_db_dt, db_now

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
APPOINTMENT_CANCELLED_ERROR = "Appointment cancelled"

PENDING = NotificationStatus.PENDING.value
PROCESSED = NotificationStatus.PROCESSED.value
FAILED = NotificationStatus.FAILED.value


class NotificationValidationError(ValueError):
    pass


class NotificationNotFoundError(LookupError):
    def __init__(self, notification_id: Any):
        super().__init__(f"Notification with ID {notification_id} not found")
        self.notification_id = notification_id


def _validate_scheduled_for(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise NotificationValidationError(f"Invalid scheduled_for date: {value}") from None
    if not isinstance(value, datetime):
        raise NotificationValidationError(f"Invalid scheduled_for date: {value!r}")
    return value


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value))


def _load(db: Session, notification_id: Any, *, refresh: bool = False) -> NotificationQueue:
    row = db.get(NotificationQueue, _as_uuid(notification_id), populate_existing=refresh)
    if row is None:
        raise NotificationNotFoundError(notification_id)
    return row


def _as_uuid(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return value


def enqueue_notification(
    db: Session,
    *,
    type: NotificationType | str,
    recipient_id: str,
    recipient_type: RecipientType | str,
    recipient_email: str,
    payload: dict[str, Any],
    scheduled_for: datetime,
    recipient_phone: Optional[str] = None,
) -> str:
    """
    Inserts a pending notification and returns its id.
    Contact details are captured as given; they are not re-read at send time.
    """
    scheduled_for = _validate_scheduled_for(scheduled_for)
    if not recipient_email:
        raise NotificationValidationError("Recipient email is required")
    recipient_type = _enum_value(recipient_type)
    if recipient_type not in {RecipientType.CUSTOMER.value, RecipientType.BUSINESS.value}:
        raise NotificationValidationError(f"Invalid recipient_type: {recipient_type}")

    payload = dict(payload or {})
    appointment_id = payload.get("appointment_id")
    now = db_now(db)

    row = NotificationQueue(
        id=uuid.uuid4(),
        type=_enum_value(type),
        recipient_id=str(recipient_id),
        recipient_type=recipient_type,
        recipient_email=recipient_email,
        recipient_phone=recipient_phone or None,
        payload=payload,
        appointment_id=str(appointment_id) if appointment_id else None,
        scheduled_for=as_db_dt(db, scheduled_for),
        status=PENDING,
        attempts=0,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.flush()

    logger.info(
        "Notification enqueued: id=%s type=%s recipient_type=%s to=%s scheduled_for=%s minutes_until_send=%s",
        row.id,
        row.type,
        row.recipient_type,
        log_email(recipient_email),
        row.scheduled_for.isoformat(),
        round((row.scheduled_for - now).total_seconds() / 60),
    )
    return str(row.id)


def get_pending_notifications(db: Session, limit: int = 10) -> list[NotificationQueue]:
    """Due items, earliest first, that still have attempts left."""
    if limit <= 0:
        return []
    now = db_now(db)
    rows = (
        db.execute(
            select(NotificationQueue)
            .where(
                NotificationQueue.status == PENDING,
                NotificationQueue.scheduled_for <= now,
                NotificationQueue.attempts < MAX_ATTEMPTS,
            )
            .order_by(NotificationQueue.scheduled_for.asc())
            .limit(int(limit))
        )
        .scalars()
        .all()
    )
    if rows:
        logger.debug("Pending notifications due: count=%s now=%s", len(rows), now.isoformat())
    return list(rows)


def get_notification(db: Session, notification_id: Any) -> NotificationQueue:
    return _load(db, notification_id)


def list_notifications_for_appointment(db: Session, appointment_id: Any) -> list[NotificationQueue]:
    return list(
        db.execute(
            select(NotificationQueue)
            .where(NotificationQueue.appointment_id == str(appointment_id))
            .order_by(NotificationQueue.created_at.desc())
        )
        .scalars()
        .all()
    )


def mark_as_processed(db: Session, notification_id: Any) -> None:
    row = _load(db, notification_id, refresh=True)
    if row.status == PROCESSED:
        return
    if row.status == FAILED:
        logger.warning("Notification already failed, not marking processed: id=%s error=%s", row.id, row.error)
        return
    now = db_now(db)
    row.status = PROCESSED
    row.last_attempt_at = now
    row.updated_at = now
    row.error = None
    db.flush()
    logger.info("Notification processed: id=%s type=%s", row.id, row.type)


def mark_as_failed(db: Session, notification_id: Any, error: Optional[str] = None) -> None:
    row = _load(db, notification_id, refresh=True)
    if row.status != PENDING:
        logger.warning(
            "Notification already %s, attempt not recorded: id=%s error=%s", row.status, row.id, error or "Unknown error"
        )
        return
    attempts = int(row.attempts or 0) + 1
    status = FAILED if attempts >= MAX_ATTEMPTS else PENDING
    now = db_now(db)

    row.attempts = attempts
    row.status = status
    row.last_attempt_at = now
    row.updated_at = now
    row.error = error
    db.flush()

    logger.warning(
        "Notification attempt failed: id=%s type=%s status=%s attempts=%s max_attempts=%s error=%s",
        row.id,
        row.type,
        status,
        attempts,
        MAX_ATTEMPTS,
        error or "Unknown error",
    )


def reschedule_notification(db: Session, notification_id: Any, scheduled_for: datetime) -> None:
    scheduled_for = _validate_scheduled_for(scheduled_for)
    row = _load(db, notification_id)
    row.scheduled_for = as_db_dt(db, scheduled_for)
    row.updated_at = db_now(db)
    db.flush()
    logger.info("Notification rescheduled: id=%s scheduled_for=%s", row.id, row.scheduled_for.isoformat())


def cancel_notifications_for_appointment(db: Session, appointment_id: Any) -> int:
    result = db.execute(
        update(NotificationQueue)
        .where(
            NotificationQueue.status == PENDING,
            NotificationQueue.appointment_id == str(appointment_id),
        )
        .values(status=FAILED, error=APPOINTMENT_CANCELLED_ERROR, updated_at=db_now(db))
        .execution_options(synchronize_session="fetch")
    )
    count = int(result.rowcount or 0)
    logger.info("Cancelled pending notifications: appointment_id=%s count=%s", appointment_id, count)
    return count


def requeue_failed_notification(db: Session, notification_id: Any) -> str:
    """
    Creates a fresh pending copy of a failed item. The failed row stays terminal.
    """
    row = _load(db, notification_id)
    if row.status != FAILED:
        raise NotificationValidationError("Only failed notifications can be retried")
    new_id = enqueue_notification(
        db,
        type=row.type,
        recipient_id=row.recipient_id,
        recipient_type=row.recipient_type,
        recipient_email=row.recipient_email,
        recipient_phone=row.recipient_phone,
        payload=dict(row.payload or {}),
        scheduled_for=db_now(db),
    )
    logger.info("Failed notification requeued: id=%s new_id=%s", row.id, new_id)
    return new_id


def cleanup_old_notifications(db: Session, older_than: datetime) -> int:
    """Deletes processed/failed rows last touched before ``older_than``; pending rows are kept."""
    cutoff = as_db_dt(db, older_than)
    result = db.execute(
        delete(NotificationQueue)
        .where(
            NotificationQueue.status.in_([PROCESSED, FAILED]),
            NotificationQueue.updated_at < cutoff,
        )
        .execution_options(synchronize_session="fetch")
    )
    count = int(result.rowcount or 0)
    logger.info("Cleaned up old notifications: cutoff=%s count=%s", cutoff.isoformat(), count)
    return count
