from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from biabook.core.auth import require_ops_token
from biabook.core.dependencies import get_db
from biabook.models.booking import NotificationQueue
from biabook.schemas.notifications import (
    BookingEvent,
    BookingEventRequest,
    BookingEventResponse,
    CleanupResponse,
    DeliveryStatusItem,
    DeliveryStatusResponse,
    PendingResponse,
    ProcessRequest,
    ProcessResponse,
    QueueItemOut,
    RetryResponse,
    WorkerStatusResponse,
)
from biabook.services import booking_notifications, booking_reads
from biabook.services.notification_container import NotificationServices, get_notification_services
from biabook.services.notification_queue import (
    NotificationNotFoundError,
    NotificationValidationError,
    get_pending_notifications,
    list_notifications_for_appointment,
    requeue_failed_notification,
)
from biabook.utils.timeutil import as_utc, utc_now

router = APIRouter(dependencies=[Depends(require_ops_token)])

_DELIVERY_STATUS = {"processed": "delivered", "failed": "failed", "pending": "pending"}


def _delivery_item(row: NotificationQueue) -> DeliveryStatusItem:
    # Business rows go out over WhatsApp first when a phone is known.
    channel = "whatsapp" if row.recipient_type == "business" and row.recipient_phone else "email"
    return DeliveryStatusItem(
        id=str(row.id),
        type=row.type,
        channel=channel,
        status=_DELIVERY_STATUS.get(row.status, "pending"),
        recipient=row.recipient_email or row.recipient_phone or "Unknown",
        sent_at=as_utc(row.last_attempt_at) if row.status == "processed" else None,
        error=row.error,
        retry_count=int(row.attempts or 0),
    )


@router.post("/notifications/process", response_model=ProcessResponse)
async def process_notifications(
    payload: Optional[ProcessRequest] = Body(default=None),
    services: NotificationServices = Depends(get_notification_services),
):
    limit = payload.limit if payload else 10
    # Shares the background processor guard; returns 0 while a tick is draining.
    processed = await services.processor.process_notifications(limit)
    return ProcessResponse(processed_count=processed, timestamp=utc_now())


@router.get("/notifications/pending", response_model=PendingResponse)
def list_pending_notifications(
    limit: int = Query(default=5, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows = get_pending_notifications(db, limit)
    return PendingResponse(
        count=len(rows),
        notifications=[QueueItemOut.model_validate(row) for row in rows],
    )


@router.get("/notifications/status/{appointment_id}", response_model=DeliveryStatusResponse)
def notification_status(appointment_id: str, db: Session = Depends(get_db)):
    rows = list_notifications_for_appointment(db, appointment_id)
    return DeliveryStatusResponse(
        appointment_id=appointment_id,
        notifications=[_delivery_item(row) for row in rows],
    )


@router.post("/notifications/{notification_id}/retry", response_model=RetryResponse)
async def retry_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    services: NotificationServices = Depends(get_notification_services),
):
    try:
        new_id = requeue_failed_notification(db, notification_id)
    except NotificationNotFoundError as exc:
        raise HTTPException(404, "Notification not found") from exc
    except NotificationValidationError as exc:
        raise HTTPException(400, str(exc)) from exc
    db.commit()

    # Skipped while a tick is draining; the row is then picked up by that tick or the next.
    await services.processor.process_notifications(1)

    return RetryResponse(message="Notification retry initiated", notification_id=new_id)


@router.get("/notifications/cleanup", response_model=CleanupResponse)
def cleanup_notifications(
    days: int = Query(default=15, ge=1, le=365),
    services: NotificationServices = Depends(get_notification_services),
):
    deleted = services.cleanup.manual_cleanup(days)
    return CleanupResponse(
        deleted_count=deleted,
        retention_days=days,
        cutoff=services.cleanup.cutoff(days),
    )


@router.get("/notifications/workers", response_model=WorkerStatusResponse)
def worker_status(services: NotificationServices = Depends(get_notification_services)):
    return WorkerStatusResponse(
        processor=services.processor.get_status(),
        cleanup=services.cleanup.get_status(),
    )


@router.post("/appointments/{appointment_id}/events", response_model=BookingEventResponse)
def booking_event(
    appointment_id: str,
    payload: BookingEventRequest,
    db: Session = Depends(get_db),
    services: NotificationServices = Depends(get_notification_services),
):
    appointment = booking_reads.get_appointment_by_id(db, appointment_id)
    if appointment is None:
        raise HTTPException(404, "Appointment not found")
    service = booking_reads.get_service_by_id(db, appointment.service_id)
    business = booking_reads.get_business_by_id(db, appointment.business_id)
    if service is None or business is None:
        raise HTTPException(404, "Service or business not found")

    hooks = {
        BookingEvent.CREATED: booking_notifications.on_booking_created,
        BookingEvent.CONFIRMED: booking_notifications.on_booking_confirmed,
        BookingEvent.CANCELLED: booking_notifications.on_booking_cancelled,
        BookingEvent.RESCHEDULED: booking_notifications.on_booking_rescheduled,
    }
    ok = hooks[payload.event](db, services.scheduler, appointment, service, business)
    return BookingEventResponse(success=ok, appointment_id=str(appointment.id), event=payload.event)
