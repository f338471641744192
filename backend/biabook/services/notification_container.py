from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from biabook.core.config import Settings, get_settings
from biabook.services.email_service import EmailService, SmtpConfig
from biabook.services.notification_scheduler import NotificationScheduler
from biabook.services.notification_service import NotificationService
from biabook.services.recurring_jobs import (
    BackgroundNotificationProcessor,
    NotificationCleanupService,
    SessionFactory,
)
from biabook.services.whatsapp_service import WhatsAppConfig, WhatsAppService


@dataclass
class NotificationServices:
    email: EmailService
    whatsapp: WhatsAppService
    dispatcher: NotificationService
    scheduler: NotificationScheduler
    processor: BackgroundNotificationProcessor
    cleanup: NotificationCleanupService


def build_notification_services(
    settings: Settings,
    session_factory: Optional[SessionFactory],
    *,
    email: Optional[EmailService] = None,
    whatsapp: Optional[WhatsAppService] = None,
) -> NotificationServices:
    email = email or EmailService(SmtpConfig.from_settings(settings))
    whatsapp = whatsapp or WhatsAppService(WhatsAppConfig.from_settings(settings))
    dispatcher = NotificationService(
        email_service=email,
        whatsapp_service=whatsapp,
        base_url=settings.app_base_url,
    )
    scheduler = NotificationScheduler(dispatcher, default_timezone=settings.default_timezone)
    return NotificationServices(
        email=email,
        whatsapp=whatsapp,
        dispatcher=dispatcher,
        scheduler=scheduler,
        processor=BackgroundNotificationProcessor(
            scheduler,
            session_factory,
            batch_size=settings.notification_batch_size,
        ),
        cleanup=NotificationCleanupService(
            session_factory,
            retention_days=settings.notification_retention_days,
        ),
    )


@lru_cache
def get_notification_services() -> NotificationServices:
    """Process-wide instance shared by the HTTP layer and the background loops."""
    from biabook.core.dependencies import SessionLocal

    return build_notification_services(get_settings(), SessionLocal)
