# billing/services/notifications.py

"""
NOTIFICATION DISPATCH (OUTBOUND)

The engine only says "send this notification". Delivery belongs elsewhere.

RULES:
- Fire-and-forget: a dispatch failure is logged and discarded, never
  propagated into a charge or a batch run.
- Dispatch happens after commit, so a rolled-back charge never emits a receipt.
- Dispatcher class is configurable: settings.BILLING["NOTIFICATION_DISPATCHER"].
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

from billing.models import NotificationEvent

logger = logging.getLogger(__name__)

KIND_RECEIPT = NotificationEvent.KIND_RECEIPT
KIND_REMINDER = NotificationEvent.KIND_REMINDER
KIND_INVOICE_SEND = NotificationEvent.KIND_INVOICE_SEND

DEFAULT_DISPATCHER = "billing.services.notifications.OutboxNotificationDispatcher"


@dataclass(frozen=True)
class Notification:
    kind: str
    tenant_id: object
    member_id: object = None
    invoice_id: object = None
    amount_cents: int | None = None
    currency: str = ""
    meta: dict = field(default_factory=dict)


class NotificationDispatcher:
    def dispatch(self, notification: Notification) -> None:
        raise NotImplementedError


class OutboxNotificationDispatcher(NotificationDispatcher):
    """Writes a NotificationEvent row for the delivery worker to pick up."""

    def dispatch(self, notification: Notification) -> None:
        NotificationEvent.objects.create(
            tenant_id=notification.tenant_id,
            kind=notification.kind,
            member_id=notification.member_id,
            invoice_id=notification.invoice_id,
            amount_cents=notification.amount_cents,
            currency=notification.currency or "",
            meta=notification.meta or {},
        )


def get_dispatcher() -> NotificationDispatcher:
    path = settings.BILLING.get("NOTIFICATION_DISPATCHER") or DEFAULT_DISPATCHER
    return import_string(path)()


def dispatch_notification(notification: Notification) -> bool:
    """Returns False when delivery could not be queued; never raises."""
    try:
        get_dispatcher().dispatch(notification)
    except Exception:
        logger.exception(
            "Notification dispatch failed",
            extra={
                "kind": notification.kind,
                "tenant_id": str(notification.tenant_id),
                "invoice_id": str(notification.invoice_id),
            },
        )
        return False
    return True


def dispatch_on_commit(notification: Notification) -> None:
    transaction.on_commit(lambda: dispatch_notification(notification))
