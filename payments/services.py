import logging
from dataclasses import dataclass

from django.db import DatabaseError, transaction
from django.utils import timezone

from . import status as order_status
from .emails import send_payment_confirmation
from .exceptions import OrderNotFound, ReconciliationWriteFailure
from .models import Order, WebhookEvent
from .notifications import Notification, parse_notification

logger = logging.getLogger(__name__)

# a lost compare-and-swap is retried once against the fresh row
WRITE_ATTEMPTS = 2


class _LostRace(Exception):
    pass


@dataclass
class ReconcileResult:
    order: Order
    previous_status: str
    status: str
    outcome: str


def target_status(order: Order, notification: Notification) -> str:
    target = order_status.map_status(notification)
    if target == order_status.UNKNOWN:
        logger.warning("Unrecognized %s status %r (fraud %r) for %s; needs manual triage",
                       notification.provider, notification.status, notification.fraud_status,
                       notification.reference)
    checked = order_status.settlement_target(target, order.gross_amount, notification.gross_amount)
    if checked != target:
        logger.warning("Settled amount %s differs from order %s amount %s; holding for review",
                       notification.gross_amount, order.order_id, order.gross_amount)
    return checked


def _changes(order: Order, notification: Notification, target: str) -> dict:
    fields = {
        "status": target,
        "payment_metadata": notification.raw,
        "provider_status": notification.status,
        "fraud_status": notification.fraud_status,
    }
    if notification.transaction_id:
        fields["transaction_id"] = notification.transaction_id
    if notification.payment_type:
        fields["payment_type"] = notification.payment_type
    if target == order_status.PENDING and notification.instructions:
        fields["payment_instructions"] = notification.instructions
    if target == order_status.REFUNDED:
        # no amount in the notification means the whole order was refunded
        fields["amount_refunded"] = notification.refund_amount or order.gross_amount
    return fields


def _keep_unrecognized_payload(order: Order, notification: Notification) -> None:
    """Store the raw payload of an unrecognized code without touching the status."""
    fields = {
        "payment_metadata": notification.raw,
        "provider_status": notification.status,
        "fraud_status": notification.fraud_status,
    }
    if all(getattr(order, name) == value for name, value in fields.items()):
        return
    now = timezone.now()
    fields.update(last_webhook_at=now, updated_at=now)
    Order.objects.filter(pk=order.pk, status=order.status).update(**fields)
    for name, value in fields.items():
        setattr(order, name, value)


def _reconcile_once(notification: Notification) -> ReconcileResult:
    with transaction.atomic():
        order = Order.objects.select_for_update().filter(
            provider=notification.provider, provider_reference=notification.reference,
        ).first()
        if order is None:
            raise OrderNotFound(notification.reference)

        previous = order.status
        target = target_status(order, notification)

        if not order_status.can_transition(previous, target):
            if target == order_status.UNKNOWN:
                _keep_unrecognized_payload(order, notification)
            if order_status.is_terminal(previous) and order_status.is_terminal(target):
                logger.warning("Order %s is %s; refusing %s from %s notification, needs manual review",
                               order.order_id, previous, target, notification.provider)
            else:
                logger.info("Order %s is %s; ignoring stale %s notification", order.order_id, previous, target)
            return ReconcileResult(order, previous, previous, WebhookEvent.IGNORED)

        fields = _changes(order, notification, target)
        if all(getattr(order, name) == value for name, value in fields.items()):
            return ReconcileResult(order, previous, previous, WebhookEvent.DUPLICATE)

        now = timezone.now()
        fields.update(last_webhook_at=now, updated_at=now)
        updated = Order.objects.filter(pk=order.pk, status=previous).update(**fields)
        if not updated:
            raise _LostRace()
        for name, value in fields.items():
            setattr(order, name, value)

        if target == order_status.PAID and previous != order_status.PAID:
            transaction.on_commit(lambda: send_payment_confirmation(order=order))

    logger.info("Order %s: %s -> %s (%s %s)", order.order_id, previous, target,
                notification.provider, notification.status)
    return ReconcileResult(order, previous, target, WebhookEvent.APPLIED)


def reconcile(notification: Notification) -> ReconcileResult:
    """Apply a verified notification to its order.

    Raises :class:`OrderNotFound` when no order carries the reference and
    :class:`ReconciliationWriteFailure` when the record store cannot be updated.
    Replaying the same notification leaves the stored order unchanged.
    """
    for attempt in range(1, WRITE_ATTEMPTS + 1):
        try:
            return _reconcile_once(notification)
        except _LostRace:
            logger.info("Concurrent update on %s, retrying (%s/%s)", notification.reference, attempt, WRITE_ATTEMPTS)
        except DatabaseError as e:
            raise ReconciliationWriteFailure(f"Record store update failed: {e}") from e
    raise ReconciliationWriteFailure(f"Order {notification.reference} kept changing underneath the update")


def record_event(notification: Notification, outcome: str, internal_status: str = "", error: str = ""):
    try:
        return WebhookEvent.objects.create(
            provider=notification.provider,
            reference=notification.reference,
            provider_status=notification.status,
            internal_status=internal_status,
            outcome=outcome,
            payload=notification.raw,
            error=error,
        )
    except DatabaseError:
        # the log line is then the only copy of the payload
        logger.exception("Could not store %s event for %s: payload=%s",
                         outcome, notification.reference, notification.raw)
        return None


def process_notification(notification: Notification) -> ReconcileResult:
    """Reconcile a verified notification and append the outcome to the event log."""
    try:
        result = reconcile(notification)
    except OrderNotFound:
        logger.warning("Order not found for %s reference %s; logged for manual investigation",
                       notification.provider, notification.reference)
        record_event(notification, WebhookEvent.NOT_FOUND)
        raise
    except ReconciliationWriteFailure as e:
        logger.exception("Reconciliation write failed for %s", notification.reference)
        record_event(notification, WebhookEvent.WRITE_FAILED, error=str(e))
        raise
    except Exception as e:
        logger.exception("Unexpected error reconciling %s", notification.reference)
        record_event(notification, WebhookEvent.WRITE_FAILED, error=repr(e))
        raise ReconciliationWriteFailure(str(e)) from e

    record_event(notification, result.outcome, result.status)
    return result


def reconcile_from_provider(provider: str, client, reference: str) -> ReconcileResult:
    """Ask the provider for the current status of ``reference`` and reconcile it."""
    data = client.get_status(reference)
    return process_notification(parse_notification(provider, data))


def replay_event(event: WebhookEvent) -> ReconcileResult:
    """Re-run reconciliation for a stored event whose write failed."""
    notification = parse_notification(event.provider, event.payload)
    try:
        return process_notification(notification)
    finally:
        # whatever happens now is appended as a new event
        event.replayed_at = timezone.now()
        event.save(update_fields=["replayed_at"])
