import logging
from typing import Optional, Tuple

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from pharmacy.services import mark_sale_paid

from .callbacks import CallbackNotification, Failed, Paid, SettlementOutcome, outcome_for, parse_notification
from .client import TelebirrClient
from .config import load_config
from .exceptions import PaymentError, PaymentErrorKind
from .models import PaymentNotification, PaymentOrder
from .qr import QRPayload, build_payload
from .utils import generate_order_id, to_amount

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("NEW", "PENDING", "UNKNOWN")


def _client(client):
    return client or TelebirrClient()


def start_payment(*, amount, description: str, order_id: Optional[str] = None, sale=None,
                  client: Optional[TelebirrClient] = None) -> Tuple[PaymentOrder, QRPayload]:
    """Create the local order, register it with the gateway and derive its QR payload.

    The request is validated and signed before the order row exists, so a
    local failure leaves nothing behind. Gateway errors are re-raised after
    the order row records them; a rejected ``order_id`` is never sent again.
    """
    order_id = order_id or generate_order_id()
    amount = to_amount(amount)
    description = str(description or "").strip()
    if PaymentOrder.objects.filter(order_id=order_id).exists():
        raise ValueError(f"order_id {order_id} has already been used")

    tb = _client(client)
    request = tb.build_request(order_id, amount, description)

    order = PaymentOrder.objects.create(
        order_id=order_id,
        subject=description,
        amount=amount,
        sale=sale,
        request_payload={"outTradeNo": order_id, "totalAmount": request.totalAmount, "subject": request.subject},
    )

    try:
        result = tb.submit(request)
    except PaymentError as e:
        # A timed-out request may still have reached the gateway; reconciliation settles it.
        order.status = "UNKNOWN" if e.retryable else "FAILED"
        order.failure_reason = str(e)[:255]
        order.response_payload = {**e.as_dict(), "raw_body": e.raw_body}
        order.save(update_fields=["status", "failure_reason", "response_payload", "updated_at"])
        raise

    payload = build_payload(result.payment_id, amount, tb.config.short_code, order_id=order_id)
    order.payment_id = result.payment_id
    order.status = "PENDING"
    order.response_payload = result.raw
    order.qr_created_at = payload.created_at
    order.expires_at = payload.expires_at
    order.save(update_fields=["payment_id", "status", "response_payload", "qr_created_at", "expires_at", "updated_at"])
    logger.info("Telebirr order %s registered as payment %s", order_id, result.payment_id)
    return order, payload


def start_sale_payment(sale, client: Optional[TelebirrClient] = None) -> Tuple[PaymentOrder, QRPayload]:
    return start_payment(amount=sale.total_amount, description=sale.medicine_name, sale=sale, client=client)


def regenerate_payment(order: PaymentOrder, client: Optional[TelebirrClient] = None) -> Tuple[PaymentOrder, QRPayload]:
    """Issue a replacement order (fresh order id and nonce) for an unpaid one."""
    if order.is_paid:
        raise ValueError(f"Order {order.order_id} is already paid")
    with transaction.atomic():
        updated = PaymentOrder.objects.filter(pk=order.pk, status__in=OPEN_STATUSES).update(
            status="EXPIRED", updated_at=timezone.now()
        )
    if updated:
        logger.info("Order %s superseded by a regenerated payment", order.order_id)
    return start_payment(amount=order.amount, description=order.subject, sale=order.sale, client=client)


def qr_payload_for(order: PaymentOrder) -> QRPayload:
    return build_payload(order.payment_id, order.amount, load_config().short_code,
                         created_at=order.qr_created_at, order_id=order.order_id)


def _find_order_for_update(notification: CallbackNotification) -> PaymentOrder:
    qs = PaymentOrder.objects.select_for_update()
    order = qs.filter(order_id=notification.order_id).first()
    if order is None and notification.payment_id:
        order = qs.filter(payment_id=notification.payment_id).first()
    if order is None:
        raise PaymentOrder.DoesNotExist(f"No payment order for {notification.order_id}")
    return order


def apply_settlement(notification: CallbackNotification, outcome: SettlementOutcome) -> bool:
    """Apply a verified outcome to its order; returns ``True`` when state changed.

    Runs under a row lock so callbacks for one order serialize. A repeated
    ``(order, trade_status)`` pair is a no-op and a terminal order is never
    overwritten.
    """
    with transaction.atomic():
        order = _find_order_for_update(notification)
        if isinstance(outcome, Paid) and outcome.amount is not None and outcome.amount != order.amount:
            # Not recorded as a notification so a correct "Completed" can still settle the order.
            logger.error("Amount mismatch for %s: expected %s, notified %s",
                         order.order_id, order.amount, outcome.amount)
            if order.is_terminal or order.status == "UNKNOWN":
                return False
            order.status = "UNKNOWN"
            order.failure_reason = f"Amount mismatch: notified {outcome.amount}"
            order.last_callback_payload = notification.fields
            order.save(update_fields=["status", "failure_reason", "last_callback_payload", "updated_at"])
            return True

        note, created = PaymentNotification.objects.get_or_create(
            order=order,
            trade_status=notification.trade_status,
            defaults={
                "payment_id": notification.payment_id,
                "transaction_id": notification.transaction_id,
                "payload": notification.fields,
            },
        )
        if not created:
            PaymentNotification.objects.filter(pk=note.pk).update(received_count=F("received_count") + 1)
            logger.info("Duplicate Telebirr notification for %s (%s) ignored",
                        order.order_id, notification.trade_status)
            return False

        order.last_callback_payload = notification.fields
        if order.is_terminal:
            logger.warning("Order %s is already %s; late %s notification not applied",
                           order.order_id, order.status, notification.trade_status)
            order.save(update_fields=["last_callback_payload", "updated_at"])
            return False

        if isinstance(outcome, Paid):
            order.status = "PAID"
            order.paid_at = timezone.now()
            order.transaction_id = outcome.transaction_id
            order.payment_id = order.payment_id or outcome.payment_id
            order.failure_reason = ""
            if order.sale_id:
                mark_sale_paid(order.sale)
        elif isinstance(outcome, Failed):
            order.status = "FAILED"
            order.failure_reason = outcome.reason[:255]
        else:
            logger.warning("Order %s got unrecognised trade_status %r; left for manual reconciliation",
                           order.order_id, notification.trade_status)
            order.status = "UNKNOWN"
        order.save()
        logger.info("Order %s -> %s", order.order_id, order.status)
        return True


def refresh_from_gateway(order: PaymentOrder, client: Optional[TelebirrClient] = None) -> PaymentOrder:
    """Poll the query endpoint and apply whatever terminal state it reports."""
    data = _client(client).query_order(order.order_id)
    data = {**data, "merch_order_id": data.get("merch_order_id") or order.order_id}
    if not data.get("trade_status"):
        raise PaymentError(PaymentErrorKind.MALFORMED_RESPONSE, "Query result without trade_status")
    notification = parse_notification(data, require_signature=False)
    outcome = outcome_for(notification)
    if isinstance(outcome, (Paid, Failed)):
        apply_settlement(notification, outcome)
    else:
        logger.info("Order %s still %s at the gateway", order.order_id, notification.trade_status)
    order.refresh_from_db()
    return order


def expire_stale_orders(now=None) -> int:
    now = now or timezone.now()
    count = PaymentOrder.objects.filter(status__in=("NEW", "PENDING"), expires_at__lte=now).update(
        status="EXPIRED", updated_at=now
    )
    if count:
        logger.info("Expired %s stale Telebirr orders", count)
    return count
