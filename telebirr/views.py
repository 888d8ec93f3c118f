import json
import logging

from django.http import HttpResponse, HttpResponseBadRequest, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from pharmacy.models import Sale

from . import callbacks, services
from .config import load_config
from .exceptions import EncodingError, PaymentError, PaymentExpired, TelebirrError, VerificationError
from .expiry import PaymentAction
from .models import PaymentOrder
from .qr import render_png_data_uri

logger = logging.getLogger(__name__)


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError): return None


def _order_json(order: PaymentOrder, payload=None) -> dict:
    data = {
        "ok": True,
        "order_id": order.order_id,
        "payment_id": order.payment_id,
        "status": order.status,
        "amount": format(order.amount, "f"),
        "currency": order.currency,
    }
    tracker = order.tracker()
    if tracker is not None:
        data["expiry"] = tracker.snapshot()
    if payload is not None:
        data["qr"] = payload.as_dict()
        data["qr_image"] = render_png_data_uri(payload.display_value)
    return data


def _payment_error(e: PaymentError) -> JsonResponse:
    return JsonResponse({"ok": False, "error": e.as_dict()}, status=504 if e.retryable else 502)


def _terminal(order: PaymentOrder) -> JsonResponse:
    return JsonResponse({"ok": False, "error": f"Order is {order.status}", "status": order.status}, status=409)


def _is_expired(order: PaymentOrder, tracker) -> bool:
    # EXPIRED status means a regenerated order superseded this one.
    return order.status == "EXPIRED" or tracker.is_expired()


@csrf_exempt
@require_POST
def create_payment_view(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        return HttpResponseBadRequest("Invalid JSON body")

    try:
        if body.get("sale_id"):
            sale = get_object_or_404(Sale, pk=body["sale_id"])
            if sale.payment_status == "PAID":
                return JsonResponse({"ok": False, "error": "Sale is already paid"}, status=409)
            order, payload = services.start_sale_payment(sale)
        else:
            missing = [k for k in ("amount", "description") if not body.get(k)]
            if missing:
                return HttpResponseBadRequest(f"Missing fields: {', '.join(missing)}")
            order, payload = services.start_payment(
                amount=body["amount"],
                description=str(body["description"]),
                order_id=body.get("order_id") or None,
            )
    except ValueError as e:
        return JsonResponse({"ok": False, "error": str(e)}, status=400)
    except PaymentError as e:
        return _payment_error(e)
    except TelebirrError as e:
        logger.exception("Telebirr payment creation failed")
        return JsonResponse({"ok": False, "error": str(e)}, status=500)

    return JsonResponse(_order_json(order, payload), status=201)


@require_GET
def order_status_view(request, order_id: str):
    order = get_object_or_404(PaymentOrder, order_id=order_id)
    if request.GET.get("refresh") and not order.is_terminal:
        try:
            order = services.refresh_from_gateway(order)
        except PaymentError as e:
            return _payment_error(e)
    return JsonResponse(_order_json(order))


@require_GET
def qr_view(request, order_id: str):
    order = get_object_or_404(PaymentOrder, order_id=order_id)
    if order.is_terminal:
        return _terminal(order)
    tracker = order.tracker()
    if tracker is None or _is_expired(order, tracker):
        return JsonResponse({"ok": False, "expired": True, "allowed": ["regenerate"]}, status=410)
    try:
        payload = services.qr_payload_for(order)
    except EncodingError as e:
        return JsonResponse({"ok": False, "error": str(e)}, status=409)
    return JsonResponse(_order_json(order, payload))


@csrf_exempt
@require_POST
def regenerate_view(request, order_id: str):
    order = get_object_or_404(PaymentOrder, order_id=order_id)
    try:
        new_order, payload = services.regenerate_payment(order)
    except ValueError as e:
        return JsonResponse({"ok": False, "error": str(e)}, status=409)
    except PaymentError as e:
        return _payment_error(e)
    data = _order_json(new_order, payload)
    data["replaces"] = order.order_id
    return JsonResponse(data, status=201)


@csrf_exempt
@require_POST
def payment_action_view(request, order_id: str, action: str):
    """Gate share/download/copy on the payment window."""
    order = get_object_or_404(PaymentOrder, order_id=order_id)
    if order.is_terminal:
        return _terminal(order)
    tracker = order.tracker()
    if tracker is None:
        return JsonResponse({"ok": False, "error": "No QR code issued for this order"}, status=409)
    try:
        action = PaymentAction(action)
    except ValueError:
        return HttpResponseBadRequest(f"Unknown action: {action}")
    try:
        if order.status == "EXPIRED" and action is not PaymentAction.REGENERATE:
            raise PaymentExpired(action.value)
        tracker.ensure_action_allowed(action)
    except PaymentExpired as e:
        return JsonResponse({"ok": False, "expired": True, "error": str(e), "allowed": ["regenerate"]}, status=410)
    return JsonResponse({"ok": True, "action": action.value,
                         "display_value": services.qr_payload_for(order).display_value})


@csrf_exempt
def telebirr_callback(request):
    if request.method != "POST":
        return HttpResponseBadRequest("POST only")

    body = _json_body(request)
    if body is None:
        return HttpResponseBadRequest("Invalid JSON")

    config = load_config()
    try:
        notification = callbacks.parse_notification(body)
        outcome = callbacks.verify(notification, config.public_key, expected_app_id=config.app_id)
    except VerificationError as e:
        # Never touches order state; non-200 lets the gateway re-deliver.
        logger.warning("Telebirr callback rejected: %s", e)
        return HttpResponseBadRequest(e.kind.value)

    try:
        changed = services.apply_settlement(notification, outcome)
    except PaymentOrder.DoesNotExist:
        logger.warning("Telebirr callback for unknown order %s", notification.order_id)
        return HttpResponse("unknown order", status=404)

    logger.info("Telebirr callback for %s: %s (%s)", notification.order_id, outcome.status,
                "applied" if changed else "no-op")
    return HttpResponse("OK")
