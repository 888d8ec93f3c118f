import json
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from pharmacy.models import Medicine
from pharmacy.services import record_sale
from telebirr.models import PaymentNotification, PaymentOrder

from .helpers import KEY_SETTINGS, FakeResponse, created_body, signed_callback


@override_settings(**KEY_SETTINGS)
class TelebirrCallbackViewTests(TestCase):
    def setUp(self):
        self.order = PaymentOrder.objects.create(
            order_id="SALE-1", payment_id="PAY-9", subject="Paracetamol",
            amount=Decimal("25.50"), status="PENDING",
        )

    def _post(self, payload):
        return self.client.post(
            reverse("telebirr:callback"),
            data=json.dumps(payload),
            content_type="application/json",
        )

    def test_valid_callback_marks_paid(self):
        resp = self._post(signed_callback())
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "PAID")

    def test_duplicate_callback_acknowledged_once(self):
        data = signed_callback()
        self.assertEqual(self._post(data).status_code, 200)
        self.assertEqual(self._post(data).status_code, 200)
        self.assertEqual(PaymentNotification.objects.get(order=self.order).received_count, 2)

    def test_tampered_callback_rejected_without_state_change(self):
        data = signed_callback(trade_status="Failure")
        data["trade_status"] = "Completed"
        with self.assertLogs("telebirr", level="WARNING"):
            resp = self._post(data)
        self.assertEqual(resp.status_code, 400)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "PENDING")
        self.assertFalse(PaymentNotification.objects.exists())

    def test_malformed_body(self):
        resp = self.client.post(reverse("telebirr:callback"), data="not json", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        resp = self._post({"trade_status": "Completed"})
        self.assertEqual(resp.status_code, 400)

    def test_unknown_order_is_not_acknowledged(self):
        resp = self._post(signed_callback(merch_order_id="NOPE", payment_order_id="NOPE"))
        self.assertEqual(resp.status_code, 404)

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(reverse("telebirr:callback")).status_code, 400)


@override_settings(**KEY_SETTINGS)
class PaymentViewTests(TestCase):
    def setUp(self):
        self.session = MagicMock()
        patcher = patch("telebirr.client.requests.Session", return_value=self.session)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _create(self, body):
        return self.client.post(reverse("telebirr:create_payment"), data=json.dumps(body),
                                content_type="application/json")

    def test_create_payment(self):
        self.session.post.return_value = FakeResponse(200, created_body(pay_id="PAY-9"))
        resp = self._create({"order_id": "SALE-1", "amount": "25.50", "description": "Paracetamol"})
        self.assertEqual(resp.status_code, 201)
        data = resp.json()
        self.assertEqual(data["payment_id"], "PAY-9")
        self.assertIn("PAY-9", data["qr"]["display_value"])
        self.assertTrue(data["qr_image"].startswith("data:image/png;base64,"))
        self.assertEqual(data["expiry"]["state"], "ACTIVE")

    def test_create_payment_for_sale(self):
        med = Medicine.objects.create(name="Amoxicillin", price=Decimal("40.00"), stock=5)
        sale = record_sale(med.pk, 2, payment_method="TELEBIRR")
        self.session.post.return_value = FakeResponse(200, created_body(pay_id="PAY-S", amount="80.00"))

        resp = self._create({"sale_id": sale.pk})

        self.assertEqual(resp.status_code, 201)
        order = PaymentOrder.objects.get(payment_id="PAY-S")
        self.assertEqual(order.sale, sale)
        self.assertEqual(order.amount, Decimal("80.00"))
        self.assertEqual(self.session.post.call_args.kwargs["json"]["subject"], "Payment for Amoxicillin")

    def test_create_payment_missing_fields(self):
        resp = self._create({"amount": "10"})
        self.assertEqual(resp.status_code, 400)
        self.session.post.assert_not_called()

    def test_create_payment_invalid_amount(self):
        resp = self._create({"amount": "-3", "description": "x"})
        self.assertEqual(resp.status_code, 400)

    def test_gateway_rejection(self):
        self.session.post.return_value = FakeResponse(200, {"code": "E1", "message": "Bad merchant"})
        resp = self._create({"amount": "10", "description": "Aspirin"})
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["error"]["kind"], "GATEWAY_REJECTED")

    def test_expired_qr_only_allows_regenerate(self):
        now = timezone.now()
        order = PaymentOrder.objects.create(
            order_id="OLD-1", payment_id="PAY-OLD", subject="Aspirin", amount=Decimal("10.00"),
            status="PENDING", qr_created_at=now - timedelta(minutes=16), expires_at=now - timedelta(minutes=1),
        )
        resp = self.client.get(reverse("telebirr:qr", args=[order.order_id]))
        self.assertEqual(resp.status_code, 410)
        self.assertEqual(resp.json()["allowed"], ["regenerate"])

        resp = self.client.post(reverse("telebirr:payment_action", args=[order.order_id, "share"]))
        self.assertEqual(resp.status_code, 410)

        self.session.post.return_value = FakeResponse(200, created_body(pay_id="PAY-NEW"))
        resp = self.client.post(reverse("telebirr:regenerate", args=[order.order_id]))
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["replaces"], "OLD-1")
        self.assertEqual(resp.json()["payment_id"], "PAY-NEW")

    def test_active_qr_actions(self):
        now = timezone.now()
        order = PaymentOrder.objects.create(
            order_id="NOW-1", payment_id="PAY-NOW", subject="Aspirin", amount=Decimal("10.00"),
            status="PENDING", qr_created_at=now, expires_at=now + timedelta(minutes=15),
        )
        resp = self.client.get(reverse("telebirr:qr", args=[order.order_id]))
        self.assertEqual(resp.status_code, 200)
        self.assertIn("PAY-NOW", resp.json()["qr"]["display_value"])

        resp = self.client.post(reverse("telebirr:payment_action", args=[order.order_id, "copy"]))
        self.assertEqual(resp.status_code, 200)
        self.assertIn("PAY-NOW", resp.json()["display_value"])

        resp = self.client.post(reverse("telebirr:payment_action", args=[order.order_id, "print"]))
        self.assertEqual(resp.status_code, 400)

    def test_status_refresh(self):
        order = PaymentOrder.objects.create(
            order_id="Q-1", payment_id="PAY-Q", subject="Aspirin", amount=Decimal("10.00"), status="PENDING",
        )
        self.session.post.return_value = FakeResponse(200, {"code": "00", "data": {
            "merch_order_id": "Q-1", "trade_status": "Failure",
        }})
        resp = self.client.get(reverse("telebirr:order_status", args=[order.order_id]), {"refresh": "1"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "FAILED")

    def test_status_unknown_order(self):
        self.assertEqual(self.client.get(reverse("telebirr:order_status", args=["missing"])).status_code, 404)

    def test_superseded_order_qr_refused(self):
        now = timezone.now()
        order = PaymentOrder.objects.create(
            order_id="SUP-1", payment_id="PAY-1", subject="Aspirin", amount=Decimal("10.00"),
            status="PENDING", qr_created_at=now, expires_at=now + timedelta(minutes=15),
        )
        self.session.post.return_value = FakeResponse(200, created_body(pay_id="PAY-2"))
        self.assertEqual(self.client.post(reverse("telebirr:regenerate", args=[order.order_id])).status_code, 201)

        resp = self.client.get(reverse("telebirr:qr", args=[order.order_id]))
        self.assertEqual(resp.status_code, 410)
        self.assertEqual(resp.json()["allowed"], ["regenerate"])
        for action in ("share", "download", "copy"):
            with self.subTest(action=action):
                resp = self.client.post(reverse("telebirr:payment_action", args=[order.order_id, action]))
                self.assertEqual(resp.status_code, 410)

    def test_terminal_order_actions_refused(self):
        now = timezone.now()
        order = PaymentOrder.objects.create(
            order_id="DONE-1", payment_id="PAY-D", subject="Aspirin", amount=Decimal("10.00"),
            status="PAID", qr_created_at=now, expires_at=now + timedelta(minutes=15),
        )
        self.assertEqual(self.client.get(reverse("telebirr:qr", args=[order.order_id])).status_code, 409)
        resp = self.client.post(reverse("telebirr:payment_action", args=[order.order_id, "share"]))
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["status"], "PAID")
