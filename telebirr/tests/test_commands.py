from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import MagicMock, patch

import requests
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone

from telebirr.models import PaymentOrder

from .helpers import KEY_SETTINGS, FakeResponse


@override_settings(**KEY_SETTINGS)
class ReconcileTelebirrOrdersTests(TestCase):
    def setUp(self):
        self.session = MagicMock()
        patcher = patch("telebirr.client.requests.Session", return_value=self.session)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _make(self, order_id, minutes_ago, status="PENDING"):
        created = timezone.now() - timedelta(minutes=minutes_ago)
        order = PaymentOrder.objects.create(
            order_id=order_id, payment_id=f"PAY-{order_id}", subject="Aspirin", amount=Decimal("10.00"),
            status=status, qr_created_at=created, expires_at=created + timedelta(minutes=15),
        )
        PaymentOrder.objects.filter(pk=order.pk).update(updated_at=created)
        return order

    def test_nothing_to_do(self):
        out = StringIO()
        call_command("reconcile_telebirr_orders", "--sleep", "0", stdout=out)
        self.assertIn("No pending orders to reconcile.", out.getvalue())
        self.session.post.assert_not_called()

    def test_polls_and_expires(self):
        paid = self._make("A1", minutes_ago=5)
        stale = self._make("B2", minutes_ago=30)

        def reply(url, json=None, **kwargs):
            if json["merch_order_id"] == "A1":
                return FakeResponse(200, {"code": "00", "data": {
                    "merch_order_id": "A1", "trade_status": "Completed", "total_amount": "10.00", "trans_id": "T1",
                }})
            return FakeResponse(200, {"code": "00", "data": {"merch_order_id": "B2", "trade_status": "Paying"}})

        self.session.post.side_effect = reply
        out = StringIO()
        call_command("reconcile_telebirr_orders", "--sleep", "0", stdout=out)

        paid.refresh_from_db()
        stale.refresh_from_db()
        self.assertEqual(paid.status, "PAID")
        self.assertEqual(stale.status, "EXPIRED")
        self.assertIn("Expired 1 stale orders.", out.getvalue())

    def test_gateway_errors_reported_not_raised(self):
        self._make("C3", minutes_ago=5)
        self.session.post.side_effect = requests.ConnectionError("down")
        out = StringIO()
        call_command("reconcile_telebirr_orders", "--sleep", "0", stdout=out)
        self.assertIn("C3: NETWORK_UNREACHABLE", out.getvalue())
