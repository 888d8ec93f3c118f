from datetime import datetime, timedelta
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from .models import Medicine, Sale
from .services import (
    InsufficientStock, low_stock, mark_sale_paid, record_sale, sales_summary, update_sale_quantity, void_sale,
)


class RecordSaleTests(TestCase):
    def setUp(self):
        self.med = Medicine.objects.create(name="Paracetamol", price=Decimal("12.75"), stock=10, min_stock=3)

    def test_decrements_stock_and_snapshots_price(self):
        sale = record_sale(self.med.pk, 4)
        self.med.refresh_from_db()

        self.assertEqual(self.med.stock, 6)
        self.assertEqual(sale.total_amount, Decimal("51.00"))
        self.assertEqual(sale.medicine_name, "Paracetamol")
        self.assertEqual(sale.payment_status, "UNPAID")

    def test_insufficient_stock(self):
        with self.assertRaises(InsufficientStock):
            record_sale(self.med.pk, 11)
        self.med.refresh_from_db()
        self.assertEqual(self.med.stock, 10)
        self.assertFalse(Sale.objects.exists())

    def test_quantity_must_be_positive(self):
        with self.assertRaises(ValueError):
            record_sale(self.med.pk, 0)

    def test_void_restores_stock(self):
        sale = record_sale(self.med.pk, 4)
        void_sale(sale)
        self.med.refresh_from_db()
        self.assertEqual(self.med.stock, 10)
        self.assertFalse(Sale.objects.exists())

    def test_update_quantity_adjusts_stock_and_total(self):
        sale = record_sale(self.med.pk, 4)

        sale = update_sale_quantity(sale, 6)
        self.med.refresh_from_db()
        self.assertEqual(self.med.stock, 4)
        self.assertEqual(sale.total_amount, Decimal("76.50"))

        sale = update_sale_quantity(sale, 1)
        self.med.refresh_from_db()
        self.assertEqual(self.med.stock, 9)
        self.assertEqual(Sale.objects.get(pk=sale.pk).total_amount, Decimal("12.75"))

    def test_update_quantity_beyond_stock(self):
        sale = record_sale(self.med.pk, 4)
        with self.assertRaises(InsufficientStock):
            update_sale_quantity(sale, 11)
        self.med.refresh_from_db()
        self.assertEqual(self.med.stock, 6)
        self.assertEqual(Sale.objects.get(pk=sale.pk).quantity, 4)

    def test_update_quantity_refused_when_paid(self):
        sale = record_sale(self.med.pk, 2, payment_method="TELEBIRR")
        mark_sale_paid(sale)
        with self.assertRaises(ValueError):
            update_sale_quantity(sale, 3)
        with self.assertRaises(ValueError):
            update_sale_quantity(record_sale(self.med.pk, 1), 0)
        self.med.refresh_from_db()
        self.assertEqual(self.med.stock, 7)

    def test_mark_paid_once(self):
        sale = record_sale(self.med.pk, 1, payment_method="TELEBIRR")
        self.assertTrue(mark_sale_paid(sale))
        self.assertFalse(mark_sale_paid(sale))

    def test_low_stock(self):
        Medicine.objects.create(name="Ibuprofen", price=Decimal("5.00"), stock=2, min_stock=5)
        record_sale(self.med.pk, 7)
        self.assertEqual([m.name for m in low_stock()], ["Ibuprofen", "Paracetamol"])


class ReportTests(TestCase):
    def setUp(self):
        self.a = Medicine.objects.create(name="Aspirin", price=Decimal("5.00"), stock=100)
        self.b = Medicine.objects.create(name="Brufen", price=Decimal("8.50"), stock=100)
        day = timezone.make_aware(datetime(2024, 3, 1, 10, 0))
        record_sale(self.a.pk, 2, sold_at=day)
        record_sale(self.b.pk, 1, sold_at=day)
        record_sale(self.a.pk, 1, sold_at=day + timedelta(days=1))

    def test_summary(self):
        summary = sales_summary()
        self.assertEqual(summary["count"], 3)
        self.assertEqual(summary["units"], 4)
        self.assertEqual(summary["revenue"], Decimal("23.50"))
        self.assertEqual(summary["by_medicine"][0]["medicine_name"], "Aspirin")

    def test_export_range(self):
        out, err = StringIO(), StringIO()
        call_command("export_sales", "--from", "2024-03-01", "--to", "2024-03-01", stdout=out, stderr=err)
        lines = [l for l in out.getvalue().splitlines() if l]
        self.assertEqual(lines[0].split(",")[:3], ["id", "sold_at", "medicine_name"])
        self.assertEqual(len(lines), 3)
        self.assertIn("Exported 2 sales", err.getvalue())
