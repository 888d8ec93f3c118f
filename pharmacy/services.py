import csv
import logging

from django.db import transaction
from django.db.models import Count, F, Sum
from django.utils import timezone

from .models import Medicine, Sale

logger = logging.getLogger(__name__)


class InsufficientStock(Exception):
    def __init__(self, medicine, requested):
        self.medicine = medicine
        self.requested = requested
        super().__init__(f"Only {medicine.stock} units of {medicine.name} available, {requested} requested")


@transaction.atomic
def record_sale(medicine_id, quantity: int, payment_method: str = "CASH", sold_at=None) -> Sale:
    if quantity is None or int(quantity) <= 0:
        raise ValueError("quantity must be a positive integer")
    quantity = int(quantity)
    medicine = Medicine.objects.select_for_update().get(pk=medicine_id)
    if quantity > medicine.stock:
        raise InsufficientStock(medicine, quantity)

    Medicine.objects.filter(pk=medicine.pk).update(stock=F("stock") - quantity, updated_at=timezone.now())
    sale = Sale.objects.create(
        medicine=medicine,
        medicine_name=medicine.name,
        quantity=quantity,
        price=medicine.price,
        total_amount=medicine.price * quantity,
        payment_method=payment_method,
        sold_at=sold_at or timezone.now(),
    )
    logger.info("Recorded sale %s: %s x%s", sale.pk, medicine.name, quantity)
    return sale


@transaction.atomic
def void_sale(sale: Sale) -> None:
    """Delete a sale and put its units back on the shelf."""
    Medicine.objects.select_for_update().filter(pk=sale.medicine_id).update(
        stock=F("stock") + sale.quantity, updated_at=timezone.now()
    )
    logger.info("Voided sale %s, restored %s units of %s", sale.pk, sale.quantity, sale.medicine_name)
    sale.delete()


@transaction.atomic
def update_sale_quantity(sale: Sale, quantity: int) -> Sale:
    """Change the quantity on an unpaid sale, moving the difference to or from stock."""
    if quantity is None or int(quantity) <= 0:
        raise ValueError("quantity must be a positive integer")
    quantity = int(quantity)
    sale = Sale.objects.select_for_update().get(pk=sale.pk)
    if sale.payment_status == "PAID":
        raise ValueError(f"Sale {sale.pk} is already paid")

    medicine = Medicine.objects.select_for_update().get(pk=sale.medicine_id)
    delta = quantity - sale.quantity
    if delta > medicine.stock:
        raise InsufficientStock(medicine, delta)
    if delta:
        Medicine.objects.filter(pk=medicine.pk).update(stock=F("stock") - delta, updated_at=timezone.now())

    sale.quantity = quantity
    sale.total_amount = sale.price * quantity
    sale.save(update_fields=["quantity", "total_amount"])
    logger.info("Updated sale %s: %s x%s (stock %+d)", sale.pk, sale.medicine_name, quantity, -delta)
    return sale


def mark_sale_paid(sale: Sale) -> bool:
    updated = Sale.objects.filter(pk=sale.pk).exclude(payment_status="PAID").update(payment_status="PAID")
    return bool(updated)


def low_stock():
    return Medicine.objects.filter(stock__lte=F("min_stock")).order_by("stock", "name")


def sales_between(start=None, end=None):
    qs = Sale.objects.all()
    if start:
        qs = qs.filter(sold_at__gte=start)
    if end:
        qs = qs.filter(sold_at__lt=end)
    return qs


def sales_summary(start=None, end=None) -> dict:
    qs = sales_between(start, end)
    totals = qs.aggregate(count=Count("id"), units=Sum("quantity"), revenue=Sum("total_amount"))
    by_medicine = list(
        qs.values("medicine_name")
          .annotate(units=Sum("quantity"), revenue=Sum("total_amount"))
          .order_by("-revenue", "medicine_name")
    )
    return {
        "count": totals["count"] or 0,
        "units": totals["units"] or 0,
        "revenue": totals["revenue"] or 0,
        "by_medicine": by_medicine,
    }


EXPORT_COLUMNS = ["id", "sold_at", "medicine_name", "quantity", "price", "total_amount",
                  "payment_method", "payment_status"]


def write_sales_csv(stream, sales) -> int:
    writer = csv.writer(stream)
    writer.writerow(EXPORT_COLUMNS)
    rows = 0
    for s in sales:
        writer.writerow([s.pk, s.sold_at.isoformat(), s.medicine_name, s.quantity, s.price,
                         s.total_amount, s.payment_method, s.payment_status])
        rows += 1
    return rows
