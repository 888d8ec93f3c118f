from django.db import models

from .expiry import ExpiryTracker


class PaymentOrder(models.Model):
    STATUS_CHOICES = [
        ("NEW", "NEW"),
        ("PENDING", "PENDING"),
        ("PAID", "PAID"),
        ("FAILED", "FAILED"),
        ("EXPIRED", "EXPIRED"),
        ("UNKNOWN", "UNKNOWN"),
    ]
    TERMINAL = ("PAID", "FAILED")

    order_id = models.CharField(max_length=64, unique=True, db_index=True)  # outTradeNo / merch_order_id
    payment_id = models.CharField(max_length=128, blank=True, default="", db_index=True)  # gateway payId
    subject = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="ETB")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="NEW", db_index=True)

    sale = models.ForeignKey("pharmacy.Sale", on_delete=models.SET_NULL, null=True, blank=True,
                             related_name="payment_orders")

    transaction_id = models.CharField(max_length=128, blank=True, default="")
    failure_reason = models.CharField(max_length=255, blank=True, default="")

    request_payload = models.JSONField(blank=True, null=True)
    response_payload = models.JSONField(blank=True, null=True)
    last_callback_payload = models.JSONField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    qr_created_at = models.DateTimeField(blank=True, null=True)
    expires_at = models.DateTimeField(blank=True, null=True)
    paid_at = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_paid(self) -> bool:
        return self.status == "PAID"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL

    def tracker(self):
        if not (self.qr_created_at and self.expires_at):
            return None
        return ExpiryTracker(self.qr_created_at, self.expires_at - self.qr_created_at)

    def __str__(self):
        return f"{self.order_id} ({self.status})"


class PaymentNotification(models.Model):
    """One row per applied (order, trade_status) pair; duplicates only bump the counter."""
    order = models.ForeignKey(PaymentOrder, on_delete=models.CASCADE, related_name="notifications")
    trade_status = models.CharField(max_length=32)
    payment_id = models.CharField(max_length=128, blank=True, default="")
    transaction_id = models.CharField(max_length=128, blank=True, default="")
    payload = models.JSONField(default=dict, blank=True)
    received_count = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["order", "trade_status"], name="uniq_notification_per_status"),
        ]

    def __str__(self):
        return f"{self.order.order_id} {self.trade_status} x{self.received_count}"
