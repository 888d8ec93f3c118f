from django.db import models


class Medicine(models.Model):
    name = models.CharField(max_length=128, db_index=True)
    category = models.CharField(max_length=64, blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2)
    stock = models.PositiveIntegerField(default=0)
    min_stock = models.PositiveIntegerField(default=0)
    expiry_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    def __str__(self):
        return f"{self.name} ({self.stock})"


class Sale(models.Model):
    PAYMENT_METHODS = [
        ("CASH", "Cash"),
        ("TELEBIRR", "Telebirr"),
    ]
    PAYMENT_STATUS = [
        ("UNPAID", "Unpaid"),
        ("PAID", "Paid"),
    ]
    medicine = models.ForeignKey(Medicine, on_delete=models.PROTECT, related_name="sales")
    medicine_name = models.CharField(max_length=128)
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=10, decimal_places=2)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHODS, default="CASH")
    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS, default="UNPAID", db_index=True)
    sold_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ["-sold_at"]

    def __str__(self):
        return f"{self.medicine_name} x{self.quantity} = {self.total_amount}"
