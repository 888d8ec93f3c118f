from django.contrib import admin

from .models import Medicine, Sale


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "price", "stock", "min_stock", "expiry_date")
    search_fields = ("name", "category")
    list_filter = ("category",)


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ("medicine_name", "quantity", "total_amount", "payment_method", "payment_status", "sold_at")
    search_fields = ("medicine_name",)
    list_filter = ("payment_method", "payment_status", "sold_at")
    ordering = ("-sold_at",)

    def get_readonly_fields(self, request, obj=None):
        # Quantity changes must go through services.update_sale_quantity to keep stock in step.
        if obj is not None:
            return ("medicine", "medicine_name", "quantity", "price", "total_amount")
        return ()
