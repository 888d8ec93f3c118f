from django.contrib import admin
from .models import PaymentOrder, PaymentNotification


class PaymentNotificationInline(admin.TabularInline):
    model = PaymentNotification
    extra = 0
    readonly_fields = ("trade_status", "payment_id", "transaction_id", "received_count", "payload", "created_at")
    can_delete = False


@admin.register(PaymentOrder)
class PaymentOrderAdmin(admin.ModelAdmin):
    list_display = ("order_id", "payment_id", "status", "amount", "currency", "created_at", "expires_at", "paid_at")
    search_fields = ("order_id", "payment_id", "transaction_id")
    list_filter = ("status", "currency", "created_at")
    readonly_fields = ("created_at", "updated_at", "request_payload", "response_payload", "last_callback_payload")
    inlines = [PaymentNotificationInline]


@admin.register(PaymentNotification)
class PaymentNotificationAdmin(admin.ModelAdmin):
    list_display = ("order", "trade_status", "received_count", "created_at")
    search_fields = ("order__order_id", "payment_id", "transaction_id")
    list_filter = ("trade_status",)
