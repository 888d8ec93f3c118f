from django.urls import path
from . import views
app_name = "telebirr"
urlpatterns = [
    path("payments", views.create_payment_view, name="create_payment"),
    path("payments/<str:order_id>", views.order_status_view, name="order_status"),
    path("payments/<str:order_id>/qr", views.qr_view, name="qr"),
    path("payments/<str:order_id>/regenerate", views.regenerate_view, name="regenerate"),
    path("payments/<str:order_id>/actions/<str:action>", views.payment_action_view, name="payment_action"),
    # Must match TELEBIRR_NOTIFY_URL
    path("callback", views.telebirr_callback, name="callback"),
    path("callback/", views.telebirr_callback),
]
