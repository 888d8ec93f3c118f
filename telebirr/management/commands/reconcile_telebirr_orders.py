import time
from datetime import timedelta
from django.core.management.base import BaseCommand
from django.utils import timezone
from telebirr.client import TelebirrClient
from telebirr.exceptions import PaymentError
from telebirr.models import PaymentOrder
from telebirr.services import expire_stale_orders, refresh_from_gateway

class Command(BaseCommand):
    help = "Poll Telebirr order status for pending orders, then expire the stale ones"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.5)
        parser.add_argument("--older-than-minutes", type=int, default=1)

    def handle(self, *args, **opts):
        cutoff = timezone.now() - timedelta(minutes=opts["older_than_minutes"])
        qs = PaymentOrder.objects.filter(status__in=["PENDING", "UNKNOWN"]).filter(updated_at__lt=cutoff).order_by("updated_at")[:opts["max"]]

        orders = list(qs)
        if not orders:
            self.stdout.write(self.style.SUCCESS("No pending orders to reconcile."))
        else:
            client = TelebirrClient()
            for o in orders:
                try:
                    o = refresh_from_gateway(o, client=client)
                    self.stdout.write(self.style.SUCCESS(f"Checked {o.order_id} -> {o.status}"))
                except PaymentError as e:
                    self.stdout.write(self.style.WARNING(f"{o.order_id}: {e}"))
                if opts["sleep"]:
                    time.sleep(opts["sleep"])

        expired = expire_stale_orders()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} stale orders."))
