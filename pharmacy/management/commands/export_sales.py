from datetime import datetime, time as dtime, timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from pharmacy.services import sales_between, sales_summary, write_sales_csv


def _day_start(value: str):
    try:
        d = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise CommandError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return timezone.make_aware(datetime.combine(d, dtime.min))


class Command(BaseCommand):
    help = "Export sales as CSV, optionally restricted to a date range"

    def add_arguments(self, parser):
        parser.add_argument("--from", dest="start", help="First day (YYYY-MM-DD), inclusive")
        parser.add_argument("--to", dest="end", help="Last day (YYYY-MM-DD), inclusive")
        parser.add_argument("--output", "-o", help="File to write (default: stdout)")

    def handle(self, *args, **opts):
        start = _day_start(opts["start"]) if opts.get("start") else None
        end = _day_start(opts["end"]) + timedelta(days=1) if opts.get("end") else None
        sales = sales_between(start, end).order_by("sold_at")

        if opts.get("output"):
            with open(opts["output"], "w", newline="") as fh:
                rows = write_sales_csv(fh, sales)
        else:
            rows = write_sales_csv(self.stdout, sales)

        summary = sales_summary(start, end)
        self.stderr.write(self.style.SUCCESS(
            f"Exported {rows} sales, {summary['units']} units, revenue {summary['revenue']}"
        ))
