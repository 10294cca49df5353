import time
from django.apps import apps
from django.core.management.base import BaseCommand
from django.utils import timezone
from payments import status as order_status
from payments.exceptions import PaymentNotificationError
from payments.models import Order
from payments.services import reconcile_from_provider

OPEN_STATUSES = [order_status.PENDING, order_status.FRAUD_REVIEW, order_status.UNKNOWN]


class Command(BaseCommand):
    help = "Poll provider status for orders still awaiting payment and reconcile them"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.5)
        parser.add_argument("--older-than-minutes", type=int, default=5)

    def handle(self, *args, **opts):
        cutoff = timezone.now() - timezone.timedelta(minutes=opts["older_than_minutes"])
        qs = Order.objects.filter(status__in=OPEN_STATUSES).filter(updated_at__lt=cutoff).order_by("updated_at")[:opts["max"]]
        clients = apps.get_app_config("payments").clients

        orders = list(qs)
        if not orders:
            self.stdout.write(self.style.SUCCESS("No pending orders to reconcile."))
            return

        changed = 0
        for o in orders:
            try:
                result = reconcile_from_provider(o.provider, clients[o.provider], o.provider_reference)
            except PaymentNotificationError as e:
                self.stdout.write(self.style.WARNING(f"{o.order_id}: {e}"))
            else:
                if result.status != result.previous_status:
                    changed += 1
                    self.stdout.write(self.style.SUCCESS(f"Updated {o.order_id} -> {result.status}"))
                else:
                    self.stdout.write(f"{o.order_id}: still {result.status} ({result.outcome})")
            if opts["sleep"]:
                time.sleep(opts["sleep"])

        self.stdout.write(self.style.SUCCESS(f"Checked {len(orders)}, updated {changed} orders."))
