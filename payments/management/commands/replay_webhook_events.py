from django.core.management.base import BaseCommand
from payments.exceptions import PaymentNotificationError
from payments.models import WebhookEvent
from payments.services import replay_event


class Command(BaseCommand):
    help = "Re-run reconciliation for stored notifications whose order update failed"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=100, help="Max events to replay")

    def handle(self, *args, **opts):
        qs = WebhookEvent.objects.filter(outcome=WebhookEvent.WRITE_FAILED, replayed_at__isnull=True).order_by("created_at")

        cnt = 0
        ok = 0
        for event in qs[: opts["max"]]:
            cnt += 1
            try:
                result = replay_event(event)
            except PaymentNotificationError as e:
                self.stdout.write(self.style.WARNING(f"Event {event.pk} ({event.reference}): {e}"))
                continue
            ok += 1
            self.stdout.write(self.style.SUCCESS(f"Event {event.pk} ({event.reference}) -> {result.status} ({result.outcome})"))

        self.stdout.write(self.style.SUCCESS(f"Replayed {ok} of {cnt} failed events."))
