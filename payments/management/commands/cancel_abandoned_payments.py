from django.conf import settings
from django.core.management.base import BaseCommand

from payments.services import cancel_abandoned_payments, force_cancel_abandoned_payments


class Command(BaseCommand):
    help = "Cancel PENDING payments that never received a gateway callback"

    def add_arguments(self, parser):
        parser.add_argument(
            "--minutes",
            type=int,
            default=settings.PAYMENTS.get("ABANDON_TIMEOUT_MINUTES", 30),
            help="Age in minutes after which a pending payment counts as abandoned",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Select by status and age only; skip callback-received rows one by one",
        )

    def handle(self, *args, **opts):
        minutes = opts["minutes"]
        if opts["force"]:
            result = force_cancel_abandoned_payments(minutes)
        else:
            result = cancel_abandoned_payments(minutes)

        if not result["totalFound"]:
            self.stdout.write(self.style.SUCCESS(f"No pending payments older than {minutes} minutes."))
            return

        self.stdout.write(self.style.SUCCESS(
            f"Cancelled {result['totalCancelled']} of {result['totalFound']} pending payments "
            f"(cutoff {result['cutoffTime']})"
        ))
        for err in result.get("errors", []):
            self.stdout.write(self.style.WARNING(f"{err['orderId']}: {err['error']}"))
