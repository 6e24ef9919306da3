import time
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from payments.integrations.edviron import EdvironError, GatewayConfig
from payments.models import OrderStatus
from payments.services import check_payment_status, update_status_by_collect_request_id
from payments.status import PENDING
from payments.utils import to_decimal


class Command(BaseCommand):
    help = "Poll the gateway for pending payments and record any settled status"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.5)
        parser.add_argument("--older-than-minutes", type=int, default=1)

    def handle(self, *args, **opts):
        config = GatewayConfig.from_settings()
        cutoff = timezone.now() - timedelta(minutes=opts["older_than_minutes"])
        qs = (
            OrderStatus.objects.filter(status=PENDING, created_at__lt=cutoff)
            .exclude(collect__gateway_reference_id__isnull=True)
            .exclude(collect__gateway_reference_id="")
            .select_related("collect")
            .order_by("created_at")[:opts["max"]]
        )
        pending = list(qs)
        if not pending:
            self.stdout.write(self.style.SUCCESS("No pending payments to reconcile."))
            return

        for order_status in pending:
            order = order_status.collect
            try:
                result = check_payment_status(order.gateway_reference_id, order.school_id, config=config)
            except EdvironError as e:
                self.stdout.write(self.style.WARNING(f"{order.custom_order_id}: {e}"))
                continue

            category = result["status_category"]
            if category != PENDING:
                update_status_by_collect_request_id(
                    order.gateway_reference_id,
                    category,
                    to_decimal(result.get("amount")),
                    {"reconciled": True, "gateway_status": result.get("status")},
                )
                self.stdout.write(self.style.SUCCESS(f"Updated {order.custom_order_id} -> {category}"))
            time.sleep(opts["sleep"])
