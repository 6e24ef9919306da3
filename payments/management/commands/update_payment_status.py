from django.core.management.base import BaseCommand, CommandError

from payments.services import OrderNotFound, update_status_by_collect_request_id
from payments.status import CATEGORIES, SUCCESS
from payments.utils import AmountOutOfRange, parse_amount


class Command(BaseCommand):
    help = "Manually set the status of a payment identified by its gateway collect request id"

    def add_arguments(self, parser):
        parser.add_argument("collect_request_id")
        parser.add_argument("--status", default=SUCCESS, choices=CATEGORIES)
        parser.add_argument("--amount", default=None, help="Settled amount to record")

    def handle(self, *args, **opts):
        amount = None
        if opts["amount"] is not None:
            try:
                amount = parse_amount(opts["amount"])
            except AmountOutOfRange as e:
                raise CommandError(str(e))
            if amount is None:
                raise CommandError(f"Invalid amount: {opts['amount']}")

        try:
            order_status = update_status_by_collect_request_id(
                opts["collect_request_id"],
                opts["status"],
                amount,
                {"manual_update": True, "status": opts["status"]},
            )
        except OrderNotFound as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS(
            f"Updated {order_status.collect.custom_order_id} -> {order_status.status}"
        ))
