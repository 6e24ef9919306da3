from django.conf import settings
from django.core.management.base import BaseCommand
from django_rq import get_scheduler

from payments.jobs import cancel_abandoned_payments_job, daily_payment_cleanup_job

SCHEDULES = (
    # (cron, job, setting holding the timeout, default timeout)
    ("*/10 * * * *", cancel_abandoned_payments_job, "ABANDON_TIMEOUT_MINUTES", 30),
    ("0 2 * * *", daily_payment_cleanup_job, "DAILY_ABANDON_TIMEOUT_MINUTES", 1440),
)


class Command(BaseCommand):
    help = "Register rq-scheduler cron schedules for the abandoned payment sweep"

    def handle(self, *args, **options):
        scheduler = get_scheduler("default")
        names = {func.__name__ for _, func, _, _ in SCHEDULES}
        # Clear existing cleanup jobs to avoid duplicates
        for job in scheduler.get_jobs():
            if job.func_name.rsplit(".", 1)[-1] in names:
                scheduler.cancel(job)

        for cron, func, setting, default in SCHEDULES:
            timeout = settings.PAYMENTS.get(setting, default)
            scheduler.cron(cron, func=func, args=[timeout], repeat=None, queue_name="default")
            self.stdout.write(self.style.SUCCESS(
                f"Scheduled {func.__name__} with cron '{cron}' (timeout {timeout} minutes)"
            ))
