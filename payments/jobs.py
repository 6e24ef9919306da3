"""Background jobs run by the django-rq worker.

``manage.py schedule_payment_cleanup`` registers the cron entries that
enqueue these.
"""
import logging

from django.conf import settings
from django_rq import job

from . import services

logger = logging.getLogger(__name__)


def _timeout(name, default):
    return settings.PAYMENTS.get(name, default)


@job("default")
def cancel_abandoned_payments_job(timeout_minutes=None):
    timeout_minutes = timeout_minutes or _timeout("ABANDON_TIMEOUT_MINUTES", 30)
    logger.info("Scheduled payment cleanup started (timeout=%s minutes)", timeout_minutes)
    result = services.cancel_abandoned_payments(timeout_minutes)
    if result["totalCancelled"]:
        logger.info("Scheduled cleanup cancelled %s abandoned payments", result["totalCancelled"])
    else:
        logger.debug("Scheduled cleanup found no abandoned payments")
    return result


@job("default")
def daily_payment_cleanup_job(timeout_minutes=None):
    timeout_minutes = timeout_minutes or _timeout("DAILY_ABANDON_TIMEOUT_MINUTES", 1440)
    logger.info("Daily payment cleanup started (timeout=%s minutes)", timeout_minutes)
    result = services.cancel_abandoned_payments(timeout_minutes)
    logger.info("Daily cleanup cancelled %s old pending payments", result["totalCancelled"])
    return result


def trigger_manual_cleanup(timeout_minutes=30):
    """Run the sweep in-process, outside the queue."""
    logger.info("Manual payment cleanup triggered (timeout=%s minutes)", timeout_minutes)
    return services.cancel_abandoned_payments(timeout_minutes)
