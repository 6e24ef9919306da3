import logging
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from .integrations.edviron import (
    EdvironError,
    GatewayConfig,
    create_collect_request,
    get_collect_request_status,
    payment_url_from,
)
from .models import Order, OrderStatus, WebhookLog
from .status import CANCELLED, FAILED, PENDING, SUCCESS, classify_status
from .utils import AmountOutOfRange, generate_order_id, normalize_details, parse_amount, parse_timestamp

logger = logging.getLogger(__name__)

# Query parameters the gateway may use for the settled amount, in priority order
CALLBACK_AMOUNT_PARAMS = ("amount", "transaction_amount", "order_amount", "total_amount")


class PaymentError(Exception):
    pass


class OrderNotFound(PaymentError):
    pass


class WebhookPayloadError(PaymentError):
    pass


def _payments_setting(name, default=None):
    return (getattr(settings, "PAYMENTS", None) or {}).get(name, default)


def _clip(value, length=255) -> str:
    return ("" if value is None else str(value))[:length]


# ---------- Payment creation ----------
def create_payment(*, school_id, trustee_id, student_info, amount, gateway_name=None,
                   description="", config=None) -> dict:
    config = config or GatewayConfig.from_settings()

    with transaction.atomic():
        order = Order.objects.create(
            school_id=school_id,
            trustee_id=str(trustee_id),
            student_name=student_info["name"],
            student_id=student_info["id"],
            student_email=student_info["email"],
            gateway_name=gateway_name or _payments_setting("DEFAULT_GATEWAY", "edviron"),
            custom_order_id=generate_order_id(),
            description=description or "",
        )
        order_status = OrderStatus.objects.create(
            collect=order,
            order_amount=amount,
            status=PENDING,
        )
    logger.info("Order %s created for school_id=%s amount=%s", order.custom_order_id, school_id, amount)

    try:
        data = create_collect_request(
            config,
            school_id=school_id,
            amount=amount,
            trustee_id=order.trustee_id,
            student_info=order.student_info,
            description=order.description,
        )
    except EdvironError as e:
        logger.error(
            "Collect request failed for order %s: status=%s data=%s",
            order.custom_order_id, e.status_code, e.data,
        )
        order_status.error_message = _clip(e)
        order_status.payment_details = {"gateway_error": {"status_code": e.status_code, "response": e.data}}
        order_status.save(update_fields=["error_message", "payment_details", "updated_at"])
        raise

    collect_request_id = data.get("collect_request_id")
    if collect_request_id and not order.gateway_reference_id:
        order.gateway_reference_id = str(collect_request_id)
        order.save(update_fields=["gateway_reference_id", "updated_at"])

    payment_url = payment_url_from(data)
    if not payment_url:
        logger.error("No payment URL in gateway response for order %s: %s", order.custom_order_id, data)
        raise EdvironError("Payment URL not provided by gateway", data=data)

    logger.info("Payment URL issued for order %s (collect_request_id=%s)", order.custom_order_id, collect_request_id)
    return {
        "success": True,
        "order_id": order.custom_order_id,
        "collect_id": str(order.pk),
        "collect_request_id": collect_request_id,
        "payment_url": payment_url,
        "gateway_sign": data.get("sign"),
        "message": "Payment request created successfully",
    }


def check_payment_status(collect_request_id, school_id, config=None) -> dict:
    config = config or GatewayConfig.from_settings()
    data = get_collect_request_status(config, collect_request_id, school_id)
    logger.info("Payment status checked for collect_request_id=%s: %s", collect_request_id, data.get("status"))
    return {
        "success": True,
        "status": data.get("status"),
        "status_category": classify_status(data.get("status")),
        "amount": data.get("amount"),
        "details": data.get("details"),
        "jwt": data.get("jwt"),
    }


# ---------- Lookups ----------
def _resolve_order(reference):
    ref = _clip(reference, 64).strip()
    if not ref:
        return None
    order = (
        Order.objects.filter(custom_order_id=ref).first()
        or Order.objects.filter(gateway_reference_id=ref).first()
    )
    if order is None and ref.isdigit():
        order = Order.objects.filter(pk=int(ref)).first()
    return order


def find_order_by_collect_request_id(collect_request_id):
    order = Order.objects.filter(gateway_reference_id=collect_request_id).select_related("order_status").first()
    if order is None:
        logger.warning("Order with gateway_reference_id %r not found", collect_request_id)
        return None
    order_status = getattr(order, "order_status", None)
    return {
        "order_id": order.pk,
        "custom_order_id": order.custom_order_id,
        "gateway_reference_id": order.gateway_reference_id,
        "order_amount": order_status.order_amount if order_status else None,
        "transaction_amount": order_status.transaction_amount if order_status else None,
        "status": order_status.status if order_status else PENDING,
    }


# ---------- Webhook ----------
def handle_webhook(payload, source="payment_gateway") -> dict:
    """Record a gateway notification and apply it to the matching order.

    The log row is written before anything else so that every delivery is
    auditable. An unknown order is acknowledged with ``success: False``
    rather than an error, which stops the gateway from retrying it.
    """
    log = WebhookLog.objects.create(
        payload=payload if isinstance(payload, dict) else {"raw": payload},
        source=source,
        status=WebhookLog.RECEIVED,
    )

    order_info = payload.get("order_info") if isinstance(payload, dict) else None
    if not isinstance(order_info, dict) or not order_info.get("order_id"):
        _fail_log(log, "Missing order_info or order_id in webhook payload")
        raise WebhookPayloadError("Missing order_info or order_id in webhook payload")

    reference = order_info["order_id"]
    order = _resolve_order(reference)
    order_status = OrderStatus.objects.filter(collect=order).first() if order else None
    if order_status is None:
        logger.warning("Webhook %s: order status not found for order_id=%s", log.pk, reference)
        _fail_log(log, "Order not found")
        return {"success": False, "message": "Order not found"}

    now = timezone.now()
    try:
        with transaction.atomic():
            order_status = OrderStatus.objects.select_for_update().get(pk=order_status.pk)
            order_status.status = _clip(order_info.get("status"), 32) or order_status.status
            order_status.transaction_amount = parse_amount(order_info.get("transaction_amount"))
            order_status.payment_mode = _clip(order_info.get("payment_mode"), 32)
            order_status.bank_reference = _clip(order_info.get("bank_reference"), 64)
            order_status.payment_message = _clip(
                order_info.get("Payment_message") or order_info.get("payment_message")
            )
            order_status.error_message = _clip(order_info.get("error_message"))
            order_status.payment_time = parse_timestamp(order_info.get("payment_time"))
            order_status.payment_details = normalize_details(
                order_info.get("payemnt_details") or order_info.get("payment_details")
            )
            order_amount = parse_amount(order_info.get("order_amount"))
            if order_amount is not None:
                order_status.order_amount = order_amount
            order_status.callback_received = True
            order_status.callback_time = now
            order_status.save()
    except (DatabaseError, ValueError, ArithmeticError) as e:
        logger.exception("Webhook %s: failed to update order %s", log.pk, order.custom_order_id)
        _fail_log(log, str(e) or e.__class__.__name__)
        raise WebhookPayloadError(f"Webhook processing failed: {e}")

    log.status = WebhookLog.PROCESSED
    log.processed_at = now
    log.save(update_fields=["status", "processed_at"])

    logger.info("Webhook %s processed for order %s: status=%s", log.pk, order.custom_order_id, order_status.status)
    return {"success": True, "message": "Webhook processed successfully"}


def _fail_log(log, reason):
    log.status = WebhookLog.FAILED
    log.error_message = reason
    log.processed_at = timezone.now()
    log.save(update_fields=["status", "error_message", "processed_at"])


# ---------- Callback ----------
def _fallback_pending_status(amount):
    """Most recent PENDING status with a matching order amount.

    Best effort only: under concurrent payment creation this can pick the
    wrong order, so it is used solely when the collect request id is unknown.
    """
    qs = OrderStatus.objects.filter(status=PENDING)
    if amount is not None:
        qs = qs.filter(order_amount=amount)
    return qs.order_by("-created_at", "-pk").first()


def update_status_by_collect_request_id(collect_request_id, status, transaction_amount=None,
                                        payment_details=None) -> OrderStatus:
    order = Order.objects.filter(gateway_reference_id=collect_request_id).first()
    order_status = OrderStatus.objects.filter(collect=order).first() if order else None

    if order_status is None:
        logger.warning("Order with gateway_reference_id %r not found", collect_request_id)
        if _payments_setting("CALLBACK_AMOUNT_FALLBACK", True):
            order_status = _fallback_pending_status(transaction_amount)
            if order_status is not None:
                logger.warning(
                    "Fallback: applying callback %r to most recent pending status %s",
                    collect_request_id, order_status.pk,
                )
    if order_status is None:
        raise OrderNotFound(f"Order with collect_request_id {collect_request_id} not found")

    order_status.status = status
    if transaction_amount is not None:
        order_status.transaction_amount = transaction_amount
    order_status.callback_received = True
    order_status.callback_time = timezone.now()
    if payment_details is not None:
        order_status.payment_details = normalize_details(payment_details)
    order_status.save()

    logger.info("Status for collect_request_id=%s set to %s", collect_request_id, status)
    return order_status


def _callback_amount(params):
    for name in CALLBACK_AMOUNT_PARAMS:
        try:
            amount = parse_amount(params.get(name))
        except AmountOutOfRange:
            logger.warning("Ignoring out-of-range callback %s=%r", name, params.get(name))
            continue
        if amount is not None:
            return amount
    return None


def apply_callback(collect_request_id, raw_status, params) -> dict:
    """Classify a browser callback and record it against the order.

    FAILED and "cancelled" from the gateway are both recorded as FAILED; any
    other value goes through ``classify_status``. Update failures are logged
    and swallowed: the payer must always get a result page.
    """
    raw_status = (raw_status or "").strip()
    if raw_status.lower() in ("failed", "cancelled"):
        category = FAILED
    else:
        category = classify_status(raw_status)

    callback_time = timezone.now().isoformat()
    reason = params.get("error_reason") or params.get("reason") or ""
    amount = None

    if category == SUCCESS:
        amount = _callback_amount(params)
        if amount is None:
            found = find_order_by_collect_request_id(collect_request_id)
            amount = found["order_amount"] if found else None
        details = {
            "EdvironCollectRequestId": collect_request_id,
            "status": raw_status,
            **{name: params.get(name) for name in CALLBACK_AMOUNT_PARAMS},
            "callback_timestamp": callback_time,
            "all_callback_params": dict(params),
        }
    elif category == FAILED:
        details = {
            "EdvironCollectRequestId": collect_request_id,
            "original_status": raw_status,
            "classified_status": category,
            "error_reason": reason or "Payment not completed",
            "reason": params.get("reason"),
            "callback_timestamp": callback_time,
        }
    else:
        details = {
            "EdvironCollectRequestId": collect_request_id,
            "original_status": raw_status,
            "classified_status": category,
            "callback_timestamp": callback_time,
        }

    updated = False
    try:
        update_status_by_collect_request_id(collect_request_id, category, amount, details)
        updated = True
    except (OrderNotFound, DatabaseError):
        logger.exception("Callback update failed for collect_request_id=%s", collect_request_id)

    return {
        "collect_request_id": collect_request_id,
        "raw_status": raw_status,
        "category": category,
        "amount": amount,
        "reason": reason,
        "updated": updated,
    }


# ---------- Abandoned payment sweep ----------
ABANDONED_ERROR = "Payment abandoned - no callback received within timeout period"


def _cutoff(timeout_minutes):
    return timezone.now() - timedelta(minutes=timeout_minutes)


def _cancel_row(order_status, error_message, payment_message) -> bool:
    # Guarded on PENDING so a callback landing mid-sweep is not overwritten
    return bool(
        OrderStatus.objects.filter(pk=order_status.pk, status=PENDING).update(
            status=CANCELLED,
            error_message=_clip(error_message),
            payment_message=_clip(payment_message),
            updated_at=timezone.now(),
        )
    )


def cancel_abandoned_payments(timeout_minutes=30) -> dict:
    cutoff = _cutoff(timeout_minutes)
    abandoned = list(
        OrderStatus.objects.filter(status=PENDING, created_at__lt=cutoff)
        .exclude(callback_received=True)
        .select_related("collect")
    )
    logger.info("Found %s abandoned payments older than %s minutes", len(abandoned), timeout_minutes)

    cancelled = 0
    payment_message = f"Payment automatically cancelled after {timeout_minutes} minutes of inactivity"
    for order_status in abandoned:
        try:
            if _cancel_row(order_status, ABANDONED_ERROR, payment_message):
                cancelled += 1
                logger.info("Cancelled abandoned payment %s", order_status.collect.custom_order_id)
        except DatabaseError:
            logger.exception("Failed to cancel payment %s", order_status.pk)

    return {
        "success": True,
        "totalFound": len(abandoned),
        "totalCancelled": cancelled,
        "cutoffTime": cutoff.isoformat(),
        "message": f"Successfully cancelled {cancelled} abandoned payments",
    }


def force_cancel_abandoned_payments(timeout_minutes=5) -> dict:
    """Cancel old PENDING rows without trusting the callback flag in the query.

    Rows written before the flag existed may carry it in any state, so the
    filter only looks at status and age and the flag is checked per row.
    """
    cutoff = _cutoff(timeout_minutes)
    candidates = list(
        OrderStatus.objects.filter(status=PENDING, created_at__lt=cutoff).select_related("collect")
    )
    logger.info("Force sweep: %s pending payments older than %s minutes", len(candidates), timeout_minutes)

    cancelled = 0
    errors = []
    payment_message = (
        f"Payment automatically cancelled after {timeout_minutes} minutes of inactivity (force cancelled)"
    )
    for order_status in candidates:
        if order_status.callback_received is True:
            logger.info("Skipping %s: callback already received", order_status.collect.custom_order_id)
            continue
        try:
            if _cancel_row(order_status, ABANDONED_ERROR, payment_message):
                cancelled += 1
        except DatabaseError as e:
            logger.exception("Force cancel failed for payment %s", order_status.pk)
            errors.append({"orderId": order_status.collect.custom_order_id, "error": str(e)})

    return {
        "success": True,
        "totalFound": len(candidates),
        "totalCancelled": cancelled,
        "totalErrors": len(errors),
        "errors": errors,
        "cutoffTime": cutoff.isoformat(),
        "timeoutMinutes": timeout_minutes,
        "message": f"Force cancelled {cancelled} abandoned payments",
    }


def cancel_payment_by_order_id(custom_order_id, reason="Manual cancellation") -> dict:
    order = Order.objects.filter(custom_order_id=custom_order_id).first()
    order_status = OrderStatus.objects.filter(collect=order).first() if order else None
    if order_status is None:
        raise OrderNotFound(f"Payment {custom_order_id} not found")
    if order_status.status != PENDING:
        raise PaymentError(f"Cannot cancel payment with status: {order_status.status}")

    reason = reason or "Manual cancellation"
    order_status.status = CANCELLED
    order_status.error_message = _clip(reason)
    order_status.payment_message = _clip(f"Payment cancelled: {reason}")
    order_status.save(update_fields=["status", "error_message", "payment_message", "updated_at"])

    logger.info("Payment %s cancelled manually: %s", custom_order_id, reason)
    return {
        "success": True,
        "message": "Payment cancelled successfully",
        "orderId": custom_order_id,
        "reason": reason,
    }


def debug_pending_payments(timeout_minutes=30) -> dict:
    now = timezone.now()
    cutoff = _cutoff(timeout_minutes)
    pending = OrderStatus.objects.filter(status=PENDING)

    sample = []
    for order_status in pending.select_related("collect").order_by("created_at")[:10]:
        sample.append({
            "custom_order_id": order_status.collect.custom_order_id,
            "order_amount": str(order_status.order_amount),
            "callback_received": order_status.callback_received,
            "created_at": order_status.created_at.isoformat(),
            "age_minutes": int((now - order_status.created_at).total_seconds() // 60),
        })

    return {
        "success": True,
        "totalPending": pending.count(),
        "abandonedFound": pending.filter(created_at__lt=cutoff).exclude(callback_received=True).count(),
        "veryOldPending": pending.filter(created_at__lt=now - timedelta(hours=1)).count(),
        "samplePending": sample,
        "cutoffTime": cutoff.isoformat(),
        "timeoutMinutes": timeout_minutes,
    }
