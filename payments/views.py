import json
import logging
from urllib.parse import urlencode

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse
from django.shortcuts import render
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from accounts.auth import jwt_required

from . import services, transactions
from .forms import CancelPaymentForm, CreatePaymentForm
from .integrations.edviron import EdvironError
from .jobs import trigger_manual_cleanup
from .services import OrderNotFound, PaymentError, WebhookPayloadError
from .status import FAILED, SUCCESS

logger = logging.getLogger(__name__)

GATEWAY_500_HELP = (
    "Payment gateway returned an internal error. This usually means the school_id "
    "is not registered with the gateway, the API key or PG secret is wrong, or the "
    "gateway is temporarily unavailable."
)


def _json_body(request):
    try:
        return json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None


def _error(message, status=400, **extra):
    return JsonResponse({"success": False, "message": message, **extra}, status=status)


def _int_param(request, name, default):
    try:
        return int(request.GET.get(name, default))
    except (TypeError, ValueError):
        return default


def _timeout_param(request, default):
    # Cutoff is always at least one minute in the past
    return max(1, _int_param(request, "timeout_minutes", default))


def _trustee(request):
    return str(request.user.pk)


# ---------- Payment creation ----------
@csrf_exempt
@require_POST
@jwt_required
def create_payment_view(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        return _error("Invalid JSON body")

    form = CreatePaymentForm.from_json(body)
    if not form.is_valid():
        return _error("Validation failed", errors=form.errors.get_json_data())

    try:
        result = services.create_payment(
            school_id=form.cleaned_data["school_id"],
            trustee_id=_trustee(request),
            student_info=form.student_info,
            amount=form.cleaned_data["amount"],
            gateway_name=form.cleaned_data.get("gateway_name"),
            description=form.cleaned_data.get("description"),
        )
    except ImproperlyConfigured as e:
        logger.error("Payment gateway not configured: %s", e)
        return _error(str(e), status=500)
    except EdvironError as e:
        message = GATEWAY_500_HELP if e.status_code == 500 else str(e)
        return _error(message, status=400, gateway_status=e.status_code)

    return JsonResponse(result, status=201)


@require_GET
@jwt_required
def payment_status_view(request, collect_request_id):
    school_id = request.GET.get("school_id")
    if not school_id:
        return _error("school_id query parameter is required")
    try:
        result = services.check_payment_status(collect_request_id, school_id)
    except ImproperlyConfigured as e:
        logger.error("Payment gateway not configured: %s", e)
        return _error(str(e), status=500)
    except EdvironError as e:
        return _error(str(e), status=400, gateway_status=e.status_code)
    return JsonResponse(result)


# ---------- Gateway notifications ----------
@csrf_exempt
@require_POST
def webhook_view(request):
    payload = _json_body(request)
    if not isinstance(payload, dict):
        return _error("Invalid JSON body")
    try:
        result = services.handle_webhook(payload)
    except WebhookPayloadError as e:
        return _error(str(e))
    return JsonResponse(result)


def _frontend_redirect(**params) -> str:
    base = settings.FRONTEND_URL.rstrip("/")
    return f"{base}/?{urlencode({k: v for k, v in params.items() if v is not None})}"


def _callback_context(outcome) -> dict:
    collect_id = outcome["collect_request_id"]
    raw_status = outcome["raw_status"]
    category = outcome["category"]

    if category == SUCCESS:
        return {
            "title": "Payment Successful",
            "heading": "Payment Successful!",
            "css_class": "success",
            "message": "Your payment has been processed successfully.",
            "details": [
                ("Collect Request ID", collect_id),
                ("Status", raw_status),
                ("Amount", outcome["amount"]),
            ],
            "redirect_url": _frontend_redirect(
                message="Payment successful", collect_id=collect_id, status="success"
            ),
        }
    if category == FAILED:
        cancelled = raw_status.lower() == "cancelled"
        reason = outcome["reason"] or "Payment not completed"
        return {
            "title": "Payment Cancelled" if cancelled else "Payment Failed",
            "heading": "Payment Cancelled" if cancelled else "Payment Failed",
            "css_class": "failed",
            "message": "Your payment could not be completed.",
            "details": [
                ("Collect Request ID", collect_id),
                ("Status", raw_status),
                ("Reason", reason),
            ],
            "redirect_url": _frontend_redirect(
                message=f"Payment {raw_status.lower()}", collect_id=collect_id,
                status="failed", reason=reason,
            ),
        }
    return {
        "title": f"Payment {category.title()}",
        "heading": f"Payment {category.title()}",
        "css_class": "pending",
        "message": "Your payment status has been recorded.",
        "details": [
            ("Collect Request ID", collect_id),
            ("Status", raw_status or category),
        ],
        "redirect_url": _frontend_redirect(
            message=f"Payment {category.lower()}", collect_id=collect_id, status=category.lower()
        ),
    }


def _callback_error_context(error) -> dict:
    return {
        "title": "Payment Error",
        "heading": "Payment Error",
        "css_class": "error",
        "message": "There was an error processing your payment.",
        "details": [("Error", error)],
        "redirect_url": _frontend_redirect(message="Payment error", error=error),
    }


@require_GET
def payment_callback_view(request):
    """Land the payer's browser after the hosted payment page.

    Always renders a result page that forwards to the dashboard.
    """
    params = request.GET.dict()
    collect_request_id = params.get("EdvironCollectRequestId")
    delay = settings.PAYMENTS.get("CALLBACK_REDIRECT_SECONDS", 3)

    if not collect_request_id:
        logger.warning("Payment callback without EdvironCollectRequestId: %s", params)
        ctx = _callback_error_context("Missing collect request id")
    else:
        logger.info("Payment callback for %s: status=%s", collect_request_id, params.get("status"))
        try:
            outcome = services.apply_callback(collect_request_id, params.get("status"), params)
        except Exception as e:
            logger.exception("Payment callback failed for %s", collect_request_id)
            ctx = _callback_error_context(str(e) or "Unexpected error")
        else:
            ctx = _callback_context(outcome)

    ctx["redirect_seconds"] = delay
    return render(request, "payments/callback.html", ctx)


# ---------- Transactions ----------
@require_GET
@jwt_required
def transactions_view(request):
    result = transactions.get_transactions(
        page=_int_param(request, "page", 1),
        limit=_int_param(request, "limit", transactions.DEFAULT_LIMIT),
        sort=request.GET.get("sort", "createdAt"),
        order=request.GET.get("order", "desc"),
        status=request.GET.get("status") or None,
        school_id=request.GET.get("school_id") or None,
        gateway=request.GET.get("gateway") or None,
        trustee_id=_trustee(request),
    )
    return JsonResponse(result)


@require_GET
@jwt_required
def transactions_by_school_view(request, school_id):
    result = transactions.get_transactions_by_school(
        school_id,
        page=_int_param(request, "page", 1),
        limit=_int_param(request, "limit", transactions.DEFAULT_LIMIT),
        trustee_id=_trustee(request),
    )
    return JsonResponse(result)


@require_GET
@jwt_required
def school_ids_view(request):
    return JsonResponse(transactions.get_school_ids(trustee_id=_trustee(request)))


@require_GET
@jwt_required
def transaction_status_view(request, custom_order_id):
    try:
        result = transactions.get_transaction_status(custom_order_id, trustee_id=_trustee(request))
    except OrderNotFound as e:
        return _error(str(e), status=404)
    return JsonResponse(result)


# ---------- Abandoned payments ----------
@csrf_exempt
@require_POST
@jwt_required
def cancel_abandoned_view(request):
    timeout = _timeout_param(request, settings.PAYMENTS.get("ABANDON_TIMEOUT_MINUTES", 30))
    return JsonResponse(services.cancel_abandoned_payments(timeout))


@csrf_exempt
@require_POST
@jwt_required
def force_cancel_view(request):
    timeout = _timeout_param(request, 5)
    return JsonResponse(services.force_cancel_abandoned_payments(timeout))


@csrf_exempt
@require_POST
@jwt_required
def cancel_payment_view(request, custom_order_id):
    body = _json_body(request) if request.body else {}
    form = CancelPaymentForm(body if isinstance(body, dict) else {})
    if not form.is_valid():
        return _error("Validation failed", errors=form.errors.get_json_data())
    try:
        result = services.cancel_payment_by_order_id(
            custom_order_id, form.cleaned_data.get("reason") or "Manual cancellation"
        )
    except OrderNotFound as e:
        return _error(str(e), status=404)
    except PaymentError as e:
        return _error(str(e))
    return JsonResponse(result)


@require_GET
@jwt_required
def debug_pending_view(request):
    timeout = _timeout_param(request, settings.PAYMENTS.get("ABANDON_TIMEOUT_MINUTES", 30))
    return JsonResponse(services.debug_pending_payments(timeout))


@csrf_exempt
@require_POST
@jwt_required
def trigger_scheduler_view(request):
    timeout = _timeout_param(request, settings.PAYMENTS.get("ABANDON_TIMEOUT_MINUTES", 30))
    result = trigger_manual_cleanup(timeout)
    return JsonResponse({"success": True, "message": "Manual cleanup completed", "result": result})
