"""Read side of the dashboard: orders joined with their status rows.

Only orders that have an OrderStatus are listed. Every row carries the raw
gateway status next to its classified ``status_category``.
"""
import logging
from math import ceil

from .models import Order
from .services import OrderNotFound
from .status import classify_status

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 100

SORT_FIELDS = {
    "createdAt": "created_at",
    "created_at": "created_at",
    "order_amount": "order_status__order_amount",
    "transaction_amount": "order_status__transaction_amount",
    "status": "order_status__status",
    "payment_time": "order_status__payment_time",
    "custom_order_id": "custom_order_id",
    "school_id": "school_id",
    "gateway": "gateway_name",
}


def _amount(value):
    if value is None:
        return None
    return int(value) if value == value.to_integral_value() else float(value)


def _iso(value):
    return value.isoformat() if value else None


def _clamp(page, limit):
    page = max(1, int(page or 1))
    limit = min(max(1, int(limit or DEFAULT_LIMIT)), MAX_LIMIT)
    return page, limit


def _joined():
    return Order.objects.filter(order_status__isnull=False).select_related("order_status")


def serialize_transaction(order) -> dict:
    st = order.order_status
    return {
        "collect_id": str(order.pk),
        "school_id": order.school_id,
        "gateway": order.gateway_name,
        "order_amount": _amount(st.order_amount),
        "transaction_amount": _amount(st.transaction_amount),
        "status": st.status,
        "raw_status": st.status,
        "status_category": classify_status(st.status),
        "original_status": st.status,
        "custom_order_id": order.custom_order_id,
        "payment_time": _iso(st.payment_time),
        "payment_mode": st.payment_mode,
        "student_name": order.student_name,
        "student_email": order.student_email,
        "createdAt": _iso(order.created_at),
    }


def _paginate(qs, page, limit) -> dict:
    total = qs.count()
    total_pages = ceil(total / limit) if total else 0
    start = (page - 1) * limit
    rows = [serialize_transaction(o) for o in qs[start:start + limit]]
    return {
        "success": True,
        "data": rows,
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalCount": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
    }


def get_transactions(page=1, limit=DEFAULT_LIMIT, sort="createdAt", order="desc", status=None,
                     school_id=None, gateway=None, trustee_id=None) -> dict:
    page, limit = _clamp(page, limit)
    qs = _joined()
    if trustee_id is not None:
        qs = qs.filter(trustee_id=str(trustee_id))
    if school_id:
        qs = qs.filter(school_id=school_id)
    if gateway:
        qs = qs.filter(gateway_name=gateway)
    if status:
        qs = qs.filter(order_status__status__iexact=status)

    field = SORT_FIELDS.get(sort, "created_at")
    if str(order).lower() == "asc":
        qs = qs.order_by(field, "pk")
    else:
        qs = qs.order_by(f"-{field}", "-pk")

    logger.debug("Listing transactions page=%s limit=%s sort=%s %s", page, limit, field, order)
    return _paginate(qs, page, limit)


def get_transactions_by_school(school_id, page=1, limit=DEFAULT_LIMIT, trustee_id=None) -> dict:
    page, limit = _clamp(page, limit)
    qs = _joined().filter(school_id=school_id)
    if trustee_id is not None:
        qs = qs.filter(trustee_id=str(trustee_id))
    return _paginate(qs.order_by("-created_at", "-pk"), page, limit)


def get_transaction_status(custom_order_id, trustee_id=None) -> dict:
    qs = _joined().filter(custom_order_id=custom_order_id)
    if trustee_id is not None:
        qs = qs.filter(trustee_id=str(trustee_id))
    order = qs.first()
    if order is None:
        raise OrderNotFound("Transaction not found")

    st = order.order_status
    return {
        "success": True,
        "data": {
            "custom_order_id": order.custom_order_id,
            "collect_id": str(order.pk),
            "school_id": order.school_id,
            "gateway": order.gateway_name,
            "order_amount": _amount(st.order_amount),
            "transaction_amount": _amount(st.transaction_amount),
            "status": st.status,
            "status_category": classify_status(st.status),
            "payment_mode": st.payment_mode,
            "payment_message": st.payment_message,
            "error_message": st.error_message,
            "bank_reference": st.bank_reference,
            "payment_time": _iso(st.payment_time),
            "student_info": order.student_info,
            "createdAt": _iso(order.created_at),
        },
    }


def get_school_ids(trustee_id=None) -> dict:
    qs = Order.objects.all()
    if trustee_id is not None:
        qs = qs.filter(trustee_id=str(trustee_id))
    school_ids = sorted(set(qs.values_list("school_id", flat=True)))
    return {"success": True, "data": school_ids}
