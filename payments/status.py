"""Map raw gateway status strings onto the four dashboard categories.

Gateways report the same outcome under many spellings ("paid", "SUCCESSFUL",
"user_dropped", ...). ``classify_status`` folds all of them into PENDING,
SUCCESS, FAILED or CANCELLED. Anything it does not recognise, including an
empty value, is PENDING: the payment has not been confirmed either way.
"""

PENDING = "PENDING"
SUCCESS = "SUCCESS"
FAILED = "FAILED"
CANCELLED = "CANCELLED"

CATEGORIES = (PENDING, SUCCESS, FAILED, CANCELLED)
DEFAULT_CATEGORY = PENDING

SUCCESS_STATUSES = {"SUCCESS", "SUCCESSFUL", "COMPLETED", "PAID"}
FAILED_STATUSES = {"FAILED", "FAILURE", "FAILED_PAYMENT", "ERROR"}
CANCELLED_STATUSES = {
    "CANCELLED",
    "CANCELED",
    "CANCELLED_BY_USER",
    "USER_CANCELLED",
    "PAYMENT_CANCELLED",
    "USER_DROPPED",
    "DROPPED",
    "ABANDONED",
    "TIMEOUT",
}
PENDING_STATUSES = {
    "PENDING",
    "PROCESSING",
    "INITIATED",
    "IN_PROGRESS",
    "AWAITING_PAYMENT",
    "RETRY_CREATED",
}

_EXACT = {}
for _category, _names in (
    (SUCCESS, SUCCESS_STATUSES),
    (FAILED, FAILED_STATUSES),
    (CANCELLED, CANCELLED_STATUSES),
    (PENDING, PENDING_STATUSES),
):
    for _name in _names:
        _EXACT[_name] = _category


def classify_status(raw_status) -> str:
    if raw_status is None:
        return DEFAULT_CATEGORY
    status = str(raw_status).strip().upper()
    if not status:
        return DEFAULT_CATEGORY

    category = _EXACT.get(status)
    if category:
        return category

    if "PENDING" in status or "PROCESSING" in status:
        return PENDING
    return DEFAULT_CATEGORY
