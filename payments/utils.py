import json
import uuid
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.utils import timezone
from django.utils.dateparse import parse_datetime


def generate_order_id(prefix="ORD"):
    # uuid4 suffix keeps ids unique across workers created in the same millisecond
    ts = timezone.now().strftime("%Y%m%d%H%M%S%f")[:-3]
    return f"{prefix}_{ts}_{uuid.uuid4().hex[:12]}"


# OrderStatus amounts are DecimalField(max_digits=12, decimal_places=2)
MAX_AMOUNT = Decimal("9999999999.99")


class AmountOutOfRange(ValueError):
    pass


def parse_amount(value):
    """Return ``value`` as a positive Decimal with two places, or None.

    Raises ``AmountOutOfRange`` when the value does not fit the amount columns.
    """
    if value is None or value == "":
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite() or d <= 0:
        return None
    if d > MAX_AMOUNT:
        raise AmountOutOfRange(f"Amount {value} exceeds {MAX_AMOUNT}")
    d = d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if d > MAX_AMOUNT:
        raise AmountOutOfRange(f"Amount {value} exceeds {MAX_AMOUNT}")
    return d if d > 0 else None


def to_decimal(value):
    """Like ``parse_amount`` but out-of-range values are treated as absent."""
    try:
        return parse_amount(value)
    except AmountOutOfRange:
        return None


def parse_timestamp(value):
    if not value:
        return timezone.now()
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = parse_datetime(str(value).replace("Z", "+00:00"))
        except ValueError:
            dt = None
    if dt is None:
        return timezone.now()
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt, dt_timezone.utc)
    return dt


def normalize_details(details):
    """Coerce gateway ``payment_details`` into a JSON object."""
    if details is None:
        return None
    if isinstance(details, dict):
        return details
    if isinstance(details, str):
        try:
            parsed = json.loads(details)
        except ValueError:
            return {"raw": details}
        return parsed if isinstance(parsed, dict) else {"raw": parsed}
    return {"raw": str(details)}
