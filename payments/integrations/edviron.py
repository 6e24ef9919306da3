import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

import jwt
import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from requests import RequestException

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("BASE_URL", "API_KEY", "PG_SECRET", "CALLBACK_URL")


class EdvironError(Exception):
    def __init__(self, message, status_code=None, data=None):
        super().__init__(message)
        self.status_code = status_code
        self.data = data


@dataclass(frozen=True)
class GatewayConfig:
    base_url: str
    api_key: str
    pg_secret: str
    callback_url: str
    timeout: int = 30

    @classmethod
    def from_settings(cls) -> "GatewayConfig":
        conf = getattr(settings, "EDVIRON", None) or {}
        missing = [k for k in REQUIRED_KEYS if not conf.get(k)]
        if missing:
            logger.error("Edviron configuration missing: %s", ", ".join(missing))
            raise ImproperlyConfigured(
                f"Required gateway configuration missing: {', '.join(missing)}"
            )
        return cls(
            base_url=conf["BASE_URL"],
            api_key=conf["API_KEY"],
            pg_secret=conf["PG_SECRET"],
            callback_url=conf["CALLBACK_URL"],
            timeout=int(conf.get("TIMEOUT") or 30),
        )

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


def _amount_str(amount) -> str:
    try:
        q = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise EdvironError("Invalid amount value")
    s = format(q, "f")
    return s[:-3] if s.endswith(".00") else s


def sign_payload(config: GatewayConfig, payload: dict) -> str:
    """Compact HS256 token over ``payload`` keyed with the PG secret."""
    return jwt.encode(payload, config.pg_secret, algorithm="HS256")


def _headers(config: GatewayConfig) -> dict:
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Authorization": f"Bearer {config.api_key}",
    }


def _parse(resp) -> dict:
    try:
        data = resp.json()
    except ValueError:
        data = {"raw": resp.text}
    return data if isinstance(data, dict) else {"data": data}


def _raise_for_status(resp, data: dict, action: str):
    if 200 <= resp.status_code < 300:
        return
    message = data.get("message") or data.get("error") or f"HTTP {resp.status_code}"
    if isinstance(message, (dict, list)):
        message = json.dumps(message)[:800]
    raise EdvironError(f"{action} failed: {message}", status_code=resp.status_code, data=data)


def _post_collect_request(config: GatewayConfig, body: dict) -> dict:
    url = config.url("create-collect-request")
    try:
        resp = requests.post(url, json=body, headers=_headers(config), timeout=config.timeout)
    except RequestException as e:
        raise EdvironError(f"Gateway request failed: {e}")
    data = _parse(resp)
    _raise_for_status(resp, data, "Create collect request")
    return data


def create_collect_request(config: GatewayConfig, *, school_id, amount, trustee_id="",
                           student_info=None, description="") -> dict:
    """Ask the gateway for a hosted payment page.

    The full body is tried first; on any failure the request is repeated once
    with only the signed fields. If both attempts fail the first error is
    raised, since it carries the more useful gateway message.
    """
    amount = _amount_str(amount)
    signed = {"school_id": school_id, "amount": amount, "callback_url": config.callback_url}
    sign = sign_payload(config, signed)
    minimal_body = {**signed, "sign": sign}
    full_body = {
        **minimal_body,
        "trustee_id": trustee_id,
        "student_info": student_info or {},
        "description": description or "School fee payment",
    }

    logger.info(
        "Creating collect request: url=%s school_id=%s amount=%s api_key=%s...",
        config.url("create-collect-request"), school_id, amount, config.api_key[:6],
    )
    try:
        return _post_collect_request(config, full_body)
    except EdvironError as first_error:
        logger.warning("Collect request failed (%s), retrying with minimal payload", first_error)
        try:
            return _post_collect_request(config, minimal_body)
        except EdvironError:
            logger.error("All collect request attempts failed for school_id=%s", school_id)
            raise first_error


def payment_url_from(data: dict) -> str:
    return (
        data.get("Collect_request_url")
        or data.get("collect_request_url")
        or data.get("payment_url")
        or ""
    )


def get_collect_request_status(config: GatewayConfig, collect_request_id: str, school_id: str) -> dict:
    sign = sign_payload(config, {"school_id": school_id, "collect_request_id": collect_request_id})
    url = config.url(f"collect-request/{collect_request_id}")
    try:
        resp = requests.get(
            url,
            params={"school_id": school_id, "sign": sign},
            headers=_headers(config),
            timeout=config.timeout,
        )
    except RequestException as e:
        raise EdvironError(f"Gateway request failed: {e}")
    data = _parse(resp)
    _raise_for_status(resp, data, "Payment status check")
    return data
