"""Bearer-token authentication for the dashboard API."""

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from django.conf import settings
from django.contrib.auth.models import User
from django.core.exceptions import ImproperlyConfigured
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _secret() -> str:
    secret = getattr(settings, "JWT_SECRET", "")
    if not secret:
        logger.error("JWT_SECRET missing in settings")
        raise ImproperlyConfigured("JWT_SECRET setting is required to issue or verify tokens")
    return secret


def user_payload(user) -> dict:
    return {
        "id": str(user.pk),
        "email": user.email,
        "name": user.get_full_name() or user.first_name or user.username,
        "role": "admin" if user.is_staff else "user",
    }


def issue_token(user) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.pk),
        "email": user.email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.JWT_EXPIRES_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def user_from_token(token: str):
    """Return the active user a token was issued for, or ``None``."""
    try:
        payload = jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", e)
        return None
    return User.objects.filter(pk=payload.get("sub"), is_active=True).first()


def _unauthorized(message="Unauthorized"):
    return JsonResponse({"success": False, "message": message, "statusCode": 401}, status=401)


def jwt_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return _unauthorized()
        user = user_from_token(token.strip())
        if user is None:
            return _unauthorized("Invalid or expired token")
        request.user = user
        return view(request, *args, **kwargs)

    return wrapper
