import json
import logging

from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .auth import issue_token, user_payload
from .forms import LoginForm, RegisterForm

logger = logging.getLogger(__name__)


def _json_body(request):
    try:
        return json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None


def _invalid(form):
    return JsonResponse(
        {"success": False, "message": "Validation failed", "errors": form.errors.get_json_data()},
        status=400,
    )


@csrf_exempt
@require_POST
def register_view(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        return JsonResponse({"success": False, "message": "Invalid JSON body"}, status=400)

    form = RegisterForm(body)
    if not form.is_valid():
        return _invalid(form)

    email = form.cleaned_data["email"]
    user = User.objects.create_user(
        username=email,
        email=email,
        password=form.cleaned_data["password"],
        first_name=form.cleaned_data["name"][:150],
    )
    logger.info("Registered dashboard user %s", user.pk)
    return JsonResponse(
        {"success": True, "message": "User registered successfully", "user": user_payload(user)},
        status=201,
    )


@csrf_exempt
@require_POST
def login_view(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        return JsonResponse({"success": False, "message": "Invalid JSON body"}, status=400)

    form = LoginForm(body)
    if not form.is_valid():
        return _invalid(form)

    user = authenticate(
        request,
        username=form.cleaned_data["email"],
        password=form.cleaned_data["password"],
    )
    if user is None:
        logger.info("Failed login for %s", form.cleaned_data["email"])
        return JsonResponse({"success": False, "message": "Invalid credentials", "statusCode": 401}, status=401)

    return JsonResponse({"access_token": issue_token(user), "user": user_payload(user)})
