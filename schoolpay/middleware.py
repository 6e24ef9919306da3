from django.conf import settings
from django.http import HttpResponse


class CorsMiddleware:
    """Allow the dashboard origins to call the JSON API from the browser."""

    allow_methods = "GET, POST, PUT, DELETE, PATCH, OPTIONS"
    allow_headers = "Authorization, Content-Type, Accept"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        origin = request.headers.get("Origin")
        allowed = origin and origin in getattr(settings, "CORS_ALLOWED_ORIGINS", [])

        if allowed and request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
            response = HttpResponse(status=204)
        else:
            response = self.get_response(request)

        if allowed:
            response["Access-Control-Allow-Origin"] = origin
            response["Access-Control-Allow-Credentials"] = "true"
            response["Access-Control-Allow-Methods"] = self.allow_methods
            response["Access-Control-Allow-Headers"] = self.allow_headers
            response["Vary"] = "Origin"
        return response
