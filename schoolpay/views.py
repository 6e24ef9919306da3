from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone


def api_index(request):
    return JsonResponse({
        "message": "School Payment System API is working successfully!",
        "status": "active",
        "version": "1.0.0",
        "timestamp": timezone.now().isoformat(),
        "frontend": settings.FRONTEND_URL,
        "endpoints": {
            "authentication": {
                "register": "POST /api/auth/register",
                "login": "POST /api/auth/login",
            },
            "payments": {
                "create": "POST /api/create-payment",
                "status": "GET /api/payment-status/<collect_request_id>",
                "webhook": "POST /api/webhook",
                "callback": "GET /api/payment-callback",
            },
            "transactions": {
                "all": "GET /api/transactions",
                "bySchool": "GET /api/transactions/school/<school_id>",
                "checkStatus": "GET /api/transaction-status/<custom_order_id>",
            },
        },
    })


def error_404_view(request, exception):
    return JsonResponse(
        {"success": False, "message": f"Route {request.method} {request.path} not found", "statusCode": 404},
        status=404,
    )


def error_500_view(request):
    return JsonResponse(
        {"success": False, "message": "Internal server error", "statusCode": 500},
        status=500,
    )
