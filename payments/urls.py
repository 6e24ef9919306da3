from django.urls import path

from . import views

app_name = "payments"

urlpatterns = [
    path("create-payment", views.create_payment_view, name="create_payment"),
    path("payment-status/<str:collect_request_id>", views.payment_status_view, name="payment_status"),
    path("webhook", views.webhook_view, name="webhook"),
    # Gateway redirects the payer here: https://<domain>/api/payment-callback
    path("payment-callback", views.payment_callback_view, name="payment_callback"),
    path("transactions", views.transactions_view, name="transactions"),
    path("transactions/schools", views.school_ids_view, name="school_ids"),
    path("transactions/school/<str:school_id>", views.transactions_by_school_view, name="transactions_by_school"),
    path("transaction-status/<str:custom_order_id>", views.transaction_status_view, name="transaction_status"),
    path("cancel-abandoned-payments", views.cancel_abandoned_view, name="cancel_abandoned"),
    path("cancel-payment/<str:custom_order_id>", views.cancel_payment_view, name="cancel_payment"),
    path("debug-pending-payments", views.debug_pending_view, name="debug_pending"),
    path("force-cancel-abandoned", views.force_cancel_view, name="force_cancel_abandoned"),
    path("trigger-scheduler", views.trigger_scheduler_view, name="trigger_scheduler"),
]
