from django.contrib import admin

from .models import Order, OrderStatus, WebhookLog


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("custom_order_id", "school_id", "trustee_id", "gateway_name", "gateway_reference_id", "created_at")
    search_fields = ("custom_order_id", "gateway_reference_id", "school_id", "student_name", "student_email")
    list_filter = ("gateway_name", "created_at")
    readonly_fields = ("custom_order_id", "created_at", "updated_at")


@admin.register(OrderStatus)
class OrderStatusAdmin(admin.ModelAdmin):
    list_display = ("collect", "status", "order_amount", "transaction_amount", "callback_received", "created_at")
    search_fields = ("collect__custom_order_id", "collect__gateway_reference_id", "bank_reference")
    list_filter = ("status", "callback_received", "created_at")
    readonly_fields = ("created_at", "updated_at", "payment_details")


@admin.register(WebhookLog)
class WebhookLogAdmin(admin.ModelAdmin):
    list_display = ("id", "source", "status", "processed_at", "created_at")
    list_filter = ("status", "source")
    readonly_fields = ("payload", "created_at", "processed_at", "error_message")
