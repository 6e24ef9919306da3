from django.db import models


class Order(models.Model):
    school_id = models.CharField(max_length=64, db_index=True)
    trustee_id = models.CharField(max_length=64, db_index=True)

    student_name = models.CharField(max_length=128)
    student_id = models.CharField(max_length=64)
    student_email = models.EmailField()

    gateway_name = models.CharField(max_length=32, default="edviron")
    custom_order_id = models.CharField(max_length=64, unique=True, editable=False)
    # collect_request_id assigned by the gateway once it accepts the request
    gateway_reference_id = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    description = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.custom_order_id} ({self.school_id})"

    @property
    def student_info(self) -> dict:
        return {"name": self.student_name, "id": self.student_id, "email": self.student_email}


class OrderStatus(models.Model):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    collect = models.OneToOneField(Order, on_delete=models.PROTECT, related_name="order_status")

    order_amount = models.DecimalField(max_digits=12, decimal_places=2)
    transaction_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)

    # Raw gateway status; classified into a category at read time
    status = models.CharField(max_length=32, default=PENDING, db_index=True)
    payment_mode = models.CharField(max_length=32, blank=True, default="")
    payment_details = models.JSONField(blank=True, null=True)
    bank_reference = models.CharField(max_length=64, blank=True, default="")
    payment_message = models.CharField(max_length=255, blank=True, default="")
    error_message = models.CharField(max_length=255, blank=True, default="")
    payment_time = models.DateTimeField(blank=True, null=True, db_index=True)

    callback_received = models.BooleanField(default=False)
    callback_time = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "order statuses"

    def __str__(self):
        return f"{self.collect_id} {self.status} {self.order_amount}"


class WebhookLog(models.Model):
    RECEIVED = "RECEIVED"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"
    STATUS_CHOICES = [
        (RECEIVED, "Received"),
        (PROCESSED, "Processed"),
        (FAILED, "Failed"),
    ]

    payload = models.JSONField(default=dict)
    source = models.CharField(max_length=32, default="payment_gateway")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=RECEIVED, db_index=True)
    processed_at = models.DateTimeField(blank=True, null=True)
    error_message = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"WebhookLog {self.pk} - {self.status}"
