import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("school_id", models.CharField(db_index=True, max_length=64)),
                ("trustee_id", models.CharField(db_index=True, max_length=64)),
                ("student_name", models.CharField(max_length=128)),
                ("student_id", models.CharField(max_length=64)),
                ("student_email", models.EmailField(max_length=254)),
                ("gateway_name", models.CharField(default="edviron", max_length=32)),
                ("custom_order_id", models.CharField(editable=False, max_length=64, unique=True)),
                ("gateway_reference_id", models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("-created_at",),
            },
        ),
        migrations.CreateModel(
            name="WebhookLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payload", models.JSONField(default=dict)),
                ("source", models.CharField(default="payment_gateway", max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[("RECEIVED", "Received"), ("PROCESSED", "Processed"), ("FAILED", "Failed")],
                        db_index=True,
                        default="RECEIVED",
                        max_length=16,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                "ordering": ("-created_at",),
            },
        ),
        migrations.CreateModel(
            name="OrderStatus",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("transaction_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("status", models.CharField(db_index=True, default="PENDING", max_length=32)),
                ("payment_mode", models.CharField(blank=True, default="", max_length=32)),
                ("payment_details", models.JSONField(blank=True, null=True)),
                ("bank_reference", models.CharField(blank=True, default="", max_length=64)),
                ("payment_message", models.CharField(blank=True, default="", max_length=255)),
                ("error_message", models.CharField(blank=True, default="", max_length=255)),
                ("payment_time", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("callback_received", models.BooleanField(default=False)),
                ("callback_time", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "collect",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_status",
                        to="payments.order",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "order statuses",
            },
        ),
    ]
