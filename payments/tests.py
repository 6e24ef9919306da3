import json
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth.models import User
from django.test import TestCase, override_settings

from accounts.auth import issue_token

from .models import Order, OrderStatus
from .test_edviron import FakeResponse
from .views import GATEWAY_500_HELP


def gateway_ok(ref="REF1"):
    return FakeResponse(200, {
        "collect_request_id": ref,
        "Collect_request_url": f"https://pay.example.com/{ref}",
        "sign": "gateway-sign",
    })


class ApiTestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="trustee@example.com", email="trustee@example.com", password="secret123",
            first_name="Trustee",
        )
        self.auth = {"HTTP_AUTHORIZATION": f"Bearer {issue_token(self.user)}"}

    def post_json(self, url, payload, **extra):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json",
                                **{**self.auth, **extra})


PAYMENT = {
    "school_id": "S1",
    "amount": 1234,
    "student_info": {"name": "Asha Rao", "id": "ST-01", "email": "asha@example.com"},
}


class CreatePaymentTests(ApiTestCase):
    def test_creates_order_and_returns_payment_url(self):
        with patch("payments.integrations.edviron.requests.post", return_value=gateway_ok()):
            resp = self.post_json("/api/create-payment", PAYMENT)

        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["payment_url"], "https://pay.example.com/REF1")
        self.assertEqual(body["collect_request_id"], "REF1")
        self.assertEqual(body["gateway_sign"], "gateway-sign")

        order = Order.objects.get()
        self.assertEqual(body["order_id"], order.custom_order_id)
        self.assertTrue(order.custom_order_id.startswith("ORD_"))
        self.assertEqual(order.gateway_reference_id, "REF1")
        self.assertEqual(order.trustee_id, str(self.user.pk))
        self.assertEqual(order.student_info["email"], "asha@example.com")
        self.assertEqual(order.order_status.status, OrderStatus.PENDING)
        self.assertEqual(order.order_status.order_amount, Decimal("1234"))

    def test_order_is_pending_before_gateway_call(self):
        seen = {}

        def fake_post(url, **kwargs):
            seen["pending"] = OrderStatus.objects.filter(status=OrderStatus.PENDING).count()
            seen["orders"] = Order.objects.count()
            return gateway_ok()

        with patch("payments.integrations.edviron.requests.post", side_effect=fake_post):
            self.post_json("/api/create-payment", PAYMENT)

        self.assertEqual(seen, {"pending": 1, "orders": 1})

    def test_flat_student_fields_are_accepted(self):
        payload = {
            "school_id": "S1", "amount": "50.25", "student_name": "Ravi",
            "student_id": "ST-02", "student_email": "ravi@example.com",
        }
        with patch("payments.integrations.edviron.requests.post", return_value=gateway_ok("REF9")):
            resp = self.post_json("/api/create-payment", payload)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(OrderStatus.objects.get().order_amount, Decimal("50.25"))

    def test_invalid_amount_is_rejected_before_persisting(self):
        with patch("payments.integrations.edviron.requests.post") as post:
            resp = self.post_json("/api/create-payment", {**PAYMENT, "amount": 0})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("amount", resp.json()["errors"])
        self.assertFalse(Order.objects.exists())
        post.assert_not_called()

    def test_missing_student_email_is_rejected(self):
        payload = {**PAYMENT, "student_info": {"name": "Asha", "id": "ST-01"}}
        resp = self.post_json("/api/create-payment", payload)
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(Order.objects.exists())

    def test_invalid_json_body(self):
        resp = self.client.post("/api/create-payment", data="{not json", content_type="application/json",
                                **self.auth)
        self.assertEqual(resp.status_code, 400)

    @override_settings(EDVIRON={
        "BASE_URL": "https://gateway.example.com/erp/",
        "API_KEY": "",
        "PG_SECRET": "test-pg-secret",
        "CALLBACK_URL": "https://api.example.com/api/payment-callback",
    })
    def test_missing_configuration_fails_before_persisting(self):
        with patch("payments.integrations.edviron.requests.post") as post:
            resp = self.post_json("/api/create-payment", PAYMENT)
        self.assertEqual(resp.status_code, 500)
        self.assertIn("API_KEY", resp.json()["message"])
        self.assertFalse(Order.objects.exists())
        post.assert_not_called()

    def test_gateway_500_returns_help_message(self):
        failing = FakeResponse(500, {"message": "Internal Server Error"})
        with patch("payments.integrations.edviron.requests.post", return_value=failing) as post:
            with self.assertLogs("payments.services", level="ERROR") as cm:
                resp = self.post_json("/api/create-payment", PAYMENT)

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], GATEWAY_500_HELP)
        self.assertEqual(post.call_count, 2)

        status = OrderStatus.objects.get()
        self.assertEqual(status.status, OrderStatus.PENDING)
        self.assertIn("Internal Server Error", status.error_message)
        self.assertIn(status.collect.custom_order_id, cm.output[0])

    def test_gateway_without_payment_url(self):
        with patch("payments.integrations.edviron.requests.post",
                   return_value=FakeResponse(200, {"collect_request_id": "REF1"})):
            resp = self.post_json("/api/create-payment", PAYMENT)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Payment URL not provided by gateway")
        self.assertEqual(Order.objects.get().gateway_reference_id, "REF1")

    def test_requires_token(self):
        resp = self.client.post("/api/create-payment", data=json.dumps(PAYMENT),
                                content_type="application/json")
        self.assertEqual(resp.status_code, 401)


class PaymentStatusViewTests(ApiTestCase):
    def test_returns_gateway_status(self):
        ok = FakeResponse(200, {"status": "SUCCESS", "amount": 1234, "details": {"mode": "upi"}, "jwt": "j"})
        with patch("payments.integrations.edviron.requests.get", return_value=ok):
            resp = self.client.get("/api/payment-status/REF1", {"school_id": "S1"}, **self.auth)
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["status"], "SUCCESS")
        self.assertEqual(body["status_category"], "SUCCESS")
        self.assertEqual(body["amount"], 1234)

    def test_school_id_is_required(self):
        resp = self.client.get("/api/payment-status/REF1", **self.auth)
        self.assertEqual(resp.status_code, 400)

    def test_gateway_error(self):
        with patch("payments.integrations.edviron.requests.get",
                   return_value=FakeResponse(404, {"message": "Not found"})):
            resp = self.client.get("/api/payment-status/REF1", {"school_id": "S1"}, **self.auth)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["gateway_status"], 404)


class PaymentScenarioTests(ApiTestCase):
    def test_create_then_successful_callback_shows_in_transactions(self):
        with patch("payments.integrations.edviron.requests.post", return_value=gateway_ok("REF1")):
            self.post_json("/api/create-payment", PAYMENT)

        rows = self.client.get("/api/transactions", {"school_id": "S1"}, **self.auth).json()["data"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["status_category"], "PENDING")
        self.assertEqual(rows[0]["order_amount"], 1234)
        self.assertIsNone(rows[0]["transaction_amount"])

        resp = self.client.get("/api/payment-callback",
                               {"EdvironCollectRequestId": "REF1", "status": "SUCCESS", "amount": "1234"})
        self.assertEqual(resp.status_code, 200)
        self.assertTemplateUsed(resp, "payments/callback.html")

        status = OrderStatus.objects.get()
        self.assertEqual(status.status, "SUCCESS")
        self.assertEqual(status.transaction_amount, Decimal("1234"))
        self.assertTrue(status.callback_received)

        rows = self.client.get("/api/transactions", {"school_id": "S1"}, **self.auth).json()["data"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["status_category"], "SUCCESS")
        self.assertEqual(rows[0]["school_id"], "S1")
        self.assertEqual(rows[0]["order_amount"], 1234)
        self.assertEqual(rows[0]["transaction_amount"], 1234)


def make_order(custom_order_id, *, amount="100.00", status="PENDING", school_id="S1", trustee_id="1",
               gateway_reference_id=None, gateway_name="edviron", **status_fields):
    order = Order.objects.create(
        school_id=school_id,
        trustee_id=str(trustee_id),
        student_name="Student",
        student_id="ST",
        student_email="student@example.com",
        gateway_name=gateway_name,
        custom_order_id=custom_order_id,
        gateway_reference_id=gateway_reference_id,
    )
    OrderStatus.objects.create(collect=order, order_amount=Decimal(amount), status=status, **status_fields)
    return order
