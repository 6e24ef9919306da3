from datetime import timedelta
from decimal import Decimal
from io import StringIO
from math import ceil
from unittest.mock import patch

from django.core.management import CommandError, call_command
from django.test import TestCase
from django.utils import timezone

from . import transactions
from .models import Order, OrderStatus
from .services import OrderNotFound
from .tests import ApiTestCase, make_order


class TransactionQueryTests(TestCase):
    def setUp(self):
        base = timezone.now()
        for i in range(25):
            order = make_order(
                f"ORD_{i:02d}",
                amount=f"{100 + i}.00",
                status=("SUCCESS", "pending", "FAILED")[i % 3],
                school_id="S1" if i < 20 else "S2",
                trustee_id="1",
            )
            Order.objects.filter(pk=order.pk).update(created_at=base - timedelta(minutes=i))
        make_order("ORD_OTHER", trustee_id="2", school_id="S9")

    def test_pages_cover_every_row_once(self):
        seen = []
        first = transactions.get_transactions(page=1, limit=10, trustee_id="1")
        total_pages = first["pagination"]["totalPages"]
        self.assertEqual(first["pagination"]["totalCount"], 25)
        self.assertEqual(total_pages, ceil(25 / 10))

        for page in range(1, total_pages + 1):
            result = transactions.get_transactions(page=page, limit=10, trustee_id="1")
            pagination = result["pagination"]
            self.assertEqual(pagination["hasNextPage"], page < total_pages)
            self.assertEqual(pagination["hasPrevPage"], page > 1)
            seen.extend(row["custom_order_id"] for row in result["data"])

        self.assertEqual(len(seen), 25)
        self.assertEqual(len(set(seen)), 25)

    def test_default_sort_is_newest_first(self):
        rows = transactions.get_transactions(limit=3, trustee_id="1")["data"]
        self.assertEqual([r["custom_order_id"] for r in rows], ["ORD_00", "ORD_01", "ORD_02"])

    def test_sort_by_amount_ascending(self):
        rows = transactions.get_transactions(limit=2, sort="order_amount", order="asc", trustee_id="1")["data"]
        self.assertEqual([r["order_amount"] for r in rows], [100, 101])

    def test_unknown_sort_key_falls_back_to_created_at(self):
        rows = transactions.get_transactions(limit=1, sort="password", trustee_id="1")["data"]
        self.assertEqual(rows[0]["custom_order_id"], "ORD_00")

    def test_status_filter_is_case_insensitive_on_raw_status(self):
        result = transactions.get_transactions(status="PENDING", limit=100, trustee_id="1")
        self.assertEqual(result["pagination"]["totalCount"], 8)
        for row in result["data"]:
            self.assertEqual(row["raw_status"], "pending")
            self.assertEqual(row["status_category"], "PENDING")

    def test_school_and_gateway_filters(self):
        self.assertEqual(transactions.get_transactions(school_id="S2", trustee_id="1")["pagination"]["totalCount"], 5)
        self.assertEqual(transactions.get_transactions(gateway="other", trustee_id="1")["pagination"]["totalCount"], 0)

    def test_rows_are_scoped_to_trustee(self):
        result = transactions.get_transactions(limit=100, trustee_id="2")
        self.assertEqual([r["custom_order_id"] for r in result["data"]], ["ORD_OTHER"])

    def test_limit_and_page_are_clamped(self):
        result = transactions.get_transactions(page=0, limit=500, trustee_id="1")
        self.assertEqual(result["pagination"]["currentPage"], 1)
        self.assertEqual(len(result["data"]), 25)
        result = transactions.get_transactions(page=1, limit=0, trustee_id="1")
        self.assertEqual(len(result["data"]), 1)

    def test_page_past_the_end_is_empty(self):
        result = transactions.get_transactions(page=9, limit=10, trustee_id="1")
        self.assertEqual(result["data"], [])
        self.assertFalse(result["pagination"]["hasNextPage"])

    def test_orders_without_status_are_not_listed(self):
        Order.objects.create(
            school_id="S1", trustee_id="1", student_name="X", student_id="X",
            student_email="x@example.com", custom_order_id="ORD_BARE",
        )
        self.assertEqual(transactions.get_transactions(trustee_id="1")["pagination"]["totalCount"], 25)

    def test_row_shape(self):
        row = transactions.get_transactions(limit=1, trustee_id="1")["data"][0]
        self.assertEqual(set(row), {
            "collect_id", "school_id", "gateway", "order_amount", "transaction_amount", "status",
            "raw_status", "status_category", "original_status", "custom_order_id", "payment_time",
            "payment_mode", "student_name", "student_email", "createdAt",
        })

    def test_by_school(self):
        result = transactions.get_transactions_by_school("S2", page=1, limit=2, trustee_id="1")
        self.assertEqual(result["pagination"]["totalCount"], 5)
        self.assertEqual(result["pagination"]["totalPages"], 3)
        self.assertEqual([r["custom_order_id"] for r in result["data"]], ["ORD_20", "ORD_21"])

    def test_transaction_status(self):
        data = transactions.get_transaction_status("ORD_00", trustee_id="1")["data"]
        self.assertEqual(data["status_category"], "SUCCESS")
        self.assertEqual(data["student_info"]["email"], "student@example.com")

    def test_transaction_status_unknown_or_foreign(self):
        with self.assertRaises(OrderNotFound):
            transactions.get_transaction_status("NOPE")
        with self.assertRaises(OrderNotFound):
            transactions.get_transaction_status("ORD_OTHER", trustee_id="1")

    def test_school_ids(self):
        self.assertEqual(transactions.get_school_ids(trustee_id="1")["data"], ["S1", "S2"])


class TransactionEndpointTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        me = str(self.user.pk)
        make_order("ORD_A", school_id="S1", trustee_id=me, status="SUCCESS")
        make_order("ORD_B", school_id="S2", trustee_id=me)
        make_order("ORD_X", school_id="S3", trustee_id=f"{me}0")

    def test_list(self):
        resp = self.client.get("/api/transactions", {"limit": "1", "page": "2"}, **self.auth)
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["pagination"]["totalCount"], 2)
        self.assertEqual(body["pagination"]["currentPage"], 2)
        self.assertTrue(body["pagination"]["hasPrevPage"])

    def test_bad_paging_params_use_defaults(self):
        resp = self.client.get("/api/transactions", {"limit": "many", "page": "x"}, **self.auth)
        self.assertEqual(resp.json()["pagination"]["currentPage"], 1)

    def test_by_school(self):
        resp = self.client.get("/api/transactions/school/S2", **self.auth)
        self.assertEqual([r["custom_order_id"] for r in resp.json()["data"]], ["ORD_B"])

    def test_school_ids(self):
        resp = self.client.get("/api/transactions/schools", **self.auth)
        self.assertEqual(resp.json()["data"], ["S1", "S2"])

    def test_transaction_status(self):
        resp = self.client.get("/api/transaction-status/ORD_A", **self.auth)
        self.assertEqual(resp.json()["data"]["status"], "SUCCESS")
        self.assertEqual(self.client.get("/api/transaction-status/ORD_X", **self.auth).status_code, 404)

    def test_requires_token(self):
        self.assertEqual(self.client.get("/api/transactions").status_code, 401)
        resp = self.client.get("/api/transactions", HTTP_AUTHORIZATION="Bearer not-a-token")
        self.assertEqual(resp.status_code, 401)


class UpdatePaymentStatusCommandTests(TestCase):
    def test_sets_status_and_amount(self):
        order = make_order("ORD_1", amount="400.00", gateway_reference_id="REF1")
        out = StringIO()
        call_command("update_payment_status", "REF1", "--status", "SUCCESS", "--amount", "400", stdout=out)
        status = OrderStatus.objects.get(collect=order)
        self.assertEqual(status.status, "SUCCESS")
        self.assertTrue(status.callback_received)
        self.assertIn("ORD_1 -> SUCCESS", out.getvalue())

    def test_unknown_reference(self):
        with self.settings(PAYMENTS={"CALLBACK_AMOUNT_FALLBACK": False}):
            with self.assertRaises(CommandError):
                call_command("update_payment_status", "NOPE", stdout=StringIO())


class ReconcilePendingPaymentsCommandTests(TestCase):
    def test_settled_gateway_status_is_recorded(self):
        paid = make_order("ORD_1", amount="400.00", gateway_reference_id="REF1")
        waiting = make_order("ORD_2", gateway_reference_id="REF2")
        make_order("ORD_3")
        OrderStatus.objects.update(created_at=timezone.now() - timedelta(minutes=5))

        def fake_status(config, collect_request_id, school_id):
            return {"REF1": {"status": "SUCCESS", "amount": 400}, "REF2": {"status": "PENDING"}}[collect_request_id]

        out = StringIO()
        with patch("payments.services.get_collect_request_status", side_effect=fake_status) as status_call:
            call_command("reconcile_pending_payments", "--sleep", "0", stdout=out)

        self.assertEqual(status_call.call_count, 2)
        self.assertEqual(OrderStatus.objects.get(collect=paid).status, "SUCCESS")
        self.assertEqual(OrderStatus.objects.get(collect=paid).transaction_amount, Decimal("400"))
        self.assertEqual(OrderStatus.objects.get(collect=waiting).status, "PENDING")
        self.assertIn("ORD_1 -> SUCCESS", out.getvalue())
