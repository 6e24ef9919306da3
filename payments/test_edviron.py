from unittest.mock import patch

import jwt
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings
from requests import ConnectionError as RequestsConnectionError

from .integrations import edviron
from .integrations.edviron import EdvironError, GatewayConfig


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("No JSON")
        return self._data


CONFIG = GatewayConfig(
    base_url="https://gateway.example.com/erp/",
    api_key="test-api-key",
    pg_secret="test-pg-secret",
    callback_url="https://api.example.com/api/payment-callback",
    timeout=5,
)


class GatewayConfigTests(SimpleTestCase):
    def test_builds_from_settings(self):
        config = GatewayConfig.from_settings()
        self.assertEqual(config.api_key, "test-api-key")
        self.assertEqual(config.url("create-collect-request"),
                         "https://gateway.example.com/erp/create-collect-request")

    def test_missing_values_raise(self):
        with override_settings(EDVIRON={"BASE_URL": "https://x", "API_KEY": "", "PG_SECRET": "s"}):
            with self.assertLogs("payments.integrations.edviron", level="ERROR"):
                with self.assertRaises(ImproperlyConfigured) as cm:
                    GatewayConfig.from_settings()
        self.assertIn("API_KEY", str(cm.exception))
        self.assertIn("CALLBACK_URL", str(cm.exception))


class AmountFormattingTests(SimpleTestCase):
    def test_whole_amounts_drop_decimals(self):
        self.assertEqual(edviron._amount_str("1234"), "1234")
        self.assertEqual(edviron._amount_str(1234.0), "1234")

    def test_fractional_amounts_keep_two_places(self):
        self.assertEqual(edviron._amount_str("99.5"), "99.50")

    def test_invalid_amount_raises(self):
        with self.assertRaises(EdvironError):
            edviron._amount_str("abc")


class CreateCollectRequestTests(SimpleTestCase):
    def test_full_payload_is_signed(self):
        ok = FakeResponse(200, {"collect_request_id": "REF1", "Collect_request_url": "https://pay/REF1"})
        with patch("payments.integrations.edviron.requests.post", return_value=ok) as post:
            data = edviron.create_collect_request(
                CONFIG, school_id="S1", amount="1234", trustee_id="7",
                student_info={"name": "Asha", "id": "ST1", "email": "asha@example.com"},
            )

        self.assertEqual(data["collect_request_id"], "REF1")
        post.assert_called_once()
        body = post.call_args.kwargs["json"]
        self.assertEqual(body["trustee_id"], "7")
        self.assertEqual(post.call_args.kwargs["headers"]["Authorization"], "Bearer test-api-key")
        self.assertEqual(post.call_args.kwargs["timeout"], 5)
        claims = jwt.decode(body["sign"], "test-pg-secret", algorithms=["HS256"])
        self.assertEqual(claims, {
            "school_id": "S1",
            "amount": "1234",
            "callback_url": "https://api.example.com/api/payment-callback",
        })

    def test_retries_once_with_minimal_payload(self):
        responses = [
            FakeResponse(500, {"message": "boom"}),
            FakeResponse(200, {"collect_request_id": "REF2", "payment_url": "https://pay/REF2"}),
        ]
        with patch("payments.integrations.edviron.requests.post", side_effect=responses) as post:
            data = edviron.create_collect_request(CONFIG, school_id="S1", amount=10)

        self.assertEqual(data["collect_request_id"], "REF2")
        self.assertEqual(post.call_count, 2)
        minimal = post.call_args_list[1].kwargs["json"]
        self.assertEqual(set(minimal), {"school_id", "amount", "callback_url", "sign"})

    def test_raises_first_error_when_both_attempts_fail(self):
        responses = [
            FakeResponse(500, {"message": "first failure"}),
            FakeResponse(400, {"message": "second failure"}),
        ]
        with patch("payments.integrations.edviron.requests.post", side_effect=responses):
            with self.assertRaises(EdvironError) as cm:
                edviron.create_collect_request(CONFIG, school_id="S1", amount=10)

        self.assertEqual(cm.exception.status_code, 500)
        self.assertIn("first failure", str(cm.exception))

    def test_network_errors_become_gateway_errors(self):
        with patch("payments.integrations.edviron.requests.post",
                   side_effect=RequestsConnectionError("refused")) as post:
            with self.assertRaises(EdvironError) as cm:
                edviron.create_collect_request(CONFIG, school_id="S1", amount=10)

        self.assertEqual(post.call_count, 2)
        self.assertIsNone(cm.exception.status_code)

    def test_payment_url_keys(self):
        self.assertEqual(edviron.payment_url_from({"Collect_request_url": "a"}), "a")
        self.assertEqual(edviron.payment_url_from({"collect_request_url": "b"}), "b")
        self.assertEqual(edviron.payment_url_from({"payment_url": "c"}), "c")
        self.assertEqual(edviron.payment_url_from({}), "")


class CollectRequestStatusTests(SimpleTestCase):
    def test_status_request_is_signed(self):
        ok = FakeResponse(200, {"status": "SUCCESS", "amount": 1234})
        with patch("payments.integrations.edviron.requests.get", return_value=ok) as get:
            data = edviron.get_collect_request_status(CONFIG, "REF1", "S1")

        self.assertEqual(data["status"], "SUCCESS")
        self.assertEqual(get.call_args.args[0], "https://gateway.example.com/erp/collect-request/REF1")
        params = get.call_args.kwargs["params"]
        self.assertEqual(params["school_id"], "S1")
        claims = jwt.decode(params["sign"], "test-pg-secret", algorithms=["HS256"])
        self.assertEqual(claims, {"school_id": "S1", "collect_request_id": "REF1"})

    def test_non_json_error_response(self):
        bad = FakeResponse(502, None, text="Bad gateway")
        with patch("payments.integrations.edviron.requests.get", return_value=bad):
            with self.assertRaises(EdvironError) as cm:
                edviron.get_collect_request_status(CONFIG, "REF1", "S1")
        self.assertEqual(cm.exception.status_code, 502)
        self.assertEqual(cm.exception.data, {"raw": "Bad gateway"})
