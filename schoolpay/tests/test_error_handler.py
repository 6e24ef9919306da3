from django.test import SimpleTestCase, override_settings


@override_settings(DEBUG=False)
class ErrorHandlerTests(SimpleTestCase):
    def test_unknown_route_returns_json_404(self):
        response = self.client.get("/api/this-route-does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {
            "success": False,
            "message": "Route GET /api/this-route-does-not-exist not found",
            "statusCode": 404,
        })

    def test_index_lists_endpoints(self):
        response = self.client.get("/api/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "active")
        self.assertIn("create", response.json()["endpoints"]["payments"])
