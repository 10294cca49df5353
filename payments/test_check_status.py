import json
from decimal import Decimal
from unittest.mock import patch

import requests
from django.test import TestCase
from django.urls import reverse

from .models import Order, WebhookEvent
from .test_webhook import FakeResponse


class CheckStatusTests(TestCase):
    def setUp(self):
        self.order = Order.objects.create(
            order_id="RM-1736937000-ABC", provider="doku", provider_reference="RM-1736937000-ABC",
            gross_amount=Decimal("150000"),
        )
        self.url = reverse("payments:doku_check_status")

    def _answer(self, status="SUCCESS", **extra):
        body = {
            "order": {"invoice_number": self.order.provider_reference, "amount": 150000, "currency": "IDR"},
            "transaction": {"status": status, "date": "2025-01-15T10:30:00Z"},
            "service": {"id": "VIRTUAL_ACCOUNT"},
        }
        body.update(extra)
        return body

    def test_get_reconciles_and_returns_normalized_status(self):
        with patch("payments.integrations.base.requests.get", return_value=FakeResponse(200, self._answer())):
            resp = self.client.get(self.url, {"order_id": self.order.order_id})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["data"]["status"], "paid")
        self.assertEqual(data["data"]["providerStatus"], "success")
        self.assertEqual(data["data"]["paymentType"], "VIRTUAL_ACCOUNT")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "paid")
        self.assertEqual(WebhookEvent.objects.get().outcome, "applied")

    def test_post_with_json_body(self):
        with patch("payments.integrations.base.requests.get",
                   return_value=FakeResponse(200, self._answer("PENDING"))):
            resp = self.client.post(self.url, data=json.dumps({"order_id": self.order.order_id}),
                                    content_type="application/json")
        self.assertEqual(resp.json()["data"]["status"], "pending")

    def test_order_id_is_required(self):
        resp = self.client.get(self.url)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"success": False, "message": "order_id is required"})

    def test_unknown_order(self):
        resp = self.client.get(self.url, {"order_id": "nope"})
        self.assertEqual(resp.status_code, 404)

    def test_order_of_other_provider_is_not_found(self):
        resp = self.client.get(reverse("payments:midtrans_check_status"), {"order_id": self.order.order_id})
        self.assertEqual(resp.status_code, 404)

    def test_provider_error(self):
        with patch("payments.integrations.base.requests.get", return_value=FakeResponse(404, {"error": "nf"})):
            resp = self.client.get(self.url, {"order_id": self.order.order_id})
        self.assertEqual(resp.status_code, 502)
        self.assertFalse(resp.json()["success"])

    def test_provider_unreachable(self):
        with patch("payments.integrations.base.requests.get", side_effect=requests.ConnectionError("down")):
            resp = self.client.get(self.url, {"order_id": self.order.order_id})
        self.assertEqual(resp.status_code, 503)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "pending")
