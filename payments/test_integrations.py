from decimal import Decimal
from unittest.mock import patch

import requests
from django.test import RequestFactory, SimpleTestCase

from . import signatures
from .exceptions import AuthenticationFailed, InvalidPayload, ProviderError, VerificationUnavailable
from .integrations.doku import DokuClient
from .integrations.midtrans import MidtransClient
from .notifications import parse_doku, parse_midtrans
from .test_webhook import FakeResponse
from .verification import CallbackVerifier, SignatureVerifier

SETTLED = {
    "status_code": "200",
    "order_id": "R1",
    "transaction_status": "settlement",
    "gross_amount": "45000.00",
}


class MidtransClientTests(SimpleTestCase):
    def setUp(self):
        self.client = MidtransClient(base_url="https://api.sandbox.midtrans.com/", server_key="SB-key", timeout=3)

    def test_basic_auth_with_server_key(self):
        with patch("payments.integrations.base.requests.get", return_value=FakeResponse(200, SETTLED)) as get:
            data = self.client.get_status("R1")
        self.assertEqual(data, SETTLED)
        self.assertEqual(get.call_args.args[0], "https://api.sandbox.midtrans.com/v2/R1/status")
        auth = get.call_args.kwargs["auth"]
        self.assertEqual((auth.username, auth.password), ("SB-key", ""))
        self.assertEqual(get.call_args.kwargs["timeout"], 3)

    def test_retries_once_on_transient_failure(self):
        with patch("payments.integrations.base.requests.get",
                   side_effect=[requests.Timeout("slow"), FakeResponse(200, SETTLED)]) as get:
            data = self.client.get_status("R1")
        self.assertEqual(get.call_count, 2)
        self.assertEqual(data["transaction_status"], "settlement")

    def test_gives_up_after_second_failure(self):
        with patch("payments.integrations.base.requests.get",
                   side_effect=[FakeResponse(502), FakeResponse(503), FakeResponse(200, SETTLED)]) as get:
            with self.assertRaises(VerificationUnavailable):
                self.client.get_status("R1")
        self.assertEqual(get.call_count, 2)

    def test_not_found_in_body_is_provider_error(self):
        body = {"status_code": "404", "status_message": "Transaction doesn't exist."}
        with patch("payments.integrations.base.requests.get", return_value=FakeResponse(200, body)):
            with self.assertRaises(ProviderError) as cm:
                self.client.get_status("R1")
        self.assertEqual(cm.exception.status_code, 404)

    def test_unauthorized_is_not_retried(self):
        with patch("payments.integrations.base.requests.get", return_value=FakeResponse(401, {})) as get:
            with self.assertRaises(ProviderError):
                self.client.get_status("R1")
        self.assertEqual(get.call_count, 1)

    def test_missing_server_key(self):
        with self.assertRaises(ProviderError):
            MidtransClient(base_url="https://x", server_key="").get_status("R1")


class DokuClientTests(SimpleTestCase):
    def test_status_request_is_signed_without_digest(self):
        client = DokuClient(base_url="https://api-sandbox.doku.com", client_id="BRN-1", secret_key="sk", timeout=3)
        body = {"order": {"invoice_number": "INV-1"}, "transaction": {"status": "SUCCESS"}}
        with patch("payments.integrations.base.requests.get", return_value=FakeResponse(200, body)) as get:
            self.assertEqual(client.get_status("INV-1"), body)

        self.assertEqual(get.call_args.args[0], "https://api-sandbox.doku.com/orders/v1/status/INV-1")
        headers = get.call_args.kwargs["headers"]
        expected = signatures.sign("sk", "BRN-1", headers["Request-Id"], headers["Request-Timestamp"],
                                   "/orders/v1/status/INV-1")
        self.assertEqual(headers["Signature"], expected)
        self.assertEqual(headers["Client-Id"], "BRN-1")


class ParserTests(SimpleTestCase):
    def test_midtrans_extra_fields_pass_through(self):
        payload = dict(SETTLED, va_numbers=[{"bank": "bca", "va_number": "123"}], brand_new_field={"x": 1})
        n = parse_midtrans(payload)
        self.assertEqual(n.reference, "R1")
        self.assertEqual(n.gross_amount, Decimal("45000.00"))
        self.assertEqual(n.instructions, {"va_numbers": [{"bank": "bca", "va_number": "123"}]})
        self.assertIs(n.raw, payload)

    def test_midtrans_refund_total_from_refund_list(self):
        n = parse_midtrans({"order_id": "R1", "transaction_status": "partial_refund",
                            "refunds": [{"refund_amount": "1000.00"}, {"refund_amount": "500"}]})
        self.assertEqual(n.refund_amount, Decimal("1500.00"))

    def test_doku_falls_back_to_top_level_order_id(self):
        n = parse_doku({"order_id": "INV-9", "transaction": {"status": "PENDING"}})
        self.assertEqual((n.reference, n.status), ("INV-9", "pending"))

    def test_doku_requires_reference_and_status(self):
        with self.assertRaises(InvalidPayload):
            parse_doku({"order": {"invoice_number": "INV-9"}, "transaction": "SUCCESS"})


class StubClient:
    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error

    def get_status(self, reference):
        if self.error:
            raise self.error
        return self.answer


class CallbackVerifierTests(SimpleTestCase):
    def test_returns_provider_view_of_the_transaction(self):
        claimed = parse_midtrans(dict(SETTLED))
        verifier = CallbackVerifier(StubClient(dict(SETTLED, transaction_status="expire")), "midtrans")
        self.assertEqual(verifier.verify(claimed).status, "expire")

    def test_answer_for_other_reference_is_rejected(self):
        claimed = parse_midtrans(dict(SETTLED))
        verifier = CallbackVerifier(StubClient(dict(SETTLED, order_id="R2")), "midtrans")
        with self.assertRaises(AuthenticationFailed):
            verifier.verify(claimed)

    def test_provider_error_is_authentication_failure(self):
        verifier = CallbackVerifier(StubClient(error=ProviderError("404")), "midtrans")
        with self.assertRaises(AuthenticationFailed):
            verifier.verify(parse_midtrans(dict(SETTLED)))

    def test_unreachable_provider_propagates(self):
        verifier = CallbackVerifier(StubClient(error=VerificationUnavailable("down")), "midtrans")
        with self.assertRaises(VerificationUnavailable):
            verifier.verify(parse_midtrans(dict(SETTLED)))


class SignatureVerifierTests(SimpleTestCase):
    def _request(self, raw, timestamp, sig, client_id="BRN-1"):
        return RequestFactory().post(
            "/api/doku/notification", data=raw, content_type="application/json",
            HTTP_CLIENT_ID=client_id, HTTP_REQUEST_ID="r-1", HTTP_REQUEST_TIMESTAMP=timestamp, HTTP_SIGNATURE=sig,
        )

    def test_falls_back_to_request_path(self):
        raw = b'{"order":{"invoice_number":"INV-1"},"transaction":{"status":"SUCCESS"}}'
        ts = "2025-01-15T10:30:00Z"
        sig = signatures.sign("sk", "BRN-1", "r-1", ts, "/api/doku/notification", raw)
        n = parse_doku({"order": {"invoice_number": "INV-1"}, "transaction": {"status": "SUCCESS"}})
        self.assertIs(SignatureVerifier("BRN-1", "sk").verify(n, self._request(raw, ts, sig)), n)

    def test_foreign_client_id_is_rejected(self):
        raw = b'{"order":{"invoice_number":"INV-1"},"transaction":{"status":"SUCCESS"}}'
        ts = "2025-01-15T10:30:00Z"
        sig = signatures.sign("sk", "BRN-1", "r-1", ts, "/api/doku/notification", raw)
        n = parse_doku({"order": {"invoice_number": "INV-1"}, "transaction": {"status": "SUCCESS"}})
        with self.assertRaises(AuthenticationFailed):
            SignatureVerifier("BRN-1", "sk").verify(n, self._request(raw, ts, sig, client_id="BRN-2"))

    def test_old_timestamp_outside_window_is_rejected(self):
        raw = b'{"order":{"invoice_number":"INV-1"},"transaction":{"status":"SUCCESS"}}'
        ts = "2020-01-01T00:00:00Z"
        sig = signatures.sign("sk", "BRN-1", "r-1", ts, "/api/doku/notification", raw)
        n = parse_doku({"order": {"invoice_number": "INV-1"}, "transaction": {"status": "SUCCESS"}})
        with self.assertRaises(AuthenticationFailed):
            SignatureVerifier("BRN-1", "sk", max_age=300).verify(n, self._request(raw, ts, sig))

    def test_unconfigured_secret_rejects_everything(self):
        n = parse_doku({"order": {"invoice_number": "INV-1"}, "transaction": {"status": "SUCCESS"}})
        with self.assertRaises(AuthenticationFailed):
            SignatureVerifier("BRN-1", "").verify(n, self._request(b"{}", "2025-01-15T10:30:00Z", "x"))
