from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import SimpleTestCase, TestCase

from . import services, status
from .exceptions import OrderNotFound, ReconciliationWriteFailure
from .models import Order, WebhookEvent
from .notifications import Notification, parse_notification


class StatusMappingTests(SimpleTestCase):
    def test_midtrans_vocabulary(self):
        cases = [
            (("capture", "accept"), status.PAID),
            (("capture", "challenge"), status.FRAUD_REVIEW),
            (("capture", "deny"), status.DENIED),
            (("capture", ""), status.UNKNOWN),
            (("settlement", ""), status.PAID),
            (("pending", ""), status.PENDING),
            (("deny", ""), status.DENIED),
            (("cancel", ""), status.CANCELLED),
            (("expire", ""), status.EXPIRED),
            (("refund", ""), status.REFUNDED),
            (("partial_refund", ""), status.REFUNDED),
            (("chargeback", ""), status.UNKNOWN),
        ]
        for (code, fraud), expected in cases:
            with self.subTest(code=code, fraud=fraud):
                self.assertEqual(status.map_midtrans(code, fraud), expected)

    def test_doku_vocabulary_is_case_insensitive(self):
        self.assertEqual(status.map_doku("SUCCESS"), status.PAID)
        self.assertEqual(status.map_doku("Expired"), status.EXPIRED)
        self.assertEqual(status.map_doku("FAILED"), status.DENIED)
        self.assertEqual(status.map_doku("TIMEOUT"), status.UNKNOWN)

    def test_terminal_statuses_only_move_to_refunded_from_paid(self):
        self.assertTrue(status.can_transition(status.PAID, status.REFUNDED))
        self.assertFalse(status.can_transition(status.PAID, status.PENDING))
        self.assertFalse(status.can_transition(status.PAID, status.DENIED))
        self.assertFalse(status.can_transition(status.EXPIRED, status.PAID))
        self.assertFalse(status.can_transition(status.REFUNDED, status.PAID))

    def test_fraud_review_never_goes_back_to_pending(self):
        self.assertFalse(status.can_transition(status.FRAUD_REVIEW, status.PENDING))
        self.assertTrue(status.can_transition(status.FRAUD_REVIEW, status.PAID))
        self.assertTrue(status.can_transition(status.PENDING, status.FRAUD_REVIEW))

    def test_settlement_amount_mismatch(self):
        self.assertEqual(status.settlement_target(status.PAID, Decimal("45000.00"), Decimal("45000")), status.PAID)
        self.assertEqual(status.settlement_target(status.PAID, Decimal("45000.00"), Decimal("1000")), status.FRAUD_REVIEW)
        self.assertEqual(status.settlement_target(status.PAID, Decimal("45000.00"), None), status.PAID)
        self.assertEqual(status.settlement_target(status.PENDING, Decimal("45000.00"), Decimal("1")), status.PENDING)


def notification(reference="R1", code="settlement", **kwargs):
    raw = kwargs.pop("raw", None) or {"order_id": reference, "transaction_status": code}
    return Notification(provider="midtrans", reference=reference, status=code, raw=raw, **kwargs)


class ReconcileTests(TestCase):
    def setUp(self):
        self.order = Order.objects.create(
            order_id="ORD-1", provider="midtrans", provider_reference="R1", gross_amount=Decimal("45000"),
        )

    def test_applies_mapped_status(self):
        result = services.reconcile(notification())
        self.assertEqual((result.previous_status, result.status, result.outcome), ("pending", "paid", "applied"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "paid")
        self.assertEqual(self.order.provider_status, "settlement")

    def test_unknown_reference_raises(self):
        with self.assertRaises(OrderNotFound):
            services.reconcile(notification(reference="R999"))
        self.assertFalse(Order.objects.filter(provider_reference="R999").exists())

    def test_other_providers_notification_cannot_reach_the_order(self):
        doku = parse_notification("doku", {"order": {"invoice_number": "R1", "amount": 45000},
                                           "transaction": {"status": "SUCCESS"}})
        with self.assertRaises(OrderNotFound):
            services.reconcile(doku)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "pending")
        self.assertIsNone(self.order.payment_metadata)

    def test_unrecognized_code_on_terminal_order_keeps_status_but_stores_payload(self):
        Order.objects.filter(pk=self.order.pk).update(status="paid")
        result = services.reconcile(notification(code="chargeback"))
        self.assertEqual((result.status, result.outcome), ("paid", "ignored"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "paid")
        self.assertEqual(self.order.provider_status, "chargeback")
        self.assertEqual(self.order.payment_metadata, {"order_id": "R1", "transaction_status": "chargeback"})
        self.assertIsNotNone(self.order.last_webhook_at)

    def test_stale_known_code_on_terminal_order_is_not_stored(self):
        Order.objects.filter(pk=self.order.pk).update(status="paid")
        services.reconcile(notification(code="pending"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, "paid")
        self.assertIsNone(self.order.payment_metadata)

    def test_same_notification_twice_is_a_no_op(self):
        services.reconcile(notification())
        self.order.refresh_from_db()
        updated_at = self.order.updated_at
        result = services.reconcile(notification())
        self.assertEqual(result.outcome, "duplicate")
        self.order.refresh_from_db()
        self.assertEqual(self.order.updated_at, updated_at)

    def test_same_status_with_new_payload_updates_metadata(self):
        services.reconcile(notification(code="pending"))
        newer = notification(code="pending", raw={"order_id": "R1", "transaction_status": "pending", "va_numbers": [1]})
        result = services.reconcile(newer)
        self.assertEqual(result.outcome, "applied")
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_metadata["va_numbers"], [1])

    def test_full_refund_without_amount_records_gross_amount(self):
        Order.objects.filter(pk=self.order.pk).update(status="paid")
        services.reconcile(notification(code="refund"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.amount_refunded, Decimal("45000"))

    def test_lost_race_is_retried_once(self):
        real = services._reconcile_once
        calls = []

        def flaky(n):
            calls.append(n)
            if len(calls) == 1:
                raise services._LostRace()
            return real(n)

        with patch("payments.services._reconcile_once", side_effect=flaky):
            result = services.reconcile(notification())
        self.assertEqual(len(calls), 2)
        self.assertEqual(result.status, "paid")

    def test_repeated_lost_race_is_a_write_failure(self):
        with patch("payments.services._reconcile_once", side_effect=services._LostRace()):
            with self.assertRaises(ReconciliationWriteFailure):
                services.reconcile(notification())

    def test_process_notification_logs_every_outcome(self):
        services.process_notification(notification())
        services.process_notification(notification())
        services.process_notification(notification(code="pending"))
        with self.assertRaises(OrderNotFound):
            services.process_notification(notification(reference="R2"))
        self.assertEqual(
            list(WebhookEvent.objects.values_list("outcome", flat=True)),
            ["applied", "duplicate", "ignored", "not_found"],
        )


class ReplayWebhookEventsCommandTests(TestCase):
    def test_failed_event_is_replayed(self):
        order = Order.objects.create(order_id="ORD-2", provider="doku", provider_reference="INV-2",
                                     gross_amount=Decimal("20000"))
        payload = {"order": {"invoice_number": "INV-2", "amount": 20000}, "transaction": {"status": "SUCCESS"}}
        failed = WebhookEvent.objects.create(provider="doku", reference="INV-2", provider_status="success",
                                             outcome=WebhookEvent.WRITE_FAILED, payload=payload)
        out = StringIO()
        call_command("replay_webhook_events", stdout=out)

        order.refresh_from_db()
        self.assertEqual(order.status, "paid")
        failed.refresh_from_db()
        self.assertIsNotNone(failed.replayed_at)
        self.assertEqual(WebhookEvent.objects.last().outcome, "applied")
        self.assertIn("Replayed 1 of 1", out.getvalue())

        out = StringIO()
        call_command("replay_webhook_events", stdout=out)
        self.assertIn("Replayed 0 of 0", out.getvalue())


class ReconcilePendingOrdersCommandTests(TestCase):
    def test_nothing_to_do(self):
        out = StringIO()
        call_command("reconcile_pending_orders", "--older-than-minutes", "0", stdout=out)
        self.assertIn("No pending orders", out.getvalue())

    def test_pending_orders_are_polled(self):
        Order.objects.create(order_id="ORD-3", provider="midtrans", provider_reference="R3",
                             gross_amount=Decimal("30000"))
        Order.objects.create(order_id="ORD-4", provider="midtrans", provider_reference="R4",
                             gross_amount=Decimal("30000"), status="paid")
        answer = {"status_code": "200", "order_id": "R3", "transaction_status": "expire", "gross_amount": "30000.00"}
        out = StringIO()
        with patch("payments.integrations.midtrans.MidtransClient.get_status", return_value=answer) as get_status:
            call_command("reconcile_pending_orders", "--older-than-minutes", "-1", "--sleep", "0", stdout=out)

        get_status.assert_called_once_with("R3")
        self.assertEqual(Order.objects.get(order_id="ORD-3").status, "expired")
        self.assertEqual(Order.objects.get(order_id="ORD-4").status, "paid")
        self.assertIn("Checked 1, updated 1", out.getvalue())
