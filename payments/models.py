from django.db import models

from . import status as order_status


class Order(models.Model):
    PROVIDERS = [("midtrans", "Midtrans"), ("doku", "DOKU")]

    order_id = models.CharField(max_length=64, unique=True)  # assigned at checkout
    provider = models.CharField(max_length=16, choices=PROVIDERS, default="midtrans")
    # what the gateway calls this transaction; every notification is joined on it
    provider_reference = models.CharField(max_length=64, unique=True)

    status = models.CharField(
        max_length=16, choices=order_status.STATUS_CHOICES,
        default=order_status.PENDING, db_index=True,
    )
    gross_amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=8, default="IDR")
    customer_email = models.EmailField(blank=True, default="")

    transaction_id = models.CharField(max_length=128, blank=True, default="")
    payment_type = models.CharField(max_length=64, blank=True, default="")
    provider_status = models.CharField(max_length=32, blank=True, default="")
    fraud_status = models.CharField(max_length=32, blank=True, default="")
    amount_refunded = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    payment_instructions = models.JSONField(blank=True, null=True)

    payment_metadata = models.JSONField(blank=True, null=True)  # last verified provider payload

    last_webhook_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_paid(self) -> bool:
        return self.status == order_status.PAID

    @property
    def is_terminal(self) -> bool:
        return order_status.is_terminal(self.status)

    def __str__(self):
        return f"{self.order_id} ({self.status})"


class WebhookEvent(models.Model):
    """Append-only log of authenticated notifications, kept for audit and replay."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"
    WRITE_FAILED = "write_failed"
    OUTCOMES = [
        (APPLIED, "Applied"),
        (DUPLICATE, "Duplicate"),
        (IGNORED, "Ignored"),
        (NOT_FOUND, "Order not found"),
        (WRITE_FAILED, "Write failed"),
    ]

    provider = models.CharField(max_length=16)
    reference = models.CharField(max_length=64, db_index=True)
    provider_status = models.CharField(max_length=32, blank=True, default="")
    internal_status = models.CharField(max_length=16, blank=True, default="")
    outcome = models.CharField(max_length=16, choices=OUTCOMES, db_index=True)
    payload = models.JSONField(default=dict, blank=True)
    error = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    replayed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        ordering = ("created_at", "id")

    def __str__(self):
        return f"{self.provider}:{self.reference} {self.outcome}"
