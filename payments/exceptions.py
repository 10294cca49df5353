class PaymentNotificationError(Exception):
    """Base class for everything that can go wrong while handling a notification."""

    http_status = 500


class InvalidPayload(PaymentNotificationError):
    """Malformed or incomplete notification body/headers. The provider may resend."""

    http_status = 400


class AuthenticationFailed(PaymentNotificationError):
    """Signature mismatch, or the provider disowned the transaction on callback."""

    http_status = 401


class VerificationUnavailable(PaymentNotificationError):
    """The provider status API could not be reached after retrying."""

    http_status = 503


class OrderNotFound(PaymentNotificationError):
    http_status = 200

    def __init__(self, reference: str):
        super().__init__(f"No order for provider reference {reference!r}")
        self.reference = reference


class ReconciliationWriteFailure(PaymentNotificationError):
    """The record store update failed; the notification is kept for replay."""

    http_status = 200


class ProviderError(PaymentNotificationError):
    """Non-transient error answer from a provider API."""

    http_status = 502

    def __init__(self, message: str, status_code: int | None = None, payload: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}
