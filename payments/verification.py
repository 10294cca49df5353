"""Authenticity checks for inbound notifications.

A verifier takes the parsed notification plus the Django request and returns
the notification that may be trusted. Nothing from the inbound body is
reconciled unless one of these strategies vouched for it.
"""

import logging
from datetime import datetime, timezone

from django.conf import settings

from . import signatures
from .exceptions import AuthenticationFailed, InvalidPayload, ProviderError
from .integrations.doku import DokuClient
from .integrations.midtrans import MidtransClient
from .notifications import Notification, parse_notification

logger = logging.getLogger(__name__)


class CallbackVerifier:
    """Trust only what the provider's own status API says about the reference."""

    def __init__(self, client, provider: str):
        self.client = client
        self.provider = provider

    def verify(self, notification: Notification, request=None) -> Notification:
        try:
            data = self.client.get_status(notification.reference)
        except ProviderError as e:
            logger.error("%s disowned notification for %s: %s", self.provider, notification.reference, e)
            raise AuthenticationFailed(str(e))

        verified = parse_notification(self.provider, data)
        if verified.reference != notification.reference:
            logger.error("%s status lookup for %s answered for %s",
                         self.provider, notification.reference, verified.reference)
            raise AuthenticationFailed("Provider answered for a different reference")
        if verified.status != notification.status:
            logger.info("%s notification for %s claimed %r, provider says %r",
                        self.provider, notification.reference, notification.status, verified.status)
        return verified


class SignatureVerifier:
    """Recompute the DOKU HMACSHA256 signature over the request components."""

    def __init__(self, client_id: str, secret_key: str, request_target: str = "", max_age: int = 0):
        self.client_id = client_id
        self.secret_key = secret_key
        self.request_target = request_target
        self.max_age = max_age

    def verify(self, notification: Notification, request=None) -> Notification:
        if not self.secret_key:
            logger.error("Signature verification requested but no secret key is configured")
            raise AuthenticationFailed("Signature verification is not configured")

        headers = request.headers
        request_id = headers.get("Request-Id", "")
        timestamp = headers.get("Request-Timestamp", "")
        received = headers.get("Signature", "")
        if not request_id or not timestamp:
            raise InvalidPayload("Request-Id and Request-Timestamp headers are required")
        sent_at = signatures.parse_timestamp(timestamp)
        if sent_at is None:
            raise InvalidPayload("Request-Timestamp must be ISO-8601 UTC, e.g. 2025-01-15T10:30:00Z")
        if not received:
            logger.error("Unsigned notification for %s (Request-Id %s)", notification.reference, request_id)
            raise AuthenticationFailed("Missing Signature header")

        client_id = headers.get("Client-Id") or self.client_id
        if client_id != self.client_id:
            logger.error("Notification for %s from unexpected Client-Id %r", notification.reference, client_id)
            raise AuthenticationFailed("Unexpected Client-Id")

        target = self.request_target or request.path
        if not signatures.verify(self.secret_key, self.client_id, request_id, timestamp, target,
                                 request.body, received):
            logger.error("Invalid signature on notification for %s (Request-Id %s)",
                         notification.reference, request_id)
            raise AuthenticationFailed("Invalid Signature")

        if self.max_age:
            age = (datetime.now(timezone.utc) - sent_at).total_seconds()
            if age > self.max_age:
                logger.error("Stale notification for %s: signed %ss ago", notification.reference, int(age))
                raise AuthenticationFailed("Request-Timestamp outside the accepted window")
        return notification


def midtrans_client() -> MidtransClient:
    return MidtransClient(
        base_url=settings.MIDTRANS_BASE_URL,
        server_key=settings.MIDTRANS_SERVER_KEY,
        timeout=settings.PAYMENTS_HTTP_TIMEOUT,
    )


def doku_client() -> DokuClient:
    return DokuClient(
        base_url=settings.DOKU_BASE_URL,
        client_id=settings.DOKU_CLIENT_ID,
        secret_key=settings.DOKU_SECRET_KEY,
        timeout=settings.PAYMENTS_HTTP_TIMEOUT,
    )


def build_clients() -> dict:
    return {"midtrans": midtrans_client(), "doku": doku_client()}


def build_verifiers(clients: dict) -> dict:
    """One verifier per provider, wired from settings."""
    return {
        "midtrans": CallbackVerifier(clients["midtrans"], "midtrans"),
        "doku": SignatureVerifier(
            client_id=settings.DOKU_CLIENT_ID,
            secret_key=settings.DOKU_SECRET_KEY,
            request_target=settings.DOKU_NOTIFICATION_TARGET,
            max_age=settings.DOKU_SIGNATURE_MAX_AGE,
        ),
    }
