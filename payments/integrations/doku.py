"""DOKU order status client."""

import logging
from urllib.parse import quote

from .. import signatures
from ..exceptions import ProviderError
from .base import get_json

logger = logging.getLogger(__name__)


class DokuClient:
    def __init__(self, *, base_url: str, client_id: str, secret_key: str, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.secret_key = secret_key
        self.timeout = timeout

    def _headers(self, target: str) -> dict:
        if not (self.client_id and self.secret_key):
            raise ProviderError("Missing DOKU_CLIENT_ID / DOKU_SECRET_KEY")
        request_id = signatures.new_request_id()
        timestamp = signatures.utc_timestamp()
        return {
            "Client-Id": self.client_id,
            "Request-Id": request_id,
            "Request-Timestamp": timestamp,
            # GET requests are signed without a Digest component
            "Signature": signatures.sign(self.secret_key, self.client_id, request_id, timestamp, target),
            "Accept": "application/json",
        }

    def get_status(self, invoice_number: str) -> dict:
        target = f"/orders/v1/status/{quote(invoice_number, safe='')}"
        data = get_json(self.base_url + target, headers=self._headers(target), timeout=self.timeout, label="DOKU")
        if not (data.get("transaction") or {}).get("status"):
            raise ProviderError("DOKU status response has no transaction.status", payload=data)
        logger.debug("DOKU status for %s: %s", invoice_number, data)
        return data
