"""Midtrans Core API client (transaction status only)."""

import logging
from urllib.parse import quote

from requests.auth import HTTPBasicAuth

from ..exceptions import ProviderError, VerificationUnavailable
from .base import COMMON_HEADERS, get_json

logger = logging.getLogger(__name__)

# Midtrans reports errors in the body's ``status_code`` while answering HTTP 200.
ERROR_STATUS_CODES = {"400", "401", "403", "404"}


class MidtransClient:
    def __init__(self, *, base_url: str, server_key: str, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.server_key = server_key
        self.timeout = timeout

    def _auth(self) -> HTTPBasicAuth:
        if not self.server_key:
            raise ProviderError("Missing MIDTRANS_SERVER_KEY")
        # server key as username, empty password
        return HTTPBasicAuth(self.server_key, "")

    def get_status(self, order_id: str) -> dict:
        """Return the authoritative transaction status for ``order_id``."""
        url = f"{self.base_url}/v2/{quote(order_id, safe='')}/status"
        data = get_json(url, headers=COMMON_HEADERS, auth=self._auth(), timeout=self.timeout, label="Midtrans")

        code = str(data.get("status_code", ""))
        if code.startswith("5"):
            raise VerificationUnavailable(f"Midtrans reported an internal error ({code})")
        if code in ERROR_STATUS_CODES or not data.get("transaction_status"):
            message = data.get("status_message") or "no transaction_status in response"
            raise ProviderError(f"Midtrans status {code or '?'}: {message}",
                                status_code=int(code) if code.isdigit() else None, payload=data)
        logger.debug("Midtrans status for %s: %s", order_id, data)
        return data
