import logging

import requests
from requests import RequestException

from ..exceptions import ProviderError, VerificationUnavailable

logger = logging.getLogger(__name__)

COMMON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}

# one retry on a transient failure, then give up
MAX_ATTEMPTS = 2


def get_json(url: str, *, headers: dict, timeout: float, auth=None, label: str = "provider") -> dict:
    """GET ``url`` and return the decoded JSON body.

    Connection errors, timeouts and 5xx answers are retried once and then
    surface as :class:`VerificationUnavailable`. Any other non-200 answer is a
    :class:`ProviderError`.
    """
    last_error = ""
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            resp = requests.get(url, headers=headers, auth=auth, timeout=timeout)
        except RequestException as e:
            last_error = str(e)
            logger.warning("%s request failed (attempt %s/%s): %s", label, attempt, MAX_ATTEMPTS, e)
            continue

        if resp.status_code >= 500:
            last_error = f"HTTP {resp.status_code}"
            logger.warning("%s answered %s (attempt %s/%s)", label, resp.status_code, attempt, MAX_ATTEMPTS)
            continue

        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text}
        if not isinstance(data, dict):
            data = {"raw": data}

        if resp.status_code == 200:
            return data
        if resp.status_code == 401:
            hint = "Check provider credentials."
        elif resp.status_code == 404:
            hint = "Transaction not found."
        else:
            hint = f"HTTP {resp.status_code}"
        raise ProviderError(f"{label} status query failed: {hint}", status_code=resp.status_code, payload=data)

    raise VerificationUnavailable(f"{label} unreachable after {MAX_ATTEMPTS} attempts: {last_error}")
