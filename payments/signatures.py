"""DOKU request signature helpers.

DOKU signs every request (both directions) with an HMAC-SHA256 over a small
newline-joined component string::

    Client-Id:<client id>
    Request-Id:<request id>
    Request-Timestamp:<ISO-8601 UTC, second precision>
    Request-Target:<path>
    Digest:<base64(sha256(raw body))>

``Digest`` is left out for requests without a body (GET status checks). The
header value is ``HMACSHA256=<base64 hmac>``.
"""

import base64, hashlib, hmac, logging, uuid
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "HMACSHA256="
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def body_digest(raw_body: bytes) -> str:
    return base64.b64encode(hashlib.sha256(raw_body).digest()).decode("ascii")


def component_string(client_id: str, request_id: str, timestamp: str, target: str,
                     digest: str | None = None) -> str:
    parts = [
        f"Client-Id:{client_id}",
        f"Request-Id:{request_id}",
        f"Request-Timestamp:{timestamp}",
        f"Request-Target:{target}",
    ]
    if digest is not None:
        parts.append(f"Digest:{digest}")
    return "\n".join(parts)


def sign(secret_key: str, client_id: str, request_id: str, timestamp: str, target: str,
         raw_body: bytes | None = None) -> str:
    digest = body_digest(raw_body) if raw_body is not None else None
    msg = component_string(client_id, request_id, timestamp, target, digest).encode("utf-8")
    mac = hmac.new(secret_key.encode("utf-8"), msg, hashlib.sha256).digest()
    return SIGNATURE_PREFIX + base64.b64encode(mac).decode("ascii")


def verify(secret_key: str, client_id: str, request_id: str, timestamp: str, target: str,
           raw_body: bytes, received_sig: str) -> bool:
    expected = sign(secret_key, client_id, request_id, timestamp, target, raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), (received_sig or "").strip().encode("utf-8"))


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 UTC timestamp with second precision (``2025-01-15T10:30:00Z``)."""
    try:
        return datetime.strptime((value or "").strip(), TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def utc_timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)


def new_request_id() -> str:
    return str(uuid.uuid4())
