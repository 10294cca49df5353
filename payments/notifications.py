"""Tolerant parsing of provider notification bodies.

Only the handful of fields reconciliation needs are pulled out; the whole body
is kept as ``raw`` and stored untouched, so providers can add fields freely.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from .exceptions import InvalidPayload

MIDTRANS_INSTRUCTION_KEYS = (
    "va_numbers", "permata_va_number", "bill_key", "biller_code",
    "payment_code", "pdf_url", "expiry_time", "store",
)
DOKU_INSTRUCTION_KEYS = ("virtual_account_info", "online_to_offline_info")


@dataclass
class Notification:
    provider: str
    reference: str
    status: str
    fraud_status: str = ""
    transaction_id: str = ""
    payment_type: str = ""
    gross_amount: Decimal | None = None
    refund_amount: Decimal | None = None
    instructions: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)


def load_json_body(body: bytes) -> dict:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise InvalidPayload("Body is not valid JSON")
    if not isinstance(payload, dict):
        raise InvalidPayload("Body must be a JSON object")
    return payload


def _dig(payload: dict, *path):
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _text(value) -> str:
    return "" if value is None else str(value).strip()


def _amount(value) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def parse_midtrans(payload: dict) -> Notification:
    reference = _text(payload.get("order_id"))
    status = _text(payload.get("transaction_status")).lower()
    if not reference or not status:
        raise InvalidPayload("order_id and transaction_status are required")

    refund_amount = _amount(payload.get("refund_amount"))
    if refund_amount is None:
        # refund notifications list every refund so far; their sum is the refunded total
        refunds = payload.get("refunds") or []
        if isinstance(refunds, list):
            refund_amount = sum(
                (_amount(r.get("refund_amount")) or Decimal(0) for r in refunds if isinstance(r, dict)),
                Decimal(0),
            ) or None

    return Notification(
        provider="midtrans",
        reference=reference,
        status=status,
        fraud_status=_text(payload.get("fraud_status")).lower(),
        transaction_id=_text(payload.get("transaction_id")),
        payment_type=_text(payload.get("payment_type")),
        gross_amount=_amount(payload.get("gross_amount")),
        refund_amount=refund_amount,
        instructions={k: payload[k] for k in MIDTRANS_INSTRUCTION_KEYS if payload.get(k)},
        raw=payload,
    )


def parse_doku(payload: dict) -> Notification:
    reference = _text(_dig(payload, "order", "invoice_number") or payload.get("order_id"))
    status = _text(_dig(payload, "transaction", "status")).lower()
    if not reference or not status:
        raise InvalidPayload("order.invoice_number and transaction.status are required")

    payment_type = _text(_dig(payload, "channel", "id") or _dig(payload, "service", "id"))
    return Notification(
        provider="doku",
        reference=reference,
        status=status,
        transaction_id=_text(_dig(payload, "transaction", "original_request_id")),
        payment_type=payment_type,
        gross_amount=_amount(_dig(payload, "order", "amount")),
        refund_amount=_amount(_dig(payload, "refund", "amount")),
        instructions={k: payload[k] for k in DOKU_INSTRUCTION_KEYS if payload.get(k)},
        raw=payload,
    )


PARSERS = {
    "midtrans": parse_midtrans,
    "doku": parse_doku,
}


def parse_notification(provider: str, payload: dict) -> Notification:
    try:
        parser = PARSERS[provider]
    except KeyError:
        raise InvalidPayload(f"Unsupported provider {provider!r}")
    return parser(payload)
