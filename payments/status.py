"""Internal order lifecycle and the provider-status mapping onto it."""

from decimal import Decimal

PENDING = "pending"
PAID = "paid"
DENIED = "denied"
CANCELLED = "cancelled"
EXPIRED = "expired"
REFUNDED = "refunded"
FRAUD_REVIEW = "fraud_review"
UNKNOWN = "unknown"

STATUS_CHOICES = [
    (PENDING, "Pending"),
    (PAID, "Paid"),
    (DENIED, "Denied"),
    (CANCELLED, "Cancelled"),
    (EXPIRED, "Expired"),
    (REFUNDED, "Refunded"),
    (FRAUD_REVIEW, "Fraud review"),
    (UNKNOWN, "Unknown"),
]

TERMINAL_STATUSES = frozenset({PAID, DENIED, CANCELLED, EXPIRED, REFUNDED})
ALL_STATUSES = frozenset(code for code, _ in STATUS_CHOICES)

# Allowed moves, keyed by the status currently stored on the order.
# Staying in the same status is always allowed (refund amount updates etc.).
TRANSITIONS = {
    PENDING: ALL_STATUSES,
    UNKNOWN: ALL_STATUSES,
    FRAUD_REVIEW: ALL_STATUSES - {PENDING},
    PAID: frozenset({PAID, REFUNDED}),
    REFUNDED: frozenset({REFUNDED}),
    DENIED: frozenset({DENIED}),
    CANCELLED: frozenset({CANCELLED}),
    EXPIRED: frozenset({EXPIRED}),
}

MIDTRANS_STATUS_MAP = {
    "settlement": PAID,
    "pending": PENDING,
    "deny": DENIED,
    "failure": DENIED,
    "cancel": CANCELLED,
    "expire": EXPIRED,
    "refund": REFUNDED,
    "partial_refund": REFUNDED,
}

MIDTRANS_CAPTURE_MAP = {
    "accept": PAID,
    "challenge": FRAUD_REVIEW,
    "deny": DENIED,
}

DOKU_STATUS_MAP = {
    "success": PAID,
    "pending": PENDING,
    "failed": DENIED,
    "cancelled": CANCELLED,
    "expired": EXPIRED,
    "refunded": REFUNDED,
    "partial_refunded": REFUNDED,
}


def map_midtrans(transaction_status: str, fraud_status: str = "") -> str:
    status = (transaction_status or "").strip().lower()
    if status == "capture":
        # card captures are only final once the fraud check has an answer
        return MIDTRANS_CAPTURE_MAP.get((fraud_status or "").strip().lower(), UNKNOWN)
    return MIDTRANS_STATUS_MAP.get(status, UNKNOWN)


def map_doku(transaction_status: str, fraud_status: str = "") -> str:
    return DOKU_STATUS_MAP.get((transaction_status or "").strip().lower(), UNKNOWN)


MAPPERS = {
    "midtrans": map_midtrans,
    "doku": map_doku,
}


def map_status(notification) -> str:
    """Internal status for a verified notification."""
    mapper = MAPPERS.get(notification.provider)
    if mapper is None:
        return UNKNOWN
    return mapper(notification.status, notification.fraud_status)


def settlement_target(target: str, order_amount, settled_amount) -> str:
    """Downgrade ``paid`` to ``fraud_review`` when the settled amount disagrees with the order."""
    if target != PAID or settled_amount is None or order_amount is None:
        return target
    if Decimal(str(order_amount)) != Decimal(str(settled_amount)):
        return FRAUD_REVIEW
    return target


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ALL_STATUSES)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES
