import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def _fail_silently() -> bool:
    return getattr(settings, "EMAIL_FAIL_SILENTLY", True)


def send_payment_confirmation(*, order) -> None:
    """Email the customer once their order is paid.

    Runs after the status update commits; a mail failure is logged and never
    propagates back into webhook handling.
    """
    if not order.customer_email:
        return
    try:
        context = {
            "order_id": order.order_id,
            "amount": order.gross_amount,
            "currency": order.currency,
            "status": order.status,
            "payment_type": order.payment_type,
            "transaction_id": order.transaction_id,
        }
        from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None) or getattr(settings, "EMAIL_HOST_USER", None)
        subject = f"Payment received: {order.order_id} – {order.currency} {order.gross_amount}"
        text = render_to_string("emails/payment_success.txt", context)
        html = render_to_string("emails/payment_success.html", context)
        msg = EmailMultiAlternatives(subject, text, from_email, [order.customer_email])
        msg.attach_alternative(html, "text/html")
        msg.send(fail_silently=_fail_silently())
    except Exception:
        logger.exception("Failed to send payment confirmation for order %s", order.order_id)
