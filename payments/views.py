import json
import logging

from django.apps import apps
from django.db.models import Q
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .exceptions import (
    InvalidPayload, OrderNotFound, ProviderError, ReconciliationWriteFailure, VerificationUnavailable,
)
from .models import Order
from .services import reconcile_from_provider

logger = logging.getLogger(__name__)


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except Exception: return None


def _error(message: str, status: int) -> JsonResponse:
    return JsonResponse({"success": False, "message": message}, status=status)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def check_status_view(request, provider: str):
    """Pull the current status of an order from the provider and reconcile it.

    Fallback for notifications that never arrived; the frontend polls it
    after the customer returns from the payment page.
    """
    if request.method == "POST":
        body = _json_body(request)
        order_id = body.get("order_id") if isinstance(body, dict) else None
    else:
        order_id = request.GET.get("order_id")
    if not order_id:
        return _error("order_id is required", 400)

    order = Order.objects.filter(provider=provider).filter(
        Q(order_id=order_id) | Q(provider_reference=order_id)
    ).first()
    if order is None:
        return _error("Order not found", 404)

    client = apps.get_app_config("payments").clients[provider]
    try:
        result = reconcile_from_provider(provider, client, order.provider_reference)
    except (ProviderError, InvalidPayload) as e:
        logger.warning("%s status check for %s failed: %s", provider, order.order_id, e)
        return _error(f"Failed to get transaction status: {e}", 502)
    except VerificationUnavailable as e:
        logger.error("%s status check for %s: %s", provider, order.order_id, e)
        return _error("Payment provider unavailable, try again later", 503)
    except OrderNotFound:
        return _error("Order not found", 404)
    except ReconciliationWriteFailure:
        return _error("Status retrieved but could not be saved", 500)

    order = result.order
    return JsonResponse({
        "success": True,
        "message": "Status retrieved successfully",
        "data": {
            "orderId": order.order_id,
            "status": order.status,
            "providerStatus": order.provider_status,
            "amount": str(order.gross_amount),
            "currency": order.currency,
            "paymentType": order.payment_type,
            "paymentInstructions": order.payment_instructions,
        },
    })
