import logging

from django.apps import apps
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .exceptions import (
    AuthenticationFailed, InvalidPayload, OrderNotFound, ReconciliationWriteFailure, VerificationUnavailable,
)
from .notifications import load_json_body, parse_notification
from .services import process_notification

logger = logging.getLogger(__name__)


def _verifier_for(provider: str):
    return apps.get_app_config("payments").verifiers[provider]


@csrf_exempt
@require_POST
def payment_notification(request, provider: str, verifier=None):
    """Receive an asynchronous payment notification from ``provider``.

    Anything that was authenticated is acknowledged with 200, even when the
    order is unknown or the update failed, so the provider stops retrying;
    those cases are kept in the event log instead. Only malformed (400),
    unauthenticated (401) and unverifiable (503) notifications are refused.
    """
    verifier = verifier or _verifier_for(provider)
    logger.debug("%s notification body=%s", provider, request.body[:4096])

    try:
        claimed = parse_notification(provider, load_json_body(request.body))
        notification = verifier.verify(claimed, request)
    except InvalidPayload as e:
        logger.warning("Invalid %s notification: %s", provider, e)
        return JsonResponse({"message": f"Invalid notification payload: {e}"}, status=400)
    except AuthenticationFailed as e:
        logger.error("Rejected %s notification: %s", provider, e)
        return JsonResponse({"message": f"Notification could not be authenticated: {e}"}, status=401)
    except VerificationUnavailable as e:
        logger.error("Could not verify %s notification, leaving it to provider retry: %s", provider, e)
        return JsonResponse({"message": "Verification temporarily unavailable"}, status=503)
    except Exception:
        logger.exception("Unexpected error verifying %s notification", provider)
        return JsonResponse({"message": "Verification temporarily unavailable"}, status=503)

    try:
        result = process_notification(notification)
    except OrderNotFound:
        return JsonResponse({
            "message": "Order not found, but webhook processed",
            "orderId": notification.reference,
        })
    except ReconciliationWriteFailure:
        return JsonResponse({
            "message": "Webhook received but processing failed",
            "orderId": notification.reference,
        })

    return JsonResponse({
        "message": "Webhook processed successfully",
        "orderId": result.order.order_id,
        "status": result.status,
    })
