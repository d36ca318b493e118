import json
import logging
import time
import uuid
from decimal import Decimal

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .context import user_context_from_request
from .dispatch import Dispatcher
from .providers import credential_status
from .schema import EventName, InvalidEventError, event_from_dict, item_from_dict


logger = logging.getLogger(__name__)


def _error(message: str, status: int = 400) -> JsonResponse:
    return JsonResponse({"error": message}, status=status)


def _json_body(request: HttpRequest) -> dict:
    try:
        body = json.loads(request.body or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidEventError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise InvalidEventError("JSON body must be an object")
    return body


def _browser_allowed_events() -> set[str]:
    return set(getattr(settings, "TRACKING_BROWSER_ALLOWED_EVENTS", None) or [EventName.ADD_TO_CART.value])


async def _dispatch(request: HttpRequest, event_data: dict, body: dict) -> dict:
    event = event_from_dict(event_data)
    user = user_context_from_request(request, body.get("user"), body.get("consent"))
    logger.info(
        "Received %s event",
        event.event_name.value,
        extra={"event_id": event.event_id, "value": str(event.value)},
    )
    report = await Dispatcher.from_settings().dispatch(event, user)
    return report.to_dict()


@csrf_exempt
@require_POST
async def track_event(request: HttpRequest):
    """Server-side entry point: any supported event, gated per destination by consent."""
    try:
        body = _json_body(request)
        result = await _dispatch(request, body.get("event"), body)
    except InvalidEventError as e:
        return _error(str(e))
    return JsonResponse(result)


@csrf_exempt
@require_POST
async def track_browser_event(request: HttpRequest):
    """
    Browser entry point. Only the events listed in
    TRACKING_BROWSER_ALLOWED_EVENTS are accepted here; checkout and purchase
    are tracked from the routes that complete them.
    """
    try:
        body = _json_body(request)
        event_data = body.get("event")
        name = event_data.get("event_name") if isinstance(event_data, dict) else None
        if not isinstance(name, str) or name not in _browser_allowed_events():
            return _error(
                f"Event '{name}' not allowed from the browser. Use server routes for checkout/purchase."
            )
        result = await _dispatch(request, event_data, body)
    except InvalidEventError as e:
        return _error(str(e))
    return JsonResponse(result)


def _order_event(event_name: EventName, raw_items, transaction_id: str | None = None) -> dict:
    if not isinstance(raw_items, list) or not raw_items:
        raise InvalidEventError("items must be a non-empty list")
    items = [item_from_dict(item, position) for position, item in enumerate(raw_items)]
    value = sum((item.price * item.quantity for item in items), Decimal("0"))
    event = {
        "event_name": event_name.value,
        "event_id": uuid.uuid4().hex,
        "currency": getattr(settings, "TRACKING_DEFAULT_CURRENCY", "PHP"),
        "value": str(value),
        "items": raw_items,
        "timestamp": int(time.time() * 1000),
    }
    if transaction_id:
        event["transaction_id"] = transaction_id
    return event


@csrf_exempt
@require_POST
async def checkout(request: HttpRequest):
    try:
        body = _json_body(request)
        event_data = _order_event(EventName.BEGIN_CHECKOUT, body.get("items"))
        tracking = await _dispatch(request, event_data, body)
    except InvalidEventError as e:
        return _error(str(e))
    return JsonResponse(
        {
            "checkoutId": f"checkout_{int(time.time() * 1000)}",
            "message": "Checkout session created",
            "tracking": tracking,
        }
    )


@csrf_exempt
@require_POST
async def complete_purchase(request: HttpRequest):
    try:
        body = _json_body(request)
        order_id = body.get("orderId")
        if not order_id:
            raise InvalidEventError("orderId is required")
        event_data = _order_event(EventName.PURCHASE, body.get("items"), transaction_id=str(order_id))
        tracking = await _dispatch(request, event_data, body)
    except InvalidEventError as e:
        return _error(str(e))
    return JsonResponse(
        {
            "orderId": order_id,
            "status": "completed",
            "message": "Thank you for your purchase!",
            "tracking": tracking,
        }
    )


@require_GET
def health_check(request: HttpRequest):
    return JsonResponse({"status": "ok", "credentials": credential_status()})
