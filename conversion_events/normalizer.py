"""
Canonical event -> destination payload mapping.

Everything here is pure: the provider adapters own transport, this module owns
the shape each collector expects. ``normalize`` produces the event-level
payload for one destination and the ``build_*_body`` helpers wrap it with the
user-identification block to form the full request body.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal

from .schema import (
    EVENT_NAME_MAP,
    CanonicalEvent,
    Destination,
    EventName,
    InvalidEventError,
    UserContext,
    hash_pii,
)


ENGAGEMENT_TIME_MSEC = 100
CONTENT_TYPE = "product"


def _money(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)


def _compact(data: dict) -> dict:
    return {key: value for key, value in data.items() if value not in (None, "", [], {})}


def _format_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _event_name(raw: EventName | str) -> EventName:
    try:
        return EventName(raw)
    except ValueError:
        raise InvalidEventError(f"Unsupported event_name: {raw!r}") from None


def translate_event_name(event_name: EventName | str, destination: Destination | str) -> str:
    return EVENT_NAME_MAP[_event_name(event_name)][Destination(destination)]


@dataclass(frozen=True)
class AnalyticsEvent:
    name: str
    params: dict
    timestamp_micros: int

    def to_json(self) -> dict:
        return {"name": self.name, "params": dict(self.params)}


@dataclass(frozen=True)
class AdsEvent:
    event_name: str
    event_time: int
    event_id: str
    custom_data: dict
    action_source: str = "website"

    def to_json(self) -> dict:
        return {
            "event_name": self.event_name,
            "event_time": self.event_time,
            "event_id": self.event_id,
            "action_source": self.action_source,
            "custom_data": dict(self.custom_data),
        }


@dataclass(frozen=True)
class ShortVideoEvent:
    event: str
    event_id: str
    timestamp: str
    properties: dict

    def to_json(self) -> dict:
        return {
            "event": self.event,
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "properties": dict(self.properties),
        }


DestinationPayload = AnalyticsEvent | AdsEvent | ShortVideoEvent


def _analytics_event(event: CanonicalEvent) -> AnalyticsEvent:
    items = [
        _compact(
            {
                "item_id": item.id,
                "item_name": item.name,
                "item_category": item.category,
                "item_brand": item.brand,
                "item_variant": item.variant,
                "price": _money(item.price),
                "quantity": item.quantity,
            }
        )
        for item in event.items
    ]
    params = {
        "currency": event.currency,
        "value": _money(event.value),
        "items": items,
        "event_id": event.event_id,
        "engagement_time_msec": ENGAGEMENT_TIME_MSEC,
    }
    if event.coupon and event.event_name in (EventName.BEGIN_CHECKOUT, EventName.PURCHASE):
        params["coupon"] = event.coupon
    if event.is_purchase:
        params["transaction_id"] = event.transaction_id
        if event.shipping is not None:
            params["shipping"] = _money(event.shipping)
        if event.tax is not None:
            params["tax"] = _money(event.tax)
    return AnalyticsEvent(
        name=translate_event_name(event.event_name, Destination.ANALYTICS),
        params=params,
        timestamp_micros=int(event.timestamp.timestamp() * 1_000_000),
    )


def _ads_event(event: CanonicalEvent) -> AdsEvent:
    custom_data = {
        "currency": event.currency,
        "value": _money(event.value),
        "contents": [
            {"id": item.id, "quantity": item.quantity, "item_price": _money(item.price)}
            for item in event.items
        ],
        "content_ids": [item.id for item in event.items],
        "content_type": CONTENT_TYPE,
        "num_items": sum(item.quantity for item in event.items),
    }
    if event.is_purchase:
        custom_data["order_id"] = event.transaction_id
    return AdsEvent(
        event_name=translate_event_name(event.event_name, Destination.ADS),
        event_time=int(event.timestamp.timestamp()),
        event_id=event.event_id,
        custom_data=custom_data,
    )


def _shortvideo_event(event: CanonicalEvent) -> ShortVideoEvent:
    properties = {
        "currency": event.currency,
        "value": _money(event.value),
        "contents": [
            _compact(
                {
                    "content_id": item.id,
                    "content_name": item.name,
                    "content_category": item.category,
                    "brand": item.brand,
                    "quantity": item.quantity,
                    "price": _money(item.price),
                }
            )
            for item in event.items
        ],
        "content_type": CONTENT_TYPE,
    }
    if event.is_purchase:
        properties["order_id"] = event.transaction_id
    return ShortVideoEvent(
        event=translate_event_name(event.event_name, Destination.SHORTVIDEO),
        event_id=event.event_id,
        timestamp=_format_timestamp(event.timestamp),
        properties=properties,
    )


_BUILDERS = {
    Destination.ANALYTICS: _analytics_event,
    Destination.ADS: _ads_event,
    Destination.SHORTVIDEO: _shortvideo_event,
}


def normalize(event: CanonicalEvent, destination: Destination | str) -> DestinationPayload:
    destination = Destination(destination)
    if not isinstance(event.event_name, EventName):
        event = replace(event, event_name=_event_name(event.event_name))
    if not event.items:
        raise InvalidEventError("items must be a non-empty list")
    return _BUILDERS[destination](event)


def analytics_identity(event: CanonicalEvent, user: UserContext) -> dict:
    consent = user.consent
    identity = {
        "client_id": user.client_id or user.user_id or event.event_id,
        "consent": {
            "ad_user_data": "GRANTED" if consent.ad_user_data else "DENIED",
            "ad_personalization": "GRANTED" if consent.ad_personalization else "DENIED",
        },
    }
    if user.user_id:
        identity["user_id"] = user.user_id
    return identity


def ads_user_data(user: UserContext) -> dict:
    user_data = {
        "client_ip_address": user.ip_address,
        "client_user_agent": user.user_agent,
        "fbc": user.fbc,
        "fbp": user.fbp,
    }
    if user.consent.ad_user_data:
        hashed = {
            "em": hash_pii(user.email),
            "ph": hash_pii(user.phone),
            "external_id": hash_pii(user.user_id),
        }
        user_data.update({key: [value] for key, value in hashed.items() if value})
    return _compact(user_data)


def shortvideo_user_context(user: UserContext) -> dict:
    context = {
        "ip": user.ip_address,
        "user_agent": user.user_agent,
    }
    if user.page_url:
        context["page"] = {"url": user.page_url}
    if user.ttclid:
        context["ad"] = {"callback": user.ttclid}

    identity = {"ttp": user.ttp}
    if user.consent.ad_user_data:
        identity.update(
            {
                "email": hash_pii(user.email),
                "phone_number": hash_pii(user.phone),
                "external_id": hash_pii(user.user_id),
            }
        )
    identity = _compact(identity)
    if identity:
        context["user"] = identity
    return _compact(context)


def build_analytics_body(event: CanonicalEvent, user: UserContext) -> dict:
    payload = normalize(event, Destination.ANALYTICS)
    body = analytics_identity(event, user)
    body["timestamp_micros"] = payload.timestamp_micros
    body["events"] = [payload.to_json()]
    return body


def build_ads_body(event: CanonicalEvent, user: UserContext, test_event_code: str | None = None) -> dict:
    payload = normalize(event, Destination.ADS).to_json()
    if user.page_url:
        payload["event_source_url"] = user.page_url
    payload["user_data"] = ads_user_data(user)
    body = {"data": [payload]}
    if test_event_code:
        body["test_event_code"] = test_event_code
    return body


def build_shortvideo_body(
    event: CanonicalEvent,
    user: UserContext,
    pixel_code: str,
    test_event_code: str | None = None,
) -> dict:
    body = {"pixel_code": pixel_code, **normalize(event, Destination.SHORTVIDEO).to_json()}
    context = shortvideo_user_context(user)
    if context:
        body["context"] = context
    if test_event_code:
        body["test_event_code"] = test_event_code
    return body
