import hashlib
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum


class InvalidEventError(ValueError):
    """Raised when a canonical event cannot be accepted for dispatch."""


class Destination(str, Enum):
    ANALYTICS = "analytics"
    ADS = "ads"
    SHORTVIDEO = "shortvideo"


class EventName(str, Enum):
    ADD_TO_CART = "add_to_cart"
    BEGIN_CHECKOUT = "begin_checkout"
    PURCHASE = "purchase"


# canonical name -> destination name, resolved per provider
EVENT_NAME_MAP: dict[EventName, dict[Destination, str]] = {
    EventName.ADD_TO_CART: {
        Destination.ANALYTICS: "add_to_cart",
        Destination.ADS: "AddToCart",
        Destination.SHORTVIDEO: "AddToCart",
    },
    EventName.BEGIN_CHECKOUT: {
        Destination.ANALYTICS: "begin_checkout",
        Destination.ADS: "InitiateCheckout",
        Destination.SHORTVIDEO: "InitiateCheckout",
    },
    EventName.PURCHASE: {
        Destination.ANALYTICS: "purchase",
        Destination.ADS: "Purchase",
        Destination.SHORTVIDEO: "Purchase",
    },
}


def hash_pii(raw: str | None) -> str | None:
    if not raw:
        return None
    normalized = raw.strip().lower()
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class LineItem:
    id: str
    price: Decimal
    quantity: int
    name: str | None = None
    category: str | None = None
    brand: str | None = None
    variant: str | None = None


@dataclass(frozen=True)
class CanonicalEvent:
    event_name: EventName
    event_id: str
    currency: str
    value: Decimal
    items: tuple[LineItem, ...]
    transaction_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    coupon: str | None = None
    shipping: Decimal | None = None
    tax: Decimal | None = None

    @property
    def is_purchase(self) -> bool:
        return self.event_name is EventName.PURCHASE


@dataclass(frozen=True)
class ConsentState:
    analytics_storage: bool = False
    ad_storage: bool = False
    ad_user_data: bool = False
    ad_personalization: bool = False

    @property
    def analytics(self) -> bool:
        return self.analytics_storage

    @property
    def advertising(self) -> bool:
        return self.ad_storage

    @classmethod
    def granted_all(cls) -> "ConsentState":
        return cls(True, True, True, True)


@dataclass
class UserContext:
    client_id: str | None = None
    user_id: str | None = None
    email: str | None = None
    phone: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    page_url: str | None = None
    fbc: str | None = None
    fbp: str | None = None
    ttclid: str | None = None
    ttp: str | None = None
    consent: ConsentState = field(default_factory=ConsentState)


@dataclass(frozen=True)
class DispatchResult:
    destination: Destination
    success: bool
    error: str | None = None
    skipped: bool = False
    status_code: int | None = None
    events_received: int | None = None
    provider_code: int | None = None
    request_id: str | None = None

    @classmethod
    def ok(cls, destination: Destination, **diagnostics) -> "DispatchResult":
        return cls(destination=destination, success=True, **diagnostics)

    @classmethod
    def failed(cls, destination: Destination, error: str, **diagnostics) -> "DispatchResult":
        return cls(destination=destination, success=False, error=error or "unknown error", **diagnostics)

    @classmethod
    def skip(cls, destination: Destination, reason: str) -> "DispatchResult":
        return cls(destination=destination, success=False, error=reason, skipped=True)

    def to_dict(self) -> dict:
        data = {"success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.skipped:
            data["skipped"] = True
        for key in ("status_code", "events_received", "provider_code", "request_id"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class DispatchReport:
    event_id: str
    results: dict[Destination, DispatchResult]

    def __getitem__(self, destination: Destination | str) -> DispatchResult:
        return self.results[Destination(destination)]

    @property
    def all_succeeded(self) -> bool:
        return all(result.success for result in self.results.values())

    def to_dict(self) -> dict:
        data = {"event_id": self.event_id}
        for destination in Destination:
            data[destination.value] = self.results[destination].to_dict()
        return data


def _parse_decimal(raw, label: str) -> Decimal:
    if isinstance(raw, bool) or raw is None or raw == "":
        raise InvalidEventError(f"{label} is required")
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise InvalidEventError(f"{label} must be a number") from None
    if not value.is_finite() or value < 0:
        raise InvalidEventError(f"{label} must be a non-negative number")
    # Collectors take JSON floats, so anything past float range cannot be sent.
    if not math.isfinite(float(value)):
        raise InvalidEventError(f"{label} is out of range")
    return value


def _optional_str(raw) -> str | None:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def _parse_timestamp(raw) -> datetime:
    if raw in (None, ""):
        return datetime.now(timezone.utc)
    if isinstance(raw, str):
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            try:
                raw = float(raw)
            except ValueError:
                raise InvalidEventError("timestamp must be ISO-8601 or epoch milliseconds") from None
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidEventError("timestamp must be ISO-8601 or epoch milliseconds")
    try:
        seconds = float(raw)
    except OverflowError:
        raise InvalidEventError("timestamp out of range") from None
    if not math.isfinite(seconds):
        raise InvalidEventError("timestamp must be a finite number")
    # Browsers send Date.now() in milliseconds.
    if seconds >= 10**12:
        seconds = seconds / 1000
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise InvalidEventError("timestamp out of range") from None


def item_from_dict(raw: dict, position: int = 0) -> LineItem:
    if not isinstance(raw, dict):
        raise InvalidEventError(f"items[{position}] must be an object")
    item_id = _optional_str(raw.get("id") if raw.get("id") is not None else raw.get("item_id"))
    if not item_id:
        raise InvalidEventError(f"items[{position}].id is required")
    quantity = raw.get("quantity", 1)
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidEventError(f"items[{position}].quantity must be a positive integer")
    return LineItem(
        id=item_id,
        price=_parse_decimal(raw.get("price"), f"items[{position}].price"),
        quantity=quantity,
        name=_optional_str(raw.get("name")),
        category=_optional_str(raw.get("category")),
        brand=_optional_str(raw.get("brand")),
        variant=_optional_str(raw.get("variant")),
    )


def event_from_dict(raw: dict) -> CanonicalEvent:
    if not isinstance(raw, dict):
        raise InvalidEventError("event must be an object")

    name = raw.get("event_name")
    try:
        event_name = EventName(name)
    except ValueError:
        raise InvalidEventError(f"Unsupported event_name: {name!r}") from None

    items = raw.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidEventError("items must be a non-empty list")

    currency = _optional_str(raw.get("currency"))
    if not currency or len(currency) != 3 or not currency.isalpha():
        raise InvalidEventError("currency must be a 3-letter ISO 4217 code")

    transaction_id = _optional_str(raw.get("transaction_id"))
    if event_name is EventName.PURCHASE and not transaction_id:
        raise InvalidEventError("transaction_id is required for purchase events")
    if event_name is not EventName.PURCHASE and transaction_id:
        raise InvalidEventError(f"transaction_id is only allowed on purchase events, not {event_name.value}")

    shipping = raw.get("shipping")
    tax = raw.get("tax")
    return CanonicalEvent(
        event_name=event_name,
        event_id=_optional_str(raw.get("event_id")) or uuid.uuid4().hex,
        currency=currency.upper(),
        value=_parse_decimal(raw.get("value"), "value"),
        items=tuple(item_from_dict(item, position) for position, item in enumerate(items)),
        transaction_id=transaction_id,
        timestamp=_parse_timestamp(raw.get("timestamp")),
        coupon=_optional_str(raw.get("coupon")),
        shipping=_parse_decimal(shipping, "shipping") if shipping is not None else None,
        tax=_parse_decimal(tax, "tax") if tax is not None else None,
    )


def consent_from_dict(raw: dict | None) -> ConsentState:
    if not isinstance(raw, dict):
        return ConsentState()

    def granted(key: str) -> bool:
        value = raw.get(key)
        if isinstance(value, bool):
            return value
        return str(value or "").strip().lower() == "granted"

    return ConsentState(
        analytics_storage=granted("analytics_storage"),
        ad_storage=granted("ad_storage"),
        ad_user_data=granted("ad_user_data"),
        ad_personalization=granted("ad_personalization"),
    )


def user_from_dict(raw: dict | None, consent: dict | None = None) -> UserContext:
    raw = raw if isinstance(raw, dict) else {}
    return UserContext(
        client_id=_optional_str(raw.get("client_id")),
        user_id=_optional_str(raw.get("user_id")),
        email=_optional_str(raw.get("email")),
        phone=_optional_str(raw.get("phone")),
        ip_address=_optional_str(raw.get("ip_address")),
        user_agent=_optional_str(raw.get("user_agent")),
        page_url=_optional_str(raw.get("page_url")),
        fbc=_optional_str(raw.get("fbc")),
        fbp=_optional_str(raw.get("fbp")),
        ttclid=_optional_str(raw.get("ttclid")),
        ttp=_optional_str(raw.get("ttp")),
        consent=consent_from_dict(consent if consent is not None else raw.get("consent")),
    )
