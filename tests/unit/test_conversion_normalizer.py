from dataclasses import replace
from decimal import Decimal

from django.test import SimpleTestCase, tag

from conversion_events.normalizer import (
    AdsEvent,
    AnalyticsEvent,
    ShortVideoEvent,
    ads_user_data,
    analytics_identity,
    build_ads_body,
    build_analytics_body,
    build_shortvideo_body,
    normalize,
    shortvideo_user_context,
    translate_event_name,
)
from conversion_events.schema import ConsentState, Destination, EventName, InvalidEventError, hash_pii
from tests.utils.conversion_fixtures import FIXED_TIME, add_to_cart_event, purchase_event, user_context


EXPECTED_NAMES = {
    EventName.ADD_TO_CART: ("add_to_cart", "AddToCart", "AddToCart"),
    EventName.BEGIN_CHECKOUT: ("begin_checkout", "InitiateCheckout", "InitiateCheckout"),
    EventName.PURCHASE: ("purchase", "Purchase", "Purchase"),
}


@tag("batch_conversion_events")
class EventNameTranslationTests(SimpleTestCase):
    def test_every_event_translates_for_every_destination(self):
        for event_name, (analytics, ads, shortvideo) in EXPECTED_NAMES.items():
            event = replace(
                add_to_cart_event(),
                event_name=event_name,
                transaction_id="TXN-1" if event_name is EventName.PURCHASE else None,
            )
            with self.subTest(event_name=event_name):
                self.assertEqual(normalize(event, Destination.ANALYTICS).name, analytics)
                self.assertEqual(normalize(event, Destination.ADS).event_name, ads)
                self.assertEqual(normalize(event, Destination.SHORTVIDEO).event, shortvideo)

    def test_unknown_event_name_is_an_error(self):
        with self.assertRaises(InvalidEventError):
            translate_event_name("page_view", Destination.ADS)

        event = replace(add_to_cart_event(), event_name="refund")
        with self.assertRaises(InvalidEventError):
            normalize(event, Destination.ANALYTICS)

    def test_plain_string_event_name_is_accepted(self):
        event = replace(purchase_event(), event_name="purchase")
        payload = normalize(event, Destination.ADS)
        self.assertEqual(payload.custom_data["order_id"], "TXN-123")

    def test_missing_items_is_an_error(self):
        event = replace(add_to_cart_event(), items=())
        with self.assertRaises(InvalidEventError):
            normalize(event, Destination.SHORTVIDEO)


@tag("batch_conversion_events")
class PurchasePayloadTests(SimpleTestCase):
    def setUp(self):
        self.event = purchase_event(event_id="evt-purchase")

    def test_analytics_payload(self):
        payload = normalize(self.event, Destination.ANALYTICS)

        self.assertIsInstance(payload, AnalyticsEvent)
        self.assertEqual(payload.name, "purchase")
        self.assertEqual(payload.params["event_id"], "evt-purchase")
        self.assertEqual(payload.params["transaction_id"], "TXN-123")
        self.assertEqual(payload.params["currency"], "PHP")
        self.assertEqual(payload.params["value"], 20.0)
        self.assertEqual(payload.params["items"], [{"item_id": "P1", "price": 10.0, "quantity": 2}])
        self.assertEqual(payload.timestamp_micros, int(FIXED_TIME.timestamp()) * 1_000_000)

    def test_ads_payload(self):
        payload = normalize(self.event, Destination.ADS)

        self.assertIsInstance(payload, AdsEvent)
        self.assertEqual(payload.event_name, "Purchase")
        self.assertEqual(payload.event_id, "evt-purchase")
        self.assertEqual(payload.event_time, int(FIXED_TIME.timestamp()))
        self.assertEqual(payload.custom_data["order_id"], "TXN-123")
        self.assertEqual(payload.custom_data["contents"], [{"id": "P1", "quantity": 2, "item_price": 10.0}])
        self.assertEqual(payload.custom_data["content_ids"], ["P1"])
        self.assertEqual(payload.custom_data["num_items"], 2)
        self.assertEqual(payload.to_json()["action_source"], "website")

    def test_shortvideo_payload(self):
        payload = normalize(self.event, Destination.SHORTVIDEO)

        self.assertIsInstance(payload, ShortVideoEvent)
        self.assertEqual(payload.event, "Purchase")
        self.assertEqual(payload.event_id, "evt-purchase")
        self.assertEqual(payload.timestamp, "2024-07-03T10:00:00Z")
        self.assertEqual(payload.properties["order_id"], "TXN-123")
        self.assertEqual(
            payload.properties["contents"],
            [{"content_id": "P1", "quantity": 2, "price": 10.0}],
        )

    def test_non_purchase_never_carries_transaction_id(self):
        event = add_to_cart_event()
        self.assertNotIn("transaction_id", normalize(event, Destination.ANALYTICS).params)
        self.assertNotIn("order_id", normalize(event, Destination.ADS).custom_data)
        self.assertNotIn("order_id", normalize(event, Destination.SHORTVIDEO).properties)

    def test_value_is_passed_through_unchanged(self):
        event = replace(self.event, value=Decimal("35.50"))
        self.assertEqual(normalize(event, Destination.ADS).custom_data["value"], 35.5)


@tag("batch_conversion_events")
class IdentityTests(SimpleTestCase):
    def test_ads_user_data_hashes_pii(self):
        user = user_context()
        data = ads_user_data(user)

        self.assertEqual(data["em"], [hash_pii("shopper@example.com")])
        self.assertEqual(data["ph"], [hash_pii("+639171234567")])
        self.assertEqual(data["external_id"], [hash_pii("user-42")])
        self.assertEqual(data["client_ip_address"], "203.0.113.7")
        self.assertEqual(data["client_user_agent"], "Mozilla/5.0 (test)")
        self.assertEqual(data["fbc"], "fb.1.1720000000000.abc")
        self.assertEqual(data["fbp"], "fb.1.1720000000000.123")
        self.assertNotIn("Shopper@Example.com", str(data))

    def test_ad_user_data_denied_drops_hashed_identifiers(self):
        consent = ConsentState(analytics_storage=True, ad_storage=True, ad_user_data=False)
        user = user_context(consent=consent)

        self.assertNotIn("em", ads_user_data(user))
        context = shortvideo_user_context(user)
        self.assertEqual(context["user"], {"ttp": "tt-browser"})

    def test_shortvideo_context(self):
        context = shortvideo_user_context(user_context())

        self.assertEqual(context["ip"], "203.0.113.7")
        self.assertEqual(context["page"], {"url": "https://shop.example.com/cart"})
        self.assertEqual(context["ad"], {"callback": "tt-click"})
        self.assertEqual(context["user"]["email"], hash_pii("shopper@example.com"))
        self.assertEqual(context["user"]["phone_number"], hash_pii("+639171234567"))

    def test_analytics_identity_falls_back_to_event_id(self):
        user = user_context(client_id=None, user_id=None)
        identity = analytics_identity(add_to_cart_event("e9"), user)

        self.assertEqual(identity["client_id"], "e9")
        self.assertNotIn("user_id", identity)
        self.assertEqual(identity["consent"], {"ad_user_data": "GRANTED", "ad_personalization": "GRANTED"})


@tag("batch_conversion_events")
class RequestBodyTests(SimpleTestCase):
    def test_bodies_thread_the_same_event_id(self):
        event = purchase_event(event_id="shared-id")
        user = user_context()

        analytics = build_analytics_body(event, user)
        ads = build_ads_body(event, user)
        shortvideo = build_shortvideo_body(event, user, "PIXEL")

        self.assertEqual(analytics["events"][0]["params"]["event_id"], "shared-id")
        self.assertEqual(ads["data"][0]["event_id"], "shared-id")
        self.assertEqual(shortvideo["event_id"], "shared-id")
        self.assertEqual(shortvideo["pixel_code"], "PIXEL")

    def test_analytics_body_has_no_raw_pii(self):
        body = build_analytics_body(add_to_cart_event(), user_context())

        self.assertEqual(body["client_id"], "555.1720000000")
        self.assertEqual(body["user_id"], "user-42")
        self.assertNotIn("shopper", str(body).lower())

    def test_test_event_codes_are_optional(self):
        event = add_to_cart_event()
        user = user_context()

        self.assertNotIn("test_event_code", build_ads_body(event, user))
        self.assertEqual(build_ads_body(event, user, test_event_code="TEST1")["test_event_code"], "TEST1")
        self.assertEqual(
            build_shortvideo_body(event, user, "PIXEL", test_event_code="TEST2")["test_event_code"],
            "TEST2",
        )

    def test_ads_body_uses_page_url_as_source(self):
        body = build_ads_body(add_to_cart_event(), user_context())
        self.assertEqual(body["data"][0]["event_source_url"], "https://shop.example.com/cart")
