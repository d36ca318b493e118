from django.conf import settings

from ..schema import Destination
from .base import Credentials, ProviderAdapter
from .google_analytics import GoogleAnalyticsMP
from .meta import MetaCAPI
from .tiktok import TikTokCAPI


def _setting(name: str) -> str | None:
    value = getattr(settings, name, None)
    if isinstance(value, str):
        value = value.strip()
    return value or None


def get_credentials() -> dict[Destination, Credentials]:
    return {
        Destination.ANALYTICS: Credentials(_setting("GA_MEASUREMENT_ID"), _setting("GA_API_SECRET")),
        Destination.ADS: Credentials(_setting("META_PIXEL_ID"), _setting("FACEBOOK_ACCESS_TOKEN")),
        Destination.SHORTVIDEO: Credentials(_setting("TIKTOK_PIXEL_ID"), _setting("TIKTOK_ACCESS_TOKEN")),
    }


def credential_status() -> dict[str, bool]:
    return {destination.value: creds.complete for destination, creds in get_credentials().items()}


def _test_code(mode_setting: str, code_setting: str) -> str | None:
    if not bool(getattr(settings, mode_setting, False)):
        return None
    return _setting(code_setting)


def get_providers() -> dict[Destination, ProviderAdapter]:
    """One adapter per destination; adapters without credentials skip at send time."""
    credentials = get_credentials()
    timeout = float(getattr(settings, "TRACKING_HTTP_TIMEOUT_SECONDS", 6.0))
    return {
        Destination.ANALYTICS: GoogleAnalyticsMP(credentials[Destination.ANALYTICS], timeout=timeout),
        Destination.ADS: MetaCAPI(
            credentials[Destination.ADS],
            timeout=timeout,
            test_event_code=_test_code("FACEBOOK_CAPI_TEST_MODE", "FACEBOOK_TEST_EVENT_CODE"),
        ),
        Destination.SHORTVIDEO: TikTokCAPI(
            credentials[Destination.SHORTVIDEO],
            timeout=timeout,
            test_event_code=_test_code("TIKTOK_CAPI_TEST_MODE", "TIKTOK_TEST_EVENT_CODE"),
        ),
    }
