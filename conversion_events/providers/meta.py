import logging

import httpx

from ..normalizer import build_ads_body
from ..schema import Destination, DispatchResult
from .base import DEFAULT_TIMEOUT_SECONDS, ProviderAdapter, ProviderError, error_detail, read_json


logger = logging.getLogger(__name__)

GRAPH_API_VERSION = "v20.0"


class MetaCAPI(ProviderAdapter):
    destination = Destination.ADS
    label = "Meta CAPI"

    def __init__(self, credentials, timeout: float = DEFAULT_TIMEOUT_SECONDS, test_event_code: str | None = None):
        super().__init__(credentials, timeout=timeout)
        self.test_event_code = (test_event_code or "").strip() or None

    @property
    def pixel_id(self) -> str | None:
        return self.credentials.identifier

    @property
    def url(self) -> str:
        return f"https://graph.facebook.com/{GRAPH_API_VERSION}/{self.pixel_id}/events"

    async def _post(self, client, event, user) -> httpx.Response:
        body = build_ads_body(event, user, test_event_code=self.test_event_code)

        logger.info(
            "Meta CAPI payload identifiers",
            extra={
                "event_name": body["data"][0]["event_name"],
                "event_id": event.event_id,
                "fbc": user.fbc,
                "fbp": user.fbp,
                "fbc_source": "present" if user.fbc else "missing",
            },
        )

        return await client.post(
            self.url,
            json=body,
            params={"access_token": self.credentials.secret},
            timeout=self.timeout,
        )

    def _interpret(self, response: httpx.Response) -> DispatchResult:
        if not response.is_success:
            raise ProviderError(error_detail(response), status_code=response.status_code)

        # Any parseable JSON body on a 2xx counts as accepted.
        result = read_json(response)
        if not isinstance(result, dict):
            result = {}
        events_received = result.get("events_received")
        return DispatchResult.ok(
            self.destination,
            status_code=response.status_code,
            events_received=events_received if isinstance(events_received, int) else None,
            request_id=result.get("fbtrace_id"),
        )
