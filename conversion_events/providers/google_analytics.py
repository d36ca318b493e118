import httpx

from ..normalizer import build_analytics_body
from ..schema import Destination, DispatchResult
from .base import ProviderAdapter, ProviderError, error_detail


class GoogleAnalyticsMP(ProviderAdapter):
    destination = Destination.ANALYTICS
    label = "GA4 Measurement Protocol"
    url = "https://www.google-analytics.com/mp/collect"

    @property
    def measurement_id(self) -> str | None:
        return self.credentials.identifier

    async def _post(self, client, event, user) -> httpx.Response:
        return await client.post(
            self.url,
            json=build_analytics_body(event, user),
            params={
                "measurement_id": self.measurement_id,
                "api_secret": self.credentials.secret,
            },
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )

    def _interpret(self, response: httpx.Response) -> DispatchResult:
        # The collector acknowledges with an empty 204 and nothing else.
        if response.status_code == 204:
            return DispatchResult.ok(self.destination, status_code=response.status_code)
        raise ProviderError(error_detail(response), status_code=response.status_code)
