import httpx

from ..normalizer import build_shortvideo_body
from ..schema import Destination, DispatchResult
from .base import DEFAULT_TIMEOUT_SECONDS, ProviderAdapter, ProviderError, error_detail, read_json


class TikTokCAPI(ProviderAdapter):
    destination = Destination.SHORTVIDEO
    label = "TikTok Events API"
    url = "https://business-api.tiktok.com/open_api/v1.3/pixel/track/"

    def __init__(self, credentials, timeout: float = DEFAULT_TIMEOUT_SECONDS, test_event_code: str | None = None):
        super().__init__(credentials, timeout=timeout)
        self.test_event_code = (test_event_code or "").strip() or None

    @property
    def pixel_id(self) -> str | None:
        return self.credentials.identifier

    async def _post(self, client, event, user) -> httpx.Response:
        headers = {
            "Access-Token": self.credentials.secret,
            "Content-Type": "application/json",
        }
        payload = build_shortvideo_body(event, user, self.pixel_id, test_event_code=self.test_event_code)
        return await client.post(self.url, json=payload, headers=headers, timeout=self.timeout)

    def _interpret(self, response: httpx.Response) -> DispatchResult:
        if not response.is_success:
            raise ProviderError(error_detail(response), status_code=response.status_code)

        result = read_json(response)
        if not isinstance(result, dict):
            raise ProviderError("unexpected response body", status_code=response.status_code)

        # A 2xx is not enough: the envelope carries its own status code.
        code = result.get("code")
        if code != 0:
            raise ProviderError(
                str(result.get("message") or f"code {code}"),
                status_code=response.status_code,
                provider_code=code if isinstance(code, int) else None,
            )
        return DispatchResult.ok(
            self.destination,
            status_code=response.status_code,
            provider_code=code,
            request_id=result.get("request_id"),
        )
