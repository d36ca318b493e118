import json
import logging
from dataclasses import dataclass

import httpx

from ..schema import CanonicalEvent, Destination, DispatchResult, InvalidEventError, UserContext


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 6.0
MISSING_CREDENTIALS = "missing credentials"


class ProviderError(Exception):
    """A collector answered, but not with its success signal."""

    def __init__(self, message: str, status_code: int | None = None, provider_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider_code = provider_code


@dataclass(frozen=True)
class Credentials:
    identifier: str | None
    secret: str | None

    @property
    def complete(self) -> bool:
        return bool(self.identifier and self.secret)


class ProviderAdapter:
    """
    One outbound collector call.

    Subclasses build the request and interpret the response; ``send`` owns the
    credential check and turns every transport or provider failure into a
    failed ``DispatchResult`` so callers never see an exception from here.
    """

    destination: Destination
    label: str = "provider"

    def __init__(self, credentials: Credentials, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.credentials = credentials
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return self.credentials.complete

    async def _post(self, client: httpx.AsyncClient, event: CanonicalEvent, user: UserContext) -> httpx.Response:
        raise NotImplementedError

    def _interpret(self, response: httpx.Response) -> DispatchResult:
        raise NotImplementedError

    async def send(
        self,
        event: CanonicalEvent,
        user: UserContext,
        client: httpx.AsyncClient | None = None,
    ) -> DispatchResult:
        if not self.configured:
            logger.info("%s skipped: missing credentials", self.label, extra={"event_id": event.event_id})
            return DispatchResult.skip(self.destination, MISSING_CREDENTIALS)

        try:
            if client is None:
                async with httpx.AsyncClient(timeout=self.timeout) as own_client:
                    response = await self._post(own_client, event, user)
            else:
                response = await self._post(client, event, user)
            result = self._interpret(response)
        except ProviderError as e:
            logger.warning(
                "%s rejected event: %s",
                self.label,
                e,
                extra={"event_id": event.event_id, "status_code": e.status_code},
            )
            return DispatchResult.failed(
                self.destination,
                str(e),
                status_code=e.status_code,
                provider_code=e.provider_code,
            )
        except httpx.HTTPError as e:
            logger.warning(
                "%s network error: %s",
                self.label,
                e,
                extra={"event_id": event.event_id},
            )
            return DispatchResult.failed(self.destination, str(e) or type(e).__name__)
        except InvalidEventError as e:
            logger.warning("%s could not map event: %s", self.label, e, extra={"event_id": event.event_id})
            return DispatchResult.failed(self.destination, str(e))

        logger.info("%s accepted event", self.label, extra={"event_id": event.event_id})
        return result


def read_json(response: httpx.Response):
    """Decode a collector's JSON body; an unreadable body is the collector's failure."""
    try:
        return response.json()
    except json.JSONDecodeError as e:
        raise ProviderError(f"invalid response: {e}", status_code=response.status_code) from None


def error_detail(response: httpx.Response) -> str:
    """Best-effort human readable error from a collector response."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return f"{response.status_code}: {text}" if text else f"Status {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return f"Status {response.status_code}"
