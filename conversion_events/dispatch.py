import asyncio
import logging

import httpx

from .providers import get_providers
from .providers.base import DEFAULT_TIMEOUT_SECONDS, ProviderAdapter
from .schema import CanonicalEvent, Destination, DispatchReport, DispatchResult, UserContext
from .telemetry import record_report, trace_event


logger = logging.getLogger(__name__)

CONSENT_NOT_GRANTED = "consent not granted"


def consent_allows(destination: Destination, user: UserContext) -> bool:
    if destination is Destination.ANALYTICS:
        return user.consent.analytics
    return user.consent.advertising


class Dispatcher:
    """
    Fans one canonical event out to every destination.

    Build one per request (``Dispatcher.from_settings()``) or hand it explicit
    adapters and an httpx transport. Each ``dispatch`` call is independent: no
    state survives between calls and identical event ids are sent again.
    """

    def __init__(
        self,
        providers: dict[Destination, ProviderAdapter],
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        missing = set(Destination) - set(providers)
        if missing:
            raise ValueError(f"No adapter for: {', '.join(sorted(d.value for d in missing))}")
        self.providers = providers
        self.transport = transport
        self.timeout = timeout

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> "Dispatcher":
        providers = get_providers()
        timeout = max(provider.timeout for provider in providers.values())
        return cls(providers, transport=transport, timeout=timeout)

    async def dispatch(self, event: CanonicalEvent, user: UserContext) -> DispatchReport:
        results: dict[Destination, DispatchResult] = {}
        eligible: list[Destination] = []
        for destination in Destination:
            if consent_allows(destination, user):
                eligible.append(destination)
            else:
                logger.info(
                    "Skipping %s: consent not granted",
                    destination.value,
                    extra={"event_id": event.event_id},
                )
                results[destination] = DispatchResult.skip(destination, CONSENT_NOT_GRANTED)

        with trace_event(event) as span:
            if eligible:
                async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                    outcomes = await asyncio.gather(
                        *(self.providers[d].send(event, user, client=client) for d in eligible),
                        return_exceptions=True,
                    )
                for destination, outcome in zip(eligible, outcomes):
                    if isinstance(outcome, BaseException):
                        if not isinstance(outcome, Exception):
                            raise outcome
                        logger.error(
                            "Adapter for %s raised unexpectedly",
                            destination.value,
                            exc_info=outcome,
                            extra={"event_id": event.event_id},
                        )
                        outcome = DispatchResult.failed(destination, str(outcome) or type(outcome).__name__)
                    results[destination] = outcome

            report = DispatchReport(
                event_id=event.event_id,
                results={destination: results[destination] for destination in Destination},
            )
            record_report(span, report)

        logger.info(
            "Dispatched %s %s: %s",
            event.event_name.value,
            event.event_id,
            ", ".join(
                f"{d.value}={'ok' if r.success else ('skipped' if r.skipped else 'failed')}"
                for d, r in report.results.items()
            ),
        )
        return report
