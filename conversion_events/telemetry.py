from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .schema import CanonicalEvent, DispatchReport

_tracer = trace.get_tracer(__name__)


@contextmanager
def trace_event(evt: CanonicalEvent):
    with _tracer.start_as_current_span("conversion_event") as span:
        span.set_attribute("event.id", evt.event_id)
        span.set_attribute("event.name", evt.event_name.value)
        span.set_attribute("event.time", int(evt.timestamp.timestamp()))
        yield span


def record_report(span, report: DispatchReport) -> None:
    failed = []
    for destination, result in report.results.items():
        span.set_attribute(f"dispatch.{destination.value}.success", result.success)
        if result.skipped:
            span.set_attribute(f"dispatch.{destination.value}.skipped", True)
        elif not result.success:
            failed.append(destination.value)
    if failed:
        span.set_status(Status(StatusCode.ERROR, "failed: " + ",".join(failed)))
