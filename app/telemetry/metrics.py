"""OpenTelemetry instruments for run transitions and lens failures.

Instruments exist only after :func:`configure_metrics` ran with
``otel_enabled``; until then the recording helpers are no-ops.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from app.core.config import settings

_logger = logging.getLogger(__name__)

SERVICE_NAME = "decision-copilot"


@dataclass
class _Instruments:
    provider: MeterProvider
    transition_duration: Histogram
    transitions: Counter
    lens_failures: Counter


_instruments: _Instruments | None = None


def _reader_for(exporter_name: str) -> MetricReader:
    if exporter_name == "prometheus":
        try:
            from opentelemetry.exporter.prometheus import PrometheusMetricReader  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("otel_exporter=prometheus needs the 'prometheus' extra installed") from exc
        return PrometheusMetricReader()
    if exporter_name == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("otel_exporter=otlp needs the 'otlp' extra installed") from exc
        endpoint = settings.otel_otlp_endpoint
        return PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=endpoint) if endpoint else OTLPMetricExporter())
    if exporter_name != "console":
        _logger.warning("Unknown otel_exporter '%s'; exporting metrics to the console", exporter_name)
    return PeriodicExportingMetricReader(ConsoleMetricExporter())


def configure_metrics() -> None:
    """Create the meter provider and instruments once, if enabled."""

    global _instruments

    if not settings.otel_enabled or _instruments is not None:
        return

    provider = MeterProvider(
        metric_readers=[_reader_for(settings.otel_exporter.lower().strip())],
        resource=Resource.create({"service.name": SERVICE_NAME}),
    )
    metrics.set_meter_provider(provider)
    meter = metrics.get_meter(SERVICE_NAME)
    _instruments = _Instruments(
        provider=provider,
        transition_duration=meter.create_histogram(
            name="copilot.run.transition.duration",
            unit="s",
            description="Wall time of an intake or clarification transition",
        ),
        transitions=meter.create_counter(
            name="copilot.run.transitions",
            unit="1",
            description="Completed run transitions by resulting status",
        ),
        lens_failures=meter.create_counter(
            name="copilot.lens.failures",
            unit="1",
            description="Lens evaluations that failed or returned non-conforming output",
        ),
    )


def record_transition(transition: str, status: str, seconds: float) -> None:
    if _instruments is None:
        return
    attributes = {"transition": transition, "status": status}
    _instruments.transition_duration.record(max(seconds, 0.0), attributes=attributes)
    _instruments.transitions.add(1, attributes=attributes)


def increment_lens_failure(lens: str, retryable: bool) -> None:
    if _instruments is not None:
        _instruments.lens_failures.add(1, attributes={"lens": lens, "retryable": retryable})


def collect_prometheus_metrics() -> tuple[bytes, str]:
    """Render the default Prometheus registry fed by the Prometheus reader."""

    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # type: ignore

    return generate_latest(), CONTENT_TYPE_LATEST


def shutdown_metrics() -> None:
    global _instruments
    if _instruments is None:
        return
    instruments, _instruments = _instruments, None
    try:
        instruments.provider.shutdown()
    except Exception:  # pragma: no cover - exporter specific
        _logger.exception("Metrics provider shutdown failed")
