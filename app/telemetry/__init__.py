"""Telemetry utilities for exporting run events and metrics."""

from .event_sink import EventSink, FileEventSink, NullEventSink, sink_from_settings
from .metrics import (
    configure_metrics,
    record_transition,
    increment_lens_failure,
    shutdown_metrics,
    collect_prometheus_metrics,
)

__all__ = [
    "EventSink",
    "FileEventSink",
    "NullEventSink",
    "sink_from_settings",
    "configure_metrics",
    "record_transition",
    "increment_lens_failure",
    "shutdown_metrics",
    "collect_prometheus_metrics",
]
