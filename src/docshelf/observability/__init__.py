"""Logging and metrics helpers."""

from docshelf.observability.logging import (
    LogContext,
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    get_log_context,
    log_context,
)
from docshelf.observability.metrics import (
    MetricsRecorder,
    NoopMetricsRecorder,
    PrometheusMetricsRecorder,
    get_metrics_recorder,
    set_metrics_recorder,
)

__all__ = [
    "LogContext",
    "MetricsRecorder",
    "NoopMetricsRecorder",
    "PrometheusMetricsRecorder",
    "bootstrap_logging",
    "bootstrap_logging_from_app_settings",
    "get_log_context",
    "get_metrics_recorder",
    "log_context",
    "set_metrics_recorder",
]
