"""Prometheus metrics for store primitives and document verbs.

Two families are recorded under a configurable prefix:

* ``<prefix>_resource_*``: every driver call made by a store resource,
  labelled by resource, primitive and status.
* ``<prefix>_document_*``: every facade verb, labelled by verb, collection
  and outcome. The outcome is ``ok`` or the ``kind`` of the error raised.
"""

from __future__ import annotations

import re
from typing import Any, Protocol

from docshelf.runtime.errors import MissingDependencyError

_NAME_NORMALIZER = re.compile(r"[^a-zA-Z0-9_]+")
_LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def _import_prometheus_client() -> Any:
    try:
        import prometheus_client
    except ImportError as exc:  # pragma: no cover - depends on optional extras
        raise MissingDependencyError(
            "Prometheus metrics require optional dependency 'prometheus-client'. "
            "Install with: pip install 'docshelf[metrics]'"
        ) from exc
    return prometheus_client


def _normalize(value: str, *, default: str = "unknown") -> str:
    normalized = _NAME_NORMALIZER.sub("_", value.strip().lower()).strip("_")
    return normalized or default


class MetricsRecorder(Protocol):
    """Observer contract shared by store resources and the document facade."""

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        """Record one store primitive call."""
        ...

    def observe_error(self, *, resource: str, operation: str, error_type: str) -> None:
        """Record the exception type of a failed store primitive."""
        ...

    def observe_document_operation(
        self,
        *,
        operation: str,
        collection: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        """Record one facade verb and how it ended."""
        ...


class NoopMetricsRecorder:
    """Discards every observation."""

    def observe_operation(self, **_: Any) -> None:
        return None

    def observe_error(self, **_: Any) -> None:
        return None

    def observe_document_operation(self, **_: Any) -> None:
        return None


class PrometheusMetricsRecorder:
    """Records into a Prometheus registry.

    Collectors already registered under the same name are reused, so several
    recorders (for example one per facade) can share a registry.
    """

    def __init__(self, *, registry: Any | None = None, prefix: str = "docshelf") -> None:
        self._client = _import_prometheus_client()
        self._registry = self._client.REGISTRY if registry is None else registry
        self._prefix = _normalize(prefix, default="docshelf")

        resource_labels = ("resource", "operation", "status")
        self._primitive_latency = self._histogram(
            "resource_latency_seconds", "Store primitive latency in seconds.", resource_labels
        )
        self._primitive_calls = self._counter(
            "resource_throughput_total", "Store primitive calls.", resource_labels
        )
        self._primitive_errors = self._counter(
            "resource_errors_total",
            "Failed store primitive calls by exception type.",
            ("resource", "operation", "error_type"),
        )
        self._verb_latency = self._histogram(
            "document_operation_latency_seconds",
            "Document verb latency in seconds.",
            ("operation", "collection"),
        )
        self._verb_calls = self._counter(
            "document_operations_total",
            "Document verbs by outcome.",
            ("operation", "collection", "outcome"),
        )

    @property
    def registry(self) -> Any:
        return self._registry

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        labels = (
            _normalize(resource),
            _normalize(operation),
            "success" if success else "error",
        )
        self._primitive_latency.labels(*labels).observe(max(0.0, duration_seconds))
        self._primitive_calls.labels(*labels).inc()

    def observe_error(self, *, resource: str, operation: str, error_type: str) -> None:
        self._primitive_errors.labels(
            _normalize(resource), _normalize(operation), _normalize(error_type)
        ).inc()

    def observe_document_operation(
        self,
        *,
        operation: str,
        collection: str,
        outcome: str,
        duration_seconds: float,
    ) -> None:
        # Collection names are case sensitive; keep them as given.
        target = collection or "unknown"
        self._verb_latency.labels(operation, target).observe(max(0.0, duration_seconds))
        self._verb_calls.labels(operation, target, outcome).inc()

    def _histogram(self, suffix: str, documentation: str, labelnames: tuple[str, ...]) -> Any:
        return self._collector(
            "Histogram", suffix, documentation, labelnames, buckets=_LATENCY_BUCKETS
        )

    def _counter(self, suffix: str, documentation: str, labelnames: tuple[str, ...]) -> Any:
        return self._collector("Counter", suffix, documentation, labelnames)

    def _collector(
        self,
        kind: str,
        suffix: str,
        documentation: str,
        labelnames: tuple[str, ...],
        **options: Any,
    ) -> Any:
        name = f"{self._prefix}_{suffix}"
        registered = getattr(self._registry, "_names_to_collectors", None)
        if isinstance(registered, dict) and name in registered:
            return registered[name]
        factory = getattr(self._client, kind)
        return factory(
            name, documentation, labelnames=labelnames, registry=self._registry, **options
        )


_NOOP_RECORDER = NoopMetricsRecorder()
_default_recorder: MetricsRecorder = _NOOP_RECORDER


def get_metrics_recorder() -> MetricsRecorder:
    """Recorder used by resources and facades built without an explicit one."""
    return _default_recorder


def set_metrics_recorder(recorder: MetricsRecorder | None) -> MetricsRecorder:
    """Replace the process-level recorder; ``None`` restores the no-op one."""
    global _default_recorder
    _default_recorder = _NOOP_RECORDER if recorder is None else recorder
    return _default_recorder
