from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Gauge, push_to_gateway

if TYPE_CHECKING:
    from snapshot_export.export.runtime.results import ExportReport

LOGGER = logging.getLogger(__name__)

PUSHGATEWAY_URL_ENV = "PROMETHEUS_PUSHGATEWAY_URL"
GROUPING_KEY_ENV = "PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON"

EXPORT_JOB = "snapshot_export"

GAUGE_HELP: dict[str, str] = {
    "snapshot_export_duration_seconds": "Wall-clock duration of the export.",
    "snapshot_export_bytes": "Bytes written to the target by copy units.",
    "snapshot_export_files": "Files written to the target by copy units.",
    "snapshot_export_failed_units": "Copy units that did not succeed.",
}


def _grouping_key_from_env() -> dict[str, str]:
    raw = os.environ.get(GROUPING_KEY_ENV)
    if not raw:
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        LOGGER.warning("Invalid %s; ignoring", GROUPING_KEY_ENV)
        return {}

    if not isinstance(data, dict):
        return {}

    return {
        key: value
        for key, value in data.items()
        if isinstance(key, str) and isinstance(value, str)
    }


class PrometheusMetricsClient:
    """Pushgateway client for the end-of-run gauges of one export.

    Configuration (environment, unless passed explicitly):
    - PROMETHEUS_PUSHGATEWAY_URL: Pushgateway address. Without it the
      client is disabled and every call is a no-op.
    - PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON: JSON object of string
      labels grouping the push, e.g. {"workflow_uid": "..."}. Without it
      exports pushed under the same job replace each other's metrics.

    Gauges are collected in a private registry and sent in one push.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        grouping_key: dict[str, str] | None = None,
    ) -> None:
        self._url = url if url is not None else os.environ.get(PUSHGATEWAY_URL_ENV)
        self._grouping_key = (
            dict(grouping_key) if grouping_key is not None else _grouping_key_from_env()
        )
        self._registry = CollectorRegistry()
        self._gauges: dict[str, Gauge] = {}

    def is_enabled(self) -> bool:
        return bool(self._url)

    @property
    def grouping_key(self) -> dict[str, str]:
        return dict(self._grouping_key)

    def push_gauge(
        self,
        *,
        name: str,
        value: float,
        labels: dict[str, str],
    ) -> None:
        if not self.is_enabled():
            return

        gauge = self._gauges.get(name)
        if gauge is None:
            gauge = Gauge(
                name,
                documentation=GAUGE_HELP.get(name, name),
                labelnames=sorted(labels),
                registry=self._registry,
            )
            self._gauges[name] = gauge

        gauge.labels(**labels).set(value)

    def push_all(self, *, job: str = EXPORT_JOB) -> None:
        if not self.is_enabled():
            return

        push_to_gateway(
            gateway=self._url,
            job=job,
            registry=self._registry,
            grouping_key=self._grouping_key,
        )

        LOGGER.info(
            "Prometheus metrics pushed",
            extra={"job": job, "grouping_key": self._grouping_key, "gauges": sorted(self._gauges)},
        )


def publish_export_metrics(
    report: ExportReport,
    *,
    snapshot_name: str,
    duration_seconds: float,
    client: PrometheusMetricsClient | None = None,
) -> None:
    """Push the end-of-run gauges of one export (best-effort)."""
    metrics = client or PrometheusMetricsClient()

    if not metrics.is_enabled():
        return

    try:
        labels = {
            "export_id": report.export_id,
            "snapshot": snapshot_name,
            "status": report.state,
        }

        metrics.push_gauge(
            name="snapshot_export_duration_seconds",
            value=duration_seconds,
            labels=labels,
        )

        metrics.push_gauge(
            name="snapshot_export_bytes",
            value=float(report.bytes_copied),
            labels=labels,
        )

        metrics.push_gauge(
            name="snapshot_export_files",
            value=float(report.files_copied),
            labels=labels,
        )

        metrics.push_gauge(
            name="snapshot_export_failed_units",
            value=float(len(report.failed_units)),
            labels=labels,
        )

        metrics.push_all(job=EXPORT_JOB)

    except Exception:
        LOGGER.exception("Prometheus push failed")
