"""
Semantic test: end-of-run metrics.

Invariant:
Metrics are pushed only when a Pushgateway is configured, carry the
export outcome, and a failing push never fails the export.
"""

from __future__ import annotations

from snapshot_export.export.runtime.prometheus_metrics import (
    PrometheusMetricsClient,
    publish_export_metrics,
)
from snapshot_export.export.runtime.results import CopyResult, ExportReport


class RecordingClient:
    def __init__(self, *, enabled: bool = True, fail_push: bool = False) -> None:
        self.enabled = enabled
        self.fail_push = fail_push
        self.gauges: dict[str, tuple[float, dict[str, str]]] = {}
        self.jobs: list[str] = []

    def is_enabled(self) -> bool:
        return self.enabled

    def push_gauge(self, *, name, value, labels) -> None:
        self.gauges[name] = (value, labels)

    def push_all(self, *, job) -> None:
        if self.fail_push:
            raise ConnectionError("pushgateway unreachable")
        self.jobs.append(job)


def _report() -> ExportReport:
    return ExportReport(
        export_id="export-1",
        state="failed",
        results=[
            CopyResult(unit_id="snapshot", bytes_copied=10, files_copied=2),
            CopyResult(unit_id="data_0000", status="failed", bytes_copied=90, files_copied=1),
        ],
    )


def test_gauges_describe_the_export() -> None:
    client = RecordingClient()

    publish_export_metrics(_report(), snapshot_name="snap1", duration_seconds=1.5, client=client)

    assert client.jobs == ["snapshot_export"]
    labels = {"export_id": "export-1", "snapshot": "snap1", "status": "failed"}
    assert client.gauges == {
        "snapshot_export_duration_seconds": (1.5, labels),
        "snapshot_export_bytes": (100.0, labels),
        "snapshot_export_files": (3.0, labels),
        "snapshot_export_failed_units": (1.0, labels),
    }


def test_disabled_client_pushes_nothing() -> None:
    client = RecordingClient(enabled=False)

    publish_export_metrics(_report(), snapshot_name="snap1", duration_seconds=1.0, client=client)

    assert client.gauges == {}
    assert client.jobs == []


def test_push_failure_is_swallowed() -> None:
    client = RecordingClient(fail_push=True)

    publish_export_metrics(_report(), snapshot_name="snap1", duration_seconds=1.0, client=client)

    assert client.jobs == []


def test_client_reads_the_environment(monkeypatch) -> None:
    monkeypatch.delenv("PROMETHEUS_PUSHGATEWAY_URL", raising=False)
    monkeypatch.setenv(
        "PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON",
        '{"workflow_uid": "wf-1", "attempt": 2}',
    )

    client = PrometheusMetricsClient()

    assert not client.is_enabled()
    assert client.grouping_key == {"workflow_uid": "wf-1"}

    monkeypatch.setenv("PROMETHEUS_PUSHGATEWAY_URL", "http://pushgateway:9091")
    monkeypatch.setenv("PROMETHEUS_PUSHGATEWAY_GROUPING_KEY_JSON", "not json")

    client = PrometheusMetricsClient()

    assert client.is_enabled()
    assert client.grouping_key == {}


def test_repeated_gauge_name_updates_the_same_series() -> None:
    client = PrometheusMetricsClient(url="http://pushgateway:9091", grouping_key={})
    labels = {"export_id": "export-1", "snapshot": "snap1", "status": "done"}

    client.push_gauge(name="snapshot_export_bytes", value=10.0, labels=labels)
    client.push_gauge(name="snapshot_export_bytes", value=25.0, labels=labels)

    assert client._registry.get_sample_value("snapshot_export_bytes", labels) == 25.0
