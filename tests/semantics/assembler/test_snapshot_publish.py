"""
Semantic test: snapshot assembly and publish.

Invariant:
A target snapshot only becomes visible under .hbase-snapshot/<target>
after every copy unit succeeded; staged files are committed, the target
descriptor carries the target name (and reset TTL when asked), and an
existing target is only replaced with overwrite.
"""

from __future__ import annotations

import pytest

from snapshot_export.core.domain import layout
from snapshot_export.core.domain.errors import PlanningError, TargetAlreadyExistsError
from snapshot_export.core.events.event_bus import EventBus
from snapshot_export.core.events.events import SnapshotPublishedEvent
from snapshot_export.export.io.manifest_io import read_descriptor
from snapshot_export.export.orchestrator.planner import plan_export
from snapshot_export.export.runtime.assembler import SnapshotAssembler
from snapshot_export.export.runtime.copier import FileCopier
from snapshot_export.export.runtime.results import CopyResult


class ListSink:
    def __init__(self) -> None:
        self.events: list = []

    def on_event(self, event) -> None:
        self.events.append(event)


def _prepare(builder, ctx, *, ttl: int = 3600):
    builder.data_file("aaa111", "cf", "01")
    builder.data_file("bbb222", "cf", "02")
    manifest = builder.snapshot(
        "snap1",
        {"aaa111": {"cf": ["01"]}, "bbb222": {"cf": ["02"]}},
        ttl=ttl,
    )
    plan = plan_export(ctx=ctx, manifest=manifest)
    copier = FileCopier.from_context(ctx)
    results = [copier.copy_unit(unit) for unit in plan.units]
    return manifest, results


def test_publish_moves_staging_to_final(builder, make_config, make_context, target_storage) -> None:
    ctx = make_context(make_config(target="copy"))
    manifest, results = _prepare(builder, ctx)

    descriptor = SnapshotAssembler().assemble(ctx=ctx, manifest=manifest, results=results)

    final_dir = layout.snapshot_dir("/backup", "copy")
    assert descriptor.name == "copy"
    assert descriptor.ttl == 3600
    assert read_descriptor(target_storage, final_dir) == descriptor
    assert not target_storage.exists(layout.working_snapshot_dir("/backup", "copy"))
    assert target_storage.exists(layout.region_manifest_path(final_dir, "aaa111"))
    assert target_storage.exists("/backup/archive/data/default/usertable/aaa111/cf/01")
    assert not any(path.endswith("._COPYING_") for path in target_storage.list_files("/backup"))


def test_reset_ttl_uses_default_ttl(builder, make_config, make_context, target_storage) -> None:
    ctx = make_context(make_config(reset_ttl=True, default_ttl=86400))
    manifest, results = _prepare(builder, ctx, ttl=3600)

    descriptor = SnapshotAssembler().assemble(ctx=ctx, manifest=manifest, results=results)

    assert descriptor.ttl == 86400
    assert read_descriptor(target_storage, layout.snapshot_dir("/backup", "snap1")).ttl == 86400


def test_refuses_to_publish_after_failed_unit(builder, make_config, make_context, target_storage) -> None:
    ctx = make_context(make_config())
    manifest, results = _prepare(builder, ctx)
    results.append(CopyResult(unit_id="data_9999", status="failed", error="boom"))

    with pytest.raises(PlanningError, match="data_9999"):
        SnapshotAssembler().assemble(ctx=ctx, manifest=manifest, results=results)

    assert not target_storage.exists(layout.snapshot_dir("/backup", "snap1"))
    # Staged artifacts stay for diagnostics.
    assert target_storage.exists(layout.working_snapshot_dir("/backup", "snap1"))


def test_existing_target_requires_overwrite(
    builder, target_builder, make_config, make_context, target_storage
) -> None:
    target_builder.snapshot("snap1", {}, table="other:table")
    ctx = make_context(make_config())
    manifest, results = _prepare(builder, ctx)

    with pytest.raises(TargetAlreadyExistsError):
        SnapshotAssembler().assemble(ctx=ctx, manifest=manifest, results=results)

    assert read_descriptor(target_storage, layout.snapshot_dir("/backup", "snap1")).table == "other:table"


def test_overwrite_replaces_existing_target(
    builder, target_builder, make_config, make_context, target_storage
) -> None:
    target_builder.snapshot("snap1", {}, extras={"stale": b"old"})
    ctx = make_context(make_config(overwrite=True))
    manifest, results = _prepare(builder, ctx)

    SnapshotAssembler().assemble(ctx=ctx, manifest=manifest, results=results)

    final_dir = layout.snapshot_dir("/backup", "snap1")
    assert not target_storage.exists(layout.join(final_dir, "stale"))
    assert read_descriptor(target_storage, final_dir).table == "default:usertable"


def test_skip_tmp_rewrites_descriptor_in_place(builder, make_config, make_context, target_storage) -> None:
    ctx = make_context(make_config(skip_tmp=True, target="copy"))
    manifest, results = _prepare(builder, ctx)

    assert all(not result.staged for result in results)

    SnapshotAssembler().assemble(ctx=ctx, manifest=manifest, results=results)

    assert read_descriptor(target_storage, layout.snapshot_dir("/backup", "copy")).name == "copy"
    assert not target_storage.exists("/backup/.hbase-snapshot/.tmp")


def test_publish_emits_event(builder, make_config, make_context) -> None:
    sink = ListSink()
    ctx = make_context(make_config(), event_bus=EventBus([sink]))
    manifest, results = _prepare(builder, ctx)

    SnapshotAssembler().assemble(ctx=ctx, manifest=manifest, results=results)

    (event,) = sink.events
    assert isinstance(event, SnapshotPublishedEvent)
    assert event.snapshot_name == "snap1"
    assert event.target_dir == "/backup/.hbase-snapshot/snap1"
