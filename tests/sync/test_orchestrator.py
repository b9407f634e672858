"""Polling orchestrator and status write-back tests."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from sitebuilder.exceptions import ConfigurationError, TransientIOError
from sitebuilder.sync.detector import ChangeDetector, SnapshotStore
from sitebuilder.sync.orchestrator import (
    STATUS_BUILDING,
    STATUS_FAILED,
    STATUS_PUBLISHED,
    StatusReporter,
    SyncOrchestrator,
    SyncState,
)

from .conftest import make_record


def statuses(source):
    return [fields["Status"]["select"]["name"] for _, fields in source.status_writes]


@pytest.fixture()
def detector(source, clock):
    for index in range(3):
        source.put("db-pages", make_record(f"rec-{index}", f"Page {index}"))
    return ChangeDetector(source, {"Pages": "db-pages"}, clock=clock)


async def test_cycle_without_changes_does_not_build(source, detector):
    builds = []
    orchestrator = SyncOrchestrator(detector, build=builds.append, reporter=StatusReporter(source, "site-1"))
    await detector.snapshot_all()

    outcome = await orchestrator.run_cycle()

    assert not outcome.changed
    assert builds == []
    assert source.status_writes == []
    assert orchestrator.state is SyncState.IDLE


async def test_cycle_with_changes_builds_once_and_reports(source, detector):
    builds = []

    async def build(changes):
        builds.append(changes)
        return SimpleNamespace(deploy_url="https://acme.github.io/site/", files=["index.html", "about.html"])

    reporter = StatusReporter(source, "site-1", build_log_collection="db-log")
    orchestrator = SyncOrchestrator(detector, build=build, reporter=reporter)
    await detector.snapshot_all()
    source.put("db-pages", make_record("rec-1", "Page 1 (edited)", edited="2024-05-03T00:00:00.000Z"))
    source.put("db-pages", make_record("rec-9", "New page"))

    outcome = await orchestrator.run_cycle()

    assert outcome.built and outcome.status == STATUS_PUBLISHED
    assert len(builds) == 1 and len(builds[0]) == 2
    assert statuses(source) == [STATUS_BUILDING, STATUS_PUBLISHED]
    published_log = source.created[-1][1]
    assert published_log["Deploy URL"] == {"url": "https://acme.github.io/site/"}
    assert published_log["Files Count"] == {"number": 2}
    assert published_log["Changes"] == {"number": 2}


async def test_build_failure_is_reported_not_raised(source, detector):
    def build(changes):
        raise RuntimeError("template exploded")

    orchestrator = SyncOrchestrator(detector, build=build, reporter=StatusReporter(source, "site-1", "db-log"))
    await detector.snapshot_all()
    source.put("db-pages", make_record("rec-0", "Page 0 (edited)", edited="2024-05-03T00:00:00.000Z"))

    outcome = await orchestrator.run_cycle()

    assert not outcome.built
    assert outcome.status == STATUS_FAILED
    assert outcome.error == "template exploded"
    assert statuses(source) == [STATUS_BUILDING, STATUS_FAILED]
    assert source.created[-1][1]["Error"]["rich_text"][0]["text"]["content"] == "template exploded"


async def test_run_once_without_build_only_detects(source, detector, tmp_path):
    store = SnapshotStore(tmp_path / "state.json")
    builds = []
    orchestrator = SyncOrchestrator(detector, build=builds.append, store=store)
    await detector.snapshot_all()
    source.put("db-pages", make_record("rec-2", "Page 2 (edited)", edited="2024-05-03T00:00:00.000Z"))

    changes = await orchestrator.run_once(build=False)

    assert [change.external_id for change in changes] == ["rec-2"]
    assert builds == []
    assert store.load().hash_for("rec-2") == detector.snapshot.hash_for("rec-2")


async def test_start_snapshots_then_polls_until_max_cycles(source, detector, tmp_path):
    store = SnapshotStore(tmp_path / "state.json")
    orchestrator = SyncOrchestrator(detector, build=lambda changes: None, interval=0.01, store=store)

    await orchestrator.start(max_cycles=2)

    assert len(store.load()) == 3
    assert not orchestrator.running
    assert orchestrator.state is SyncState.IDLE
    # one snapshot query plus one query per cycle
    assert len(source.queries) == 3


async def test_start_resumes_from_saved_snapshot(source, detector):
    await detector.snapshot_all()
    queries_before = len(source.queries)
    orchestrator = SyncOrchestrator(detector, build=lambda changes: None, interval=0.01)

    await orchestrator.start(max_cycles=1)

    assert len(source.queries) == queries_before + 1


async def test_stop_interrupts_the_sleep(detector):
    orchestrator = SyncOrchestrator(detector, build=lambda changes: None, interval=30)

    task = asyncio.create_task(orchestrator.start())
    await asyncio.sleep(0.05)
    assert orchestrator.running
    orchestrator.stop()
    await asyncio.wait_for(task, timeout=2)

    assert not orchestrator.running


async def test_configuration_errors_stop_the_loop(detector):
    def build(changes):
        return None

    async def broken_detect():
        raise ConfigurationError("bad key")

    detector.detect = broken_detect
    await detector.snapshot_all()
    orchestrator = SyncOrchestrator(detector, build=build, interval=0.01)

    with pytest.raises(ConfigurationError):
        await orchestrator.start(max_cycles=3)


async def test_reporter_without_site_id_writes_nothing(source):
    reporter = StatusReporter(source, None, "db-log")

    assert await reporter.report(STATUS_BUILDING) is False
    assert source.status_writes == [] and source.created == []


async def test_reporter_survives_build_log_failures(source):
    async def failing_create(collection_id, properties):
        raise TransientIOError("log database offline")

    source.create_record = failing_create
    reporter = StatusReporter(source, "site-1", "db-log")

    assert await reporter.report(STATUS_PUBLISHED, deploy_url="https://example.com") is False
    assert statuses(source) == [STATUS_PUBLISHED]
