"""
Tests for MetricsCollectorService.

Runs the collector against the in-memory vault and metadata source, and
checks that the aggregate always equals the sum of the latest record of
every document.
"""

import asyncio

import pytest

from vaultstats.core.config import CollectorConfig, load_config
from vaultstats.core.file_events import FileEvent, FileEventType
from vaultstats.core.metrics import QUALITY_EPSILON, VaultMetrics
from vaultstats.infrastructure.fakes import InMemoryMetadataSource, InMemoryVault
from vaultstats.services.collector_service import MetricsCollectorService


def make_collector(vault: InMemoryVault, **config) -> MetricsCollectorService:
    source = InMemoryMetadataSource(vault)
    return MetricsCollectorService(vault, source, config=CollectorConfig(**config))


def fresh_totals(vault: InMemoryVault, **config) -> VaultMetrics:
    """Measure the vault from scratch with a new collector."""

    async def measure() -> VaultMetrics:
        collector = make_collector(vault, **config)
        collector.restart()
        await collector.drain_all()
        return collector.aggregate.snapshot()

    return asyncio.run(measure())


@pytest.fixture
def vault() -> InMemoryVault:
    vault = InMemoryVault()
    vault.write("a.md", "hello world [[b]]")
    vault.write("b.md", "x")
    vault.write("img.png", size=100)
    return vault


@pytest.mark.asyncio
async def test_initial_measurement(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()

    totals = collector.aggregate.snapshot()
    assert totals.files == 3
    assert totals.notes == 2
    assert totals.attachments == 1
    assert totals.links == 1
    assert totals.words == 4
    assert totals.size == len("hello world [[b]]") + 1 + 100
    assert totals.quality == 0.5
    assert len(collector.backlog) == 0


@pytest.mark.asyncio
async def test_modification_replaces_contribution(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()

    vault.write("a.md", "hello")
    collector.enqueue("a.md")
    await collector.drain_all()

    totals = collector.aggregate.snapshot()
    assert totals.files == 3
    assert totals.words == 2
    assert totals.links == 0
    assert totals.quality == QUALITY_EPSILON


@pytest.mark.asyncio
async def test_deletion_removes_contribution_and_cache_entry(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()

    vault.delete("b.md")
    collector.handle_event(FileEvent(FileEventType.DELETED, "b.md"))
    await collector.drain_all()

    totals = collector.aggregate.snapshot()
    assert totals.files == 2
    assert totals.notes == 1
    assert collector.last_known("b.md") is None
    assert "b.md" not in collector.cache
    assert collector.stats.documents_deleted == 1


@pytest.mark.asyncio
async def test_rename_moves_contribution(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()
    before = collector.aggregate.snapshot()

    vault.rename("a.md", "notes/a.md")
    collector.handle_event(FileEvent(FileEventType.MOVED, "notes/a.md", old_path="a.md"))
    await collector.drain_all()

    assert collector.aggregate.snapshot() == before
    assert "notes/a.md" in collector.known_paths()
    assert "a.md" not in collector.known_paths()


@pytest.mark.asyncio
async def test_deleting_unknown_path_is_a_no_op(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()
    before = collector.aggregate.snapshot()

    collector.enqueue("never-existed.md")
    await collector.drain_all()

    assert collector.aggregate.snapshot() == before


@pytest.mark.asyncio
async def test_unchanged_documents_are_served_from_cache(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()
    before = collector.aggregate.snapshot()
    reads = list(vault.read_calls)

    collector.enqueue("a.md")
    collector.enqueue("img.png")
    await collector.drain_all()

    assert collector.aggregate.snapshot() == before
    assert vault.read_calls == reads
    assert collector.cache.hits == 2


@pytest.mark.asyncio
async def test_touch_recomputes_without_double_counting(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()
    before = collector.aggregate.snapshot()

    vault.touch("a.md")
    collector.enqueue("a.md")
    await collector.drain_all()

    assert collector.aggregate.snapshot() == before
    assert vault.read_calls.count("a.md") == 2


@pytest.mark.asyncio
async def test_missing_metadata_skips_until_available():
    vault = InMemoryVault()
    vault.write("a.md", "one two")
    source = InMemoryMetadataSource(vault)
    source.mark_unavailable("a.md")
    collector = MetricsCollectorService(vault, source)

    collector.restart()
    await collector.drain_all()
    assert collector.aggregate.notes == 0
    assert collector.stats.documents_skipped == 1
    assert "a.md" not in collector.cache
    assert len(collector.backlog) == 0

    source.mark_available("a.md")
    collector.handle_event(FileEvent(FileEventType.METADATA_RESOLVED, "a.md"))
    await collector.drain_all()
    assert collector.aggregate.notes == 1
    assert collector.aggregate.words == 2


@pytest.mark.asyncio
async def test_attachments_do_not_need_metadata():
    vault = InMemoryVault()
    vault.write("img.png", size=10)
    source = InMemoryMetadataSource(vault)
    collector = MetricsCollectorService(vault, source)

    collector.restart()
    await collector.drain_all()

    assert collector.aggregate.attachments == 1
    assert source.calls == []


@pytest.mark.asyncio
async def test_read_failure_counts_note_without_words():
    vault = InMemoryVault()
    vault.write("a.md", "one two [[x]]")
    vault.fail_reads("a.md")
    collector = make_collector(vault)

    collector.restart()
    await collector.drain_all()

    assert collector.aggregate.notes == 1
    assert collector.aggregate.links == 1
    assert collector.aggregate.words == 0


class ExplodingMetadataSource(InMemoryMetadataSource):
    def get_metadata(self, document):
        if document.path == "bad.md":
            raise RuntimeError("corrupt note")
        return super().get_metadata(document)


@pytest.mark.asyncio
async def test_one_failing_document_does_not_affect_others():
    vault = InMemoryVault()
    vault.write("bad.md", "x")
    vault.write("good.md", "one two")
    collector = MetricsCollectorService(vault, ExplodingMetadataSource(vault))

    collector.restart()
    await collector.drain_all()

    assert collector.aggregate.notes == 1
    assert collector.aggregate.words == 2
    assert collector.stats.errors == 1
    assert len(collector.backlog) == 0


@pytest.mark.asyncio
async def test_exclusion_uses_first_path_segment():
    vault = InMemoryVault()
    vault.write("private/x.md", "secret")
    vault.write("privately/y.md", "one")
    vault.write("public/private/z.md", "two")
    collector = make_collector(vault, exclude_directories=" private , ")

    collector.restart()
    await collector.drain_all()

    assert collector.is_excluded("private/x.md")
    assert not collector.is_excluded("privately/y.md")
    assert not collector.is_excluded("public/private/z.md")
    assert collector.aggregate.notes == 2
    assert collector.stats.documents_excluded == 1


@pytest.mark.asyncio
async def test_exclusion_change_at_runtime_requeues_affected_paths():
    vault = InMemoryVault()
    vault.write("private/x.md", "secret words")
    vault.write("public/y.md", "one")
    collector = make_collector(vault)

    await collector.start()
    try:
        await collector.drain_all()
        assert collector.aggregate.notes == 2

        collector.set_exclude_directories("private")
        assert "private/x.md" in collector.backlog
        await collector.drain_all()
        assert collector.aggregate.notes == 1
        assert collector.aggregate.words == 1

        collector.set_exclude_directories("")
        await collector.drain_all()
        assert collector.aggregate.notes == 2
    finally:
        await collector.stop()


class CountingVault(InMemoryVault):
    def __init__(self):
        super().__init__()
        self.list_calls = 0

    def list_files(self):
        self.list_calls += 1
        return super().list_files()


@pytest.mark.asyncio
async def test_exclusion_change_does_not_list_the_vault():
    vault = CountingVault()
    vault.write("private/x.md", "secret words")
    vault.write("public/y.md", "one")
    collector = make_collector(vault, exclude_directories="private")

    await collector.start()
    try:
        await collector.drain_all()
        assert collector.aggregate.notes == 1
        listed = vault.list_calls

        collector.set_exclude_directories("")
        assert vault.list_calls == listed
        assert "private/x.md" in collector.backlog

        await collector.drain_all()
        assert collector.aggregate.notes == 2
        assert collector.aggregate.words == 3
    finally:
        await collector.stop()


@pytest.mark.asyncio
async def test_batches_are_bounded():
    vault = InMemoryVault()
    for i in range(20):
        vault.write(f"{i:02}.png", size=1)
    collector = make_collector(vault, batch_size=8)
    collector.restart()

    assert await collector.process_backlog() == 8
    assert len(collector.backlog) == 12
    assert collector.aggregate.files == 8


class SlowVault(InMemoryVault):
    def __init__(self):
        super().__init__()
        self.in_flight = 0
        self.max_in_flight = 0

    async def read(self, document):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().read(document)
        finally:
            self.in_flight -= 1


@pytest.mark.asyncio
async def test_concurrency_within_a_batch_is_bounded():
    vault = SlowVault()
    for i in range(6):
        vault.write(f"{i}.md", "word")
    collector = make_collector(vault, batch_size=8, concurrency=2)

    collector.restart()
    await collector.drain_all()

    assert collector.aggregate.words == 6
    assert vault.max_in_flight <= 2


@pytest.mark.asyncio
async def test_re_enqueue_while_processing_is_not_lost():
    vault = SlowVault()
    vault.write("a.md", "one")
    collector = make_collector(vault)
    collector.restart()

    drain = asyncio.create_task(collector.process_backlog())
    await asyncio.sleep(0.005)
    vault.write("a.md", "one two three")
    collector.enqueue("a.md")
    await drain

    assert "a.md" in collector.backlog
    await collector.drain_all()
    assert collector.aggregate.words == 3


@pytest.mark.asyncio
async def test_restart_recomputes_from_scratch(vault):
    collector = make_collector(vault)
    collector.restart()
    await collector.drain_all()
    expected = collector.aggregate.snapshot()

    collector.restart()
    assert collector.aggregate.files == 0
    assert len(collector.cache) == 0
    await collector.drain_all()

    assert collector.aggregate.snapshot() == expected


def test_aggregate_matches_fresh_measurement_after_changes(vault):
    async def apply_changes() -> VaultMetrics:
        collector = make_collector(vault)
        collector.restart()
        await collector.drain_all()

        vault.write("c.md", "#tag new note [[a]]")
        vault.write("a.md", "rewritten")
        vault.rename("img.png", "assets/img.png")
        vault.delete("b.md")
        collector.enqueue_many(["c.md", "a.md", "assets/img.png", "img.png", "b.md"])
        await collector.drain_all()
        return collector.aggregate.snapshot()

    incremental = asyncio.run(apply_changes())

    assert incremental == fresh_totals(vault)


class TestSettings:
    def test_invalid_batch_size(self, vault):
        collector = make_collector(vault)
        with pytest.raises(ValueError):
            collector.batch_size = 0

    def test_invalid_max_file_size(self, vault):
        collector = make_collector(vault)
        with pytest.raises(ValueError):
            collector.max_file_size = -1

    def test_concurrency_defaults_to_batch_size(self, vault):
        collector = make_collector(vault, batch_size=4)
        assert collector.concurrency == 4
        collector.concurrency = 2
        assert collector.concurrency == 2

    def test_set_exclude_directories_is_chainable(self, vault):
        collector = make_collector(vault)
        assert collector.set_exclude_directories("a, b") is collector
        assert collector.excluded_directories == frozenset({"a", "b"})

    @pytest.mark.parametrize(
        "name, value", [("batch_size", 0), ("max_file_size", -1), ("concurrency", 0)]
    )
    def test_config_values_are_checked_on_construction(self, vault, name, value):
        config = CollectorConfig()
        setattr(config, name, value)
        with pytest.raises(ValueError):
            MetricsCollectorService(vault, InMemoryMetadataSource(vault), config=config)

    @pytest.mark.asyncio
    async def test_environment_settings_reach_the_collector(self, vault, monkeypatch):
        monkeypatch.setenv("VAULTSTATS_COLLECTOR_BATCH_SIZE", "2")
        config = load_config(apply_env=True).collector
        collector = MetricsCollectorService(vault, InMemoryMetadataSource(vault), config=config)
        collector.restart()

        assert collector.batch_size == 2
        assert await collector.process_backlog() == 2
        await asyncio.wait_for(collector.drain_all(), timeout=2)
        assert collector.aggregate.files == 3

    def test_zero_batch_size_from_environment_is_rejected(self, monkeypatch):
        monkeypatch.setenv("VAULTSTATS_COLLECTOR_BATCH_SIZE", "0")
        with pytest.raises(ValueError):
            load_config()
