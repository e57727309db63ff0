"""
Tests for the ingestion cycle.

Most tests run against the in-memory store from conftest; the scenario tests
also run against the filesystem store with real file mtimes.
"""

import gzip
import os
from datetime import UTC, datetime
from unittest.mock import patch

from bucketfeed.exceptions import StoreError
from bucketfeed.ingest.checkpoint import EPOCH, CheckpointStore
from bucketfeed.ingest.codecs import JsonLinesCodec, MultilineCodec
from bucketfeed.ingest.sink import CallbackSink, ListSink, RecordDecorator
from bucketfeed.stores.filesystem import FilesystemObjectStore


def ts(seconds):
    return datetime.fromtimestamp(seconds, tz=UTC)


def messages(sink):
    return [r["message"] for r in sink.records]


def keys(sink):
    return [r["@metadata"]["key"] for r in sink.records]


class TestListNewObjects:
    """Tests for discovery, filtering and ordering."""

    def test_sorted_by_last_modified(self, memory_store, make_cycle):
        memory_store.put("logs", "c.log", b"", 300)
        memory_store.put("logs", "a.log", b"", 100)
        memory_store.put("logs", "b.log", b"", 200)
        names = [o.name for o in make_cycle(memory_store).list_new_objects()]
        assert names == ["a.log", "b.log", "c.log"]

    def test_ties_keep_listing_order(self, memory_store, make_cycle):
        memory_store.put("logs", "z.log", b"", 100)
        memory_store.put("logs", "a.log", b"", 100)
        memory_store.put("logs", "m.log", b"", 50)
        names = [o.name for o in make_cycle(memory_store).list_new_objects()]
        assert names == ["m.log", "z.log", "a.log"]

    def test_only_newer_than_checkpoint(self, memory_store, make_cycle, tmp_path):
        memory_store.put("logs", "old.log", b"", 100)
        memory_store.put("logs", "same.log", b"", 200)
        memory_store.put("logs", "new.log", b"", 300)
        CheckpointStore(tmp_path / "sincedb").advance(ts(200))
        names = [o.name for o in make_cycle(memory_store).list_new_objects()]
        assert names == ["new.log"]

    def test_prefix_restricts_listing(self, memory_store, make_cycle):
        memory_store.put("logs", "app/a.log", b"", 100)
        memory_store.put("logs", "web/b.log", b"", 100)
        names = [o.name for o in make_cycle(memory_store, prefix="app/").list_new_objects()]
        assert names == ["app/a.log"]


class TestFilterCorrectness:
    """Filtered objects are never processed."""

    def test_prefix_marker_never_processed(self, memory_store, make_cycle):
        memory_store.put("logs", "app/", b"", 100)
        memory_store.put("logs", "app/a.log", b"x\n", 200)
        sink = ListSink()
        summary = make_cycle(memory_store, prefix="app/").run(sink)
        assert summary.processed == ["app/a.log"]
        assert ("download", "logs", "app/") not in memory_store.calls

    def test_excluded_never_processed(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"x\n", 100)
        memory_store.put("logs", "a.log.tmp", b"y\n", 200)
        sink = ListSink()
        make_cycle(memory_store, exclude_pattern=r"\.tmp$").run(sink)
        assert keys(sink) == ["a.log"]

    def test_own_backups_never_reprocessed(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"x\n", 100)
        cycle = make_cycle(memory_store, backup_bucket="logs", backup_prefix="done/")

        sink = ListSink()
        cycle.run(sink)
        assert "done/a.log" in memory_store.buckets["logs"]

        # The copy is newer than the checkpoint but must still be skipped
        memory_store.buckets["logs"]["done/a.log"] = (b"x\n", 500)
        second = ListSink()
        summary = cycle.run(second)
        assert summary.processed == []
        assert second.records == []


class TestScenario:
    """Two objects, one plain and one gzip, checkpoint initially absent."""

    def _run(self, store, make_cycle, staging_dir, tmp_path, bucket="logs"):
        sink = ListSink()
        cycle = make_cycle(store, bucket=bucket, delete=True)
        summary = cycle.run(sink)

        assert keys(sink) == ["a.log", "a.log", "b.log.gz", "b.log.gz", "b.log.gz"]
        assert messages(sink) == ["a1", "a2", "b1", "b2", "b3"]
        assert summary.processed == ["a.log", "b.log.gz"]
        assert summary.records == 5
        assert CheckpointStore(tmp_path / "sincedb").read() == ts(200)
        assert list(staging_dir.iterdir()) == []
        return summary

    def test_memory_store(self, memory_store, make_cycle, staging_dir, tmp_path):
        memory_store.put("logs", "b.log.gz", gzip.compress(b"b1\nb2\nb3\n"), 200)
        memory_store.put("logs", "a.log", b"a1\na2\n", 100)

        self._run(memory_store, make_cycle, staging_dir, tmp_path)
        assert memory_store.buckets["logs"] == {}
        deletes = [c for c in memory_store.calls if c[0] == "delete"]
        assert deletes == [("delete", "logs", "a.log"), ("delete", "logs", "b.log.gz")]

    def test_filesystem_store(self, make_cycle, staging_dir, tmp_path):
        root = tmp_path / "buckets"
        bucket = root / "logs"
        bucket.mkdir(parents=True)
        (bucket / "a.log").write_bytes(b"a1\na2\n")
        (bucket / "b.log.gz").write_bytes(gzip.compress(b"b1\nb2\nb3\n"))
        os.utime(bucket / "a.log", (100, 100))
        os.utime(bucket / "b.log.gz", (200, 200))

        store = FilesystemObjectStore("local", {"root_path": str(root)})
        self._run(store, make_cycle, staging_dir, tmp_path)
        assert list(bucket.iterdir()) == []


class TestOrderingAndRecovery:
    """Checkpoint advance and restart behaviour."""

    def test_restart_processes_only_remaining(self, memory_store, make_cycle, tmp_path):
        for name, t in (("t1.log", 100), ("t2.log", 200), ("t3.log", 300)):
            memory_store.put("logs", name, f"{name}-1\n{name}-2\n".encode(), t)

        first = make_cycle(memory_store)

        def stop_on_t3(record):
            if record["@metadata"]["key"] == "t3.log":
                first.stop_token.set()

        summary = first.run(CallbackSink(stop_on_t3))
        assert summary.processed == ["t1.log", "t2.log"]
        assert summary.cancelled
        assert CheckpointStore(tmp_path / "sincedb").read() == ts(200)

        # Fresh process: new cycle, new checkpoint instance, clear token
        sink = ListSink()
        summary = make_cycle(memory_store).run(sink)
        assert summary.processed == ["t3.log"]
        assert keys(sink) == ["t3.log", "t3.log"]

    def test_reprocessing_after_reset_is_identical(self, memory_store, make_cycle, tmp_path):
        memory_store.put("logs", "a.log", b"one\ntwo\n", 100)
        memory_store.put("logs", "b.log.gz", gzip.compress(b"three\n"), 200)

        first = ListSink()
        make_cycle(memory_store).run(first)
        CheckpointStore(tmp_path / "sincedb").advance(EPOCH)
        second = ListSink()
        make_cycle(memory_store).run(second)

        assert messages(first) == messages(second) == ["one", "two", "three"]

    def test_second_cycle_finds_nothing(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"x\n", 100)
        cycle = make_cycle(memory_store)
        cycle.run(ListSink())
        sink = ListSink()
        summary = cycle.run(sink)
        assert summary.processed == []
        assert sink.records == []

    def test_new_objects_picked_up_next_cycle(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"x\n", 100)
        cycle = make_cycle(memory_store)
        cycle.run(ListSink())
        memory_store.put("logs", "b.log", b"y\n", 150)
        sink = ListSink()
        cycle.run(sink)
        assert keys(sink) == ["b.log"]

    def test_same_timestamp_group_advances_once(self, memory_store, make_cycle, tmp_path):
        memory_store.put("logs", "a.log", b"x\n", 100)
        memory_store.put("logs", "b.log", b"y\n", 100)
        cycle = make_cycle(memory_store)
        with patch.object(cycle.checkpoint, "advance", wraps=cycle.checkpoint.advance) as advance:
            cycle.run(ListSink())
        advance.assert_called_once_with(ts(100))

    def test_stop_inside_same_timestamp_group_keeps_sibling(self, memory_store, make_cycle, tmp_path):
        memory_store.put("logs", "a.log", b"x\n", 100)
        memory_store.put("logs", "b.log", b"y\n", 100)
        cycle = make_cycle(memory_store)

        def stop_after_first(record):
            cycle.stop_token.set()

        summary = cycle.run(CallbackSink(stop_after_first))
        assert summary.processed == ["a.log"]
        assert CheckpointStore(tmp_path / "sincedb").read() == EPOCH

        sink = ListSink()
        make_cycle(memory_store).run(sink)
        assert "b.log" in keys(sink)


class TestCancellation:
    """Stop requests between and within objects."""

    def test_stop_before_cycle_processes_nothing(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"x\n", 100)
        cycle = make_cycle(memory_store)
        cycle.stop_token.set()
        summary = cycle.run(ListSink())
        assert summary.cancelled
        assert summary.processed == []
        assert not any(c[0] == "download" for c in memory_store.calls)

    def test_stop_mid_object_leaves_no_staging_and_no_checkpoint(
        self, memory_store, make_cycle, staging_dir, tmp_path
    ):
        memory_store.put("logs", "a.log", b"1\n2\n3\n4\n", 100)
        cycle = make_cycle(memory_store, delete=True)

        def stop_after_two(record):
            if record["message"] == "2":
                cycle.stop_token.set()

        sink = ListSink()
        summary = cycle.run(CallbackSink(lambda r: (sink.put(r), stop_after_two(r))))
        assert messages(sink) == ["1", "2"]
        assert summary.cancelled
        assert summary.processed == []
        assert list(staging_dir.iterdir()) == []
        assert not (tmp_path / "sincedb").exists()
        # Not archived: the original is still there
        assert "a.log" in memory_store.buckets["logs"]

    def test_interrupted_object_is_reread_from_start(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"1\n2\n3\n", 100)
        first = make_cycle(memory_store)
        first.run(CallbackSink(lambda r: first.stop_token.set()))

        sink = ListSink()
        make_cycle(memory_store).run(sink)
        assert messages(sink) == ["1", "2", "3"]

    def test_pending_multiline_state_dropped_on_stop(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"first\nsecond\n  cont\nthird\n", 100)
        memory_store.put("logs", "b.log", b"other\n", 200)
        codec = MultilineCodec()
        cycle = make_cycle(memory_store, codec=codec)
        cycle.run(CallbackSink(lambda r: cycle.stop_token.set()))
        assert list(codec.flush()) == []


class TestFailures:
    """Per-object failures are retried next cycle."""

    def test_corrupt_gzip_stops_cycle_without_advancing(self, memory_store, make_cycle, staging_dir, tmp_path):
        memory_store.put("logs", "a.log", b"ok\n", 100)
        memory_store.put("logs", "b.log.gz", b"not gzip at all", 200)
        memory_store.put("logs", "c.log", b"later\n", 300)

        sink = ListSink()
        summary = make_cycle(memory_store).run(sink)

        assert summary.processed == ["a.log"]
        assert summary.failed == "b.log.gz"
        assert "gzip" in summary.error
        assert keys(sink) == ["a.log"]
        assert CheckpointStore(tmp_path / "sincedb").read() == ts(100)
        assert list(staging_dir.iterdir()) == []

    def test_failed_object_retried_next_cycle(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b"ok\n", 100)
        cycle = make_cycle(memory_store)
        with patch.object(memory_store, "download", side_effect=StoreError("network down")):
            summary = cycle.run(ListSink())
        assert summary.failed == "a.log"

        sink = ListSink()
        summary = cycle.run(sink)
        assert summary.processed == ["a.log"]
        assert messages(sink) == ["ok"]

    def test_archival_failure_blocks_checkpoint(self, memory_store, make_cycle, staging_dir, tmp_path):
        memory_store.put("logs", "a.log", b"ok\n", 100)
        cycle = make_cycle(memory_store, backup_bucket="archive")
        with patch.object(memory_store, "copy_object", side_effect=StoreError("denied")):
            summary = cycle.run(ListSink())
        assert summary.failed == "a.log"
        assert "backup bucket copy" in summary.error
        assert cycle.checkpoint.read() == EPOCH
        assert list(staging_dir.iterdir()) == []

    def test_listing_failure_is_reported(self, memory_store, make_cycle):
        summary = make_cycle(memory_store, bucket="missing").run(ListSink())
        assert summary.processed == []
        assert summary.error is not None
        assert summary.checkpoint == EPOCH

    def test_archival_exclusivity_move_without_duplicate_delete(self, memory_store, make_cycle):
        memory_store.buckets["archive"] = {}
        memory_store.put("logs", "a.log", b"ok\n", 100)
        make_cycle(memory_store, backup_bucket="archive", backup_prefix="p/", delete=True).run(ListSink())

        deletes = [c for c in memory_store.calls if c[0] == "delete"]
        assert deletes == [("delete", "logs", "a.log")]
        assert memory_store.buckets["archive"] == {"p/a.log": (b"ok\n", 100)}
        assert memory_store.buckets["logs"] == {}

    def test_odd_decoded_fields_do_not_block_later_objects(self, memory_store, make_cycle):
        memory_store.put("logs", "a.log", b'{"tags": 5, "@metadata": "x"}\n', 100)
        memory_store.put("logs", "b.log", b'{"message": "later"}\n', 200)
        cycle = make_cycle(memory_store, codec=JsonLinesCodec(), decorator=RecordDecorator(tags=["s3"]))

        sink = ListSink()
        summary = cycle.run(sink)

        assert summary.failed is None
        assert summary.processed == ["a.log", "b.log"]
        assert sink.records[0]["tags"] == [5, "s3"]
        assert cycle.checkpoint.read() == ts(200)
