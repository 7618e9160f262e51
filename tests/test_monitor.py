"""Tests for LogMonitor wiring: tail → classify → store → publish."""

from conftest import wait_for
from log_monitor.config import Config
from log_monitor.hub import FILE_ADDED, FILE_REMOVED, NEW_LOG_ENTRY
from log_monitor.monitor import LogMonitor
from log_monitor.models import Severity
from log_monitor.tailer import FileTailer


def _drain(sub, timeout=0.05):
    messages = []
    while True:
        message = sub.get(timeout=timeout)
        if message is None:
            return messages
        messages.append(message)


class TestIngest:
    def test_append_then_publish(self, monitor):
        _, sub = monitor.hub.subscribe()
        entry = monitor.ingest_line("ERROR: disk full", "/var/log/app.log")

        assert entry.filename == "app.log"
        assert entry.severity is Severity.ERROR
        assert monitor.store.page(0, 1) == [entry]
        assert sub.get(timeout=0.1) == (NEW_LOG_ENTRY, entry.to_dict())

    def test_pushed_entry_is_queryable(self, monitor):
        _, sub = monitor.hub.subscribe()
        monitor.ingest_line("hello", "/var/log/app.log")
        _, payload = sub.get(timeout=0.1)
        result = monitor.query_engine.query(None, page=1, limit=10)
        assert result.entries[0].id == payload["id"]

    def test_store_capacity_from_config(self, log_dir):
        m = LogMonitor(Config(log_dir=str(log_dir), max_entries=3))
        for i in range(10):
            m.ingest_line(f"line {i}", "a.log")
        assert [e.content for e in m.store.snapshot()] == ["line 9", "line 8", "line 7"]


class TestSnapshot:
    def test_snapshot_shape(self, monitor):
        for i in range(60):
            monitor.ingest_line(f"line {i}", "a.log")
        snapshot, _ = monitor.hub.subscribe()
        assert len(snapshot["entries"]) == 50
        assert snapshot["entries"][0]["content"] == "line 59"
        assert snapshot["files"] == []
        assert snapshot["stats"] == {"totalFiles": 0, "totalEntries": 60, "connectedClients": 1}


class TestLifecycle:
    def test_end_to_end_tailing(self, monitor, log_dir):
        path = log_dir / "app.log"
        path.write_text("history that is not replayed\n")
        monitor.start()
        _, sub = monitor.hub.subscribe()

        assert [f.name for f in monitor.files()] == ["app.log"]

        with open(path, "a") as f:
            f.write("INFO started\nWARN slow request\nERROR crashed\n")

        assert wait_for(lambda: len(monitor.store) == 3)
        assert [e.content for e in monitor.store.snapshot()] == ["ERROR crashed", "WARN slow request", "INFO started"]
        contents = [p["content"] for event, p in _drain(sub) if event == NEW_LOG_ENTRY]
        assert contents == ["INFO started", "WARN slow request", "ERROR crashed"]

    def test_file_events_are_broadcast(self, monitor, log_dir):
        monitor.start()
        _, sub = monitor.hub.subscribe()

        path = log_dir / "late.log"
        path.write_text("")
        assert wait_for(lambda: [f.name for f in monitor.files()] == ["late.log"])
        path.unlink()
        assert wait_for(lambda: monitor.files() == [])

        events = [(event, payload["filename"]) for event, payload in _drain(sub)]
        assert (FILE_ADDED, "late.log") in events
        assert (FILE_REMOVED, "late.log") in events

    def test_file_added_reports_inactive_when_tail_fails(self, monitor, log_dir, monkeypatch):
        def refuse(self, seek_end):
            raise PermissionError("denied")

        monkeypatch.setattr(FileTailer, "_open", refuse)
        _, sub = monitor.hub.subscribe()
        path = log_dir / "locked.log"
        path.write_text("")

        assert monitor.watcher.add_file(str(path))
        assert _drain(sub) == [(FILE_ADDED, {"filename": "locked.log", "path": str(path), "isActive": False})]
        assert monitor.files()[0].is_active is False

    def test_stop_releases_subscribers_and_tailers(self, monitor, log_dir):
        (log_dir / "app.log").write_text("")
        monitor.start()
        assert monitor.running
        _, sub = monitor.hub.subscribe()
        tailer = monitor.watcher.tailer_for(str(log_dir / "app.log"))

        monitor.stop()
        assert not monitor.running
        assert sub.closed
        assert monitor.hub.subscriber_count == 0
        assert tailer.state.value == "stopped"

    def test_stats(self, monitor, log_dir):
        (log_dir / "app.log").write_text("")
        monitor.start()
        monitor.ingest_line("ERROR boom", str(log_dir / "app.log"))
        stats = monitor.stats()
        assert stats["totalFiles"] == 1
        assert stats["fileStats"]["app.log"]["entries"] == 1
        assert stats["levelStats"]["error"] == 1
