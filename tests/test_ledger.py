"""Tests for the ledger store, baseline ledger and baseline index."""

import json
import sqlite3
from unittest.mock import Mock

import pytest

from src.ledger.baseline_ledger import BaselineIndex, BaselineLedger
from src.ledger.store import LedgerStore
from src.models.config import LedgerConfig


class TestLedgerStore:
    """Tests for LedgerStore connection lifecycle and records."""

    def test_connects_lazily(self, persistent_store):
        assert persistent_store.is_open is False
        assert not persistent_store.path.exists()
        assert persistent_store.connection is not None
        assert persistent_store.is_open is True
        assert persistent_store.path.exists()

    def test_connection_reused(self, persistent_store):
        assert persistent_store.connection is persistent_store.connection

    def test_close_is_idempotent(self, persistent_store):
        persistent_store.insert_baseline("X/desktop")
        persistent_store.close()
        persistent_store.close()
        assert persistent_store.is_open is False

    def test_reconnects_after_close(self, persistent_store):
        persistent_store.insert_baseline("X/desktop")
        persistent_store.close()
        persistent_store.insert_baseline("Y/desktop")
        assert persistent_store.is_open is True
        assert len(persistent_store.baseline_records()) == 2

    def test_context_manager_closes(self, tmp_path):
        with LedgerStore(tmp_path / "visual.db") as store:
            store.insert_baseline("X/desktop")
            assert store.is_open
        assert store.is_open is False

    def test_schema_tables(self, persistent_store):
        rows = persistent_store.connection.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        ).fetchall()
        tables = {row["name"] for row in rows}
        assert {"visual_matrix", "baseline"} <= tables

    def test_insert_returns_row_id(self, persistent_store):
        first = persistent_store.insert_verdict("X/desktop", "desktop", "passed", "")
        second = persistent_store.insert_verdict("X/desktop", "desktop", "failed", "https://cdn/x.png")
        assert second == first + 1

    def test_verdicts_newest_first(self, persistent_store):
        persistent_store.insert_verdict("A/desktop", "desktop", "passed", "")
        persistent_store.insert_verdict("B/desktop", "desktop", "failed", "https://cdn/b.png")
        records = persistent_store.verdict_records()
        assert [r.identity_key for r in records] == ["B/desktop", "A/desktop"]
        assert records[0].status == "failed"
        assert records[0].image_url == "https://cdn/b.png"
        assert records[0].created_at

    def test_baselines_newest_first(self, persistent_store):
        persistent_store.insert_baseline("A/desktop")
        persistent_store.insert_baseline("B/desktop")
        assert [r.identity_key for r in persistent_store.baseline_records()] == ["B/desktop", "A/desktop"]

    def test_insert_error_propagates(self, persistent_store):
        persistent_store.connection.execute("DROP TABLE visual_matrix")
        with pytest.raises(sqlite3.Error):
            persistent_store.insert_verdict("X/desktop", "desktop", "passed", "")

    def test_disabled_store_is_noop(self, disabled_store):
        assert disabled_store.connection is None
        assert disabled_store.insert_baseline("X/desktop") is None
        assert disabled_store.insert_verdict("X/desktop", "desktop", "passed", "") is None
        assert disabled_store.baseline_records() == []
        assert disabled_store.verdict_records() == []
        assert not disabled_store.path.exists()

    def test_from_config(self, tmp_path):
        config = LedgerConfig(ci=True, db_file=str(tmp_path / "visual.db"))
        store = LedgerStore.from_config(config, "mobile")
        assert store.enabled is True
        assert store.path == config.resolve_db_path("mobile")

    def test_from_config_local(self, tmp_path):
        store = LedgerStore.from_config(LedgerConfig(ci=False, db_file=str(tmp_path / "v.db")), "desktop")
        assert store.enabled is False

    def test_teardown_hooks_installed_once(self, persistent_store, monkeypatch):
        registered = []
        monkeypatch.setattr("atexit.register", registered.append)
        monkeypatch.setattr("signal.signal", Mock())
        persistent_store.install_teardown_hooks()
        persistent_store.install_teardown_hooks()
        assert registered == [persistent_store.close]

    def test_signal_handler_closes_and_chains(self, persistent_store):
        previous = Mock()
        handler = persistent_store._make_signal_handler(previous)
        persistent_store.insert_baseline("X/desktop")
        handler(15, None)
        assert persistent_store.is_open is False
        previous.assert_called_once_with(15, None)

    def test_signal_during_locked_query_does_not_deadlock(self, persistent_store):
        previous = Mock()
        handler = persistent_store._make_signal_handler(previous)
        persistent_store.insert_baseline("X/desktop")
        # Handler runs on the main thread while a query holds the lock.
        with persistent_store._lock:
            handler(2, None)
        assert persistent_store.is_open is False
        previous.assert_called_once_with(2, None)


class TestBaselineIndex:
    """Tests for BaselineIndex."""

    def test_missing_file(self, tmp_path):
        assert BaselineIndex(tmp_path / "baseline.json").load() == []

    def test_add_deduplicates(self, tmp_path):
        index = BaselineIndex(tmp_path / "baseline.json")
        assert index.add("screenshots/baseline/desktop/X-baseline.png") is True
        assert index.add("screenshots/baseline/desktop/X-baseline.png") is False
        assert json.loads(index.path.read_text()) == ["screenshots/baseline/desktop/X-baseline.png"]

    def test_invalid_json_starts_empty(self, tmp_path):
        path = tmp_path / "baseline.json"
        path.write_text("{not json")
        index = BaselineIndex(path)
        assert index.load() == []
        index.add("a.png")
        assert json.loads(path.read_text()) == ["a.png"]

    def test_non_list_starts_empty(self, tmp_path):
        path = tmp_path / "baseline.json"
        path.write_text('{"a": 1}')
        assert BaselineIndex(path).load() == []

    def test_empty_file(self, tmp_path):
        path = tmp_path / "baseline.json"
        path.write_text("")
        assert BaselineIndex(path).load() == []


class TestBaselineLedger:
    """Tests for BaselineLedger."""

    def test_first_capture_creates_baseline(self, persistent_ledger, identity, png_factory):
        current = png_factory("capture.png")
        assert persistent_ledger.has_baseline(identity) is False

        dest = persistent_ledger.create_baseline(identity, current)

        assert dest == identity.baseline_path
        assert dest.read_bytes() == current.read_bytes()
        assert persistent_ledger.has_baseline(identity) is True
        records = persistent_ledger.store.baseline_records()
        assert [r.identity_key for r in records] == ["X/desktop"]
        assert persistent_ledger.index.load() == [dest.as_posix()]

    def test_baseline_overwritten(self, persistent_ledger, identity, png_factory):
        persistent_ledger.create_baseline(identity, png_factory("first.png"))
        second = png_factory("second.png", color=(0, 0, 0))
        persistent_ledger.create_baseline(identity, second)
        assert identity.baseline_path.read_bytes() == second.read_bytes()
        assert len(persistent_ledger.store.baseline_records()) == 2
        assert len(persistent_ledger.index.load()) == 1

    def test_local_context_writes_file_only(self, disabled_store, identity, png_factory, tmp_path):
        ledger = BaselineLedger(disabled_store, index=BaselineIndex(tmp_path / "baseline.json"))
        ledger.create_baseline(identity, png_factory("capture.png"))
        assert identity.baseline_path.exists()
        assert disabled_store.baseline_records() == []
        assert ledger.index.load() == [identity.baseline_path.as_posix()]

    def test_baseline_record_failure_is_logged(self, identity, png_factory):
        store = Mock(enabled=True)
        store.insert_baseline.side_effect = sqlite3.OperationalError("database is locked")
        dest = BaselineLedger(store).create_baseline(identity, png_factory("capture.png"))
        assert dest.exists()

    def test_failed_verdict_carries_diff_url(self, persistent_ledger, identity):
        url = persistent_ledger.record_verdict(identity, "failed", identity.diff_path)
        assert url == "https://cdn.example.com/visual_test/diff/desktop/X-diff.png"
        record = persistent_ledger.store.verdict_records()[0]
        assert record.identity_key == "X/desktop"
        assert record.device == "desktop"
        assert record.status == "failed"
        assert record.image_url == url

    def test_passed_verdict_has_empty_url(self, persistent_ledger, identity):
        assert persistent_ledger.record_verdict(identity, "passed", identity.diff_path) == ""
        assert persistent_ledger.store.verdict_records()[0].image_url == ""

    def test_invalid_status(self, persistent_ledger, identity):
        with pytest.raises(ValueError, match="Invalid test status: broken"):
            persistent_ledger.record_verdict(identity, "broken")
        assert persistent_ledger.store.verdict_records() == []

    def test_verdict_store_error_propagates(self, identity):
        store = Mock(enabled=True)
        store.insert_verdict.side_effect = sqlite3.OperationalError("disk I/O error")
        with pytest.raises(sqlite3.OperationalError):
            BaselineLedger(store).record_verdict(identity, "passed")

    def test_image_url_without_public_prefix(self, disabled_store, identity):
        ledger = BaselineLedger(disabled_store)
        assert ledger.image_url_for(identity.diff_path, identity.root) == "diff/desktop/X-diff.png"
