"""Tests for the retention sweeper."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from campus_notify.persistence import NotificationStore, StoreError, close_database, init_database
from campus_notify.retention import RetentionSweeper


class TestRetentionSweeper:
    """Unit tests with a mocked store."""

    def test_default_window_is_thirty_days(self):
        store = Mock(spec=NotificationStore)
        store.delete_older_than.return_value = 4

        sweeper = RetentionSweeper(store)

        assert sweeper.retention_days == 30
        assert sweeper.sweep() == 4
        store.delete_older_than.assert_called_once_with(30)

    def test_custom_window(self):
        store = Mock(spec=NotificationStore)
        store.delete_older_than.return_value = 0

        RetentionSweeper(store, retention_days=7).sweep()

        store.delete_older_than.assert_called_once_with(7)

    def test_store_error_propagates(self):
        store = Mock(spec=NotificationStore)
        store.delete_older_than.side_effect = StoreError("Failed to delete old notifications")

        with pytest.raises(StoreError):
            RetentionSweeper(store).sweep()

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            RetentionSweeper(Mock(spec=NotificationStore), retention_days=-1)

    def test_sweep_logs_completion(self, caplog):
        store = Mock(spec=NotificationStore)
        store.delete_older_than.return_value = 2

        with caplog.at_level("INFO", logger="campus_notify.retention"):
            RetentionSweeper(store).sweep()

        (record,) = [r for r in caplog.records if getattr(r, "event", None) == "retention.sweep.completed"]
        assert record.deleted_count == 2
        assert record.component == "retention"


class TestRetentionAgainstDatabase:
    """Sweeps against a real in-memory store."""

    @pytest.fixture(autouse=True)
    def database(self):
        init_database("sqlite:///:memory:")
        yield
        close_database()

    def test_sweep_removes_only_expired_notices(self):
        now = [datetime(2025, 11, 1, tzinfo=timezone.utc)]
        store = NotificationStore(clock=lambda: now[0])

        expired = store.create(1, "grade_update", "old", "m")
        now[0] += timedelta(days=10)
        fresh = store.create(1, "grade_update", "new", "m")
        now[0] += timedelta(days=25)

        sweeper = RetentionSweeper(store)
        assert sweeper.sweep() == 1
        assert sweeper.sweep() == 0
        assert store.get(expired) is None
        assert store.get(fresh) is not None
