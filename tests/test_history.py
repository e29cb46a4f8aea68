"""Tests for vidfeed.history: recording, backward replay and eviction."""

import pytest

from vidfeed.history import HistoryLog


class TestRecord:

    def test_consecutive_duplicates_are_collapsed(self):
        h = HistoryLog()
        for i in [1, 1, 2, 2, 2, 1]:
            h.record(i)
        assert h.entries() == [1, 2, 1]

    def test_record_resets_cursor(self):
        h = HistoryLog()
        h.record(1)
        h.record(2)
        h.previous()
        assert h.cursor == 1
        h.record(5)
        assert h.cursor == -1

    def test_duplicate_record_still_resets_cursor(self):
        h = HistoryLog()
        h.record(3)
        h.previous()
        h.record(3)
        assert h.entries() == [3]
        assert h.cursor == -1

    def test_capacity_evicts_oldest(self):
        h = HistoryLog(capacity=3)
        for i in range(5):
            h.record(i)
        assert h.entries() == [2, 3, 4]
        assert h.previous() == 4

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            HistoryLog(capacity=0)


class TestPrevious:

    def test_empty_log_returns_none(self):
        h = HistoryLog()
        assert h.previous() is None
        assert h.cursor == -1

    def test_walks_back_then_stops(self):
        h = HistoryLog()
        for i in [4, 7, 2]:
            h.record(i)
        assert [h.previous() for _ in range(4)] == [2, 7, 4, None]
        assert h.cursor == 0

    def test_boundary_is_stable(self):
        h = HistoryLog()
        h.record(9)
        assert h.previous() == 9
        assert h.previous() is None
        assert h.previous() is None
        assert h.cursor == 0

    def test_reset(self):
        h = HistoryLog()
        h.record(1)
        h.previous()
        h.reset()
        assert len(h) == 0
        assert h.cursor == -1
