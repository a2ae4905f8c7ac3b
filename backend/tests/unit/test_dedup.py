"""
Tests for the event deduplicator.
"""

import pytest

from settlement.services.dedup import EventDeduplicator


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.mark.unit
class TestEventDeduplicator:
    """Tests for duplicate detection within the window."""

    def test_first_sight_is_not_duplicate(self):
        """Test that a new event id is recorded and let through."""
        dedup = EventDeduplicator(clock=FakeClock())
        assert dedup.is_duplicate("evt_1") is False
        assert len(dedup) == 1

    def test_second_sight_within_window_is_duplicate(self):
        """Test that a redelivery inside the window is dropped."""
        clock = FakeClock()
        dedup = EventDeduplicator(window_seconds=300, clock=clock)
        dedup.is_duplicate("evt_1")
        clock.advance(299)
        assert dedup.is_duplicate("evt_1") is True

    def test_replay_after_window_is_processed_again(self):
        """Test that an id older than the window counts as new."""
        clock = FakeClock()
        dedup = EventDeduplicator(window_seconds=300, clock=clock)
        dedup.is_duplicate("evt_1")
        clock.advance(301)
        assert dedup.is_duplicate("evt_1") is False

    def test_forget_allows_redelivery(self):
        """Test that a forgotten id is processed on the next delivery."""
        dedup = EventDeduplicator(clock=FakeClock())
        dedup.is_duplicate("evt_1")
        dedup.forget("evt_1")
        assert dedup.is_duplicate("evt_1") is False

    def test_forget_unknown_id_is_harmless(self):
        """Test forgetting an id that was never seen."""
        dedup = EventDeduplicator(clock=FakeClock())
        dedup.forget("evt_missing")
        assert len(dedup) == 0

    def test_eviction_past_high_water_drops_expired_only(self):
        """Test opportunistic eviction keeps ids still inside the window."""
        clock = FakeClock()
        dedup = EventDeduplicator(window_seconds=60, high_water=3, clock=clock)
        dedup.is_duplicate("old_1")
        dedup.is_duplicate("old_2")
        clock.advance(61)
        dedup.is_duplicate("new_1")
        assert len(dedup) == 3

        dedup.is_duplicate("new_2")

        assert len(dedup) == 2
        assert dedup.is_duplicate("new_1") is True
        assert dedup.is_duplicate("new_2") is True

    def test_instances_do_not_share_state(self):
        """Test that two deduplicators are independent."""
        a = EventDeduplicator(clock=FakeClock())
        b = EventDeduplicator(clock=FakeClock())
        a.is_duplicate("evt_1")
        assert b.is_duplicate("evt_1") is False
