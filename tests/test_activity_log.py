"""
Unit tests for the activity log.

Tests sidekick/observability/activity_log.py.
"""

import json

from sidekick.observability import (
    ActivityLog,
    EventType,
    LevelUpEvent,
    ResourceEvent,
    RollEvent,
    event_from_dict,
)


class TestActivityLog:
    """Tests for recording and querying events."""

    def test_sequence_numbers(self):
        log = ActivityLog()
        first = log.log_roll("1d6", [3], 3, "1d6 [3] = 3")
        second = log.log_resource("mana", "spend", 2, 5, 3)
        assert (first.sequence_number, second.sequence_number) == (1, 2)
        assert first.event_type == EventType.ROLL
        assert second.event_type == EventType.RESOURCE

    def test_limit_drops_oldest(self):
        log = ActivityLog(limit=3)
        for value in range(1, 6):
            log.log_roll("1d6", [value], value, f"1d6 [{value}] = {value}")
        assert log.get_event_count() == 3
        assert [e.total for e in log.get_rolls()] == [3, 4, 5]
        assert log.get_events()[0].sequence_number == 3

    def test_zero_limit_is_unbounded(self):
        log = ActivityLog(limit=0)
        for _ in range(150):
            log.log_rest("turn_end")
        assert log.get_event_count() == 150

    def test_filter_by_type_and_sequence(self):
        log = ActivityLog()
        log.log_roll("1d6", [1], 1, "1d6 [1] = 1")
        log.log_selection("commander-battlefield-choice", "add", "combat-dice-bonus")
        log.log_roll("1d8", [8], 8, "1d8 [8] = 8", is_critical=True)
        assert len(log.get_events(EventType.ROLL)) == 2
        assert [e.sequence_number for e in log.get_events(since_sequence=1)] == [2, 3]

    def test_clear(self):
        log = ActivityLog()
        log.log_rest("safe_rest")
        log.clear()
        assert log.get_event_count() == 0
        assert log.log_rest("safe_rest").sequence_number == 1


class TestSubscribers:
    """Tests for event subscribers."""

    def test_subscriber_receives_events(self):
        log = ActivityLog()
        received = []
        log.subscribe(received.append)
        event = log.log_level_up(2, 3, hp_gained=6)
        assert received == [event]

    def test_unsubscribe(self):
        log = ActivityLog()
        received = []
        log.subscribe(received.append)
        log.unsubscribe(received.append)
        log.log_rest("turn_end")
        assert received == []

    def test_failing_subscriber_does_not_break_logging(self):
        log = ActivityLog()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        log.subscribe(broken)
        log.subscribe(received.append)
        log.log_rest("turn_end")
        assert log.get_event_count() == 1
        assert len(received) == 1


class TestSerialization:
    """Tests for exporting and restoring the log."""

    def test_export_json(self):
        log = ActivityLog(limit=10)
        log.log_roll("2d6+5", [3, 4], 12, "2d6 [3, 4] + 5 = 12", reason="Attack")
        data = json.loads(log.export_json())
        assert data["limit"] == 10
        assert data["sequence"] == 1
        assert data["events"][0]["event_type"] == "roll"
        assert data["events"][0]["reason"] == "Attack"

    def test_round_trip(self):
        log = ActivityLog()
        log.log_roll("1d20", [20], 20, "1d20 [20] = 20", is_critical=True)
        log.log_resource("mana", "spend", 2, 5, 3, character_id="abc")
        log.log_level_up(1, 2, hp_gained=4)
        restored = ActivityLog.from_dict(log.to_dict())
        events = restored.get_events()
        assert [type(e) for e in events] == [RollEvent, ResourceEvent, LevelUpEvent]
        assert events[1].character_id == "abc"
        assert events[0].is_critical
        assert restored.log_rest("turn_end").sequence_number == 4

    def test_event_from_dict(self):
        event = ResourceEvent(resource_id="mana", action="restore", amount=1, old_value=2, new_value=3)
        restored = event_from_dict(event.to_dict())
        assert isinstance(restored, ResourceEvent)
        assert restored.new_value == 3

    def test_format_log(self):
        log = ActivityLog()
        log.log_roll("1d6", [3], 3, "1d6 [3] = 3", reason="Hunter's Mark")
        log.log_resource("mana", "spend", 2, 5, 3)
        assert log.format_log() == (
            "#1 [ROLL] 1d6 [3] = 3 (Hunter's Mark)\n"
            "#2 [RESOURCE] spend 2 mana: 5 -> 3"
        )
        assert log.format_log(max_events=1) == "#2 [RESOURCE] spend 2 mana: 5 -> 3"
