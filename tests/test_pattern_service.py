"""
Tests for behavior pattern summaries
"""
from datetime import datetime, timedelta, timezone

import pytest

from smart_wardrobe.models.behavior import BehaviorEvent
from smart_wardrobe.services.pattern_service import (
    PatternService,
    build_pattern_report,
    decision_speed,
    engagement_ratio,
    most_active_hour,
    preferred_actions,
    session_patterns,
)

BASE = datetime(2024, 5, 1)


def make_event(action="view_clothing", hour=10, session=None, time_spent=None, created_at=None):
    return BehaviorEvent(
        id="e",
        user_id="u",
        action=action,
        target_type="clothing",
        context={"session_id": session},
        metadata={"time_spent": time_spent},
        created_at=created_at or BASE.replace(hour=hour),
    )


class TestMostActiveHour:
    def test_empty_log_defaults_to_noon(self):
        assert most_active_hour([]) == 12

    def test_mode_hour(self):
        events = [make_event(hour=9), make_event(hour=21), make_event(hour=21)]
        assert most_active_hour(events) == 21

    def test_tie_defaults_to_noon(self):
        events = [make_event(hour=9), make_event(hour=21)]
        assert most_active_hour(events) == 12

    def test_aware_timestamps_use_utc(self):
        plus_two = timezone(timedelta(hours=2))
        events = [make_event(created_at=datetime(2024, 5, 1, 10, tzinfo=plus_two)) for _ in range(2)]
        assert most_active_hour(events) == 8


class TestSummaries:
    def test_preferred_actions_top_five(self):
        actions = ["view_clothing"] * 4 + ["like_outfit"] * 3 + ["save_outfit"] * 2 + [
            "wear_clothing", "search_clothing", "filter_clothing"
        ]
        result = preferred_actions([make_event(a) for a in actions])

        assert len(result) == 5
        assert (result[0].action, result[0].count) == ("view_clothing", 4)
        assert (result[1].action, result[1].count) == ("like_outfit", 3)

    def test_sessions_group_missing_ids(self):
        events = [make_event(session="s1")] * 3 + [make_event(session=None)] * 2
        stats = session_patterns(events)

        assert stats.total_sessions == 2
        assert stats.average_session_length == 2

    def test_engagement_ratio(self):
        events = [make_event("like_outfit"), make_event("view_clothing"),
                  make_event("upload_clothing"), make_event("search_clothing")]
        assert engagement_ratio(events) == pytest.approx(0.5)
        assert engagement_ratio([]) == 0.0


class TestDecisionSpeed:
    def test_no_timed_decisions_is_normal(self):
        events = [make_event("like_outfit"), make_event("view_clothing", time_spent=1.0)]
        assert decision_speed(events) == "normal"

    def test_fast(self):
        events = [make_event("like_outfit", time_spent=2.0), make_event("dislike_outfit", time_spent=4.0)]
        assert decision_speed(events) == "fast"

    def test_slow(self):
        events = [make_event("save_outfit", time_spent=30.0), make_event("like_outfit", time_spent=10.0)]
        assert decision_speed(events) == "slow"

    def test_untimed_decisions_do_not_drag_the_average(self):
        events = [make_event("like_outfit", time_spent=3.0), make_event("like_outfit")]
        assert decision_speed(events) == "fast"


class TestPatternReport:
    def test_empty_report_defaults(self):
        report = build_pattern_report([], 30)

        assert report.total_events == 0
        assert report.most_active_hour == 12
        assert report.preferred_actions == []
        assert report.session_patterns.total_sessions == 0
        assert report.decision_speed == "normal"

    async def test_service_reads_window(self, behavior_repo):
        now = datetime.utcnow()
        await behavior_repo.insert({
            "action": "like_outfit", "target_type": "outfit", "user_id": "u",
            "created_at": now - timedelta(days=2),
        })
        await behavior_repo.insert({
            "action": "like_outfit", "target_type": "outfit", "user_id": "u",
            "created_at": now - timedelta(days=45),
        })

        report = await PatternService(behavior_repo).analyze_patterns("u", days=30)

        assert report.window_days == 30
        assert report.total_events == 1
