"""
Behavior Pattern Analyzer - read-only summaries over the behavior log
"""

from typing import List
from collections import Counter
from datetime import datetime, timedelta, timezone
import logging

from smart_wardrobe.models.behavior import (
    ActionCount,
    BehaviorAction,
    BehaviorEvent,
    DecisionSpeed,
    PatternReport,
    SessionStats,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTIVE_HOUR = 12
TOP_ACTIONS = 5
UNKNOWN_SESSION = "unknown"

ENGAGEMENT_ACTIONS = {
    BehaviorAction.LIKE_OUTFIT.value,
    BehaviorAction.SAVE_OUTFIT.value,
    BehaviorAction.WEAR_CLOTHING.value,
    BehaviorAction.UPLOAD_CLOTHING.value,
}
DECISION_ACTIONS = {
    BehaviorAction.LIKE_OUTFIT.value,
    BehaviorAction.DISLIKE_OUTFIT.value,
    BehaviorAction.SAVE_OUTFIT.value,
}
FAST_DECISION_SECONDS = 5.0
SLOW_DECISION_SECONDS = 15.0


def most_active_hour(events: List[BehaviorEvent]) -> int:
    """Mode of the UTC event hour; an empty log or a tie at the top gives noon."""
    counts = Counter(_utc_hour(e.created_at) for e in events)
    top = counts.most_common(2)
    if not top or (len(top) == 2 and top[0][1] == top[1][1]):
        return DEFAULT_ACTIVE_HOUR
    return top[0][0]


def _utc_hour(moment: datetime) -> int:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.hour


def preferred_actions(events: List[BehaviorEvent], top_n: int = TOP_ACTIONS) -> List[ActionCount]:
    counts = Counter(e.action for e in events)
    return [ActionCount(action=a, count=c) for a, c in counts.most_common(top_n)]


def session_patterns(events: List[BehaviorEvent]) -> SessionStats:
    sessions = Counter(e.context.session_id or UNKNOWN_SESSION for e in events)
    if not sessions:
        return SessionStats()
    return SessionStats(
        total_sessions=len(sessions),
        average_session_length=round(sum(sessions.values()) / len(sessions)),
    )


def engagement_ratio(events: List[BehaviorEvent]) -> float:
    if not events:
        return 0.0
    engaged = sum(1 for e in events if e.action in ENGAGEMENT_ACTIONS)
    return engaged / len(events)


def decision_speed(events: List[BehaviorEvent]) -> DecisionSpeed:
    # Only decisions with a measured time_spent count towards the average
    timings = [
        e.metadata.time_spent
        for e in events
        if e.action in DECISION_ACTIONS and e.metadata.time_spent is not None
    ]
    if not timings:
        return DecisionSpeed.NORMAL

    average = sum(timings) / len(timings)
    if average < FAST_DECISION_SECONDS:
        return DecisionSpeed.FAST
    if average > SLOW_DECISION_SECONDS:
        return DecisionSpeed.SLOW
    return DecisionSpeed.NORMAL


def build_pattern_report(events: List[BehaviorEvent], window_days: int) -> PatternReport:
    return PatternReport(
        window_days=window_days,
        total_events=len(events),
        most_active_hour=most_active_hour(events),
        preferred_actions=preferred_actions(events),
        session_patterns=session_patterns(events),
        engagement_ratio=engagement_ratio(events),
        decision_speed=decision_speed(events),
    )


class PatternService:
    def __init__(self, behavior_repository):
        self.behaviors = behavior_repository

    async def analyze_patterns(self, user_id: str, days: int = 30) -> PatternReport:
        since = datetime.utcnow() - timedelta(days=days)
        events = await self.behaviors.find_since(user_id, since)
        logger.debug(f"Pattern analysis for {user_id}: {len(events)} events in {days} days")
        return build_pattern_report(events, days)
