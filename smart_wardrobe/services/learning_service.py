"""
Learning Service - behavior-weighted preference accumulation

Purpose:
- Persist behavior events (the durable source of truth)
- Update per-user style/color/occasion scores in the background
- Track rejected garment combinations
- Build recommendation weights and the style report

Preference updates for one user are serialized through a per-user lock;
the whole preference document is written back after each event.
"""

from typing import Optional, List, Dict, Set
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime
import asyncio
import logging

from smart_wardrobe.models.behavior import (
    BehaviorAction,
    BehaviorCreate,
    BehaviorEvent,
    TargetType,
)
from smart_wardrobe.models.preference import (
    MostWornItem,
    RecommendationWeights,
    ScoredColor,
    ScoredStyle,
    StyleReport,
    UserPreferenceState,
    WearStatistics,
)
from smart_wardrobe.services.pattern_service import PatternService

logger = logging.getLogger(__name__)

ACTION_WEIGHTS: Dict[str, float] = {
    BehaviorAction.LIKE_OUTFIT.value: 2.0,
    BehaviorAction.DISLIKE_OUTFIT.value: -1.5,
    BehaviorAction.WEAR_CLOTHING.value: 1.5,
    BehaviorAction.SAVE_OUTFIT.value: 1.8,
    BehaviorAction.VIEW_CLOTHING.value: 0.3,
    BehaviorAction.REJECT_RECOMMENDATION.value: -1.0,
    BehaviorAction.ACCEPT_RECOMMENDATION.value: 1.2,
}
OUTFIT_COLOR_FACTOR = 0.5
REJECTING_ACTIONS = {
    BehaviorAction.DISLIKE_OUTFIT.value,
    BehaviorAction.REJECT_RECOMMENDATION.value,
}
MULTI_GARMENT_TARGETS = {TargetType.OUTFIT.value, TargetType.RECOMMENDATION.value}
REPORT_WINDOW_DAYS = 90


class BehaviorPersistenceError(Exception):
    """The behavior event could not be durably written."""


def action_weight(action: str) -> float:
    return ACTION_WEIGHTS.get(action, 0.0)


def dominant_style(styles: List[str]) -> Optional[str]:
    """Most frequent style; ties go to the first one encountered."""
    counts = Counter(s for s in styles if s)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class LearningService:
    def __init__(self, behavior_repository, user_repository, garment_repository,
                 pattern_service: Optional[PatternService] = None):
        self.behaviors = behavior_repository
        self.users = user_repository
        self.garments = garment_repository
        self.patterns = pattern_service or PatternService(behavior_repository)
        # Entries exist only while an update for that user is running or queued
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_holders: Dict[str, int] = {}
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    async def record_behavior(self, user_id: str, behavior: BehaviorCreate) -> BehaviorEvent:
        data = behavior.model_dump()
        data["user_id"] = user_id
        data["created_at"] = datetime.utcnow()

        try:
            event = await self.behaviors.insert(data)
        except Exception as e:
            logger.error(f"❌ Failed to record behavior for {user_id}: {e}")
            raise BehaviorPersistenceError(str(e)) from e

        # Fire-and-forget; the stored event stays authoritative
        task = asyncio.create_task(self._update_preferences_safely(user_id, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return event

    async def drain(self) -> None:
        """Wait for in-flight preference updates (shutdown and tests)."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending, return_exceptions=True)
            self._pending.difference_update(pending)

    @asynccontextmanager
    async def _user_lock(self, user_id: str):
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_holders[user_id] = self._lock_holders.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[user_id] -= 1
            if not self._lock_holders[user_id]:
                del self._lock_holders[user_id]
                del self._locks[user_id]

    async def _update_preferences_safely(self, user_id: str, event: BehaviorEvent) -> None:
        try:
            async with self._user_lock(user_id):
                await self.update_preferences(user_id, event)
        except Exception as e:
            logger.error(f"Failed to update preferences for {user_id}: {e}", exc_info=True)

    async def update_preferences(self, user_id: str, event: BehaviorEvent) -> UserPreferenceState:
        state = await self.users.get_learning_data(user_id) or UserPreferenceState()
        await self.apply_event(state, user_id, event)
        await self.users.save_learning_data(user_id, state)
        return state

    async def apply_event(self, state: UserPreferenceState, user_id: str, event: BehaviorEvent) -> None:
        weight = action_weight(event.action)
        outfit_items = event.metadata.outfit_items or []

        if event.target_type == TargetType.CLOTHING.value and event.target_id:
            garment = await self.garments.get(user_id, event.target_id)
            if garment:
                if garment.style:
                    state.adjust_style(garment.style, weight)
                for color in garment.colors:
                    state.adjust_color(color, weight)

        elif event.target_type in MULTI_GARMENT_TARGETS and outfit_items:
            garments = await self.garments.find_by_ids(user_id, outfit_items)
            by_id = {g.id: g for g in garments}
            # Keep the order the client listed the items in
            ordered = [by_id[i] for i in dict.fromkeys(outfit_items) if i in by_id]

            style = dominant_style([g.style for g in ordered])
            if style:
                state.adjust_style(style, weight)

            colors = dict.fromkeys(c for g in ordered for c in g.colors)
            for color in colors:
                state.adjust_color(color, weight * OUTFIT_COLOR_FACTOR)

        if event.metadata.occasion:
            state.adjust_occasion(event.metadata.occasion, weight)

        if event.action in REJECTING_ACTIONS and outfit_items:
            state.add_rejected_combination(outfit_items)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def generate_recommendation_weights(self, user_id: str) -> RecommendationWeights:
        state = await self.users.get_learning_data(user_id)
        return RecommendationWeights.from_state(state)

    async def get_preference_state(self, user_id: str) -> Optional[UserPreferenceState]:
        return await self.users.get_learning_data(user_id)

    async def generate_style_report(self, user_id: str) -> StyleReport:
        state = await self.users.get_learning_data(user_id)
        if state is None:
            return default_style_report()

        patterns = await self.patterns.analyze_patterns(user_id, REPORT_WINDOW_DAYS)

        top_styles = [
            ScoredStyle(style=s, score=v)
            for s, v in sorted(state.style_preferences.items(), key=lambda kv: kv[1], reverse=True)[:3]
        ]
        top_colors = [
            ScoredColor(color=c, score=v)
            for c, v in sorted(state.color_preferences.items(), key=lambda kv: kv[1], reverse=True)[:5]
        ]
        wear_stats = await self.get_wear_statistics(user_id)

        return StyleReport(
            user_id=user_id,
            period=f"last {REPORT_WINDOW_DAYS} days",
            top_styles=top_styles,
            top_colors=top_colors,
            wear_statistics=wear_stats,
            behavior_patterns=patterns,
            recommendations=personalized_recommendations(top_styles, top_colors),
            insights=style_insights(top_styles, top_colors, wear_stats),
        )

    async def get_wear_statistics(self, user_id: str) -> WearStatistics:
        garments = await self.garments.list(user_id)
        if not garments:
            return WearStatistics()

        total_wears = sum(g.wear_count for g in garments)
        most_worn = max(garments, key=lambda g: g.wear_count)
        return WearStatistics(
            total_garments=len(garments),
            total_wears=total_wears,
            average_wear_count=round(total_wears / len(garments), 1),
            most_worn_item=MostWornItem(
                id=most_worn.id,
                category=most_worn.category,
                sub_category=most_worn.sub_category,
                wear_count=most_worn.wear_count,
            ),
        )

    async def reset(self, user_id: str, clear_behaviors: bool = False) -> int:
        """Drop learned preferences; optionally the raw behavior log as well."""
        async with self._user_lock(user_id):
            await self.users.clear_learning_data(user_id)
        deleted = 0
        if clear_behaviors:
            deleted = await self.behaviors.delete_for_user(user_id)
        logger.info(f"Learning data reset for {user_id} (behaviors deleted: {deleted})")
        return deleted


def personalized_recommendations(top_styles: List[ScoredStyle], top_colors: List[ScoredColor]) -> List[str]:
    recommendations = []
    if top_styles:
        recommendations.append(
            f"Your favourite style is '{top_styles[0].style}', try more outfits in that style"
        )
    if top_colors:
        recommendations.append(
            f"You lean towards '{top_colors[0].color}', try pairing it with other colors"
        )
    return recommendations


def style_insights(top_styles: List[ScoredStyle], top_colors: List[ScoredColor],
                   wear_stats: WearStatistics) -> List[str]:
    insights = []
    if wear_stats.average_wear_count < 2:
        insights.append("Your wardrobe utilization is low, try more combinations")
    if top_styles and top_styles[0].score > 3:
        insights.append(f"You have a strong preference for the '{top_styles[0].style}' style")
    if len(top_colors) > 2:
        insights.append("Your color preferences are nicely varied")
    return insights


def default_style_report() -> StyleReport:
    return StyleReport(
        recommendations=["Start using the app to get personalized suggestions"],
        insights=["More data is needed to generate personalized insights"],
    )
