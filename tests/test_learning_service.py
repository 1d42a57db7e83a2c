"""
Tests for preference learning: weights, clamping, rejected combinations
"""
import asyncio
from datetime import datetime

import pytest

from smart_wardrobe.models.behavior import BehaviorCreate, BehaviorEvent
from smart_wardrobe.models.preference import (
    MAX_REJECTED_COMBINATIONS,
    UserPreferenceState,
    canonical_combination,
)
from smart_wardrobe.services.learning_service import (
    BehaviorPersistenceError,
    LearningService,
    action_weight,
    dominant_style,
)

USER = "user-1"


@pytest.fixture
def learning(behavior_repo, user_repo, garment_repo):
    return LearningService(behavior_repo, user_repo, garment_repo)


def behavior(action, target_type="clothing", target_id=None, **metadata):
    return BehaviorCreate(
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata=metadata,
    )


def event(action, target_type="clothing", target_id=None, **metadata):
    return BehaviorEvent(
        id="e1",
        user_id=USER,
        created_at=datetime.utcnow(),
        **behavior(action, target_type, target_id, **metadata).model_dump(),
    )


class TestHelpers:
    def test_action_weights(self):
        assert action_weight("like_outfit") == 2.0
        assert action_weight("dislike_outfit") == -1.5
        assert action_weight("search_clothing") == 0.0

    def test_dominant_style_prefers_first_on_tie(self):
        assert dominant_style(["formal", "casual", "casual"]) == "casual"
        assert dominant_style(["formal", "casual"]) == "formal"
        assert dominant_style([None, None]) is None

    def test_canonical_combination_is_order_independent(self):
        assert canonical_combination(["c", "a", "b"]) == canonical_combination(["b", "c", "a"]) == "a,b,c"


class TestPreferenceState:
    def test_scores_are_clamped(self):
        state = UserPreferenceState()
        for _ in range(10):
            state.adjust_style("formal", 2.0)
            state.adjust_color("red", -1.5)

        assert state.style_preferences["formal"] == 5.0
        assert state.color_preferences["red"] == -5.0

    def test_rejected_combination_added_once(self):
        state = UserPreferenceState()
        assert state.add_rejected_combination(["c", "a", "b"])
        assert not state.add_rejected_combination(["b", "a", "c"])
        assert state.rejected_combinations == ["a,b,c"]

    def test_duplicate_ids_collapse_to_one_combination(self):
        state = UserPreferenceState()
        assert state.add_rejected_combination(["b", "a", "a"])
        assert not state.add_rejected_combination(["a", "b"])
        assert not state.add_rejected_combination(["b", "", "a", "b"])

        assert state.rejected_combinations == ["a,b"]
        assert state.is_rejected(["a", "a", "b"])

    def test_rejected_combinations_evict_oldest(self):
        state = UserPreferenceState()
        for i in range(MAX_REJECTED_COMBINATIONS + 5):
            state.add_rejected_combination([f"g{i}", "x"])

        assert len(state.rejected_combinations) == MAX_REJECTED_COMBINATIONS
        assert state.rejected_combinations[0] == canonical_combination(["g5", "x"])
        assert not state.is_rejected(["g0", "x"])


class TestApplyEvent:
    async def test_clothing_event_adjusts_style_and_colors(self, learning, make_garment):
        garment = await make_garment(USER, style="formal", colors=["navy", "white"])
        state = UserPreferenceState()

        await learning.apply_event(state, USER, event("wear_clothing", "clothing", garment.id))

        assert state.style_preferences == {"formal": 1.5}
        assert state.color_preferences == {"navy": 1.5, "white": 1.5}

    async def test_unknown_garment_only_touches_occasion(self, learning):
        state = UserPreferenceState()

        await learning.apply_event(state, USER, event("like_outfit", "clothing", "missing", occasion="party"))

        assert state.style_preferences == {}
        assert state.occasion_preferences == {"party": 2.0}

    async def test_outfit_event_uses_dominant_style_and_half_color_weight(self, learning, make_garment):
        a = await make_garment(USER, style="casual", colors=["blue"])
        b = await make_garment(USER, style="formal", colors=["blue", "white"])
        c = await make_garment(USER, style="casual", colors=["black"])
        state = UserPreferenceState()

        await learning.apply_event(
            state, USER, event("like_outfit", "outfit", outfit_items=[a.id, b.id, c.id])
        )

        assert state.style_preferences == {"casual": 2.0}
        assert state.color_preferences == {"blue": 1.0, "white": 1.0, "black": 1.0}
        assert state.rejected_combinations == []

    async def test_dislike_records_rejected_combination(self, learning, make_garment):
        a = await make_garment(USER, style="sport", colors=["red"])
        b = await make_garment(USER, style="sport", colors=["red"])
        state = UserPreferenceState()

        await learning.apply_event(
            state, USER, event("dislike_outfit", "outfit", outfit_items=[b.id, a.id], occasion="gym")
        )
        await learning.apply_event(
            state, USER, event("dislike_outfit", "outfit", outfit_items=[a.id, b.id])
        )

        assert state.rejected_combinations == [canonical_combination([a.id, b.id])]
        assert state.style_preferences == {"sport": -3.0}
        assert state.color_preferences == {"red": -1.5}
        assert state.occasion_preferences == {"gym": -1.5}

    async def test_recommendation_with_items_counts_as_outfit(self, learning, make_garment):
        a = await make_garment(USER, style="minimal", colors=["gray"])
        b = await make_garment(USER, style="minimal", colors=["gray"])
        state = UserPreferenceState()

        await learning.apply_event(
            state, USER, event("reject_recommendation", "recommendation", outfit_items=[a.id, b.id])
        )

        assert state.style_preferences == {"minimal": -1.0}
        assert state.color_preferences == {"gray": -0.5}
        assert state.is_rejected([a.id, b.id])


class TestRecordBehavior:
    async def test_event_is_stored_and_preferences_updated(self, learning, behavior_repo, user_repo, make_garment):
        garment = await make_garment(USER, style="street", colors=["black"])

        stored = await learning.record_behavior(USER, behavior("view_clothing", "clothing", garment.id))
        await learning.drain()

        assert stored.user_id == USER
        assert behavior_repo.events == [stored]
        weights = await learning.generate_recommendation_weights(USER)
        assert weights.style_weights == {"street": pytest.approx(0.3)}
        assert weights.color_weights == {"black": pytest.approx(0.3)}

    async def test_persistence_failure_is_reported(self, learning, behavior_repo, user_repo):
        behavior_repo.fail_inserts = True

        with pytest.raises(BehaviorPersistenceError):
            await learning.record_behavior(USER, behavior("like_outfit", "outfit", occasion="work"))
        await learning.drain()

        assert user_repo.learning == {}

    async def test_concurrent_updates_are_not_lost(self, learning, make_garment):
        garment = await make_garment(USER, style="casual", colors=["white"])

        await asyncio.gather(*(
            learning.record_behavior(USER, behavior("view_clothing", "clothing", garment.id))
            for _ in range(10)
        ))
        await learning.drain()

        weights = await learning.generate_recommendation_weights(USER)
        assert weights.style_weights["casual"] == pytest.approx(3.0)
        assert learning._locks == {}

    async def test_preference_update_failure_does_not_fail_recording(self, learning, user_repo):
        async def broken_save(user_id, state):
            raise RuntimeError("write conflict")

        user_repo.save_learning_data = broken_save

        stored = await learning.record_behavior(USER, behavior("like_outfit", "outfit", occasion="date"))
        await learning.drain()

        assert stored.action == "like_outfit"


class TestReports:
    async def test_empty_weights_for_new_user(self, learning):
        weights = await learning.generate_recommendation_weights("nobody")
        assert weights.style_weights == {}
        assert weights.rejected_combinations == []

    async def test_default_style_report_without_data(self, learning):
        report = await learning.generate_style_report("nobody")

        assert report.top_styles == []
        assert report.behavior_patterns is None
        assert report.recommendations

    async def test_style_report_ranks_scores(self, learning, user_repo, make_garment):
        await make_garment(USER, wear_count=4)
        await make_garment(USER, wear_count=0)
        state = UserPreferenceState(
            style_preferences={"casual": 1.0, "formal": 4.0, "sport": -2.0, "street": 0.5},
            color_preferences={"red": 1.0, "blue": 2.0, "black": 0.5},
        )
        await user_repo.save_learning_data(USER, state)

        report = await learning.generate_style_report(USER)

        assert [s.style for s in report.top_styles] == ["formal", "casual", "street"]
        assert [c.color for c in report.top_colors] == ["blue", "red", "black"]
        assert report.wear_statistics.total_wears == 4
        assert report.wear_statistics.average_wear_count == 2.0
        assert report.wear_statistics.most_worn_item.wear_count == 4
        assert report.behavior_patterns.window_days == 90
        assert any("formal" in i for i in report.insights)

    async def test_reset_clears_state_and_optionally_behaviors(self, learning, user_repo, behavior_repo):
        await learning.record_behavior(USER, behavior("like_outfit", "outfit", occasion="work"))
        await learning.drain()
        assert USER in user_repo.learning

        deleted = await learning.reset(USER, clear_behaviors=True)

        assert deleted == 1
        assert USER not in user_repo.learning
        assert behavior_repo.events == []
