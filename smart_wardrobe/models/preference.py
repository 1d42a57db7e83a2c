from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Iterable
from datetime import datetime

from smart_wardrobe.models.behavior import PatternReport

SCORE_MIN = -5.0
SCORE_MAX = 5.0
MAX_REJECTED_COMBINATIONS = 100


def clamp_score(value: float) -> float:
    return max(SCORE_MIN, min(SCORE_MAX, value))


def canonical_combination(garment_ids: Iterable[str]) -> str:
    """Order-independent key for a set of garments: sorted unique ids joined by commas."""
    return ",".join(sorted({str(g) for g in garment_ids if g}))


class UserPreferenceState(BaseModel):
    """Per-user learned affinities, each score kept within [-5, +5]."""

    style_preferences: Dict[str, float] = {}
    color_preferences: Dict[str, float] = {}
    occasion_preferences: Dict[str, float] = {}
    rejected_combinations: List[str] = []
    updated_at: Optional[datetime] = None

    def adjust_style(self, style: str, delta: float) -> float:
        return self._adjust(self.style_preferences, style, delta)

    def adjust_color(self, color: str, delta: float) -> float:
        return self._adjust(self.color_preferences, color, delta)

    def adjust_occasion(self, occasion: str, delta: float) -> float:
        return self._adjust(self.occasion_preferences, occasion, delta)

    @staticmethod
    def _adjust(scores: Dict[str, float], key: str, delta: float) -> float:
        scores[key] = clamp_score(scores.get(key, 0.0) + delta)
        return scores[key]

    def add_rejected_combination(self, garment_ids: Iterable[str]) -> bool:
        """Append a combination (set semantics, FIFO eviction past the cap).

        Returns False when the combination was already tracked.
        """
        combination = canonical_combination(garment_ids)
        if not combination or combination in self.rejected_combinations:
            return False

        self.rejected_combinations.append(combination)
        overflow = len(self.rejected_combinations) - MAX_REJECTED_COMBINATIONS
        if overflow > 0:
            del self.rejected_combinations[:overflow]
        return True

    def is_rejected(self, garment_ids: Iterable[str]) -> bool:
        return canonical_combination(garment_ids) in self.rejected_combinations


class RecommendationWeights(BaseModel):
    style_weights: Dict[str, float] = {}
    color_weights: Dict[str, float] = {}
    occasion_weights: Dict[str, float] = {}
    rejected_combinations: List[str] = []

    @classmethod
    def from_state(cls, state: Optional[UserPreferenceState]) -> "RecommendationWeights":
        if state is None:
            return cls()
        return cls(
            style_weights=dict(state.style_preferences),
            color_weights=dict(state.color_preferences),
            occasion_weights=dict(state.occasion_preferences),
            rejected_combinations=list(state.rejected_combinations),
        )


class ScoredStyle(BaseModel):
    style: str
    score: float


class ScoredColor(BaseModel):
    color: str
    score: float


class MostWornItem(BaseModel):
    id: str
    category: str
    sub_category: str
    wear_count: int


class WearStatistics(BaseModel):
    total_garments: int = 0
    total_wears: int = 0
    average_wear_count: float = 0.0
    most_worn_item: Optional[MostWornItem] = None


class StyleReport(BaseModel):
    user_id: Optional[str] = None
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    period: str = "no data yet"
    top_styles: List[ScoredStyle] = []
    top_colors: List[ScoredColor] = []
    wear_statistics: WearStatistics = Field(default_factory=WearStatistics)
    behavior_patterns: Optional[PatternReport] = None
    recommendations: List[str] = []
    insights: List[str] = []
