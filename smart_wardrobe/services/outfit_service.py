"""
Outfit Service - rule-based outfit composition and the recommendation flow

Purpose:
- Deterministic top x bottom x shoes composition with color-harmony scoring
- Skip combinations the user rejected before
- Prefer the AI advisor when an LLM key is configured, fall back to rules
"""

from typing import Optional, List, Dict
from collections import Counter
import logging

from smart_wardrobe.models.garment import Garment, GarmentCategory, Style
from smart_wardrobe.models.outfit import OutfitRecommendations, RankedOutfit
from smart_wardrobe.models.preference import RecommendationWeights, canonical_combination

logger = logging.getLogger(__name__)

MAX_TOPS = 5
MAX_BOTTOMS = 3
MAX_SHOES = 2
MAX_OUTFITS = 10
MIN_HARMONY = 0.6
MIN_GARMENTS = 3

# Checked in this order; first style present wins
OCCASION_BY_STYLE = (
    (Style.FORMAL.value, "work/formal"),
    (Style.SPORT.value, "sport/fitness"),
    (Style.FASHION.value, "date/social"),
)
DEFAULT_OCCASION = "daily casual"


def color_harmony(garments: List[Garment]) -> float:
    distinct = {c for g in garments for c in g.colors}
    if len(distinct) > 4:
        return 0.3
    if len(distinct) <= 2:
        return 0.9
    return 0.7


def outfit_style(garments: List[Garment]) -> Optional[str]:
    counts = Counter(g.style for g in garments if g.style)
    return counts.most_common(1)[0][0] if counts else None


def common_seasons(garments: List[Garment]) -> List[str]:
    counts = Counter(s for g in garments for s in dict.fromkeys(g.seasons))
    return [season for season, count in counts.items() if count >= 2]


def suggest_occasion(garments: List[Garment]) -> str:
    styles = {g.style for g in garments}
    for style, occasion in OCCASION_BY_STYLE:
        if style in styles:
            return occasion
    return DEFAULT_OCCASION


def preference_score(garments: List[Garment], weights: RecommendationWeights) -> float:
    """Informational only: dominant-style weight plus mean color weight."""
    style = outfit_style(garments)
    score = weights.style_weights.get(style, 0.0) if style else 0.0
    colors = list(dict.fromkeys(c for g in garments for c in g.colors))
    if colors:
        score += sum(weights.color_weights.get(c, 0.0) for c in colors) / len(colors)
    return round(score, 2)


def compose_outfits(
    garments: List[Garment],
    preferences: Optional[RecommendationWeights] = None,
) -> List[RankedOutfit]:
    """
    Build outfits from the first 5 tops, 3 bottoms and 2 shoes in input order.

    Outfits with harmony <= 0.6 or a previously rejected garment set are
    dropped; the rest come back in generation order, at most 10.
    """
    weights = preferences or RecommendationWeights()
    rejected = set(weights.rejected_combinations)

    tops = [g for g in garments if g.category == GarmentCategory.TOP.value]
    bottoms = [g for g in garments if g.category == GarmentCategory.BOTTOM.value]
    shoes = [g for g in garments if g.category == GarmentCategory.SHOES.value]

    outfits: List[RankedOutfit] = []
    for top in tops[:MAX_TOPS]:
        for bottom in bottoms[:MAX_BOTTOMS]:
            for shoe in shoes[:MAX_SHOES]:
                combo = [top, bottom, shoe]
                items = [g.id for g in combo]
                if canonical_combination(items) in rejected:
                    continue

                harmony = color_harmony(combo)
                if harmony <= MIN_HARMONY:
                    continue

                outfits.append(RankedOutfit(
                    items=items,
                    style=outfit_style(combo),
                    seasons=common_seasons(combo),
                    color_harmony=harmony,
                    occasion=suggest_occasion(combo),
                    preference_score=preference_score(combo, weights),
                ))
                if len(outfits) >= MAX_OUTFITS:
                    return outfits
    return outfits


class OutfitService:
    def __init__(self, garment_repository, learning_service, advisor=None):
        self.garments = garment_repository
        self.learning = learning_service
        self.advisor = advisor

    async def recommend(
        self,
        user_id: str,
        occasion: Optional[str] = None,
        season: Optional[str] = None,
        style: Optional[str] = None,
        limit: int = 8,
        profile_preferences: Optional[Dict] = None,
    ) -> OutfitRecommendations:
        garments = await self.garments.list(user_id, style=style, season=season)

        if len(garments) < MIN_GARMENTS:
            return OutfitRecommendations(
                message="Not enough garments yet, add more clothes first",
                recommendations=[],
                total_garments=len(garments),
                source="none",
            )

        weights = await self.learning.generate_recommendation_weights(user_id)

        outfits: Optional[List[RankedOutfit]] = None
        if self.advisor is not None and self.advisor.is_configured:
            outfits = await self.advisor.suggest(
                garments,
                weights,
                occasion=occasion,
                profile_preferences=profile_preferences,
            )

        source = "ai"
        if not outfits:
            if self.advisor is not None and self.advisor.is_configured:
                logger.info("AI outfit suggestions unavailable, using rule-based composer")
            outfits = compose_outfits(garments, weights)
            source = "rules"

        return OutfitRecommendations(
            message="Outfit recommendations generated",
            recommendations=outfits[:limit],
            total_garments=len(garments),
            source=source,
        )
