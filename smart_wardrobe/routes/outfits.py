from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from typing import Optional
import logging

from smart_wardrobe.dependencies import get_learning_service, get_outfit_service, get_user_repository
from smart_wardrobe.models.behavior import (
    BehaviorAction,
    BehaviorContext,
    BehaviorCreate,
    BehaviorMetadata,
    BehaviorRecorded,
    TargetType,
)
from smart_wardrobe.models.garment import Season, Style
from smart_wardrobe.models.outfit import OutfitFeedback, OutfitRecommendations
from smart_wardrobe.repositories import UserRepository
from smart_wardrobe.services.learning_service import BehaviorPersistenceError, LearningService
from smart_wardrobe.services.outfit_service import OutfitService
from smart_wardrobe.utils.auth import get_current_user_id
from smart_wardrobe.utils.helpers import Helpers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/outfits", tags=["Outfits"])


@router.get("/recommendations", response_model=OutfitRecommendations)
async def get_recommendations(
    occasion: Optional[str] = None,
    season: Optional[Season] = None,
    style: Optional[Style] = None,
    limit: int = Query(8, ge=1, le=20),
    current_user_id: str = Depends(get_current_user_id),
    outfits: OutfitService = Depends(get_outfit_service),
    users: UserRepository = Depends(get_user_repository),
):
    """
    ✨ Outfit suggestions

    AI stylist when an LLM key is configured, rule-based composer otherwise
    (or when the AI answer is unusable).
    """
    user = await users.get(current_user_id)
    profile_preferences = None
    if user is not None:
        profile_preferences = {
            "preferredStyles": user.profile.preferred_styles,
            "colorPreferences": user.profile.color_preferences,
        }

    return await outfits.recommend(
        current_user_id,
        occasion=occasion,
        season=season.value if season else None,
        style=style.value if style else None,
        limit=limit,
        profile_preferences=profile_preferences,
    )


@router.post("/feedback", response_model=BehaviorRecorded, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    feedback: OutfitFeedback,
    request: Request,
    current_user_id: str = Depends(get_current_user_id),
    learning: LearningService = Depends(get_learning_service),
):
    """Like/dislike an outfit; feeds the preference learning"""
    behavior = BehaviorCreate(
        action=BehaviorAction.LIKE_OUTFIT if feedback.liked else BehaviorAction.DISLIKE_OUTFIT,
        target_type=TargetType.OUTFIT,
        context=Helpers.enrich_context(request, BehaviorContext(session_id=feedback.session_id)),
        metadata=BehaviorMetadata(
            outfit_items=feedback.outfit_items,
            occasion=feedback.occasion,
            rating=feedback.rating,
            reason=feedback.reason,
            time_spent=feedback.time_spent,
        ),
    )

    try:
        event = await learning.record_behavior(current_user_id, behavior)
    except BehaviorPersistenceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Feedback could not be recorded"
        )

    return BehaviorRecorded(message="Feedback recorded", behavior_id=event.id)
