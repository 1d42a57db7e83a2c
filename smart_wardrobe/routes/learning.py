from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
import logging

from smart_wardrobe.dependencies import get_learning_service, get_pattern_service
from smart_wardrobe.models.behavior import (
    BatchBehaviorItem,
    BatchBehaviorResult,
    BehaviorBatch,
    BehaviorCreate,
    BehaviorRecorded,
    PatternReport,
)
from smart_wardrobe.models.preference import RecommendationWeights, StyleReport
from smart_wardrobe.services.learning_service import BehaviorPersistenceError, LearningService
from smart_wardrobe.services.pattern_service import PatternService
from smart_wardrobe.utils.auth import get_current_user_id
from smart_wardrobe.utils.helpers import Helpers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/learning", tags=["Learning"])


@router.post("/behavior", response_model=BehaviorRecorded, status_code=status.HTTP_201_CREATED)
async def record_behavior(
    behavior: BehaviorCreate,
    request: Request,
    current_user_id: str = Depends(get_current_user_id),
    learning: LearningService = Depends(get_learning_service),
):
    """Record one interaction; preferences update in the background"""
    behavior = behavior.model_copy(
        update={"context": Helpers.enrich_context(request, behavior.context)}
    )
    try:
        event = await learning.record_behavior(current_user_id, behavior)
    except BehaviorPersistenceError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Behavior could not be recorded"
        )
    return BehaviorRecorded(behavior_id=event.id)


@router.post("/behaviors/batch", response_model=BatchBehaviorResult)
async def record_behaviors_batch(
    batch: BehaviorBatch,
    request: Request,
    current_user_id: str = Depends(get_current_user_id),
    learning: LearningService = Depends(get_learning_service),
):
    results = []
    for behavior in batch.behaviors:
        behavior = behavior.model_copy(
            update={"context": Helpers.enrich_context(request, behavior.context)}
        )
        try:
            event = await learning.record_behavior(current_user_id, behavior)
            results.append(BatchBehaviorItem(success=True, behavior_id=event.id))
        except BehaviorPersistenceError as e:
            results.append(BatchBehaviorItem(success=False, error=str(e)))

    succeeded = sum(1 for r in results if r.success)
    return BatchBehaviorResult(
        message=f"Recorded {succeeded}/{len(results)} behaviors",
        succeeded=succeeded,
        total=len(results),
        results=results,
    )


@router.get("/weights", response_model=RecommendationWeights)
async def get_weights(
    current_user_id: str = Depends(get_current_user_id),
    learning: LearningService = Depends(get_learning_service),
):
    return await learning.generate_recommendation_weights(current_user_id)


@router.get("/patterns", response_model=PatternReport)
async def get_patterns(
    days: int = Query(30, ge=1, le=365),
    current_user_id: str = Depends(get_current_user_id),
    patterns: PatternService = Depends(get_pattern_service),
):
    return await patterns.analyze_patterns(current_user_id, days)


@router.get("/style-report", response_model=StyleReport)
async def get_style_report(
    current_user_id: str = Depends(get_current_user_id),
    learning: LearningService = Depends(get_learning_service),
):
    return await learning.generate_style_report(current_user_id)


@router.delete("/reset")
async def reset_learning(
    clear_behaviors: bool = False,
    current_user_id: str = Depends(get_current_user_id),
    learning: LearningService = Depends(get_learning_service),
):
    deleted = await learning.reset(current_user_id, clear_behaviors)
    return {
        "message": "Learning data reset",
        "behaviors_deleted": deleted,
    }
