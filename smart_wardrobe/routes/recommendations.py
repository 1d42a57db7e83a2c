from fastapi import APIRouter, Depends
from typing import List

from smart_wardrobe.dependencies import get_garment_service
from smart_wardrobe.models.garment import DeclutterReport, ShoppingSuggestion
from smart_wardrobe.services.garment_service import GarmentService
from smart_wardrobe.utils.auth import get_current_user_id

router = APIRouter(prefix="/recommendations", tags=["Recommendations"])


@router.get("/declutter", response_model=DeclutterReport)
async def get_declutter_suggestions(
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    """Rarely worn, worn-out and duplicate garments (kept items excluded)"""
    return await garments.declutter(current_user_id)


@router.get("/shopping", response_model=List[ShoppingSuggestion])
async def get_shopping_suggestions(
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    return await garments.shopping(current_user_id)
