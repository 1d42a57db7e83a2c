from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Query
from pydantic import BaseModel, Field
from typing import List, Optional
import logging

from smart_wardrobe.config import Settings
from smart_wardrobe.dependencies import get_garment_service, get_image_service, get_settings_dep
from smart_wardrobe.models.garment import (
    BatchUploadResult,
    GarmentCategory,
    GarmentResponse,
    GarmentUpdate,
    Season,
    Style,
    UploadResult,
    WardrobeStatistics,
    WearTrends,
)
from smart_wardrobe.services.garment_service import GarmentService
from smart_wardrobe.services.image_service import ImageService
from smart_wardrobe.utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/garments", tags=["Garments"])


class BatchWearRequest(BaseModel):
    garment_ids: List[str] = Field(..., min_length=1)


def _not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Garment not found"
    )


# ============================================
# Static routes come before /{garment_id}
# ============================================

@router.post("/upload", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload_garment(
    file: UploadFile = File(...),
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
    images: ImageService = Depends(get_image_service),
):
    """Upload one photo; the garment is created from the AI analysis"""
    content, mime_type = await images.read_upload(file)
    result = await garments.upload(current_user_id, file.filename, content, mime_type)
    logger.info(f"👕 Garment {result.garment.id} uploaded by {current_user_id}")
    return result


@router.post("/batch-upload", response_model=BatchUploadResult)
async def batch_upload_garments(
    files: List[UploadFile] = File(...),
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
    images: ImageService = Depends(get_image_service),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Upload several photos at once

    Items are analyzed a few at a time; each one succeeds or fails on its own.
    """
    if len(files) > settings.MAX_BATCH_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.MAX_BATCH_SIZE} files per batch"
        )

    items = []
    for f in files:
        content = await f.read()
        mime_type = f.content_type or images.guess_mime_type(f.filename)
        items.append((f.filename, content, mime_type))

    return await garments.batch_upload(current_user_id, items)


@router.get("", response_model=List[GarmentResponse])
async def list_garments(
    category: Optional[GarmentCategory] = None,
    style: Optional[Style] = None,
    season: Optional[Season] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    items = await garments.list(
        current_user_id,
        category=category.value if category else None,
        style=style.value if style else None,
        season=season.value if season else None,
        skip=skip,
        limit=limit,
    )
    return [GarmentResponse.from_garment(g) for g in items]


@router.get("/statistics", response_model=WardrobeStatistics)
async def get_statistics(
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    return await garments.statistics(current_user_id)


@router.get("/wear-trends", response_model=WearTrends)
async def get_wear_trends(
    days: int = Query(30, ge=1, le=365),
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    return await garments.wear_trends(current_user_id, days)


@router.get("/search", response_model=List[GarmentResponse])
async def search_garments(
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    """🔍 Similarity search over garment descriptions (keyword match as fallback)"""
    return await garments.search(current_user_id, q, limit)


@router.post("/batch-wear")
async def batch_record_wear(
    request: BatchWearRequest,
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    updated = await garments.batch_wear(current_user_id, request.garment_ids)
    return {
        "message": f"Recorded wear for {updated} garment(s)",
        "updated_count": updated,
    }


# ============================================
# Parameterized routes
# ============================================

@router.get("/{garment_id}", response_model=GarmentResponse)
async def get_garment(
    garment_id: str,
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    garment = await garments.get(current_user_id, garment_id)
    if garment is None:
        raise _not_found()
    return GarmentResponse.from_garment(garment)


@router.put("/{garment_id}", response_model=GarmentResponse)
async def update_garment(
    garment_id: str,
    update: GarmentUpdate,
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    garment = await garments.update(current_user_id, garment_id, update)
    if garment is None:
        raise _not_found()
    return GarmentResponse.from_garment(garment)


@router.post("/{garment_id}/wear", response_model=GarmentResponse)
async def record_wear(
    garment_id: str,
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    garment = await garments.record_wear(current_user_id, garment_id)
    if garment is None:
        raise _not_found()
    return GarmentResponse.from_garment(garment)


@router.post("/{garment_id}/keep", response_model=GarmentResponse)
async def keep_garment(
    garment_id: str,
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    """Hide from declutter suggestions for the next 90 days"""
    garment = await garments.keep(current_user_id, garment_id)
    if garment is None:
        raise _not_found()
    return GarmentResponse.from_garment(garment)


@router.post("/{garment_id}/reanalyze", response_model=UploadResult)
async def reanalyze_garment(
    garment_id: str,
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    try:
        result = await garments.reanalyze(current_user_id, garment_id)
    except FileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Image file not found"
        )
    if result is None:
        raise _not_found()
    return result


@router.delete("/{garment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_garment(
    garment_id: str,
    current_user_id: str = Depends(get_current_user_id),
    garments: GarmentService = Depends(get_garment_service),
):
    if not await garments.delete(current_user_id, garment_id):
        raise _not_found()
