from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Form
from typing import Optional
import logging

from smart_wardrobe.dependencies import get_image_service, get_vision_gateway
from smart_wardrobe.services.image_service import ImageService
from smart_wardrobe.services.vision_service import AUTO, VisionAnalysisGateway
from smart_wardrobe.utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI Diagnostics"])


@router.post("/test-analysis")
async def test_analysis(
    file: UploadFile = File(...),
    service: Optional[str] = Form(None),
    current_user_id: str = Depends(get_current_user_id),
    vision: VisionAnalysisGateway = Depends(get_vision_gateway),
    images: ImageService = Depends(get_image_service),
):
    """
    🧪 Analyze a photo without saving anything

    service: a provider name to try first, or "auto" for the normal chain
    """
    service = service or AUTO
    if service != AUTO and service not in vision.providers:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown AI service: {service}"
        )

    content, mime_type = await images.read_upload(file)
    result = await vision.analyze(content, mime_type, service=service)

    return {
        "message": "AI analysis test complete",
        "requested_service": service,
        "result": result,
        "metrics": vision.metrics.snapshot(),
    }


@router.get("/service-status")
async def service_status(
    current_user_id: str = Depends(get_current_user_id),
    vision: VisionAnalysisGateway = Depends(get_vision_gateway),
):
    configured = set(vision.available_services)
    return {
        "current_service": vision.preferred,
        "available_services": vision.available_services,
        "services": {
            name: {"available": name in configured}
            for name in vision.providers
        },
        "metrics": vision.metrics.snapshot(),
    }
