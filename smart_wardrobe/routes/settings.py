from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from datetime import datetime
import logging

from smart_wardrobe.config import Settings
from smart_wardrobe.dependencies import get_settings_dep, get_vision_gateway
from smart_wardrobe.services.vision_service import AUTO, VisionAnalysisGateway
from smart_wardrobe.utils.auth import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


class AIProviderRequest(BaseModel):
    provider: str


@router.get("")
async def get_current_settings(
    current_user_id: str = Depends(get_current_user_id),
    vision: VisionAnalysisGateway = Depends(get_vision_gateway),
    settings: Settings = Depends(get_settings_dep),
):
    return {
        "ai_provider": vision.preferred,
        "available_services": vision.available_services,
        "has_gemini_key": bool(settings.GEMINI_API_KEY),
        "has_openai_key": bool(settings.OPENAI_API_KEY),
        "has_kimi_key": bool(settings.KIMI_API_KEY),
        "has_anthropic_key": bool(settings.ANTHROPIC_API_KEY),
        "has_google_vision_key": bool(settings.GOOGLE_VISION_API_KEY),
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.post("/ai-provider")
async def set_ai_provider(
    request: AIProviderRequest,
    current_user_id: str = Depends(get_current_user_id),
    vision: VisionAnalysisGateway = Depends(get_vision_gateway),
):
    """Switch the preferred vision provider for this process ("auto" walks the chain)"""
    valid = [AUTO] + list(vision.providers)
    if request.provider not in valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid AI provider. Valid: {', '.join(valid)}"
        )

    vision.set_preferred(request.provider)
    return {
        "success": True,
        "provider": request.provider,
        "message": f"AI provider set to {request.provider}",
        "timestamp": datetime.utcnow().isoformat(),
    }
