from pydantic import BaseModel, Field, field_validator
from typing import Optional, List


class RankedOutfit(BaseModel):
    items: List[str]
    style: Optional[str] = None
    seasons: List[str] = []
    color_harmony: float
    occasion: str
    source: str = "rules"
    preference_score: float = 0.0
    reason: Optional[str] = None
    tips: Optional[str] = None


class AIOutfitSuggestion(BaseModel):
    """One outfit as returned by the language model, before validation against the wardrobe."""

    items: List[str] = Field(..., min_length=2)
    reason: str = ""
    occasion: str = "daily casual"
    style: str = ""
    color_harmony: int = Field(..., ge=1, le=10)
    season_suitability: List[str] = []
    tips: Optional[str] = None

    @field_validator("items", mode="before")
    @classmethod
    def ids_as_strings(cls, v):
        return [str(i) for i in v] if isinstance(v, list) else v


class AIOutfitResponse(BaseModel):
    recommendations: List[AIOutfitSuggestion] = Field(..., min_length=1)


class OutfitRecommendations(BaseModel):
    message: str
    recommendations: List[RankedOutfit]
    total_garments: int
    source: str


class OutfitFeedback(BaseModel):
    outfit_items: List[str] = Field(..., min_length=1)
    liked: bool
    rating: Optional[float] = Field(None, ge=1, le=10)
    occasion: Optional[str] = None
    reason: Optional[str] = None
    time_spent: Optional[float] = Field(None, ge=0)
    session_id: Optional[str] = None
