from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime
from enum import Enum


class GarmentCategory(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    OUTERWEAR = "outerwear"
    SHOES = "shoes"
    ACCESSORY = "accessory"
    UNDERWEAR = "underwear"
    SPORTSWEAR = "sportswear"
    FORMALWEAR = "formalwear"


class Style(str, Enum):
    CASUAL = "casual"
    FORMAL = "formal"
    SPORT = "sport"
    FASHION = "fashion"
    VINTAGE = "vintage"
    MINIMAL = "minimal"
    STREET = "street"


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class Condition(str, Enum):
    NEW = "new"
    GOOD = "good"
    FAIR = "fair"
    WORN = "worn"
    DISCARD = "discard"


UNKNOWN_COLOR = "unknown"
FALLBACK_PROVIDER = "fallback"
NEEDS_REANALYSIS_TAG = "needs-reanalysis"


class ClothingAttributes(BaseModel):
    """Normalized result of analyzing one garment photo."""

    category: GarmentCategory = GarmentCategory.TOP
    sub_category: str = "general"
    colors: List[str] = Field(default_factory=lambda: [UNKNOWN_COLOR])
    style: Style = Style.CASUAL
    seasons: List[Season] = Field(
        default_factory=lambda: [Season.SPRING, Season.AUTUMN]
    )
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    detected_features: List[str] = []
    suggested_tags: List[str] = []
    provider: str = "unknown"
    latency_ms: int = 0
    provider_errors: List[str] = []

    @field_validator("colors")
    @classmethod
    def colors_never_empty(cls, v):
        cleaned = [c for c in v if c]
        return cleaned or [UNKNOWN_COLOR]

    @property
    def is_fallback(self) -> bool:
        return self.provider == FALLBACK_PROVIDER

    @property
    def has_generic_colors(self) -> bool:
        return not self.colors or self.colors == [UNKNOWN_COLOR]

    class Config:
        use_enum_values = True
        validate_default = True


def default_attributes(latency_ms: int = 0) -> ClothingAttributes:
    """Fixed low-confidence result used when every provider failed."""
    return ClothingAttributes(
        category=GarmentCategory.TOP,
        sub_category="general",
        colors=[UNKNOWN_COLOR],
        style=Style.CASUAL,
        seasons=[Season.SPRING, Season.AUTUMN],
        confidence=0.3,
        detected_features=["clothing"],
        suggested_tags=[NEEDS_REANALYSIS_TAG],
        provider=FALLBACK_PROVIDER,
        latency_ms=latency_ms,
    )


class AIAnalysis(BaseModel):
    confidence: float = 0.0
    detected_features: List[str] = []
    suggested_tags: List[str] = []
    provider: Optional[str] = None
    reanalyzed_at: Optional[datetime] = None


class Garment(BaseModel):
    id: str
    user_id: str
    image_url: Optional[str] = None
    category: GarmentCategory
    sub_category: str = "general"
    colors: List[str] = Field(default_factory=lambda: [UNKNOWN_COLOR])
    style: Optional[Style] = None
    seasons: List[Season] = []
    brand: Optional[str] = None
    size: Optional[str] = None
    condition: Condition = Condition.GOOD
    tags: List[str] = []
    notes: Optional[str] = None
    wear_count: int = Field(0, ge=0)
    last_worn: Optional[datetime] = None
    keep_until: Optional[datetime] = None
    ai_analysis: AIAnalysis = Field(default_factory=AIAnalysis)
    embedding: Optional[List[float]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        use_enum_values = True
        validate_default = True

    def describe(self) -> str:
        """Plain-text description used for embeddings and keyword search."""
        parts = [
            " ".join(self.colors),
            self.style or "",
            self.sub_category,
            self.category,
            self.brand or "",
            " ".join(self.tags),
            " ".join(self.seasons),
        ]
        return " ".join(p for p in parts if p).strip()


class GarmentUpdate(BaseModel):
    category: Optional[GarmentCategory] = None
    sub_category: Optional[str] = Field(None, min_length=1, max_length=100)
    colors: Optional[List[str]] = None
    style: Optional[Style] = None
    seasons: Optional[List[Season]] = None
    brand: Optional[str] = None
    size: Optional[str] = None
    condition: Optional[Condition] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None

    class Config:
        use_enum_values = True


class GarmentResponse(BaseModel):
    id: str
    user_id: str
    image_url: Optional[str] = None
    category: str
    sub_category: str
    colors: List[str]
    style: Optional[str] = None
    seasons: List[str] = []
    brand: Optional[str] = None
    size: Optional[str] = None
    condition: str
    tags: List[str] = []
    notes: Optional[str] = None
    wear_count: int
    last_worn: Optional[datetime] = None
    keep_until: Optional[datetime] = None
    ai_analysis: AIAnalysis
    created_at: datetime
    updated_at: datetime
    similarity_score: Optional[float] = None

    @classmethod
    def from_garment(cls, garment: Garment, similarity_score: Optional[float] = None):
        data = garment.model_dump(exclude={"embedding"})
        return cls(**data, similarity_score=similarity_score)


class UploadResult(BaseModel):
    garment: GarmentResponse
    analysis: ClothingAttributes


class BatchItemResult(BaseModel):
    index: int
    filename: Optional[str] = None
    success: bool
    garment: Optional[GarmentResponse] = None
    error: Optional[str] = None


class BatchUploadResult(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[BatchItemResult]


class WearRange(BaseModel):
    min: int = 0
    max: int = 0


class WardrobeStatistics(BaseModel):
    total_garments: int = 0
    category_distribution: Dict[str, int] = {}
    color_distribution: Dict[str, int] = {}
    average_wear_count: float = 0.0
    wear_range: WearRange = Field(default_factory=WearRange)
    total_wears: int = 0
    rarely_worn_count: int = 0
    recent_wears_count: int = 0
    utilization_rate: int = 0


class WearTrendPoint(BaseModel):
    date: str
    count: int


class WearTrends(BaseModel):
    trends: List[WearTrendPoint]
    total_days: int
    average_daily: float


class DeclutterReason(str, Enum):
    RARELY_WORN = "rarely_worn"
    POOR_CONDITION = "poor_condition"
    DUPLICATE = "duplicate"


class DeclutterSuggestion(BaseModel):
    garment: GarmentResponse
    reason: DeclutterReason
    suggestion: str
    priority: str

    class Config:
        use_enum_values = True


class DeclutterSummary(BaseModel):
    total: int = 0
    rarely_worn: int = 0
    poor_condition: int = 0
    duplicate: int = 0


class DeclutterReport(BaseModel):
    suggestions: List[DeclutterSuggestion]
    summary: DeclutterSummary


class ShoppingSuggestion(BaseModel):
    category: str
    current_count: int
    recommended_count: int
    reason: str
    priority: str
    suggested_styles: List[str]
