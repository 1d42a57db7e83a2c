from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


class BehaviorAction(str, Enum):
    VIEW_CLOTHING = "view_clothing"
    LIKE_OUTFIT = "like_outfit"
    DISLIKE_OUTFIT = "dislike_outfit"
    WEAR_CLOTHING = "wear_clothing"
    SAVE_OUTFIT = "save_outfit"
    REJECT_RECOMMENDATION = "reject_recommendation"
    ACCEPT_RECOMMENDATION = "accept_recommendation"
    SEARCH_CLOTHING = "search_clothing"
    FILTER_CLOTHING = "filter_clothing"
    UPLOAD_CLOTHING = "upload_clothing"
    DELETE_CLOTHING = "delete_clothing"
    EDIT_CLOTHING = "edit_clothing"


class TargetType(str, Enum):
    CLOTHING = "clothing"
    OUTFIT = "outfit"
    RECOMMENDATION = "recommendation"
    SEARCH = "search"
    FILTER = "filter"


class DeviceType(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class BehaviorContext(BaseModel):
    page: Optional[str] = None
    session_id: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: DeviceType = DeviceType.DESKTOP

    class Config:
        use_enum_values = True


class BehaviorMetadata(BaseModel):
    search_query: Optional[str] = None
    filter_criteria: Optional[Dict[str, Any]] = None
    outfit_items: Optional[List[str]] = None
    occasion: Optional[str] = None
    rating: Optional[float] = None
    reason: Optional[str] = None
    previous_action: Optional[str] = None
    time_spent: Optional[float] = Field(None, ge=0, description="Seconds")

    class Config:
        extra = "allow"


class BehaviorCreate(BaseModel):
    action: BehaviorAction
    target_type: TargetType
    target_id: Optional[str] = None
    context: BehaviorContext = Field(default_factory=BehaviorContext)
    metadata: BehaviorMetadata = Field(default_factory=BehaviorMetadata)

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "action": "dislike_outfit",
                "target_type": "outfit",
                "metadata": {
                    "outfit_items": ["a", "b", "c"],
                    "occasion": "work/formal",
                    "time_spent": 4.2,
                },
            }
        }


class BehaviorEvent(BehaviorCreate):
    """Stored, immutable behavior log entry."""

    id: str
    user_id: str
    created_at: datetime

    class Config:
        use_enum_values = True
        frozen = True


class BehaviorBatch(BaseModel):
    behaviors: List[BehaviorCreate] = Field(..., max_length=200)


class BehaviorRecorded(BaseModel):
    message: str = "Behavior recorded"
    behavior_id: str


class BatchBehaviorItem(BaseModel):
    success: bool
    behavior_id: Optional[str] = None
    error: Optional[str] = None


class BatchBehaviorResult(BaseModel):
    message: str
    succeeded: int
    total: int
    results: List[BatchBehaviorItem]


# ---------------------------------------------------------------------------
# Pattern reports
# ---------------------------------------------------------------------------

class ActionCount(BaseModel):
    action: str
    count: int


class SessionStats(BaseModel):
    total_sessions: int = 0
    average_session_length: int = 0


class DecisionSpeed(str, Enum):
    FAST = "fast"
    NORMAL = "normal"
    SLOW = "slow"


class PatternReport(BaseModel):
    window_days: int
    total_events: int = 0
    most_active_hour: int = 12
    preferred_actions: List[ActionCount] = []
    session_patterns: SessionStats = Field(default_factory=SessionStats)
    engagement_ratio: float = 0.0
    decision_speed: DecisionSpeed = DecisionSpeed.NORMAL

    class Config:
        use_enum_values = True
        validate_default = True
