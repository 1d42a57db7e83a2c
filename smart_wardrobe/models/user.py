from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime


class UserProfile(BaseModel):
    age: Optional[int] = Field(None, ge=0, le=130)
    gender: Optional[str] = None
    body_type: Optional[str] = None
    preferred_styles: List[str] = []
    color_preferences: List[str] = []
    lifestyle: Optional[str] = None


class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=2, max_length=100)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=72)
    profile: UserProfile = Field(default_factory=UserProfile)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if not any(char.isdigit() for char in v):
            raise ValueError('Password must contain at least one digit')
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: str
    profile: UserProfile = Field(default_factory=UserProfile)
    created_at: Optional[datetime] = None


class UserInDB(UserResponse):
    password_hash: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UserProfileUpdate(BaseModel):
    age: Optional[int] = Field(None, ge=0, le=130)
    gender: Optional[str] = None
    body_type: Optional[str] = None
    preferred_styles: Optional[List[str]] = None
    color_preferences: Optional[List[str]] = None
    lifestyle: Optional[str] = None


class UserUpdate(BaseModel):
    """Partial profile edit; profile fields are merged into the stored profile."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    profile: Optional[UserProfileUpdate] = None


class TokenRefresh(BaseModel):
    access_token: str
    token_type: str = "bearer"
