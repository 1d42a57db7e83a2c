from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from datetime import datetime
import logging

from smart_wardrobe.config import Settings
from smart_wardrobe.dependencies import get_settings_dep, get_user_repository
from smart_wardrobe.models.user import (
    Token,
    TokenRefresh,
    UserCreate,
    UserLogin,
    UserProfile,
    UserResponse,
    UserUpdate,
)
from smart_wardrobe.repositories import UserRepository
from smart_wardrobe.utils.auth import (
    get_password_hash,
    verify_password,
    create_access_token,
    get_current_user_id,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = logging.getLogger(__name__)


# -----------------------------
# Register
# -----------------------------

@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings_dep),
):
    existing_user = await users.get_by_email(user_data.email)
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    password_hash = await run_in_threadpool(get_password_hash, user_data.password)

    user = await users.create({
        "email": user_data.email,
        "name": user_data.name,
        "password_hash": password_hash,
        "profile": user_data.profile.model_dump(),
        "created_at": datetime.utcnow(),
    })
    logger.info(f"👤 Registered user {user.id}")

    access_token = create_access_token({"sub": user.id, "email": user.email}, settings)
    return Token(
        access_token=access_token,
        user=UserResponse(**user.model_dump(exclude={"password_hash"}))
    )


# -----------------------------
# Login
# -----------------------------

@router.post("/login", response_model=Token)
async def login(
    credentials: UserLogin,
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings_dep),
):
    user = await users.get_by_email(credentials.email)

    password_valid = False
    if user and user.password_hash:
        password_valid = await run_in_threadpool(
            verify_password, credentials.password, user.password_hash
        )

    if not password_valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"}
        )

    access_token = create_access_token({"sub": user.id, "email": user.email}, settings)
    return Token(
        access_token=access_token,
        user=UserResponse(**user.model_dump(exclude={"password_hash"}))
    )


# -----------------------------
# Profile
# -----------------------------

@router.get("/profile", response_model=UserResponse)
async def get_profile(
    current_user_id: str = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings_dep),
):
    user = await users.get(current_user_id)
    if user is None:
        if current_user_id == settings.GUEST_USER_ID:
            return UserResponse(id=current_user_id, name="guest")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return UserResponse(**user.model_dump(exclude={"password_hash"}))


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    update: UserUpdate,
    current_user_id: str = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings_dep),
):
    """Rename the user and/or merge profile fields into the stored profile"""
    is_guest = current_user_id == settings.GUEST_USER_ID
    user = await users.get(current_user_id)
    if user is None and not is_guest:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    fields = {}
    if update.name:
        fields["name"] = update.name
    if update.profile is not None:
        current = user.profile if user else UserProfile()
        changes = update.profile.model_dump(exclude_unset=True, exclude_none=True)
        merged = {**current.model_dump(), **changes}
        fields["profile"] = UserProfile(**merged).model_dump()

    if not fields:
        return await get_profile(current_user_id, users, settings)

    # The guest document is created on its first edit
    updated = await users.update(current_user_id, fields, upsert=is_guest)
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    logger.info(f"👤 Updated profile for {current_user_id}: {sorted(fields)}")
    return UserResponse(**updated.model_dump(exclude={"password_hash"}))


# -----------------------------
# Token refresh
# -----------------------------

@router.post("/refresh", response_model=TokenRefresh)
async def refresh_token(
    current_user_id: str = Depends(get_current_user_id),
    users: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings_dep),
):
    user = await users.get(current_user_id)
    claims = {"sub": current_user_id}
    if user is not None and user.email:
        claims["email"] = user.email
    return TokenRefresh(access_token=create_access_token(claims, settings))
