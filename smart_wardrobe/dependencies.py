"""
Service wiring: one container per application, stored on app.state
"""

from dataclasses import dataclass
from typing import Optional
from fastapi import Request

from smart_wardrobe.config import Settings
from smart_wardrobe.repositories import BehaviorRepository, GarmentRepository, UserRepository
from smart_wardrobe.services.embedding_service import EmbeddingService
from smart_wardrobe.services.garment_service import GarmentService
from smart_wardrobe.services.image_service import ImageService
from smart_wardrobe.services.learning_service import LearningService
from smart_wardrobe.services.outfit_advisor_service import OutfitAdvisor
from smart_wardrobe.services.outfit_service import OutfitService
from smart_wardrobe.services.pattern_service import PatternService
from smart_wardrobe.services.vision_service import (
    AnalysisMetrics,
    VisionAnalysisGateway,
    build_vision_providers,
)


@dataclass
class ServiceContainer:
    settings: Settings
    users: UserRepository
    garments: GarmentRepository
    behaviors: BehaviorRepository
    metrics: AnalysisMetrics
    vision: VisionAnalysisGateway
    images: ImageService
    embeddings: EmbeddingService
    patterns: PatternService
    learning: LearningService
    outfits: OutfitService
    garment_service: GarmentService


def build_container(
    settings: Settings,
    users: UserRepository,
    garments: GarmentRepository,
    behaviors: BehaviorRepository,
    vision: Optional[VisionAnalysisGateway] = None,
    images: Optional[ImageService] = None,
    embeddings: Optional[EmbeddingService] = None,
    advisor: Optional[OutfitAdvisor] = None,
) -> ServiceContainer:
    """Assemble services around the given repositories; overrides are for tests"""
    metrics = vision.metrics if vision is not None else AnalysisMetrics()
    if vision is None:
        vision = VisionAnalysisGateway(
            build_vision_providers(settings),
            metrics,
            preferred=settings.PREFERRED_AI_SERVICE,
            low_confidence_threshold=settings.LOW_CONFIDENCE_THRESHOLD,
        )
    images = images or ImageService(settings)
    embeddings = embeddings or EmbeddingService(
        settings.OPENAI_API_KEY,
        model=settings.OPENAI_EMBEDDING_MODEL,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )
    if advisor is None:
        advisor = OutfitAdvisor(
            gemini_api_key=settings.GEMINI_API_KEY,
            openai_api_key=settings.OPENAI_API_KEY,
            gemini_model=settings.GEMINI_TEXT_MODEL,
            openai_model=settings.OPENAI_TEXT_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )

    patterns = PatternService(behaviors)
    learning = LearningService(behaviors, users, garments, patterns)

    return ServiceContainer(
        settings=settings,
        users=users,
        garments=garments,
        behaviors=behaviors,
        metrics=metrics,
        vision=vision,
        images=images,
        embeddings=embeddings,
        patterns=patterns,
        learning=learning,
        outfits=OutfitService(garments, learning, advisor),
        garment_service=GarmentService(
            garments,
            vision,
            images,
            embeddings,
            batch_concurrency=settings.BATCH_UPLOAD_CONCURRENCY,
            generate_embeddings=settings.GENERATE_EMBEDDINGS_ON_UPLOAD,
        ),
    )


def build_mongo_container(settings: Settings, db) -> ServiceContainer:
    return build_container(
        settings,
        users=UserRepository(db.users),
        garments=GarmentRepository(db.garments),
        behaviors=BehaviorRepository(db.behavior_events),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_settings_dep(request: Request) -> Settings:
    return get_container(request).settings


def get_garment_service(request: Request) -> GarmentService:
    return get_container(request).garment_service


def get_learning_service(request: Request) -> LearningService:
    return get_container(request).learning


def get_pattern_service(request: Request) -> PatternService:
    return get_container(request).patterns


def get_outfit_service(request: Request) -> OutfitService:
    return get_container(request).outfits


def get_vision_gateway(request: Request) -> VisionAnalysisGateway:
    return get_container(request).vision


def get_image_service(request: Request) -> ImageService:
    return get_container(request).images


def get_user_repository(request: Request) -> UserRepository:
    return get_container(request).users
