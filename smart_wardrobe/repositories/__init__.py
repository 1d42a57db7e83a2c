from smart_wardrobe.repositories.garment_repository import GarmentRepository
from smart_wardrobe.repositories.behavior_repository import BehaviorRepository
from smart_wardrobe.repositories.user_repository import UserRepository

__all__ = ["GarmentRepository", "BehaviorRepository", "UserRepository"]
