from typing import Optional, Dict, Any
from datetime import datetime
from bson import ObjectId
from bson.errors import InvalidId

from smart_wardrobe.models.preference import UserPreferenceState
from smart_wardrobe.models.user import UserInDB


def _user_filter(user_id: str) -> Dict[str, Any]:
    try:
        return {"_id": ObjectId(user_id)}
    except (InvalidId, TypeError):
        return {"_id": user_id}


def _to_user(doc: Dict[str, Any]) -> UserInDB:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    doc.setdefault("name", "guest")
    return UserInDB(**doc)


class UserRepository:
    """User accounts plus the learned preference document stored on each user."""

    def __init__(self, collection):
        self.collection = collection

    async def create(self, data: Dict[str, Any]) -> UserInDB:
        doc = dict(data)
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _to_user(doc)

    async def get(self, user_id: str) -> Optional[UserInDB]:
        doc = await self.collection.find_one(_user_filter(user_id))
        return _to_user(doc) if doc else None

    async def get_by_email(self, email: str) -> Optional[UserInDB]:
        doc = await self.collection.find_one({"email": email})
        return _to_user(doc) if doc else None

    async def get_learning_data(self, user_id: str) -> Optional[UserPreferenceState]:
        doc = await self.collection.find_one(
            _user_filter(user_id), {"learning_data": 1}
        )
        if not doc or not doc.get("learning_data"):
            return None
        return UserPreferenceState(**doc["learning_data"])

    async def save_learning_data(self, user_id: str, state: UserPreferenceState) -> None:
        # Whole-document write; the guest user may not have an account yet
        state.updated_at = datetime.utcnow()
        await self.collection.update_one(
            _user_filter(user_id),
            {"$set": {"learning_data": state.model_dump()}},
            upsert=True,
        )

    async def clear_learning_data(self, user_id: str) -> None:
        await self.collection.update_one(
            _user_filter(user_id), {"$unset": {"learning_data": 1}}
        )

    async def update(self, user_id: str, fields: Dict[str, Any], upsert: bool = False) -> Optional[UserInDB]:
        result = await self.collection.update_one(
            _user_filter(user_id), {"$set": fields}, upsert=upsert
        )
        if not result.matched_count and result.upserted_id is None:
            return None
        return await self.get(user_id)
