from typing import List, Dict, Any
from datetime import datetime
from pymongo import DESCENDING

from smart_wardrobe.models.behavior import BehaviorEvent


def _to_event(doc: Dict[str, Any]) -> BehaviorEvent:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return BehaviorEvent(**doc)


class BehaviorRepository:
    """Append-only behavior log. Expiry is handled by the TTL index."""

    def __init__(self, collection):
        self.collection = collection

    async def insert(self, data: Dict[str, Any]) -> BehaviorEvent:
        doc = dict(data)
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _to_event(doc)

    async def find_since(self, user_id: str, since: datetime) -> List[BehaviorEvent]:
        cursor = self.collection.find(
            {"user_id": user_id, "created_at": {"$gte": since}}
        ).sort("created_at", DESCENDING)
        return [_to_event(doc) for doc in await cursor.to_list(length=None)]

    async def delete_for_user(self, user_id: str) -> int:
        result = await self.collection.delete_many({"user_id": user_id})
        return result.deleted_count
