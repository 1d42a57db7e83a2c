from typing import Optional, List, Dict, Any
from datetime import datetime
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument
import logging

from smart_wardrobe.models.garment import Garment

logger = logging.getLogger(__name__)


def _object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _to_garment(doc: Dict[str, Any]) -> Garment:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return Garment(**doc)


class GarmentRepository:
    """Garment documents, always scoped by owner."""

    def __init__(self, collection):
        self.collection = collection

    async def create(self, data: Dict[str, Any]) -> Garment:
        doc = dict(data)
        doc.pop("id", None)
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _to_garment(doc)

    async def get(self, user_id: str, garment_id: str) -> Optional[Garment]:
        oid = _object_id(garment_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid, "user_id": user_id})
        return _to_garment(doc) if doc else None

    async def find_by_ids(self, user_id: str, garment_ids: List[str]) -> List[Garment]:
        oids = [oid for oid in (_object_id(g) for g in garment_ids) if oid is not None]
        if not oids:
            return []
        cursor = self.collection.find({"_id": {"$in": oids}, "user_id": user_id})
        return [_to_garment(doc) for doc in await cursor.to_list(length=None)]

    async def list(
        self,
        user_id: str,
        category: Optional[str] = None,
        style: Optional[str] = None,
        season: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Garment]:
        query: Dict[str, Any] = {"user_id": user_id}
        if category:
            query["category"] = category
        if style:
            query["style"] = style
        if season:
            query["seasons"] = season

        cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [_to_garment(doc) for doc in await cursor.to_list(length=limit)]

    async def count(self, user_id: str) -> int:
        return await self.collection.count_documents({"user_id": user_id})

    async def update(
        self, user_id: str, garment_id: str, fields: Dict[str, Any]
    ) -> Optional[Garment]:
        oid = _object_id(garment_id)
        if oid is None:
            return None
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "user_id": user_id},
            {"$set": {**fields, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return _to_garment(doc) if doc else None

    async def record_wear(
        self, user_id: str, garment_ids: List[str], worn_at: datetime
    ) -> int:
        oids = [oid for oid in (_object_id(g) for g in garment_ids) if oid is not None]
        if not oids:
            return 0
        result = await self.collection.update_many(
            {"_id": {"$in": oids}, "user_id": user_id},
            {
                "$inc": {"wear_count": 1},
                "$set": {"last_worn": worn_at, "updated_at": worn_at},
            },
        )
        return result.modified_count

    async def delete(self, user_id: str, garment_id: str) -> Optional[Garment]:
        oid = _object_id(garment_id)
        if oid is None:
            return None
        doc = await self.collection.find_one_and_delete({"_id": oid, "user_id": user_id})
        return _to_garment(doc) if doc else None
