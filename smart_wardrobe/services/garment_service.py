"""
Garment Service - wardrobe operations on top of the repository

Purpose:
- Upload (single and batch) with AI analysis
- Wear tracking, keep marks, edits, re-analysis and deletion
- Search, statistics, wear trends
- Declutter and shopping suggestions
"""

from typing import Optional, List, Dict, Any, Tuple
from collections import Counter, defaultdict
from datetime import datetime, timedelta
import asyncio
import logging

from fastapi import HTTPException

from smart_wardrobe.models.garment import (
    BatchItemResult,
    BatchUploadResult,
    ClothingAttributes,
    Condition,
    DeclutterReason,
    DeclutterReport,
    DeclutterSuggestion,
    DeclutterSummary,
    Garment,
    GarmentCategory,
    GarmentResponse,
    GarmentUpdate,
    ShoppingSuggestion,
    UploadResult,
    WardrobeStatistics,
    WearRange,
    WearTrendPoint,
    WearTrends,
)
from smart_wardrobe.services.embedding_service import keyword_rank

logger = logging.getLogger(__name__)

KEEP_DAYS = 90
RARELY_WORN_WEARS = 3
RECENT_WEAR_DAYS = 30
STALE_DAYS = 183
OLD_DAYS = 365
DUPLICATE_GROUP_SIZE = 3
DUPLICATES_KEPT = 2
MAX_DECLUTTER_SUGGESTIONS = 20

BASIC_NEEDS: Dict[str, Dict[str, Any]] = {
    GarmentCategory.TOP.value: {"min": 5, "styles": ["casual", "formal"]},
    GarmentCategory.BOTTOM.value: {"min": 3, "styles": ["casual", "formal"]},
    GarmentCategory.OUTERWEAR.value: {"min": 2, "styles": ["casual"]},
    GarmentCategory.SHOES.value: {"min": 3, "styles": ["casual", "formal", "sport"]},
}

# (filename, content, mime type)
UploadItem = Tuple[Optional[str], bytes, str]


def garment_fields(attributes: ClothingAttributes, reanalyzed: bool = False) -> Dict[str, Any]:
    """Garment document fields derived from an analysis result"""
    return {
        "category": attributes.category,
        "sub_category": attributes.sub_category,
        "colors": attributes.colors,
        "style": attributes.style,
        "seasons": attributes.seasons,
        "ai_analysis": {
            "confidence": attributes.confidence,
            "detected_features": attributes.detected_features,
            "suggested_tags": attributes.suggested_tags,
            "provider": attributes.provider,
            "reanalyzed_at": datetime.utcnow() if reanalyzed else None,
        },
    }


class GarmentService:
    def __init__(
        self,
        garment_repository,
        vision_gateway,
        image_service,
        embedding_service=None,
        batch_concurrency: int = 3,
        generate_embeddings: bool = True,
    ):
        self.garments = garment_repository
        self.vision = vision_gateway
        self.images = image_service
        self.embeddings = embedding_service
        self.batch_concurrency = batch_concurrency
        self.generate_embeddings = generate_embeddings

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(self, user_id: str, filename: str, content: bytes, mime_type: str) -> UploadResult:
        """Store, analyze and persist one garment photo.

        A low-confidence default analysis is still persisted; it carries the
        "needs-reanalysis" tag.
        """
        image_url = await self.images.save_image(content, filename, mime_type)
        attributes = await self.vision.analyze(content, mime_type)
        try:
            garment = await self._create(user_id, image_url, attributes)
        except Exception:
            await self.images.delete_image(image_url)
            raise
        return UploadResult(garment=GarmentResponse.from_garment(garment), analysis=attributes)

    async def batch_upload(self, user_id: str, items: List[UploadItem]) -> BatchUploadResult:
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def process(index: int, item: UploadItem) -> BatchItemResult:
            filename, content, mime_type = item
            async with semaphore:
                try:
                    garment = await self._upload_batch_item(user_id, filename, content, mime_type)
                    return BatchItemResult(
                        index=index,
                        filename=filename,
                        success=True,
                        garment=GarmentResponse.from_garment(garment),
                    )
                except HTTPException as e:
                    return BatchItemResult(index=index, filename=filename, success=False, error=str(e.detail))
                except Exception as e:
                    logger.error(f"Batch item {index} ({filename}) failed: {e}")
                    return BatchItemResult(index=index, filename=filename, success=False, error=str(e))

        results = await asyncio.gather(*(process(i, item) for i, item in enumerate(items)))
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"📦 Batch upload for {user_id}: {succeeded}/{len(results)} succeeded")

        return BatchUploadResult(
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=list(results),
        )

    async def _upload_batch_item(
        self, user_id: str, filename: Optional[str], content: bytes, mime_type: str
    ) -> Garment:
        self.images.validate_upload(filename, content)
        image_url = await self.images.save_image(content, filename, mime_type)

        attributes = await self.vision.analyze(content, mime_type)
        if attributes.is_fallback:
            # Not persisted so the client can retry the same photo
            await self.images.delete_image(image_url)
            raise RuntimeError("AI analysis failed for every provider")

        try:
            return await self._create(user_id, image_url, attributes)
        except Exception:
            await self.images.delete_image(image_url)
            raise

    async def _create(self, user_id: str, image_url: str, attributes: ClothingAttributes) -> Garment:
        now = datetime.utcnow()
        data = {
            "user_id": user_id,
            "image_url": image_url,
            **garment_fields(attributes),
            "tags": list(attributes.suggested_tags),
            "condition": Condition.GOOD.value,
            "wear_count": 0,
            "last_worn": None,
            "created_at": now,
            "updated_at": now,
        }
        garment = await self.garments.create(data)
        return await self._refresh_embedding(user_id, garment)

    async def _refresh_embedding(self, user_id: str, garment: Garment) -> Garment:
        if not self.generate_embeddings or self.embeddings is None or not self.embeddings.is_configured:
            return garment
        embedding = await self.embeddings.embed(garment.describe())
        if embedding is None:
            return garment
        return await self.garments.update(user_id, garment.id, {"embedding": embedding}) or garment

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def list(self, user_id: str, category: Optional[str] = None, style: Optional[str] = None,
                   season: Optional[str] = None, skip: int = 0, limit: int = 50) -> List[Garment]:
        return await self.garments.list(
            user_id, category=category, style=style, season=season, skip=skip, limit=limit
        )

    async def get(self, user_id: str, garment_id: str) -> Optional[Garment]:
        return await self.garments.get(user_id, garment_id)

    async def update(self, user_id: str, garment_id: str, update: GarmentUpdate) -> Optional[Garment]:
        fields = update.model_dump(exclude_unset=True)
        if not fields:
            return await self.garments.get(user_id, garment_id)
        if "colors" in fields:
            fields["colors"] = [c.strip().lower() for c in fields["colors"] if c.strip()] or ["unknown"]
        garment = await self.garments.update(user_id, garment_id, fields)
        if garment is None:
            return None
        return await self._refresh_embedding(user_id, garment)

    async def delete(self, user_id: str, garment_id: str) -> bool:
        garment = await self.garments.delete(user_id, garment_id)
        if garment is None:
            return False
        await self.images.delete_image(garment.image_url)
        return True

    async def record_wear(self, user_id: str, garment_id: str) -> Optional[Garment]:
        updated = await self.garments.record_wear(user_id, [garment_id], datetime.utcnow())
        if not updated:
            return None
        return await self.garments.get(user_id, garment_id)

    async def batch_wear(self, user_id: str, garment_ids: List[str]) -> int:
        return await self.garments.record_wear(user_id, list(dict.fromkeys(garment_ids)), datetime.utcnow())

    async def keep(self, user_id: str, garment_id: str) -> Optional[Garment]:
        keep_until = datetime.utcnow() + timedelta(days=KEEP_DAYS)
        return await self.garments.update(user_id, garment_id, {"keep_until": keep_until})

    async def reanalyze(self, user_id: str, garment_id: str) -> Optional[UploadResult]:
        garment = await self.garments.get(user_id, garment_id)
        if garment is None:
            return None
        if not garment.image_url:
            raise FileNotFoundError("Garment has no stored image")

        content = await self.images.read_image(garment.image_url)
        attributes = await self.vision.analyze(content, self.images.guess_mime_type(garment.image_url))
        updated = await self.garments.update(user_id, garment_id, garment_fields(attributes, reanalyzed=True))
        if updated is None:
            return None
        updated = await self._refresh_embedding(user_id, updated)
        return UploadResult(garment=GarmentResponse.from_garment(updated), analysis=attributes)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, user_id: str, query: str, limit: int = 20) -> List[GarmentResponse]:
        garments = await self.garments.list(user_id)

        ranked: List[Tuple[Garment, float]] = []
        if self.embeddings is not None and self.embeddings.is_configured:
            query_embedding = await self.embeddings.embed(query)
            if query_embedding is not None and any(g.embedding for g in garments):
                ranked = self.embeddings.rank_by_similarity(query_embedding, garments)

        if not ranked:
            ranked = keyword_rank(query, garments)

        return [GarmentResponse.from_garment(g, similarity_score=s) for g, s in ranked[:limit]]

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def statistics(self, user_id: str) -> WardrobeStatistics:
        garments = await self.garments.list(user_id)
        if not garments:
            return WardrobeStatistics()

        total = len(garments)
        wear_counts = [g.wear_count for g in garments]
        recent_cutoff = datetime.utcnow() - timedelta(days=RECENT_WEAR_DAYS)
        recent = sum(1 for g in garments if g.last_worn and g.last_worn >= recent_cutoff)

        return WardrobeStatistics(
            total_garments=total,
            category_distribution=dict(Counter(g.category for g in garments)),
            color_distribution=dict(Counter(g.colors[0] for g in garments if g.colors)),
            average_wear_count=round(sum(wear_counts) / total, 2),
            wear_range=WearRange(min=min(wear_counts), max=max(wear_counts)),
            total_wears=sum(wear_counts),
            rarely_worn_count=sum(1 for c in wear_counts if c < RARELY_WORN_WEARS),
            recent_wears_count=recent,
            utilization_rate=round(recent / total * 100),
        )

    async def wear_trends(self, user_id: str, days: int = 30) -> WearTrends:
        today = datetime.utcnow().date()
        start = today - timedelta(days=days - 1)

        counts: Counter = Counter()
        for garment in await self.garments.list(user_id):
            if garment.last_worn and garment.last_worn.date() >= start:
                counts[garment.last_worn.date().isoformat()] += 1

        trends = [
            WearTrendPoint(date=day.isoformat(), count=counts.get(day.isoformat(), 0))
            for day in (start + timedelta(days=i) for i in range(days))
        ]
        return WearTrends(
            trends=trends,
            total_days=days,
            average_daily=sum(p.count for p in trends) / days,
        )

    async def declutter(self, user_id: str) -> DeclutterReport:
        now = datetime.utcnow()
        stale = now - timedelta(days=STALE_DAYS)
        old = now - timedelta(days=OLD_DAYS)

        garments = [
            g for g in await self.garments.list(user_id)
            if not (g.keep_until and g.keep_until > now)
        ]
        garments.sort(key=lambda g: g.created_at)

        rarely_worn = [
            g for g in garments
            if (g.wear_count < RARELY_WORN_WEARS and g.created_at < old)
            or (g.last_worn is not None and g.last_worn < stale)
            or (g.last_worn is None and g.created_at < stale)
        ]
        poor_condition = [
            g for g in garments
            if g.condition in (Condition.WORN.value, Condition.DISCARD.value)
        ]

        groups: Dict[Tuple, List[Garment]] = defaultdict(list)
        for g in garments:
            groups[(g.category, g.sub_category, tuple(g.colors))].append(g)
        duplicates = [
            g for group in groups.values() if len(group) > DUPLICATE_GROUP_SIZE
            for g in group[DUPLICATES_KEPT:]
        ]

        suggestions = (
            [self._suggestion(g, DeclutterReason.RARELY_WORN, "Consider donating or selling", "medium")
             for g in rarely_worn]
            + [self._suggestion(g, DeclutterReason.POOR_CONDITION, "Time to retire this item", "high")
               for g in poor_condition]
            + [self._suggestion(g, DeclutterReason.DUPLICATE, "Keep your favourite few", "low")
               for g in duplicates]
        )

        return DeclutterReport(
            suggestions=suggestions[:MAX_DECLUTTER_SUGGESTIONS],
            summary=DeclutterSummary(
                total=len(suggestions),
                rarely_worn=len(rarely_worn),
                poor_condition=len(poor_condition),
                duplicate=len(duplicates),
            ),
        )

    @staticmethod
    def _suggestion(garment: Garment, reason: DeclutterReason, text: str, priority: str) -> DeclutterSuggestion:
        return DeclutterSuggestion(
            garment=GarmentResponse.from_garment(garment),
            reason=reason,
            suggestion=text,
            priority=priority,
        )

    async def shopping(self, user_id: str) -> List[ShoppingSuggestion]:
        counts = Counter(g.category for g in await self.garments.list(user_id))
        suggestions = []
        for category, needs in BASIC_NEEDS.items():
            current = counts.get(category, 0)
            if current < needs["min"]:
                suggestions.append(ShoppingSuggestion(
                    category=category,
                    current_count=current,
                    recommended_count=needs["min"],
                    reason=f"Only {current} {category} item(s), {needs['min']} recommended; "
                           f"consider buying {needs['min'] - current} more",
                    priority="high" if current == 0 else "medium",
                    suggested_styles=needs["styles"],
                ))
        return suggestions
