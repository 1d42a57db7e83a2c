"""
Pytest configuration and shared fixtures for the wardrobe API tests.

Repositories are replaced by in-memory versions with the same async
interface; vision providers are scripted so no network call is made.
"""
import asyncio
import json
from datetime import datetime
from io import BytesIO
from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from PIL import Image

from smart_wardrobe.config import Settings
from smart_wardrobe.dependencies import build_container
from smart_wardrobe.models.behavior import BehaviorEvent
from smart_wardrobe.models.garment import Garment
from smart_wardrobe.models.preference import UserPreferenceState
from smart_wardrobe.models.user import UserInDB
from smart_wardrobe.services.embedding_service import EmbeddingService
from smart_wardrobe.services.outfit_advisor_service import OutfitAdvisor
from smart_wardrobe.services.vision_providers import ProviderError, VisionProvider
from smart_wardrobe.services.vision_service import AnalysisMetrics, VisionAnalysisGateway


# ============================================================================
# In-memory repositories
# ============================================================================

class InMemoryGarmentRepository:
    def __init__(self):
        self.items: Dict[str, Garment] = {}

    async def create(self, data):
        data = dict(data)
        data.pop("id", None)
        garment = Garment(id=str(ObjectId()), **data)
        self.items[garment.id] = garment
        return garment

    async def get(self, user_id, garment_id):
        garment = self.items.get(garment_id)
        return garment if garment and garment.user_id == user_id else None

    async def find_by_ids(self, user_id, garment_ids):
        return [g for g in (self.items.get(i) for i in garment_ids) if g and g.user_id == user_id]

    async def list(self, user_id, category=None, style=None, season=None, skip=0, limit=None):
        items = [
            g for g in self.items.values()
            if g.user_id == user_id
            and (category is None or g.category == category)
            and (style is None or g.style == style)
            and (season is None or season in g.seasons)
        ]
        items.sort(key=lambda g: g.created_at, reverse=True)
        items = items[skip:]
        return items[:limit] if limit else items

    async def count(self, user_id):
        return len([g for g in self.items.values() if g.user_id == user_id])

    async def update(self, user_id, garment_id, fields):
        garment = await self.get(user_id, garment_id)
        if garment is None:
            return None
        updated = Garment(**{**garment.model_dump(), **fields, "updated_at": datetime.utcnow()})
        self.items[garment_id] = updated
        return updated

    async def record_wear(self, user_id, garment_ids, worn_at):
        modified = 0
        for garment_id in garment_ids:
            garment = await self.get(user_id, garment_id)
            if garment is None:
                continue
            self.items[garment_id] = garment.model_copy(update={
                "wear_count": garment.wear_count + 1,
                "last_worn": worn_at,
                "updated_at": worn_at,
            })
            modified += 1
        return modified

    async def delete(self, user_id, garment_id):
        garment = await self.get(user_id, garment_id)
        if garment is not None:
            del self.items[garment_id]
        return garment


class InMemoryBehaviorRepository:
    def __init__(self):
        self.events: List[BehaviorEvent] = []
        self.fail_inserts = False

    async def insert(self, data):
        if self.fail_inserts:
            raise ConnectionError("document store unavailable")
        event = BehaviorEvent(id=str(ObjectId()), **data)
        self.events.append(event)
        return event

    async def find_since(self, user_id, since):
        events = [e for e in self.events if e.user_id == user_id and e.created_at >= since]
        return sorted(events, key=lambda e: e.created_at, reverse=True)

    async def delete_for_user(self, user_id):
        before = len(self.events)
        self.events = [e for e in self.events if e.user_id != user_id]
        return before - len(self.events)


class InMemoryUserRepository:
    """Yields between read and write so concurrent updates can interleave."""

    def __init__(self):
        self.users: Dict[str, UserInDB] = {}
        self.learning: Dict[str, dict] = {}

    async def create(self, data):
        user = UserInDB(id=str(ObjectId()), **data)
        self.users[user.id] = user
        return user

    async def get(self, user_id):
        return self.users.get(user_id)

    async def get_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    async def update(self, user_id, fields, upsert=False):
        user = self.users.get(user_id)
        if user is None:
            if not upsert:
                return None
            user = UserInDB(id=user_id, name="guest")
        self.users[user_id] = UserInDB(**{**user.model_dump(), **fields})
        return self.users[user_id]

    async def get_learning_data(self, user_id):
        await asyncio.sleep(0)
        data = self.learning.get(user_id)
        return UserPreferenceState(**data) if data else None

    async def save_learning_data(self, user_id, state):
        await asyncio.sleep(0)
        state.updated_at = datetime.utcnow()
        self.learning[user_id] = state.model_dump()

    async def clear_learning_data(self, user_id):
        self.learning.pop(user_id, None)


# ============================================================================
# Scripted vision provider
# ============================================================================

def provider_json(**overrides) -> str:
    """Free-text model answer wrapping a JSON attribute object."""
    payload = {
        "category": "top",
        "subCategory": "t-shirt",
        "colors": ["navy", "white"],
        "style": "casual",
        "season": ["summer"],
        "features": ["cotton"],
        "tags": ["basic"],
        "confidence": 0.9,
    }
    payload.update(overrides)
    return "Here is the analysis:\n" + json.dumps(payload) + "\nHope this helps."


class ScriptedProvider(VisionProvider):
    """Returns or raises the scripted outcomes in order; repeats the last one."""

    def __init__(self, name: str, script: List[Union[str, Exception]], api_key: Optional[str] = "test-key"):
        super().__init__(api_key, timeout=1.0, retry_backoff=0.0)
        self.name = name
        self.script = list(script)
        self.calls = 0

    def request(self, image_b64, mime_type):
        outcome = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def provider_error(name: str, kind: str) -> ProviderError:
    return ProviderError(name, kind, "scripted")


# ============================================================================
# Images
# ============================================================================

def solid_image_bytes(color=(20, 40, 160), size=(32, 32), fmt="PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def striped_image_bytes(size=(64, 64), stripe=2) -> bytes:
    """Alternating black/white vertical stripes."""
    img = Image.new("RGB", size, (255, 255, 255))
    pixels = img.load()
    for x in range(size[0]):
        if (x // stripe) % 2 == 0:
            for y in range(size[1]):
                pixels[x, y] = (0, 0, 0)
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with every provider key cleared and uploads in a temp dir."""
    return Settings(
        DISABLE_AUTH=True,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        GEMINI_API_KEY=None,
        OPENAI_API_KEY=None,
        KIMI_API_KEY=None,
        ANTHROPIC_API_KEY=None,
        GOOGLE_VISION_API_KEY=None,
        AWS_ACCESS_KEY_ID=None,
        AWS_SECRET_ACCESS_KEY=None,
        SECRET_KEY="test-secret",
    )


@pytest.fixture
def garment_repo() -> InMemoryGarmentRepository:
    return InMemoryGarmentRepository()


@pytest.fixture
def behavior_repo() -> InMemoryBehaviorRepository:
    return InMemoryBehaviorRepository()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def metrics() -> AnalysisMetrics:
    return AnalysisMetrics()


@pytest.fixture
def scripted_gateway(metrics):
    """Factory: gateway over the given scripted providers."""
    def _build(*providers, preferred="auto", local_analyzer=None):
        kwargs = {}
        if local_analyzer is not None:
            kwargs["local_analyzer"] = local_analyzer
        return VisionAnalysisGateway(list(providers), metrics, preferred=preferred, **kwargs)
    return _build


@pytest.fixture
def container(test_settings, user_repo, garment_repo, behavior_repo, scripted_gateway):
    gateway = scripted_gateway(ScriptedProvider("gemini", [provider_json()]))
    return build_container(
        test_settings,
        users=user_repo,
        garments=garment_repo,
        behaviors=behavior_repo,
        vision=gateway,
        embeddings=EmbeddingService(None),
        advisor=OutfitAdvisor(),
    )


@pytest.fixture
def app(test_settings, container):
    """FastAPI app with the in-memory container; lifespan is not run."""
    from smart_wardrobe.main import create_app

    application = create_app(test_settings)
    application.state.container = container
    return application


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_garment(garment_repo):
    """Factory: persist a garment for the guest user (or a given user)."""
    async def _make(user_id="000000000000000000000000", **fields):
        now = fields.pop("created_at", datetime.utcnow())
        data = {
            "user_id": user_id,
            "image_url": None,
            "category": "top",
            "sub_category": "t-shirt",
            "colors": ["white"],
            "style": "casual",
            "seasons": ["summer"],
            "created_at": now,
            "updated_at": now,
        }
        data.update(fields)
        return await garment_repo.create(data)
    return _make
