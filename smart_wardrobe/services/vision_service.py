"""
Vision Analysis Gateway - one entry point for garment photo analysis

Purpose:
- Walk the provider chain (preferred first, then fixed priority) until one succeeds
- Top up weak results with the local pixel heuristics
- Time every outcome into an injected metrics record

analyze() never raises: when the whole chain fails the caller gets the
fixed low-confidence default tagged "needs-reanalysis".
"""

from typing import Optional, List, Dict, Any, Callable
from datetime import datetime
import asyncio
import logging
import threading
import time

from smart_wardrobe.models.garment import ClothingAttributes, default_attributes
from smart_wardrobe.services.local_analyzer import analyze_locally, LOCAL_CONFIDENCE
from smart_wardrobe.services.vision_providers import (
    VisionProvider,
    ProviderError,
    GeminiVisionProvider,
    OpenAIVisionProvider,
    KimiVisionProvider,
    AnthropicVisionProvider,
    GoogleVisionProvider,
)

logger = logging.getLogger(__name__)

AUTO = "auto"
PROVIDER_PRIORITY = ["gemini", "openai", "kimi", "anthropic", "google-vision"]


class AnalysisMetrics:
    """Process-lifetime counters; owned by the service container, not global."""

    def __init__(self):
        self._lock = threading.Lock()
        self.total_analyses = 0
        self.by_service: Dict[str, Dict[str, Any]] = {}
        self.last: Optional[Dict[str, Any]] = None

    def _service(self, name: str) -> Dict[str, Any]:
        return self.by_service.setdefault(
            name, {"count": 0, "last_latency_ms": None, "errors": 0}
        )

    def record_outcome(self, provider: str, latency_ms: int, success: bool) -> None:
        with self._lock:
            self.total_analyses += 1
            entry = self._service(provider)
            entry["count"] += 1
            entry["last_latency_ms"] = latency_ms
            self.last = {
                "provider": provider,
                "latency_ms": latency_ms,
                "success": success,
                "at": datetime.utcnow().isoformat(),
            }

    def record_provider_failure(self, provider: str) -> None:
        with self._lock:
            entry = self._service(provider)
            entry["count"] += 1
            entry["errors"] += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_analyses": self.total_analyses,
                "by_service": {k: dict(v) for k, v in self.by_service.items()},
                "last": dict(self.last) if self.last else None,
            }


class VisionAnalysisGateway:
    def __init__(
        self,
        providers: List[VisionProvider],
        metrics: AnalysisMetrics,
        preferred: str = AUTO,
        local_analyzer: Callable[[bytes], ClothingAttributes] = analyze_locally,
        low_confidence_threshold: float = 0.6,
    ):
        self.providers = {p.name: p for p in providers}
        self.metrics = metrics
        self.preferred = preferred or AUTO
        self.local_analyzer = local_analyzer
        self.low_confidence_threshold = low_confidence_threshold

    @property
    def available_services(self) -> List[str]:
        return [name for name in self._priority() if self.providers[name].is_configured]

    def _priority(self) -> List[str]:
        ordered = [name for name in PROVIDER_PRIORITY if name in self.providers]
        return ordered + [name for name in self.providers if name not in ordered]

    def provider_chain(self, service: Optional[str] = None) -> List[VisionProvider]:
        """Configured providers in attempt order for the requested mode."""
        mode = service or self.preferred
        order = self._priority()
        if mode != AUTO and mode in self.providers:
            order = [mode] + [name for name in order if name != mode]
        return [self.providers[name] for name in order if self.providers[name].is_configured]

    def set_preferred(self, service: str) -> None:
        if service != AUTO and service not in self.providers:
            raise ValueError(f"Unknown AI service: {service}")
        self.preferred = service
        logger.info(f"🔧 Preferred AI service set to: {service}")

    async def analyze(
        self,
        image_bytes: bytes,
        mime_type: str = "image/jpeg",
        service: Optional[str] = None,
    ) -> ClothingAttributes:
        started = time.perf_counter()
        errors: List[str] = []

        try:
            for provider in self.provider_chain(service):
                try:
                    logger.info(f"🔍 Analyzing with {provider.name}")
                    result = await provider.analyze(image_bytes, mime_type)
                except ProviderError as e:
                    logger.warning(f"⚠️ {provider.name} failed ({e.kind}): {e}")
                    errors.append(f"{provider.name}: {e.kind}")
                    self.metrics.record_provider_failure(provider.name)
                    continue
                except Exception as e:
                    logger.warning(f"⚠️ {provider.name} failed unexpectedly: {e}", exc_info=True)
                    errors.append(f"{provider.name}: {type(e).__name__}")
                    self.metrics.record_provider_failure(provider.name)
                    continue

                if result.has_generic_colors or result.confidence < self.low_confidence_threshold:
                    result = await self._augment(result, image_bytes)

                latency_ms = self._elapsed_ms(started)
                result = result.model_copy(
                    update={"latency_ms": latency_ms, "provider_errors": errors}
                )
                self.metrics.record_outcome(result.provider, latency_ms, success=True)
                logger.info(
                    f"✅ Analysis by {result.provider} in {latency_ms}ms "
                    f"(confidence {result.confidence:.2f})"
                )
                return result
        except Exception as e:
            logger.error(f"❌ Vision gateway error: {e}", exc_info=True)
            errors.append(f"gateway: {type(e).__name__}")

        latency_ms = self._elapsed_ms(started)
        logger.warning(f"All AI services failed, using default analysis: {errors}")
        fallback = default_attributes(latency_ms).model_copy(update={"provider_errors": errors})
        self.metrics.record_outcome(fallback.provider, latency_ms, success=False)
        return fallback

    async def _augment(
        self, result: ClothingAttributes, image_bytes: bytes
    ) -> ClothingAttributes:
        try:
            local = await asyncio.to_thread(self.local_analyzer, image_bytes)
        except Exception as e:
            logger.warning(f"Local analysis unavailable, keeping provider result: {e}")
            return result

        update: Dict[str, Any] = {
            "confidence": max(result.confidence, LOCAL_CONFIDENCE),
            "provider": f"{result.provider}+local",
        }
        if result.has_generic_colors and not local.has_generic_colors:
            update["colors"] = local.colors
        if not result.sub_category or result.sub_category == "general":
            update["sub_category"] = local.sub_category
        return result.model_copy(update=update)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)


def build_vision_providers(settings) -> List[VisionProvider]:
    """Instantiate every known provider; missing keys leave them unconfigured."""
    common = {
        "timeout": settings.AI_TIMEOUT_SECONDS,
        "retry_backoff": settings.AI_RETRY_BACKOFF_SECONDS,
    }
    return [
        GeminiVisionProvider(settings.GEMINI_API_KEY, model=settings.GEMINI_VISION_MODEL, **common),
        OpenAIVisionProvider(settings.OPENAI_API_KEY, model=settings.OPENAI_VISION_MODEL, **common),
        KimiVisionProvider(
            settings.KIMI_API_KEY,
            model=settings.KIMI_VISION_MODEL,
            base_url=settings.KIMI_BASE_URL,
            **common,
        ),
        AnthropicVisionProvider(
            settings.ANTHROPIC_API_KEY, model=settings.ANTHROPIC_VISION_MODEL, **common
        ),
        GoogleVisionProvider(settings.GOOGLE_VISION_API_KEY, **common),
    ]
