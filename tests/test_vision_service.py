"""
Tests for the vision analysis gateway: fallback chain, augmentation, metrics
"""
import pytest

from smart_wardrobe.models.garment import ClothingAttributes
from smart_wardrobe.services.vision_providers import ProviderError
from smart_wardrobe.services.vision_service import AUTO

from conftest import (
    ScriptedProvider,
    provider_error,
    provider_json,
    solid_image_bytes,
    striped_image_bytes,
)


def failing_local(image_bytes):
    raise OSError("cannot decode")


class TestProviderChain:
    def test_auto_uses_fixed_priority_and_skips_unconfigured(self, scripted_gateway):
        gateway = scripted_gateway(
            ScriptedProvider("google-vision", [provider_json()]),
            ScriptedProvider("openai", [provider_json()]),
            ScriptedProvider("kimi", [provider_json()], api_key=None),
            ScriptedProvider("gemini", [provider_json()]),
        )

        assert [p.name for p in gateway.provider_chain()] == ["gemini", "openai", "google-vision"]
        assert gateway.available_services == ["gemini", "openai", "google-vision"]

    def test_preferred_provider_goes_first(self, scripted_gateway):
        gateway = scripted_gateway(
            ScriptedProvider("gemini", [provider_json()]),
            ScriptedProvider("openai", [provider_json()]),
            ScriptedProvider("anthropic", [provider_json()]),
            preferred="anthropic",
        )

        assert [p.name for p in gateway.provider_chain()] == ["anthropic", "gemini", "openai"]
        assert [p.name for p in gateway.provider_chain("openai")] == ["openai", "gemini", "anthropic"]
        assert [p.name for p in gateway.provider_chain(AUTO)] == ["gemini", "openai", "anthropic"]

    def test_set_preferred_rejects_unknown(self, scripted_gateway):
        gateway = scripted_gateway(ScriptedProvider("gemini", [provider_json()]))

        with pytest.raises(ValueError):
            gateway.set_preferred("clip")
        gateway.set_preferred("gemini")
        assert gateway.preferred == "gemini"


class TestAnalyze:
    async def test_first_success_wins(self, scripted_gateway, metrics):
        gemini = ScriptedProvider("gemini", [provider_json(colors=["Navy"])])
        openai = ScriptedProvider("openai", [provider_json()])
        gateway = scripted_gateway(gemini, openai)

        result = await gateway.analyze(solid_image_bytes())

        assert result.provider == "gemini"
        assert result.colors == ["navy"]
        assert result.provider_errors == []
        assert openai.calls == 0
        assert metrics.snapshot()["last"]["success"] is True

    async def test_falls_through_to_next_provider(self, scripted_gateway, metrics):
        gemini = ScriptedProvider("gemini", [provider_error("gemini", ProviderError.CLIENT_ERROR)])
        openai = ScriptedProvider("openai", ["not json at all"])
        anthropic = ScriptedProvider("anthropic", [provider_json(category="jeans")])
        gateway = scripted_gateway(gemini, openai, anthropic)

        result = await gateway.analyze(solid_image_bytes())

        assert result.provider == "anthropic"
        assert result.category == "bottom"
        assert result.provider_errors == ["gemini: client_error", "openai: unparseable"]
        snapshot = metrics.snapshot()
        assert snapshot["by_service"]["gemini"] == {"count": 1, "last_latency_ms": None, "errors": 1}
        assert snapshot["by_service"]["openai"]["count"] == 1
        assert snapshot["by_service"]["openai"]["errors"] == 1
        assert snapshot["by_service"]["anthropic"]["count"] == 1
        assert snapshot["by_service"]["anthropic"]["errors"] == 0

    async def test_unexpected_exception_moves_down_the_chain(self, scripted_gateway):
        gemini = ScriptedProvider("gemini", [KeyError("candidates")])
        openai = ScriptedProvider("openai", [provider_json()])
        gateway = scripted_gateway(gemini, openai)

        result = await gateway.analyze(solid_image_bytes())

        assert result.provider == "openai"
        assert result.provider_errors == ["gemini: KeyError"]

    async def test_all_failing_returns_default(self, scripted_gateway, metrics):
        gateway = scripted_gateway(
            ScriptedProvider("gemini", [provider_error("gemini", ProviderError.TIMEOUT)]),
            ScriptedProvider("openai", [provider_error("openai", ProviderError.CONNECTION)]),
        )

        result = await gateway.analyze(solid_image_bytes())

        assert result.is_fallback
        assert result.confidence == pytest.approx(0.3)
        assert result.colors == ["unknown"]
        assert result.seasons == ["spring", "autumn"]
        assert result.suggested_tags == ["needs-reanalysis"]
        assert result.provider_errors == ["gemini: timeout", "openai: connection"]
        assert metrics.snapshot()["last"]["success"] is False
        assert metrics.snapshot()["total_analyses"] == 1

    async def test_no_configured_provider_returns_default(self, scripted_gateway):
        gateway = scripted_gateway(ScriptedProvider("gemini", [provider_json()], api_key=None))

        result = await gateway.analyze(solid_image_bytes())

        assert result.is_fallback
        assert result.provider_errors == []

    async def test_corrupt_image_never_raises(self, scripted_gateway):
        gateway = scripted_gateway(
            ScriptedProvider("gemini", [provider_json(colors=[], confidence=0.2)]),
        )

        result = await gateway.analyze(b"\x00\x01garbage")

        # Local heuristics could not decode it; provider answer is kept as-is
        assert result.provider == "gemini"
        assert result.colors == ["unknown"]
        assert result.confidence == pytest.approx(0.2)

    async def test_explicit_service_tried_first(self, scripted_gateway):
        gemini = ScriptedProvider("gemini", [provider_json()])
        openai = ScriptedProvider("openai", [provider_json()])
        gateway = scripted_gateway(gemini, openai)

        result = await gateway.analyze(solid_image_bytes(), service="openai")

        assert result.provider == "openai"
        assert gemini.calls == 0


class TestAugmentation:
    async def test_generic_colors_are_filled_locally(self, scripted_gateway):
        gateway = scripted_gateway(
            ScriptedProvider("gemini", [provider_json(colors=["unknown"], subCategory="", confidence=0.9)]),
        )

        result = await gateway.analyze(striped_image_bytes())

        assert result.provider == "gemini+local"
        assert set(result.colors) == {"black", "white"}
        assert result.sub_category == "shirt"
        assert result.confidence == pytest.approx(0.9)

    async def test_low_confidence_is_raised_to_local_level(self, scripted_gateway):
        gateway = scripted_gateway(
            ScriptedProvider("gemini", [provider_json(colors=["navy"], confidence=0.4)]),
        )

        result = await gateway.analyze(solid_image_bytes((200, 20, 20)))

        assert result.provider == "gemini+local"
        assert result.confidence == pytest.approx(0.7)
        # Provider colors are specific, so they are kept
        assert result.colors == ["navy"]
        assert result.sub_category == "t-shirt"

    async def test_confident_result_is_untouched(self, scripted_gateway):
        calls = []

        def spy(image_bytes):
            calls.append(image_bytes)
            return ClothingAttributes(colors=["green"])

        gateway = scripted_gateway(
            ScriptedProvider("gemini", [provider_json()]),
            local_analyzer=spy,
        )

        result = await gateway.analyze(solid_image_bytes())

        assert result.provider == "gemini"
        assert calls == []

    async def test_local_failure_keeps_provider_result(self, scripted_gateway):
        gateway = scripted_gateway(
            ScriptedProvider("gemini", [provider_json(confidence=0.3)]),
            local_analyzer=failing_local,
        )

        result = await gateway.analyze(solid_image_bytes())

        assert result.provider == "gemini"
        assert result.confidence == pytest.approx(0.3)
